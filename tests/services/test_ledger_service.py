"""
LedgerService: one entry per movement, quantity effect applied in the
same flush.
"""

from decimal import Decimal
from uuid import uuid4

import pytest

from stock_kernel.domain.ledger import EntryStatus, EntryType, SaleDebitTiming
from stock_kernel.exceptions import (
    BatchNotFoundError,
    InsufficientStockError,
    InvalidEntryTypeError,
    InvalidQuantityError,
    LedgerEntryNotFoundError,
)
from stock_kernel.services.ledger_service import LedgerService


class TestRecordNonSale:

    @pytest.mark.parametrize(
        "entry_type, expected_qty",
        [
            ("inbound", 110),
            ("positive return", 110),
            ("negative return", 90),
        ],
    )
    def test_quantity_effect(self, services, batch, user_id, entry_type, expected_qty):
        entry = services.ledger.record(batch.id, entry_type, 10, user_id)

        assert entry.status == EntryStatus.COMPLETED
        assert entry.stock_reserved is False
        assert services.batches.snapshot(batch.id).current_qty == expected_qty

    def test_entry_fields(self, services, batch, user_id, location_ids):
        entry = services.ledger.record(
            batch.id,
            EntryType.INBOUND,
            12,
            user_id,
            notes="Delivery 42",
            from_location_id=location_ids[0],
            to_location_id=location_ids[1],
        )

        assert entry.entry_type == EntryType.INBOUND
        assert entry.quantity == 12
        assert entry.unit_price == Decimal("2.50")
        assert entry.user_id == user_id
        assert entry.notes == "Delivery 42"
        assert entry.from_location_id == location_ids[0]
        assert entry.to_location_id == location_ids[1]
        assert entry.sale_id is None
        assert services.ledger.get(entry.id).id == entry.id

    def test_negative_return_cannot_overdraw(self, services, batch, user_id):
        with pytest.raises(InsufficientStockError):
            services.ledger.record(batch.id, "negative return", 101, user_id)
        assert services.batches.snapshot(batch.id).current_qty == 100

    @pytest.mark.parametrize("quantity", [0, -5, 1.5])
    def test_invalid_quantity(self, services, batch, user_id, quantity):
        with pytest.raises(InvalidQuantityError):
            services.ledger.record(batch.id, "inbound", quantity, user_id)

    def test_invalid_type(self, services, batch, user_id):
        with pytest.raises(InvalidEntryTypeError):
            services.ledger.record(batch.id, "adjustment", 5, user_id)

    def test_unknown_batch(self, services, user_id):
        with pytest.raises(BatchNotFoundError):
            services.ledger.record(uuid4(), "inbound", 5, user_id)

    def test_unknown_entry(self, services):
        with pytest.raises(LedgerEntryNotFoundError):
            services.ledger.get(uuid4())


class TestRecordSale:

    def test_reserves_stock_on_create(self, services, batch, user_id):
        entry = services.ledger.record(batch.id, "sale", 30, user_id)

        assert entry.status == EntryStatus.PENDING
        assert entry.stock_reserved is True
        assert services.batches.snapshot(batch.id).current_qty == 70

    def test_sale_beyond_stock_rejected(self, services, batch, user_id):
        with pytest.raises(InsufficientStockError):
            services.ledger.record(batch.id, "sale", 101, user_id)

    def test_deferred_timing_leaves_quantity(self, session, services, batch, user_id, clock):
        ledger = LedgerService(
            session, services.batches, clock,
            sale_debit_timing=SaleDebitTiming.ON_APPROVAL,
        )
        entry = ledger.record(batch.id, "sale", 30, user_id)

        assert entry.status == EntryStatus.PENDING
        assert entry.stock_reserved is False
        assert services.batches.snapshot(batch.id).current_qty == 100

    def test_deferred_timing_still_checks_availability(self, session, services, batch, user_id, clock):
        ledger = LedgerService(
            session, services.batches, clock,
            sale_debit_timing=SaleDebitTiming.ON_APPROVAL,
        )
        with pytest.raises(InsufficientStockError):
            ledger.record(batch.id, "sale", 101, user_id)
