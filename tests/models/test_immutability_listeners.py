"""
ORM immutability listeners.

Ledger entries may only change through a sale settlement, notifications
only from unread to read, and audit logs never.
"""

from datetime import datetime, timezone

import pytest
from sqlalchemy import select

from stock_kernel.domain.audit import AuditEntry
from stock_kernel.exceptions import ImmutabilityViolationError
from stock_kernel.models.audit_log import AuditLog
from stock_kernel.models.ledger import LedgerEntry
from stock_kernel.models.notification import Notification


@pytest.fixture
def completed_entry(services, session, batch, user_id) -> LedgerEntry:
    record = services.ledger.record(batch.id, "inbound", 5, user_id)
    session.commit()
    return session.get(LedgerEntry, record.id)


@pytest.fixture
def pending_sale(services, session, batch, user_id) -> LedgerEntry:
    record = services.ledger.record(batch.id, "sale", 5, user_id)
    session.commit()
    return session.get(LedgerEntry, record.id)


@pytest.fixture
def low_stock_alert(services, session, batch) -> Notification:
    services.batches.apply_delta(batch.id, -95)
    services.notifications.evaluate_batch_stock(batch.id)
    session.commit()
    return session.execute(select(Notification)).scalar_one()


class TestLedgerEntryImmutability:

    def test_quantity_cannot_change(self, session, completed_entry):
        completed_entry.quantity = 500
        with pytest.raises(ImmutabilityViolationError):
            session.flush()

    def test_completed_entry_status_cannot_change(self, session, completed_entry):
        completed_entry.status = "approved"
        with pytest.raises(ImmutabilityViolationError):
            session.flush()

    def test_notes_alone_cannot_change(self, session, completed_entry):
        completed_entry.notes = "edited later"
        with pytest.raises(ImmutabilityViolationError):
            session.flush()

    def test_cannot_delete(self, session, completed_entry):
        session.delete(completed_entry)
        with pytest.raises(ImmutabilityViolationError):
            session.flush()

    def test_settlement_allowed(self, session, pending_sale):
        pending_sale.status = "approved"
        pending_sale.notes = "Approved at till"
        session.flush()
        assert pending_sale.status == "approved"

    def test_settled_sale_is_frozen(self, services, session, pending_sale):
        services.approvals.decline(pending_sale.id, "Wrong patient")
        session.commit()

        pending_sale.status = "approved"
        with pytest.raises(ImmutabilityViolationError):
            session.flush()


class TestNotificationImmutability:

    def test_mark_read_allowed(self, session, low_stock_alert):
        low_stock_alert.is_read = True
        low_stock_alert.read_at = datetime(2024, 1, 2, tzinfo=timezone.utc)
        session.flush()

    def test_read_cannot_become_unread(self, session, low_stock_alert):
        low_stock_alert.is_read = True
        session.commit()

        low_stock_alert.is_read = False
        with pytest.raises(ImmutabilityViolationError):
            session.flush()

    def test_message_cannot_change(self, session, low_stock_alert):
        low_stock_alert.message = "Something else"
        with pytest.raises(ImmutabilityViolationError):
            session.flush()

    def test_cannot_delete(self, session, low_stock_alert):
        session.delete(low_stock_alert)
        with pytest.raises(ImmutabilityViolationError):
            session.flush()


class TestAuditLogImmutability:

    @pytest.fixture
    def audit_row(self, session) -> AuditLog:
        row = AuditLog.from_entry(
            AuditEntry(
                entity_name="Batch",
                entity_id="b-1",
                action="CREATE",
                user_id=None,
                summary="Created batch #b-1 with 1 unit(s)",
                occurred_at=datetime(2024, 1, 1, tzinfo=timezone.utc),
            )
        )
        session.add(row)
        session.commit()
        return row

    def test_cannot_update(self, session, audit_row):
        audit_row.summary = "rewritten"
        with pytest.raises(ImmutabilityViolationError):
            session.flush()

    def test_cannot_delete(self, session, audit_row):
        session.delete(audit_row)
        with pytest.raises(ImmutabilityViolationError):
            session.flush()
