"""
Module: stock_kernel.selectors.batch_selector
Responsibility: Read-only batch listing by stock state and expiry window.
Architecture position: Kernel > Selectors.

Stock status filters (``as_of`` = the reference day):
    in_stock      current_qty > 0 and expiry_date > as_of
    out_of_stock  current_qty <= 0
    low_stock     0 < current_qty <= low_stock_threshold (per batch)
    expired       expiry_date < as_of and current_qty > 0
    near_expiry   as_of <= expiry_date <= as_of + 30 days and current_qty > 0
"""

from __future__ import annotations

from datetime import date, timedelta
from uuid import UUID

from sqlalchemy import Select, select
from sqlalchemy.orm import Session

from stock_kernel.domain.clock import Clock, SystemClock
from stock_kernel.domain.dtos import (
    NEAR_EXPIRY_WINDOW_DAYS,
    BatchFilter,
    BatchRecord,
    Page,
    StockStatus,
)
from stock_kernel.models.batch import Batch
from stock_kernel.selectors.base import BaseSelector

_SORTABLE = {
    "expiry_date": Batch.expiry_date,
    "manufacture_date": Batch.manufacture_date,
    "purchase_date": Batch.purchase_date,
    "current_qty": Batch.current_qty,
    "created_at": Batch.created_at,
    "batch_number": Batch.batch_number,
}


class BatchSelector(BaseSelector[Batch]):
    """Batch lookups and listings.

    ``as_of`` defaults to the injected clock's day, so status filters
    follow a DeterministicClock in tests.
    """

    def __init__(self, session: Session, clock: Clock | None = None):
        super().__init__(session)
        self._clock = clock or SystemClock()

    def get(self, batch_id: UUID) -> BatchRecord | None:
        batch = self.session.get(Batch, batch_id)
        return batch.to_dto() if batch is not None else None

    def list_batches(self, filters: BatchFilter | None = None) -> Page[BatchRecord]:
        filters = filters or BatchFilter()
        as_of = filters.as_of or self._clock.today()

        stmt = select(Batch)
        if filters.drug_id is not None:
            stmt = stmt.where(Batch.drug_id == filters.drug_id)
        if filters.supplier_id is not None:
            stmt = stmt.where(Batch.supplier_id == filters.supplier_id)
        if filters.expiry_from is not None:
            stmt = stmt.where(Batch.expiry_date >= filters.expiry_from)
        if filters.expiry_to is not None:
            stmt = stmt.where(Batch.expiry_date <= filters.expiry_to)
        stmt = _apply_stock_status(stmt, StockStatus(filters.stock_status), as_of)

        column = _SORTABLE.get(filters.sort_by, Batch.expiry_date)
        order = column.desc() if filters.sort_dir == "desc" else column.asc()
        stmt = stmt.order_by(order, Batch.id)

        rows, meta = self._paginate(stmt, filters.page, filters.limit)
        return Page(items=tuple(b.to_dto() for b in rows), meta=meta)


def _apply_stock_status(stmt: Select, status: StockStatus, as_of: date) -> Select:
    if status == StockStatus.IN_STOCK:
        return stmt.where(Batch.current_qty > 0, Batch.expiry_date > as_of)
    if status == StockStatus.OUT_OF_STOCK:
        return stmt.where(Batch.current_qty <= 0)
    if status == StockStatus.LOW_STOCK:
        return stmt.where(Batch.current_qty > 0, Batch.current_qty <= Batch.low_stock_threshold)
    if status == StockStatus.EXPIRED:
        return stmt.where(Batch.expiry_date < as_of, Batch.current_qty > 0)
    if status == StockStatus.NEAR_EXPIRY:
        return stmt.where(
            Batch.expiry_date >= as_of,
            Batch.expiry_date <= as_of + timedelta(days=NEAR_EXPIRY_WINDOW_DAYS),
            Batch.current_qty > 0,
        )
    return stmt
