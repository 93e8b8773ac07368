"""
Module: stock_kernel.selectors.ledger_selector
Responsibility: Read-only queries over ledger entries: filtered listing,
    pending sales, per-batch history, and the net movement that
    reconciles a batch's stored quantity with its ledger.
Architecture position: Kernel > Selectors.

Invariants supported:
    - ``net_movement`` counts an entry only when its stock effect has
      been applied: every non-sale entry, and sale entries whose
      ``stock_reserved`` flag is set.  For any batch,
      opening quantity + net_movement == current_qty.
"""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import Select, and_, case, func, or_, select

from stock_kernel.domain.dtos import LedgerFilter, Page
from stock_kernel.domain.ledger import CREDIT_TYPES, EntryStatus, EntryType, LedgerEntryRecord
from stock_kernel.models.ledger import LedgerEntry
from stock_kernel.selectors.base import BaseSelector

_SORTABLE = {
    "transaction_date": LedgerEntry.transaction_date,
    "created_at": LedgerEntry.created_at,
    "quantity": LedgerEntry.quantity,
}


class LedgerSelector(BaseSelector[LedgerEntry]):
    """Read side of the stock ledger."""

    def get(self, entry_id: UUID) -> LedgerEntryRecord | None:
        entry = self.session.get(LedgerEntry, entry_id)
        return entry.to_dto() if entry is not None else None

    def list_entries(self, filters: LedgerFilter | None = None) -> Page[LedgerEntryRecord]:
        """Filtered, sorted, paginated listing."""
        filters = filters or LedgerFilter()
        stmt = self._apply_filters(select(LedgerEntry), filters)

        column = _SORTABLE.get(filters.sort_by, LedgerEntry.transaction_date)
        order = column.asc() if filters.sort_dir == "asc" else column.desc()
        stmt = stmt.order_by(order, LedgerEntry.id)

        rows, meta = self._paginate(stmt, filters.page, filters.limit)
        return Page(items=tuple(r.to_dto() for r in rows), meta=meta)

    def pending_sales(self, batch_id: UUID | None = None) -> list[LedgerEntryRecord]:
        """Sale entries still awaiting a decision, oldest first."""
        stmt = select(LedgerEntry).where(
            LedgerEntry.entry_type == EntryType.SALE.value,
            LedgerEntry.status == EntryStatus.PENDING.value,
        )
        if batch_id is not None:
            stmt = stmt.where(LedgerEntry.batch_id == batch_id)
        stmt = stmt.order_by(LedgerEntry.transaction_date, LedgerEntry.id)
        return [e.to_dto() for e in self.session.execute(stmt).scalars()]

    def batch_history(self, batch_id: UUID) -> list[LedgerEntryRecord]:
        stmt = (
            select(LedgerEntry)
            .where(LedgerEntry.batch_id == batch_id)
            .order_by(LedgerEntry.transaction_date, LedgerEntry.created_at, LedgerEntry.id)
        )
        return [e.to_dto() for e in self.session.execute(stmt).scalars()]

    def net_movement(self, batch_id: UUID) -> int:
        """Sum of applied signed quantities for one batch."""
        credit_values = [t.value for t in CREDIT_TYPES]
        signed = case(
            (LedgerEntry.entry_type.in_(credit_values), LedgerEntry.quantity),
            else_=-LedgerEntry.quantity,
        )
        applied = or_(
            LedgerEntry.entry_type != EntryType.SALE.value,
            LedgerEntry.stock_reserved.is_(True),
        )
        total = self.session.execute(
            select(func.coalesce(func.sum(signed), 0)).where(
                and_(LedgerEntry.batch_id == batch_id, applied)
            )
        ).scalar_one()
        return int(total)

    @staticmethod
    def _apply_filters(stmt: Select, filters: LedgerFilter) -> Select:
        if filters.entry_type is not None:
            stmt = stmt.where(LedgerEntry.entry_type == EntryType.parse(filters.entry_type).value)
        if filters.status is not None:
            stmt = stmt.where(LedgerEntry.status == EntryStatus(filters.status).value)
        if filters.batch_id is not None:
            stmt = stmt.where(LedgerEntry.batch_id == filters.batch_id)
        if filters.user_id is not None:
            stmt = stmt.where(LedgerEntry.user_id == filters.user_id)
        if filters.from_location_id is not None:
            stmt = stmt.where(LedgerEntry.from_location_id == filters.from_location_id)
        if filters.to_location_id is not None:
            stmt = stmt.where(LedgerEntry.to_location_id == filters.to_location_id)
        if filters.start_date is not None:
            stmt = stmt.where(LedgerEntry.transaction_date >= filters.start_date)
        if filters.end_date is not None:
            stmt = stmt.where(LedgerEntry.transaction_date <= filters.end_date)
        if filters.search:
            stmt = stmt.where(LedgerEntry.notes.ilike(f"%{filters.search}%"))
        return stmt
