"""
stock_kernel.services.sale_approval_service -- Sale settlement lifecycle.

Responsibility:
    Moves pending sales to ``approved`` or ``declined`` and applies or
    releases their stock effect.  Also manages grouped sales: a Sale
    header whose lines are sale ledger entries settled together.

Architecture position:
    Kernel > Services.  May import from domain/, models/, db/.

Invariants enforced:
    TERMINAL_SALE_STATUS -- ``SALE_TRANSITIONS`` is checked before any
        write; approved/declined have no outgoing edges, so a sale's
        stock effect is applied or released at most once.
    ATOMIC_MOVEMENT -- the batch delta and the status change are flushed
        into the caller's transaction together.

Settlement by reservation flag:
    Each entry records whether its debit was applied at creation
    (``stock_reserved``).  Approve debits only unreserved entries;
    decline credits back only reserved ones.  An entry is therefore
    always settled by the rule it was created under, even if the
    configured timing changed in between.

Failure modes:
    - LedgerEntryNotFoundError / SaleNotFoundError.
    - NotASaleError, InvalidSaleTransitionError, DeclineReasonRequiredError,
      GroupedSaleLineError, EmptySaleError (BadRequest).
    - InsufficientStockError when approving an unreserved sale.
"""

from __future__ import annotations

from typing import Sequence
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from stock_kernel.domain.clock import Clock
from stock_kernel.domain.dtos import SaleItem, SaleRecord, SaleStatus
from stock_kernel.domain.ledger import (
    EntryStatus,
    EntryType,
    LedgerEntryRecord,
    append_note,
    can_transition,
)
from stock_kernel.exceptions import (
    DeclineReasonRequiredError,
    EmptySaleError,
    GroupedSaleLineError,
    InvalidSaleTransitionError,
    NotASaleError,
    SaleNotFoundError,
)
from stock_kernel.logging_config import get_logger
from stock_kernel.models.ledger import LedgerEntry
from stock_kernel.models.sale import Sale
from stock_kernel.services.base import BaseService
from stock_kernel.services.batch_store import BatchStore
from stock_kernel.services.ledger_service import LedgerService

logger = get_logger("services.sale_approval")


def _decline_note(reason: str) -> str:
    return f"Declined: {reason.strip()}"


class SaleApprovalService(BaseService):
    """pending -> approved | declined, for single sales and grouped sales."""

    def __init__(
        self,
        session: Session,
        ledger: LedgerService,
        batch_store: BatchStore,
        clock: Clock | None = None,
    ):
        super().__init__(session, clock)
        self._ledger = ledger
        self._batches = batch_store

    # -------------------------------------------------------------------------
    # Single sale entries
    # -------------------------------------------------------------------------

    def approve(
        self,
        entry_id: UUID,
        notes: str | None = None,
        user_id: UUID | None = None,
    ) -> LedgerEntryRecord:
        """Approve a pending sale entry.

        Postconditions:
            - status is ``approved`` and the debit has been applied exactly once.
            - ``notes`` (if any) appended to the entry's existing notes.
        """
        entry = self._load_standalone_sale(entry_id)
        self._require_transition(entry, EntryStatus.APPROVED)
        self._settle_approve(entry, notes)
        self.session.flush()

        logger.info(
            "sale_approved",
            extra={
                "entry_id": str(entry.id),
                "batch_id": str(entry.batch_id),
                "quantity": entry.quantity,
                "approved_by": str(user_id) if user_id else None,
            },
        )
        return entry.to_dto()

    def decline(
        self,
        entry_id: UUID,
        reason: str,
        user_id: UUID | None = None,
    ) -> LedgerEntryRecord:
        """Decline a pending sale entry, releasing reserved stock.

        Postconditions:
            - status is ``declined``; if stock was reserved the exact entry
              quantity has been credited back to the batch.
            - ``Declined: <reason>`` appended to the entry's notes.
        """
        entry = self._load_standalone_sale(entry_id)
        self._require_transition(entry, EntryStatus.DECLINED)
        if not reason or not reason.strip():
            raise DeclineReasonRequiredError(str(entry_id))
        self._settle_decline(entry, reason)
        self.session.flush()

        logger.info(
            "sale_declined",
            extra={
                "entry_id": str(entry.id),
                "batch_id": str(entry.batch_id),
                "quantity": entry.quantity,
                "declined_by": str(user_id) if user_id else None,
            },
        )
        return entry.to_dto()

    # -------------------------------------------------------------------------
    # Grouped sales
    # -------------------------------------------------------------------------

    def create_sale(
        self,
        items: Sequence[SaleItem],
        user_id: UUID | None,
        notes: str | None = None,
    ) -> SaleRecord:
        """Create a pending sale header and one pending sale entry per item."""
        if not items:
            raise EmptySaleError()

        now = self.clock.now()
        sale = Sale(
            status=SaleStatus.PENDING.value,
            notes=notes,
            created_by_id=user_id,
            created_at=now,
            updated_at=now,
        )
        self.session.add(sale)
        self.session.flush()

        for item in items:
            self._ledger.record(
                batch_id=item.batch_id,
                entry_type=EntryType.SALE,
                quantity=item.quantity,
                user_id=user_id,
                notes=item.notes,
                sale_id=sale.id,
            )

        self.session.expire(sale, ["entries"])
        logger.info(
            "sale_created",
            extra={"sale_id": str(sale.id), "line_count": len(items)},
        )
        return sale.to_dto()

    def approve_sale_group(
        self,
        sale_id: UUID,
        notes: str | None = None,
        user_id: UUID | None = None,
    ) -> SaleRecord:
        """Approve a grouped sale and every one of its lines atomically."""
        sale = self._load_sale(sale_id, SaleStatus.APPROVED)
        for entry in self._load_lines(sale_id):
            self._require_transition(entry, EntryStatus.APPROVED)
            self._settle_approve(entry, None)

        sale.status = SaleStatus.APPROVED.value
        sale.notes = append_note(sale.notes, notes)
        sale.updated_at = self.clock.now()
        self.session.flush()
        self.session.expire(sale, ["entries"])

        logger.info(
            "sale_group_approved",
            extra={
                "sale_id": str(sale_id),
                "approved_by": str(user_id) if user_id else None,
            },
        )
        return sale.to_dto()

    def decline_sale_group(
        self,
        sale_id: UUID,
        reason: str,
        user_id: UUID | None = None,
    ) -> SaleRecord:
        """Decline a grouped sale, releasing every line's reserved stock."""
        sale = self._load_sale(sale_id, SaleStatus.DECLINED)
        if not reason or not reason.strip():
            raise DeclineReasonRequiredError(str(sale_id))

        for entry in self._load_lines(sale_id):
            self._require_transition(entry, EntryStatus.DECLINED)
            self._settle_decline(entry, reason)

        sale.status = SaleStatus.DECLINED.value
        sale.notes = append_note(sale.notes, _decline_note(reason))
        sale.updated_at = self.clock.now()
        self.session.flush()
        self.session.expire(sale, ["entries"])

        logger.info(
            "sale_group_declined",
            extra={
                "sale_id": str(sale_id),
                "declined_by": str(user_id) if user_id else None,
            },
        )
        return sale.to_dto()

    def get_sale(self, sale_id: UUID) -> SaleRecord:
        sale = self.session.get(Sale, sale_id)
        if sale is None:
            raise SaleNotFoundError(str(sale_id))
        return sale.to_dto()

    # -------------------------------------------------------------------------
    # Internal
    # -------------------------------------------------------------------------

    def _load_standalone_sale(self, entry_id: UUID) -> LedgerEntry:
        entry = self._ledger.get_model(entry_id, for_update=True)
        if entry.entry_type != EntryType.SALE.value:
            raise NotASaleError(str(entry_id), entry.entry_type)
        if entry.sale_id is not None:
            raise GroupedSaleLineError(str(entry_id), str(entry.sale_id))
        return entry

    def _load_sale(self, sale_id: UUID, target: SaleStatus) -> Sale:
        sale = self.session.execute(
            select(Sale)
            .where(Sale.id == sale_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        if sale is None:
            raise SaleNotFoundError(str(sale_id))
        if sale.status != SaleStatus.PENDING.value:
            raise InvalidSaleTransitionError(str(sale_id), sale.status, target.value)
        return sale

    def _load_lines(self, sale_id: UUID) -> list[LedgerEntry]:
        return list(
            self.session.execute(
                select(LedgerEntry)
                .where(LedgerEntry.sale_id == sale_id)
                .order_by(LedgerEntry.created_at, LedgerEntry.id)
                .with_for_update()
                .execution_options(populate_existing=True)
            ).scalars()
        )

    def _require_transition(self, entry: LedgerEntry, target: EntryStatus) -> None:
        current = EntryStatus(entry.status)
        if not can_transition(current, target):
            logger.warning(
                "sale_transition_rejected",
                extra={
                    "entry_id": str(entry.id),
                    "current_status": current.value,
                    "target_status": target.value,
                },
            )
            raise InvalidSaleTransitionError(str(entry.id), current.value, target.value)

    def _settle_approve(self, entry: LedgerEntry, notes: str | None) -> None:
        if not entry.stock_reserved:
            self._batches.apply_delta(entry.batch_id, -entry.quantity)
            entry.stock_reserved = True
        entry.status = EntryStatus.APPROVED.value
        entry.notes = append_note(entry.notes, notes)
        entry.updated_at = self.clock.now()

    def _settle_decline(self, entry: LedgerEntry, reason: str) -> None:
        if entry.stock_reserved:
            self._batches.apply_delta(entry.batch_id, entry.quantity)
            entry.stock_reserved = False
        entry.status = EntryStatus.DECLINED.value
        entry.notes = append_note(entry.notes, _decline_note(reason))
        entry.updated_at = self.clock.now()
