"""
stock_kernel.services.ledger_service -- Ledger Engine.

Responsibility:
    Records every quantity-affecting event against a batch as an
    immutable ledger entry, applying the type-to-sign rule and updating
    the batch in the same transaction.

Architecture position:
    Kernel > Services.  May import from domain/, models/, db/.

Invariants enforced:
    ATOMIC_MOVEMENT -- the batch delta and the entry insert are flushed
        into the caller's transaction; a failed quantity check raises
        before the entry is added, and the caller rolls back.
    NON_NEGATIVE_QUANTITY -- delegated to BatchStore.apply_delta.

Sale handling:
    ``sale`` entries are created ``pending``.  With
    SaleDebitTiming.ON_CREATE the debit is applied now and the entry is
    marked ``stock_reserved``; with ON_APPROVAL availability is only
    pre-checked and the debit happens in SaleApprovalService.approve.

Failure modes:
    - InvalidQuantityError / InvalidEntryTypeError (BadRequest).
    - BatchNotFoundError (NotFound).
    - InsufficientStockError.
"""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from stock_kernel.domain.clock import Clock
from stock_kernel.domain.ledger import (
    EntryStatus,
    EntryType,
    LedgerEntryRecord,
    SaleDebitTiming,
    signed_quantity,
    validate_quantity,
)
from stock_kernel.exceptions import LedgerEntryNotFoundError
from stock_kernel.logging_config import get_logger
from stock_kernel.models.ledger import LedgerEntry
from stock_kernel.services.base import BaseService
from stock_kernel.services.batch_store import BatchStore

logger = get_logger("services.ledger")


class LedgerService(BaseService):
    """Appends stock movements and applies their quantity effect."""

    def __init__(
        self,
        session: Session,
        batch_store: BatchStore,
        clock: Clock | None = None,
        sale_debit_timing: SaleDebitTiming = SaleDebitTiming.ON_CREATE,
    ):
        super().__init__(session, clock)
        self._batches = batch_store
        self._sale_debit_timing = sale_debit_timing

    @property
    def sale_debit_timing(self) -> SaleDebitTiming:
        return self._sale_debit_timing

    def record(
        self,
        batch_id: UUID,
        entry_type: EntryType | str,
        quantity: int,
        user_id: UUID | None,
        notes: str | None = None,
        from_location_id: UUID | None = None,
        to_location_id: UUID | None = None,
        sale_id: UUID | None = None,
    ) -> LedgerEntryRecord:
        """Record one stock movement.

        Preconditions:
            - ``quantity`` is a positive int.
            - ``entry_type`` is one of the four EntryType values.

        Postconditions:
            - Non-sale: batch quantity changed by the signed quantity and a
              ``completed`` entry exists, both flushed (not committed).
            - Sale: a ``pending`` entry exists; stock is reserved iff the
              timing is ON_CREATE.
        """
        quantity = validate_quantity(quantity)
        resolved_type = EntryType.parse(entry_type)

        if resolved_type == EntryType.SALE:
            if self._sale_debit_timing == SaleDebitTiming.ON_CREATE:
                snapshot = self._batches.apply_delta(batch_id, -quantity)
                reserved = True
            else:
                snapshot = self._batches.ensure_available(batch_id, quantity)
                reserved = False
            status = EntryStatus.PENDING
        else:
            snapshot = self._batches.apply_delta(
                batch_id, signed_quantity(resolved_type, quantity),
            )
            reserved = False
            status = EntryStatus.COMPLETED

        now = self.clock.now()
        entry = LedgerEntry(
            batch_id=batch_id,
            entry_type=resolved_type.value,
            quantity=quantity,
            unit_price=snapshot.unit_price,
            status=status.value,
            stock_reserved=reserved,
            user_id=user_id,
            notes=notes,
            from_location_id=from_location_id,
            to_location_id=to_location_id,
            sale_id=sale_id,
            transaction_date=now,
            created_at=now,
            updated_at=now,
        )
        self.session.add(entry)
        self.session.flush()

        logger.info(
            "ledger_entry_recorded",
            extra={
                "entry_id": str(entry.id),
                "batch_id": str(batch_id),
                "entry_type": resolved_type.value,
                "quantity": quantity,
                "status": status.value,
                "stock_reserved": reserved,
                "current_qty": snapshot.current_qty,
            },
        )
        return entry.to_dto()

    def get_model(self, entry_id: UUID, for_update: bool = False) -> LedgerEntry:
        """Load an entry, optionally with a row lock (SELECT ... FOR UPDATE)."""
        stmt = select(LedgerEntry).where(LedgerEntry.id == entry_id)
        if for_update:
            stmt = stmt.with_for_update().execution_options(populate_existing=True)
        entry = self.session.execute(stmt).scalar_one_or_none()
        if entry is None:
            raise LedgerEntryNotFoundError(str(entry_id))
        return entry

    def get(self, entry_id: UUID) -> LedgerEntryRecord:
        return self.get_model(entry_id).to_dto()
