"""
Module: stock_kernel.models.ledger
Responsibility: ORM persistence for ledger entries -- one row per
    quantity-affecting event against a batch.

Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - quantity > 0 (DB check); the sign comes from entry_type.
    - entry_type and status limited to known values (DB check).
    - Append-only: UPDATE is rejected except for the pending ->
      approved|declined settlement of a sale, DELETE is always rejected
      (see db/immutability.py).
    - user_id is nullable with ON DELETE SET NULL so removing a user never
      removes history.

Failure modes:
    - IntegrityError on unknown batch_id/user_id/location ids (FK).
    - ImmutabilityViolationError on forbidden UPDATE/DELETE via the ORM.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import Boolean, CheckConstraint, DateTime, ForeignKey, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from stock_kernel.db.base import TimestampedBase, UUIDString

if TYPE_CHECKING:
    from stock_kernel.domain.ledger import LedgerEntryRecord


class LedgerEntry(TimestampedBase):
    """Immutable record of one stock movement."""

    __tablename__ = "ledger_entries"

    __table_args__ = (
        CheckConstraint("quantity > 0", name="ck_ledger_entries_qty_positive"),
        CheckConstraint(
            "entry_type IN ('inbound', 'sale', 'positive return', 'negative return')",
            name="ck_ledger_entries_valid_type",
        ),
        CheckConstraint(
            "status IN ('pending', 'completed', 'approved', 'declined')",
            name="ck_ledger_entries_valid_status",
        ),
        Index("ix_ledger_entries_batch_date", "batch_id", "transaction_date"),
        Index("ix_ledger_entries_type_status", "entry_type", "status"),
    )

    batch_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("batches.id"), nullable=False,
    )
    entry_type: Mapped[str] = mapped_column(String(30), nullable=False)
    quantity: Mapped[int] = mapped_column(nullable=False)
    unit_price: Mapped[Decimal] = mapped_column(nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False)
    stock_reserved: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    user_id: Mapped[UUID | None] = mapped_column(
        UUIDString(), ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True,
    )
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    from_location_id: Mapped[UUID | None] = mapped_column(
        UUIDString(), ForeignKey("locations.id"), nullable=True,
    )
    to_location_id: Mapped[UUID | None] = mapped_column(
        UUIDString(), ForeignKey("locations.id"), nullable=True,
    )
    sale_id: Mapped[UUID | None] = mapped_column(
        UUIDString(), ForeignKey("sales.id"), nullable=True, index=True,
    )
    transaction_date: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False,
    )

    def __repr__(self) -> str:
        return (
            f"<LedgerEntry {self.id} {self.entry_type} x{self.quantity} "
            f"status={self.status}>"
        )

    def to_dto(self) -> LedgerEntryRecord:
        """Convert ORM model to frozen domain DTO."""
        from stock_kernel.domain.ledger import EntryStatus, EntryType, LedgerEntryRecord

        return LedgerEntryRecord(
            id=self.id,
            batch_id=self.batch_id,
            entry_type=EntryType(self.entry_type),
            quantity=self.quantity,
            unit_price=self.unit_price,
            status=EntryStatus(self.status),
            stock_reserved=self.stock_reserved,
            user_id=self.user_id,
            notes=self.notes,
            from_location_id=self.from_location_id,
            to_location_id=self.to_location_id,
            sale_id=self.sale_id,
            transaction_date=self.transaction_date,
            created_at=self.created_at,
            updated_at=self.updated_at,
        )
