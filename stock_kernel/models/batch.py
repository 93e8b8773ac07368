"""
Module: stock_kernel.models.batch
Responsibility: ORM persistence for drug batches (lots) and their
    on-hand quantity.

Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - current_qty >= 0: DB check constraint backs the guarded UPDATE in
      BatchStore.apply_delta.
    - low_stock_threshold >= 0.
    - expiry_date > manufacture_date: DB check constraint backs
      BatchStore.create_batch validation.

Failure modes:
    - IntegrityError if a raw write bypasses BatchStore and violates a
      check constraint.
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import CheckConstraint, Date, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from stock_kernel.db.base import TimestampedBase, UUIDString

if TYPE_CHECKING:
    from stock_kernel.domain.dtos import BatchRecord, BatchSnapshot


class Batch(TimestampedBase):
    """A received lot of a drug from a supplier.

    Contract:
        current_qty is mutated only through BatchStore.apply_delta, which
        is only called by the ledger and sale services.
    """

    __tablename__ = "batches"

    __table_args__ = (
        CheckConstraint("current_qty >= 0", name="ck_batches_qty_non_negative"),
        CheckConstraint(
            "low_stock_threshold >= 0", name="ck_batches_threshold_non_negative",
        ),
        CheckConstraint(
            "expiry_date > manufacture_date", name="ck_batches_expiry_after_manufacture",
        ),
        Index("ix_batches_expiry_date", "expiry_date"),
        Index("ix_batches_drug_id", "drug_id"),
    )

    drug_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    supplier_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    batch_number: Mapped[str | None] = mapped_column(String(100), nullable=True)
    manufacture_date: Mapped[date] = mapped_column(Date, nullable=False)
    expiry_date: Mapped[date] = mapped_column(Date, nullable=False)
    purchase_date: Mapped[date] = mapped_column(Date, nullable=False)
    unit_cost: Mapped[Decimal] = mapped_column(nullable=False)
    unit_price: Mapped[Decimal] = mapped_column(nullable=False)
    current_qty: Mapped[int] = mapped_column(nullable=False, default=0)
    low_stock_threshold: Mapped[int] = mapped_column(nullable=False, default=10)

    def __repr__(self) -> str:
        return f"<Batch {self.id} qty={self.current_qty} expires={self.expiry_date}>"

    def to_snapshot(self) -> BatchSnapshot:
        from stock_kernel.domain.dtos import BatchSnapshot

        return BatchSnapshot(
            id=self.id,
            batch_number=self.batch_number,
            current_qty=self.current_qty,
            low_stock_threshold=self.low_stock_threshold,
            expiry_date=self.expiry_date,
            unit_price=self.unit_price,
        )

    def to_dto(self) -> BatchRecord:
        """Convert ORM model to frozen domain DTO."""
        from stock_kernel.domain.dtos import BatchRecord

        return BatchRecord(
            id=self.id,
            drug_id=self.drug_id,
            supplier_id=self.supplier_id,
            batch_number=self.batch_number,
            manufacture_date=self.manufacture_date,
            expiry_date=self.expiry_date,
            purchase_date=self.purchase_date,
            unit_cost=self.unit_cost,
            unit_price=self.unit_price,
            current_qty=self.current_qty,
            low_stock_threshold=self.low_stock_threshold,
            created_at=self.created_at,
            updated_at=self.updated_at,
        )
