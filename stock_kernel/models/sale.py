"""
Module: stock_kernel.models.sale
Responsibility: ORM persistence for grouped-sale headers.  Each line of
    a grouped sale is a ``sale`` ledger entry pointing back via sale_id.

Architecture position: Kernel > Models.  May import from db/base.py only.
"""

from __future__ import annotations

from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import CheckConstraint, ForeignKey, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from stock_kernel.db.base import TimestampedBase, UUIDString
from stock_kernel.models.ledger import LedgerEntry

if TYPE_CHECKING:
    from stock_kernel.domain.dtos import SaleRecord


class Sale(TimestampedBase):
    """Header of a multi-line sale; shares its lifecycle with its lines."""

    __tablename__ = "sales"

    __table_args__ = (
        CheckConstraint(
            "status IN ('pending', 'approved', 'declined')",
            name="ck_sales_valid_status",
        ),
    )

    status: Mapped[str] = mapped_column(String(20), nullable=False, default="pending")
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_by_id: Mapped[UUID | None] = mapped_column(
        UUIDString(), ForeignKey("users.id", ondelete="SET NULL"), nullable=True,
    )

    entries: Mapped[list[LedgerEntry]] = relationship(
        LedgerEntry,
        primaryjoin="Sale.id == LedgerEntry.sale_id",
        order_by="LedgerEntry.created_at",
        lazy="selectin",
        viewonly=True,
    )

    def __repr__(self) -> str:
        return f"<Sale {self.id} status={self.status} lines={len(self.entries)}>"

    def to_dto(self) -> SaleRecord:
        """Convert ORM model to frozen domain DTO."""
        from stock_kernel.domain.dtos import SaleRecord, SaleStatus

        return SaleRecord(
            id=self.id,
            status=SaleStatus(self.status),
            notes=self.notes,
            created_by_id=self.created_by_id,
            created_at=self.created_at,
            updated_at=self.updated_at,
            entries=tuple(e.to_dto() for e in self.entries),
        )
