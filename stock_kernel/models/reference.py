"""
Module: stock_kernel.models.reference
Responsibility: Thin persistence anchors owned by outer CRUD layers.
    Users, locations, location assignments and purchase-order items exist
    here only because kernel tables reference them (foreign keys, the
    audit user fallback, and the batch deletion rule).

Architecture position: Kernel > Models.  May import from db/base.py only.
"""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from sqlalchemy import CheckConstraint, DateTime, ForeignKey, String, UniqueConstraint, func
from sqlalchemy.orm import Mapped, mapped_column

from stock_kernel.db.base import Base, UUIDString


class User(Base):
    """Acting user referenced by ledger entries, sales, notifications and audit rows."""

    __tablename__ = "users"

    name: Mapped[str] = mapped_column(String(100), nullable=False)
    email: Mapped[str | None] = mapped_column(String(255), nullable=True, unique=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False,
    )

    def __repr__(self) -> str:
        return f"<User {self.id} {self.name}>"


class Location(Base):
    """A physical storage location (shelf, fridge, branch)."""

    __tablename__ = "locations"

    name: Mapped[str] = mapped_column(String(100), nullable=False, unique=True)
    description: Mapped[str | None] = mapped_column(String(255), nullable=True)

    def __repr__(self) -> str:
        return f"<Location {self.id} {self.name}>"


class LocationBatch(Base):
    """Quantity of a batch held at one location."""

    __tablename__ = "location_batches"

    __table_args__ = (
        UniqueConstraint("location_id", "batch_id", name="uq_location_batches_location_batch"),
        CheckConstraint("quantity >= 0", name="ck_location_batches_qty_non_negative"),
    )

    location_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("locations.id"), nullable=False, index=True,
    )
    batch_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("batches.id"), nullable=False, index=True,
    )
    quantity: Mapped[int] = mapped_column(nullable=False, default=0)


class PurchaseOrderItem(Base):
    """A purchase-order line, optionally fulfilled into a batch."""

    __tablename__ = "purchase_order_items"

    purchase_order_ref: Mapped[str] = mapped_column(String(50), nullable=False)
    batch_id: Mapped[UUID | None] = mapped_column(
        UUIDString(), ForeignKey("batches.id"), nullable=True, index=True,
    )
    quantity: Mapped[int] = mapped_column(nullable=False)
