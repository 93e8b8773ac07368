"""
Module: stock_kernel.models.notification
Responsibility: ORM persistence for derived stock and expiry alerts.

Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - Dedup: partial unique index on (notification_type, entity_name,
      entity_id) WHERE is_read is false.  Two concurrent evaluators cannot
      both insert an unread alert for the same key; the loser gets an
      IntegrityError that the notification service treats as "exists".
    - Only is_read/read_at may change after insert; deletes are rejected
      (see db/immutability.py).
"""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import Boolean, CheckConstraint, DateTime, ForeignKey, Index, String, Text, text
from sqlalchemy.orm import Mapped, mapped_column

from stock_kernel.db.base import Base, UUIDString

if TYPE_CHECKING:
    from stock_kernel.domain.dtos import NotificationRecord


class Notification(Base):
    """A derived alert about a batch (or other entity)."""

    __tablename__ = "notifications"

    __table_args__ = (
        CheckConstraint(
            "notification_type IN ('out_of_stock', 'low_stock', 'near_expiry', 'expired')",
            name="ck_notifications_valid_type",
        ),
        CheckConstraint(
            "severity IN ('high', 'medium', 'low')",
            name="ck_notifications_valid_severity",
        ),
        Index(
            "ix_notifications_unread_key",
            "notification_type", "entity_name", "entity_id",
            unique=True,
            postgresql_where=text("is_read = false"),
            sqlite_where=text("is_read = 0"),
        ),
        Index("ix_notifications_read_created", "is_read", "created_at"),
    )

    notification_type: Mapped[str] = mapped_column(String(30), nullable=False)
    severity: Mapped[str] = mapped_column(String(10), nullable=False)
    message: Mapped[str] = mapped_column(Text, nullable=False)
    entity_name: Mapped[str] = mapped_column(String(50), nullable=False)
    entity_id: Mapped[str] = mapped_column(String(64), nullable=False)
    is_read: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    read_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    expires_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    user_id: Mapped[UUID | None] = mapped_column(
        UUIDString(), ForeignKey("users.id", ondelete="SET NULL"), nullable=True,
    )
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    def __repr__(self) -> str:
        return (
            f"<Notification {self.notification_type} {self.entity_name}:{self.entity_id} "
            f"read={self.is_read}>"
        )

    def to_dto(self) -> NotificationRecord:
        """Convert ORM model to frozen domain DTO."""
        from stock_kernel.domain.dtos import NotificationRecord
        from stock_kernel.domain.stock_alerts import NotificationType, Severity

        return NotificationRecord(
            id=self.id,
            notification_type=NotificationType(self.notification_type),
            severity=Severity(self.severity),
            message=self.message,
            entity_name=self.entity_name,
            entity_id=self.entity_id,
            is_read=self.is_read,
            read_at=self.read_at,
            expires_at=self.expires_at,
            user_id=self.user_id,
            created_at=self.created_at,
        )
