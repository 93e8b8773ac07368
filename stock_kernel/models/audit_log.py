"""
Module: stock_kernel.models.audit_log
Responsibility: ORM persistence for the activity log written by the
    AuditRecorder.

Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - Append-only: UPDATE and DELETE are rejected (see db/immutability.py).
    - user_id references users; a write naming a removed user fails the
      FK check and is retried by the recorder with user_id NULL.
"""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import DateTime, ForeignKey, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from stock_kernel.db.base import Base, UUIDString

if TYPE_CHECKING:
    from stock_kernel.domain.audit import AuditEntry, AuditLogRecord


class AuditLog(Base):
    """One activity-log row."""

    __tablename__ = "audit_logs"

    __table_args__ = (
        Index("ix_audit_logs_entity", "entity_name", "entity_id"),
        Index("ix_audit_logs_timestamp", "timestamp"),
    )

    entity_name: Mapped[str] = mapped_column(String(50), nullable=False)
    entity_id: Mapped[str] = mapped_column(String(64), nullable=False)
    action: Mapped[str] = mapped_column(String(50), nullable=False)
    user_id: Mapped[UUID | None] = mapped_column(
        UUIDString(), ForeignKey("users.id", ondelete="SET NULL"), nullable=True,
    )
    summary: Mapped[str | None] = mapped_column(Text, nullable=True)
    timestamp: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    def __repr__(self) -> str:
        return f"<AuditLog {self.action} {self.entity_name}:{self.entity_id}>"

    @classmethod
    def from_entry(cls, entry: AuditEntry) -> AuditLog:
        return cls(
            entity_name=entry.entity_name,
            entity_id=entry.entity_id,
            action=entry.action,
            user_id=entry.user_id,
            summary=entry.summary,
            timestamp=entry.occurred_at,
        )

    def to_dto(self) -> AuditLogRecord:
        from stock_kernel.domain.audit import AuditLogRecord

        return AuditLogRecord(
            id=self.id,
            entity_name=self.entity_name,
            entity_id=self.entity_id,
            action=self.action,
            user_id=self.user_id,
            summary=self.summary,
            timestamp=self.timestamp,
        )
