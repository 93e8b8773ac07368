"""
Module: stock_kernel.selectors.audit_selector
Responsibility: Read-only access to the activity log.
Architecture position: Kernel > Selectors.
"""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from sqlalchemy import select

from stock_kernel.domain.audit import AuditLogRecord
from stock_kernel.domain.dtos import Page
from stock_kernel.models.audit_log import AuditLog
from stock_kernel.selectors.base import BaseSelector


class AuditSelector(BaseSelector[AuditLog]):
    """Activity log reads."""

    def find_by_entity(self, entity_name: str, entity_id: str) -> list[AuditLogRecord]:
        """Trail for one entity, oldest first."""
        stmt = (
            select(AuditLog)
            .where(AuditLog.entity_name == entity_name, AuditLog.entity_id == entity_id)
            .order_by(AuditLog.timestamp, AuditLog.id)
        )
        return [a.to_dto() for a in self.session.execute(stmt).scalars()]

    def list_logs(
        self,
        entity_name: str | None = None,
        action: str | None = None,
        user_id: UUID | None = None,
        entity_id: str | None = None,
        start: datetime | None = None,
        end: datetime | None = None,
        page: int = 1,
        limit: int = 20,
        sort_dir: str = "desc",
    ) -> Page[AuditLogRecord]:
        stmt = select(AuditLog)
        if entity_name is not None:
            stmt = stmt.where(AuditLog.entity_name == entity_name)
        if action is not None:
            stmt = stmt.where(AuditLog.action == action)
        if user_id is not None:
            stmt = stmt.where(AuditLog.user_id == user_id)
        if entity_id is not None:
            stmt = stmt.where(AuditLog.entity_id == entity_id)
        if start is not None:
            stmt = stmt.where(AuditLog.timestamp >= start)
        if end is not None:
            stmt = stmt.where(AuditLog.timestamp <= end)
        order = AuditLog.timestamp.asc() if sort_dir == "asc" else AuditLog.timestamp.desc()
        stmt = stmt.order_by(order, AuditLog.id)

        rows, meta = self._paginate(stmt, page, limit)
        return Page(items=tuple(a.to_dto() for a in rows), meta=meta)
