"""
Module: stock_kernel.selectors.notification_selector
Responsibility: Read-only notification queries: listing (newest first),
    unread lookups by key, and the counts summary.
Architecture position: Kernel > Selectors.
"""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import func, select

from stock_kernel.domain.dtos import NotificationCounts, NotificationRecord, Page
from stock_kernel.domain.stock_alerts import NotificationKey, NotificationType, Severity
from stock_kernel.models.notification import Notification
from stock_kernel.selectors.base import BaseSelector


class NotificationSelector(BaseSelector[Notification]):
    """Notification reads."""

    def get(self, notification_id: UUID) -> NotificationRecord | None:
        notification = self.session.get(Notification, notification_id)
        return notification.to_dto() if notification is not None else None

    def list_notifications(
        self,
        notification_type: NotificationType | None = None,
        severity: Severity | None = None,
        is_read: bool | None = None,
        page: int = 1,
        limit: int = 20,
    ) -> Page[NotificationRecord]:
        stmt = select(Notification)
        if notification_type is not None:
            stmt = stmt.where(Notification.notification_type == NotificationType(notification_type).value)
        if severity is not None:
            stmt = stmt.where(Notification.severity == Severity(severity).value)
        if is_read is not None:
            stmt = stmt.where(Notification.is_read.is_(is_read))
        stmt = stmt.order_by(Notification.created_at.desc(), Notification.id)

        rows, meta = self._paginate(stmt, page, limit)
        return Page(items=tuple(n.to_dto() for n in rows), meta=meta)

    def unread_for(self, key: NotificationKey) -> list[NotificationRecord]:
        stmt = select(Notification).where(
            Notification.notification_type == key.notification_type.value,
            Notification.entity_name == key.entity_name,
            Notification.entity_id == key.entity_id,
            Notification.is_read.is_(False),
        )
        return [n.to_dto() for n in self.session.execute(stmt).scalars()]

    def for_entity(self, entity_name: str, entity_id: str) -> list[NotificationRecord]:
        stmt = (
            select(Notification)
            .where(
                Notification.entity_name == entity_name,
                Notification.entity_id == entity_id,
            )
            .order_by(Notification.created_at, Notification.id)
        )
        return [n.to_dto() for n in self.session.execute(stmt).scalars()]

    def counts(self) -> NotificationCounts:
        """Totals over all notifications (read and unread) by severity and type."""
        total = self.session.execute(select(func.count(Notification.id))).scalar_one()
        unread = self.session.execute(
            select(func.count(Notification.id)).where(Notification.is_read.is_(False))
        ).scalar_one()
        by_severity = dict(
            self.session.execute(
                select(Notification.severity, func.count(Notification.id))
                .group_by(Notification.severity)
                .order_by(Notification.severity)
            ).all()
        )
        by_type = dict(
            self.session.execute(
                select(Notification.notification_type, func.count(Notification.id))
                .group_by(Notification.notification_type)
                .order_by(Notification.notification_type)
            ).all()
        )
        return NotificationCounts(
            total=total,
            unread=unread,
            by_severity=by_severity,
            by_type=by_type,
        )
