"""
stock_kernel.services.notification_service -- Stock Notification Evaluator.

Responsibility:
    Derives out-of-stock, low-stock, near-expiry and expired alerts from
    current batch state and keeps at most one unread alert per key.
    Also applies explicit read-marking by users.

Architecture position:
    Kernel > Services.  May import from domain/, models/, db/.
    Pure decisions live in ``domain.stock_alerts``; this service only
    applies them to storage.

Invariants enforced:
    NOTIFICATION_DEDUP -- ``create_if_not_exists`` checks for an unread
        notification with the same (type, entity_name, entity_id) key and
        inserts inside a SAVEPOINT.  The partial unique index on unread
        keys turns a lost race into an IntegrityError, which rolls back
        only the savepoint and counts as "already exists".

Failure modes:
    - NotificationNotFoundError from ``mark_as_read``.
    - Evaluation errors propagate to the caller; the orchestrator runs
      evaluation after commit and logs-and-swallows them.
"""

from __future__ import annotations

from datetime import date, datetime, time, timedelta, timezone
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from stock_kernel.domain.clock import Clock
from stock_kernel.domain.dtos import BatchSnapshot, NotificationRecord
from stock_kernel.domain.stock_alerts import (
    DEFAULT_EXPIRED_DAYS,
    DEFAULT_NEAR_EXPIRY_DAYS,
    STOCK_LEVEL_SEVERITY,
    ExpiryScanResult,
    NotificationKey,
    NotificationType,
    Severity,
    batch_label,
    decide_stock_level,
    expired_message,
    expired_severity,
    low_stock_message,
    near_expiry_message,
    near_expiry_severity,
    out_of_stock_message,
)
from stock_kernel.exceptions import NotificationNotFoundError
from stock_kernel.logging_config import get_logger
from stock_kernel.models.batch import Batch
from stock_kernel.models.notification import Notification
from stock_kernel.services.base import BaseService

logger = get_logger("services.notifications")


class StockNotificationEvaluator(BaseService):
    """Creates and clears derived stock alerts."""

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        near_expiry_days: tuple[int, ...] = DEFAULT_NEAR_EXPIRY_DAYS,
        expired_days: tuple[int, ...] = DEFAULT_EXPIRED_DAYS,
    ):
        super().__init__(session, clock)
        self._near_expiry_days = near_expiry_days
        self._expired_days = expired_days

    # -------------------------------------------------------------------------
    # Stock level
    # -------------------------------------------------------------------------

    def evaluate_batch_stock(
        self,
        batch_id: UUID,
        snapshot: BatchSnapshot | None = None,
    ) -> None:
        """Bring out_of_stock / low_stock alerts in line with the batch quantity.

        Idempotent.  Unknown batches are ignored.

        Args:
            batch_id: Batch to evaluate.
            snapshot: State to evaluate against; read fresh when omitted.
        """
        if snapshot is None:
            batch = self.session.execute(
                select(Batch)
                .where(Batch.id == batch_id)
                .execution_options(populate_existing=True)
            ).scalar_one_or_none()
            if batch is None:
                logger.debug("stock_evaluation_skipped_unknown_batch", extra={"batch_id": str(batch_id)})
                return
            snapshot = batch.to_snapshot()

        decision = decide_stock_level(snapshot.current_qty, snapshot.low_stock_threshold)

        for notification_type in decision.clear:
            self.mark_key_read(NotificationKey.for_batch(notification_type, batch_id))

        if decision.ensure is not None:
            label = batch_label(snapshot.id, snapshot.batch_number)
            if decision.ensure == NotificationType.OUT_OF_STOCK:
                message = out_of_stock_message(label)
            else:
                message = low_stock_message(label, snapshot.current_qty)
            self.create_if_not_exists(
                NotificationKey.for_batch(decision.ensure, batch_id),
                STOCK_LEVEL_SEVERITY[decision.ensure],
                message,
            )

    # -------------------------------------------------------------------------
    # Expiry
    # -------------------------------------------------------------------------

    def run_expiry_scan(self, as_of: date | None = None) -> ExpiryScanResult:
        """Emit near_expiry and expired alerts for ``as_of`` (default: today).

        near_expiry fires for batches expiring exactly N days ahead for
        each configured N, regardless of stock.  expired fires for
        batches that expired exactly N days ago and still hold stock.
        """
        today = as_of or self.clock.today()
        near_created = 0
        expired_created = 0

        for days in self._near_expiry_days:
            target = today + timedelta(days=days)
            batches = self.session.execute(
                select(Batch).where(Batch.expiry_date == target).order_by(Batch.id)
            ).scalars().all()
            for batch in batches:
                created = self.create_if_not_exists(
                    NotificationKey.for_batch(NotificationType.NEAR_EXPIRY, batch.id),
                    near_expiry_severity(days),
                    near_expiry_message(batch_label(batch.id, batch.batch_number), days),
                    expires_at=datetime.combine(batch.expiry_date, time.min, tzinfo=timezone.utc),
                )
                if created is not None:
                    near_created += 1

        for days in self._expired_days:
            target = today - timedelta(days=days)
            batches = self.session.execute(
                select(Batch)
                .where(Batch.expiry_date == target, Batch.current_qty > 0)
                .order_by(Batch.id)
            ).scalars().all()
            for batch in batches:
                created = self.create_if_not_exists(
                    NotificationKey.for_batch(NotificationType.EXPIRED, batch.id),
                    expired_severity(days),
                    expired_message(batch_label(batch.id, batch.batch_number), days),
                )
                if created is not None:
                    expired_created += 1

        result = ExpiryScanResult(
            as_of=today,
            near_expiry_created=near_created,
            expired_created=expired_created,
        )
        logger.info(
            "expiry_scan_completed",
            extra={
                "as_of": today.isoformat(),
                "near_expiry_created": near_created,
                "expired_created": expired_created,
            },
        )
        return result

    # -------------------------------------------------------------------------
    # Primitives
    # -------------------------------------------------------------------------

    def find_unread(self, key: NotificationKey) -> list[Notification]:
        return list(
            self.session.execute(
                select(Notification).where(
                    Notification.notification_type == key.notification_type.value,
                    Notification.entity_name == key.entity_name,
                    Notification.entity_id == key.entity_id,
                    Notification.is_read.is_(False),
                )
            ).scalars()
        )

    def create_if_not_exists(
        self,
        key: NotificationKey,
        severity: Severity,
        message: str,
        expires_at: datetime | None = None,
        user_id: UUID | None = None,
    ) -> NotificationRecord | None:
        """Insert an unread notification unless one already exists for ``key``.

        Returns:
            The new notification, or None if an unread one already existed.
        """
        if self.find_unread(key):
            return None

        notification = Notification(
            notification_type=key.notification_type.value,
            severity=severity.value,
            message=message,
            entity_name=key.entity_name,
            entity_id=key.entity_id,
            is_read=False,
            expires_at=expires_at,
            user_id=user_id,
            created_at=self.clock.now(),
        )
        try:
            with self.session.begin_nested():
                self.session.add(notification)
        except IntegrityError:
            logger.info(
                "notification_dedup_race_lost",
                extra={
                    "notification_type": key.notification_type.value,
                    "entity_id": key.entity_id,
                },
            )
            return None

        logger.info(
            "notification_created",
            extra={
                "notification_id": str(notification.id),
                "notification_type": key.notification_type.value,
                "severity": severity.value,
                "entity_name": key.entity_name,
                "entity_id": key.entity_id,
            },
        )
        return notification.to_dto()

    def mark_key_read(self, key: NotificationKey) -> int:
        """Mark every unread notification for ``key`` as read."""
        unread = self.find_unread(key)
        if not unread:
            return 0
        now = self.clock.now()
        for notification in unread:
            notification.is_read = True
            notification.read_at = now
        self.session.flush()
        logger.info(
            "notifications_cleared",
            extra={
                "notification_type": key.notification_type.value,
                "entity_id": key.entity_id,
                "count": len(unread),
            },
        )
        return len(unread)

    def mark_as_read(self, notification_id: UUID) -> NotificationRecord:
        notification = self.session.get(Notification, notification_id)
        if notification is None:
            raise NotificationNotFoundError(str(notification_id))
        if not notification.is_read:
            notification.is_read = True
            notification.read_at = self.clock.now()
            self.session.flush()
        return notification.to_dto()

    def mark_all_as_read(self) -> int:
        unread = self.session.execute(
            select(Notification).where(Notification.is_read.is_(False))
        ).scalars().all()
        now = self.clock.now()
        for notification in unread:
            notification.is_read = True
            notification.read_at = now
        self.session.flush()
        logger.info("notifications_all_marked_read", extra={"count": len(unread)})
        return len(unread)
