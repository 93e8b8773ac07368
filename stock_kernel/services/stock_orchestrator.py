"""
stock_kernel.services.stock_orchestrator -- Public stock operations.

Responsibility:
    The entry point callers use.  Each operation runs in one short-lived
    session: services are wired for that session, the work is flushed,
    the transaction is committed (or rolled back), and then the
    post-commit hooks run.

Architecture position:
    Kernel > Services.  Top of the kernel service layer; the only place
    kernel services are constructed and composed.  Does not read
    configuration: ``StockRules`` is injected.

Post-commit hooks:
    1. Stock evaluation -- out_of_stock / low_stock alerts for every batch
       the operation touched, in a fresh session.  Failures are logged
       (``stock_evaluation_failed``) and swallowed; evaluation is
       idempotent, so the next movement or explicit call repairs it.
    2. Audit -- one AuditEntry handed to ``AuditLogger.log_async``.
       A failed operation is audited as ``<ACTION>_FAILED`` before the
       error is re-raised.

Invariants enforced:
    ATOMIC_MOVEMENT -- commit happens only after every write of the
        operation has flushed; any exception rolls the whole unit back.

Failure modes:
    - Every StockKernelError from the services surfaces unchanged.
    - Unexpected exceptions are logged with a traceback and re-raised.
"""

from __future__ import annotations

import time
from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass
from datetime import date
from typing import TypeVar
from uuid import UUID, uuid4

from sqlalchemy.orm import Session

from stock_kernel.domain.audit import AuditAction, AuditEntry, AuditLogger
from stock_kernel.domain.clock import Clock, SystemClock
from stock_kernel.domain.dtos import (
    BatchRecord,
    BatchUpdate,
    NewBatch,
    NotificationRecord,
    SaleItem,
    SaleRecord,
)
from stock_kernel.domain.ledger import EntryType, LedgerEntryRecord
from stock_kernel.domain.policy import StockRules
from stock_kernel.domain.stock_alerts import BATCH_ENTITY, ExpiryScanResult, batch_label
from stock_kernel.exceptions import StockKernelError
from stock_kernel.logging_config import LogContext, get_logger
from stock_kernel.services.audit_recorder import AuditRecorder
from stock_kernel.services.batch_store import BatchStore
from stock_kernel.services.ledger_service import LedgerService
from stock_kernel.services.notification_service import StockNotificationEvaluator
from stock_kernel.services.sale_approval_service import SaleApprovalService

logger = get_logger("services.orchestrator")

R = TypeVar("R")

TRANSACTION_ENTITY = "Transaction"
SALE_ENTITY = "Sale"
NOTIFICATION_ENTITY = "Notification"

# Entity id for audit entries that target no single row: bulk operations
# and creates that failed before an id existed.
ANY_ENTITY_ID = "*"


@dataclass(frozen=True)
class _AuditTarget:
    entity_name: str
    entity_id: str
    action: AuditAction


@dataclass
class KernelServices:
    """Services wired to one session."""

    session: Session
    batches: BatchStore
    ledger: LedgerService
    approvals: SaleApprovalService
    notifications: StockNotificationEvaluator


class StockOrchestrator:
    """Runs stock operations with per-call transactions and post-commit hooks.

    Contract:
        - One session per call; commit on success, rollback on failure.
        - Results are returned after commit; audit is not awaited.
        - Evaluation and audit failures never fail the operation.
    """

    def __init__(
        self,
        session_factory: Callable[[], Session],
        clock: Clock | None = None,
        rules: StockRules | None = None,
        audit_logger: AuditLogger | None = None,
    ):
        self._session_factory = session_factory
        self._clock = clock or SystemClock()
        self._rules = rules or StockRules()
        self._audit = audit_logger if audit_logger is not None else AuditRecorder(session_factory)

    @property
    def clock(self) -> Clock:
        return self._clock

    @property
    def rules(self) -> StockRules:
        return self._rules

    @property
    def audit_logger(self) -> AuditLogger:
        return self._audit

    def build_services(self, session: Session) -> KernelServices:
        """Wire every kernel service to ``session`` (dependency order)."""
        batches = BatchStore(
            session, self._clock,
            default_low_stock_threshold=self._rules.default_low_stock_threshold,
        )
        ledger = LedgerService(
            session, batches, self._clock,
            sale_debit_timing=self._rules.sale_debit_timing,
        )
        approvals = SaleApprovalService(session, ledger, batches, self._clock)
        notifications = StockNotificationEvaluator(
            session, self._clock,
            near_expiry_days=self._rules.near_expiry_days,
            expired_days=self._rules.expired_days,
        )
        return KernelServices(session, batches, ledger, approvals, notifications)

    # -------------------------------------------------------------------------
    # Ledger
    # -------------------------------------------------------------------------

    def record_transaction(
        self,
        batch_id: UUID,
        entry_type: EntryType | str,
        quantity: int,
        user_id: UUID | None,
        notes: str | None = None,
        from_location_id: UUID | None = None,
        to_location_id: UUID | None = None,
    ) -> LedgerEntryRecord:
        """Record one stock movement against a batch."""
        entry = self._run(
            "record_transaction",
            user_id,
            _AuditTarget(BATCH_ENTITY, str(batch_id), AuditAction.CREATE),
            lambda svc: svc.ledger.record(
                batch_id=batch_id,
                entry_type=entry_type,
                quantity=quantity,
                user_id=user_id,
                notes=notes,
                from_location_id=from_location_id,
                to_location_id=to_location_id,
            ),
        )
        self._evaluate_quietly([entry.batch_id])
        self._audit_success(
            TRANSACTION_ENTITY, str(entry.id), AuditAction.CREATE, user_id,
            f"Recorded {entry.entry_type.value} of {entry.quantity} unit(s) "
            f"for batch {entry.batch_id}",
        )
        return entry

    def approve_sale(
        self,
        entry_id: UUID,
        notes: str | None = None,
        user_id: UUID | None = None,
    ) -> LedgerEntryRecord:
        entry = self._run(
            "approve_sale",
            user_id,
            _AuditTarget(TRANSACTION_ENTITY, str(entry_id), AuditAction.APPROVE),
            lambda svc: svc.approvals.approve(entry_id, notes=notes, user_id=user_id),
        )
        self._evaluate_quietly([entry.batch_id])
        self._audit_success(
            TRANSACTION_ENTITY, str(entry_id), AuditAction.APPROVE, user_id,
            f"Approved sale of {entry.quantity} unit(s) from batch {entry.batch_id}",
        )
        return entry

    def decline_sale(
        self,
        entry_id: UUID,
        reason: str,
        user_id: UUID | None = None,
    ) -> LedgerEntryRecord:
        entry = self._run(
            "decline_sale",
            user_id,
            _AuditTarget(TRANSACTION_ENTITY, str(entry_id), AuditAction.DECLINE),
            lambda svc: svc.approvals.decline(entry_id, reason, user_id=user_id),
        )
        self._evaluate_quietly([entry.batch_id])
        self._audit_success(
            TRANSACTION_ENTITY, str(entry_id), AuditAction.DECLINE, user_id,
            f"Declined sale of {entry.quantity} unit(s) from batch {entry.batch_id}: "
            f"{reason.strip()}",
        )
        return entry

    # -------------------------------------------------------------------------
    # Grouped sales
    # -------------------------------------------------------------------------

    def create_sale(
        self,
        items: Sequence[SaleItem],
        user_id: UUID | None,
        notes: str | None = None,
    ) -> SaleRecord:
        sale = self._run(
            "create_sale",
            user_id,
            _AuditTarget(SALE_ENTITY, ANY_ENTITY_ID, AuditAction.CREATE),
            lambda svc: svc.approvals.create_sale(items, user_id, notes=notes),
        )
        self._evaluate_quietly(e.batch_id for e in sale.entries)
        self._audit_success(
            SALE_ENTITY, str(sale.id), AuditAction.CREATE, user_id,
            f"Created sale with {len(sale.entries)} item(s), "
            f"{sale.total_quantity} unit(s) in total",
        )
        return sale

    def approve_sale_group(
        self,
        sale_id: UUID,
        notes: str | None = None,
        user_id: UUID | None = None,
    ) -> SaleRecord:
        sale = self._run(
            "approve_sale_group",
            user_id,
            _AuditTarget(SALE_ENTITY, str(sale_id), AuditAction.APPROVE),
            lambda svc: svc.approvals.approve_sale_group(sale_id, notes=notes, user_id=user_id),
        )
        self._evaluate_quietly(e.batch_id for e in sale.entries)
        self._audit_success(
            SALE_ENTITY, str(sale_id), AuditAction.APPROVE, user_id,
            f"Approved sale with {len(sale.entries)} item(s)",
        )
        return sale

    def decline_sale_group(
        self,
        sale_id: UUID,
        reason: str,
        user_id: UUID | None = None,
    ) -> SaleRecord:
        sale = self._run(
            "decline_sale_group",
            user_id,
            _AuditTarget(SALE_ENTITY, str(sale_id), AuditAction.DECLINE),
            lambda svc: svc.approvals.decline_sale_group(sale_id, reason, user_id=user_id),
        )
        self._evaluate_quietly(e.batch_id for e in sale.entries)
        self._audit_success(
            SALE_ENTITY, str(sale_id), AuditAction.DECLINE, user_id,
            f"Declined sale with {len(sale.entries)} item(s): {reason.strip()}",
        )
        return sale

    # -------------------------------------------------------------------------
    # Batches
    # -------------------------------------------------------------------------

    def create_batch(self, data: NewBatch, user_id: UUID | None = None) -> BatchRecord:
        batch = self._run(
            "create_batch",
            user_id,
            _AuditTarget(BATCH_ENTITY, ANY_ENTITY_ID, AuditAction.CREATE),
            lambda svc: svc.batches.create_batch(data),
        )
        self._evaluate_quietly([batch.id])
        self._audit_success(
            BATCH_ENTITY, str(batch.id), AuditAction.CREATE, user_id,
            f"Created batch {batch_label(batch.id, batch.batch_number)} "
            f"with {batch.current_qty} unit(s)",
        )
        return batch

    def update_batch(
        self,
        batch_id: UUID,
        data: BatchUpdate,
        user_id: UUID | None = None,
    ) -> BatchRecord:
        """Change batch metadata; a new threshold is evaluated right away."""
        batch = self._run(
            "update_batch",
            user_id,
            _AuditTarget(BATCH_ENTITY, str(batch_id), AuditAction.UPDATE),
            lambda svc: svc.batches.update_batch(batch_id, data),
        )
        self._evaluate_quietly([batch_id])
        self._audit_success(
            BATCH_ENTITY, str(batch_id), AuditAction.UPDATE, user_id,
            f"Updated batch {batch_label(batch.id, batch.batch_number)}",
        )
        return batch

    def delete_batch(self, batch_id: UUID, user_id: UUID | None = None) -> None:
        self._run(
            "delete_batch",
            user_id,
            _AuditTarget(BATCH_ENTITY, str(batch_id), AuditAction.DELETE),
            lambda svc: svc.batches.delete_batch(batch_id),
        )
        self._audit_success(
            BATCH_ENTITY, str(batch_id), AuditAction.DELETE, user_id,
            f"Deleted batch {batch_id}",
        )

    # -------------------------------------------------------------------------
    # Notifications
    # -------------------------------------------------------------------------

    def evaluate_batch_stock(self, batch_id: UUID) -> None:
        """Re-derive stock-level alerts for one batch (explicit call, raises)."""
        self._run(
            "evaluate_batch_stock",
            None,
            None,
            lambda svc: svc.notifications.evaluate_batch_stock(batch_id),
        )

    def run_expiry_scan(self, as_of: date | None = None) -> ExpiryScanResult:
        return self._run(
            "run_expiry_scan",
            None,
            None,
            lambda svc: svc.notifications.run_expiry_scan(as_of),
        )

    def mark_notification_read(
        self,
        notification_id: UUID,
        user_id: UUID | None = None,
    ) -> NotificationRecord:
        record = self._run(
            "mark_notification_read",
            user_id,
            _AuditTarget(NOTIFICATION_ENTITY, str(notification_id), AuditAction.MARK_READ),
            lambda svc: svc.notifications.mark_as_read(notification_id),
        )
        self._audit_success(
            NOTIFICATION_ENTITY, str(notification_id), AuditAction.MARK_READ, user_id,
            f"Marked {record.notification_type.value} notification as read",
        )
        return record

    def mark_all_notifications_read(self, user_id: UUID | None = None) -> int:
        count = self._run(
            "mark_all_notifications_read",
            user_id,
            _AuditTarget(NOTIFICATION_ENTITY, ANY_ENTITY_ID, AuditAction.MARK_READ),
            lambda svc: svc.notifications.mark_all_as_read(),
        )
        self._audit_success(
            NOTIFICATION_ENTITY, ANY_ENTITY_ID, AuditAction.MARK_READ, user_id,
            f"Marked {count} notification(s) as read",
        )
        return count

    # -------------------------------------------------------------------------
    # Internal
    # -------------------------------------------------------------------------

    def _run(
        self,
        operation: str,
        user_id: UUID | None,
        failure_target: _AuditTarget | None,
        work: Callable[[KernelServices], R],
    ) -> R:
        correlation_id = str(uuid4())
        with LogContext.bind(
            correlation_id=correlation_id,
            actor_id=str(user_id) if user_id else None,
            operation=operation,
        ):
            logger.info(f"{operation}_started")
            t0 = time.monotonic()
            session = self._session_factory()
            try:
                result = work(self.build_services(session))
                session.commit()
            except Exception as exc:
                session.rollback()
                duration_ms = round((time.monotonic() - t0) * 1000, 2)
                if isinstance(exc, StockKernelError):
                    logger.warning(
                        f"{operation}_rejected",
                        extra={
                            "error_code": exc.code,
                            "error": str(exc),
                            "duration_ms": duration_ms,
                        },
                    )
                else:
                    logger.error(
                        f"{operation}_failed",
                        extra={"duration_ms": duration_ms},
                        exc_info=True,
                    )
                if failure_target is not None:
                    self._submit_audit(
                        AuditEntry(
                            entity_name=failure_target.entity_name,
                            entity_id=failure_target.entity_id,
                            action=failure_target.action.failed(),
                            user_id=user_id,
                            summary=f"Failed: {exc}",
                            occurred_at=self._clock.now(),
                        )
                    )
                raise
            finally:
                session.close()

            duration_ms = round((time.monotonic() - t0) * 1000, 2)
            logger.info(f"{operation}_completed", extra={"duration_ms": duration_ms})
            return result

    def _evaluate_quietly(self, batch_ids: Iterable[UUID]) -> None:
        """Best-effort stock evaluation after commit."""
        unique_ids = list(dict.fromkeys(batch_ids))
        if not unique_ids:
            return
        session = self._session_factory()
        try:
            evaluator = self.build_services(session).notifications
            for batch_id in unique_ids:
                evaluator.evaluate_batch_stock(batch_id)
            session.commit()
        except Exception:
            session.rollback()
            logger.exception(
                "stock_evaluation_failed",
                extra={"batch_ids": [str(b) for b in unique_ids]},
            )
        finally:
            session.close()

    def _audit_success(
        self,
        entity_name: str,
        entity_id: str,
        action: AuditAction,
        user_id: UUID | None,
        summary: str,
    ) -> None:
        self._submit_audit(
            AuditEntry(
                entity_name=entity_name,
                entity_id=entity_id,
                action=action.value,
                user_id=user_id,
                summary=summary,
                occurred_at=self._clock.now(),
            )
        )

    def _submit_audit(self, entry: AuditEntry) -> None:
        try:
            self._audit.log_async(entry)
        except Exception:
            logger.exception(
                "audit_submit_failed",
                extra={"entity_name": entry.entity_name, "action": entry.action},
            )
