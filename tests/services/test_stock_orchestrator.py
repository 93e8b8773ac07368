"""
StockOrchestrator: per-call transactions, post-commit evaluation and audit.

Every call here goes through the orchestrator's own sessions; state is
read back through fresh sessions from ``session_factory``.
"""

from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest

from stock_kernel.domain.dtos import BatchUpdate, SaleItem, SaleStatus
from stock_kernel.domain.ledger import EntryStatus, EntryType
from stock_kernel.domain.stock_alerts import BATCH_ENTITY, NotificationType
from stock_kernel.exceptions import (
    BatchReferencedError,
    EmptySaleError,
    InsufficientStockError,
    InvalidBatchDatesError,
    InvalidQuantityError,
    NotificationNotFoundError,
)
from stock_kernel.selectors import AuditSelector, BatchSelector, LedgerSelector, NotificationSelector
from stock_kernel.services.audit_recorder import AuditRecorder
from stock_kernel.services.notification_service import StockNotificationEvaluator
from stock_kernel.services.stock_orchestrator import StockOrchestrator


def _qty(session_factory, batch_id) -> int:
    with session_factory() as s:
        return BatchSelector(s).get(batch_id).current_qty


def _unread(session_factory, batch_id) -> list[NotificationType]:
    with session_factory() as s:
        notifications = NotificationSelector(s).for_entity(BATCH_ENTITY, str(batch_id))
    return sorted((n.notification_type for n in notifications if not n.is_read), key=lambda t: t.value)


class TestMovements:

    def test_sale_drops_batch_into_low_stock(self, orchestrator, session_factory, make_batch, user_id):
        record = make_batch(current_qty=50, low_stock_threshold=10)

        entry = orchestrator.record_transaction(record.id, "sale", 45, user_id)

        assert entry.status == EntryStatus.PENDING
        assert _qty(session_factory, record.id) == 5
        assert _unread(session_factory, record.id) == [NotificationType.LOW_STOCK]

    def test_decline_round_trip_clears_alert(self, orchestrator, session_factory, make_batch, user_id):
        record = make_batch(current_qty=50, low_stock_threshold=10)
        entry = orchestrator.record_transaction(record.id, "sale", 45, user_id)

        declined = orchestrator.decline_sale(entry.id, "Customer cancelled", user_id=user_id)

        assert declined.status == EntryStatus.DECLINED
        assert _qty(session_factory, record.id) == 50
        assert _unread(session_factory, record.id) == []

    def test_sale_rejected_return_then_restock(self, orchestrator, session_factory, make_batch, user_id):
        record = make_batch(current_qty=50, low_stock_threshold=10)

        orchestrator.record_transaction(record.id, "sale", 45, user_id)
        assert _unread(session_factory, record.id) == [NotificationType.LOW_STOCK]

        with pytest.raises(InsufficientStockError):
            orchestrator.record_transaction(record.id, "negative return", 10, user_id)
        assert _qty(session_factory, record.id) == 5

        orchestrator.record_transaction(record.id, "inbound", 20, user_id)

        assert _qty(session_factory, record.id) == 25
        with session_factory() as s:
            alerts = NotificationSelector(s).for_entity(BATCH_ENTITY, str(record.id))
        assert [(a.notification_type, a.is_read) for a in alerts] == [
            (NotificationType.LOW_STOCK, True),
        ]

    def test_approve_keeps_reservation(self, orchestrator, session_factory, batch, user_id):
        entry = orchestrator.record_transaction(batch.id, EntryType.SALE, 20, user_id)
        approved = orchestrator.approve_sale(entry.id, notes="Paid cash", user_id=user_id)

        assert approved.status == EntryStatus.APPROVED
        assert _qty(session_factory, batch.id) == 80

    def test_debit_to_zero_raises_out_of_stock(self, orchestrator, session_factory, batch, user_id):
        orchestrator.record_transaction(batch.id, "negative return", 100, user_id)
        assert _unread(session_factory, batch.id) == [NotificationType.OUT_OF_STOCK]

    def test_rejected_movement_rolls_back(self, orchestrator, session_factory, batch, user_id):
        with pytest.raises(InsufficientStockError):
            orchestrator.record_transaction(batch.id, "sale", 101, user_id)

        assert _qty(session_factory, batch.id) == 100
        with session_factory() as s:
            assert LedgerSelector(s).batch_history(batch.id) == []

    def test_grouped_sale(self, orchestrator, session_factory, make_batch, user_id):
        first = make_batch(current_qty=12)
        second = make_batch(current_qty=40)

        sale = orchestrator.create_sale(
            [SaleItem(first.id, 4), SaleItem(second.id, 10)], user_id, notes="Ward 3",
        )
        assert _unread(session_factory, first.id) == [NotificationType.LOW_STOCK]

        declined = orchestrator.decline_sale_group(sale.id, "Ward closed", user_id=user_id)
        assert declined.status == SaleStatus.DECLINED
        assert _qty(session_factory, first.id) == 12
        assert _unread(session_factory, first.id) == []

    def test_grouped_sale_approval(self, orchestrator, session_factory, batch, user_id):
        sale = orchestrator.create_sale([SaleItem(batch.id, 30)], user_id)
        approved = orchestrator.approve_sale_group(sale.id, user_id=user_id)

        assert approved.status == SaleStatus.APPROVED
        assert _qty(session_factory, batch.id) == 70


class TestBatches:

    def test_create_empty_batch_alerts(self, orchestrator, session_factory, new_batch_data, user_id):
        record = orchestrator.create_batch(new_batch_data(current_qty=0), user_id=user_id)
        assert _unread(session_factory, record.id) == [NotificationType.OUT_OF_STOCK]

    def test_raising_threshold_creates_low_stock(self, orchestrator, session_factory, make_batch, user_id):
        record = make_batch(current_qty=20, low_stock_threshold=10)
        assert _unread(session_factory, record.id) == []

        updated = orchestrator.update_batch(
            record.id, BatchUpdate(low_stock_threshold=25), user_id=user_id,
        )

        assert updated.low_stock_threshold == 25
        assert updated.current_qty == 20
        assert _unread(session_factory, record.id) == [NotificationType.LOW_STOCK]

    def test_lowering_threshold_clears_low_stock(self, orchestrator, session_factory, make_batch, user_id):
        record = make_batch(current_qty=8, low_stock_threshold=10)
        orchestrator.evaluate_batch_stock(record.id)
        assert _unread(session_factory, record.id) == [NotificationType.LOW_STOCK]

        orchestrator.update_batch(record.id, BatchUpdate(low_stock_threshold=5), user_id=user_id)

        assert _unread(session_factory, record.id) == []

    def test_update_audited(self, orchestrator, audit_log, batch, user_id):
        orchestrator.update_batch(batch.id, BatchUpdate(unit_price=Decimal("3.10")), user_id=user_id)

        (audit,) = audit_log.entries
        assert audit.action == "UPDATE"
        assert audit.entity_id == str(batch.id)
        assert audit.summary == "Updated batch #B-100"

    def test_invalid_update_audited_as_failure(self, orchestrator, audit_log, session_factory, batch, user_id):
        with pytest.raises(InvalidBatchDatesError):
            orchestrator.update_batch(
                batch.id, BatchUpdate(expiry_date=date(2022, 1, 1)), user_id=user_id,
            )

        assert audit_log.actions() == ["UPDATE_FAILED"]
        with session_factory() as s:
            assert BatchSelector(s).get(batch.id).expiry_date == date(2025, 1, 1)

    def test_failed_create_audited_without_id(self, orchestrator, audit_log, new_batch_data, user_id):
        with pytest.raises(InvalidBatchDatesError):
            orchestrator.create_batch(new_batch_data(expiry_date=date(2022, 1, 1)), user_id=user_id)
        with pytest.raises(EmptySaleError):
            orchestrator.create_sale([], user_id)

        assert [(e.entity_name, e.entity_id, e.action) for e in audit_log.entries] == [
            ("Batch", "*", "CREATE_FAILED"),
            ("Sale", "*", "CREATE_FAILED"),
        ]

    def test_delete_unreferenced(self, orchestrator, audit_log, batch, user_id):
        orchestrator.delete_batch(batch.id, user_id=user_id)
        assert audit_log.actions() == ["DELETE"]

    def test_delete_referenced_audited_as_failure(self, orchestrator, audit_log, batch, user_id):
        orchestrator.record_transaction(batch.id, "inbound", 5, user_id)

        with pytest.raises(BatchReferencedError):
            orchestrator.delete_batch(batch.id, user_id=user_id)

        failed = audit_log.entries[-1]
        assert failed.action == "DELETE_FAILED"
        assert failed.entity_id == str(batch.id)
        assert failed.summary.startswith("Failed: ")


class TestAudit:

    def test_movement_audited_after_commit(self, orchestrator, audit_log, batch, user_id):
        entry = orchestrator.record_transaction(batch.id, "inbound", 7, user_id)

        (audit,) = audit_log.entries
        assert audit.entity_name == "Transaction"
        assert audit.entity_id == str(entry.id)
        assert audit.action == "CREATE"
        assert audit.user_id == user_id
        assert audit.summary == f"Recorded inbound of 7 unit(s) for batch {batch.id}"

    def test_sale_lifecycle_actions(self, orchestrator, audit_log, batch, user_id):
        first = orchestrator.record_transaction(batch.id, "sale", 5, user_id)
        second = orchestrator.record_transaction(batch.id, "sale", 5, user_id)
        orchestrator.approve_sale(first.id, user_id=user_id)
        orchestrator.decline_sale(second.id, "Duplicate", user_id=user_id)

        assert audit_log.actions() == ["CREATE", "CREATE", "APPROVE", "DECLINE"]
        assert audit_log.entries[-1].summary.endswith(": Duplicate")

    def test_failure_audited_against_batch(self, orchestrator, audit_log, batch, user_id):
        with pytest.raises(InvalidQuantityError):
            orchestrator.record_transaction(batch.id, "inbound", 0, user_id)

        (failed,) = audit_log.entries
        assert failed.entity_name == "Batch"
        assert failed.entity_id == str(batch.id)
        assert failed.action == "CREATE_FAILED"

    def test_reads_are_not_audited(self, orchestrator, audit_log, batch):
        orchestrator.evaluate_batch_stock(batch.id)
        orchestrator.run_expiry_scan()
        assert audit_log.entries == []

    def test_audit_errors_do_not_fail_operation(self, session_factory, clock, rules, batch, user_id, captured_logs):
        class BrokenAudit:
            def log(self, entry):
                raise RuntimeError("audit down")

            def log_async(self, entry):
                raise RuntimeError("audit down")

        orchestrator = StockOrchestrator(session_factory, clock, rules, BrokenAudit())
        orchestrator.record_transaction(batch.id, "inbound", 1, user_id)

        assert _qty(session_factory, batch.id) == 101
        assert "audit_submit_failed" in [r["message"] for r in captured_logs()]

    def test_default_recorder_persists(self, session_factory, clock, batch, user_id):
        orchestrator = StockOrchestrator(session_factory, clock)
        recorder = orchestrator.audit_logger
        assert isinstance(recorder, AuditRecorder)
        try:
            entry = orchestrator.record_transaction(batch.id, "inbound", 3, user_id)
            assert recorder.drain()
        finally:
            recorder.close()

        with session_factory() as s:
            (record,) = AuditSelector(s).find_by_entity("Transaction", str(entry.id))
        assert record.action == "CREATE"
        assert record.user_id == user_id


class TestNotifications:

    def test_mark_read_and_audit(self, orchestrator, audit_log, session_factory, make_batch, user_id):
        record = make_batch(current_qty=0)
        orchestrator.evaluate_batch_stock(record.id)
        with session_factory() as s:
            (alert,) = NotificationSelector(s).for_entity(BATCH_ENTITY, str(record.id))

        result = orchestrator.mark_notification_read(alert.id, user_id=user_id)

        assert result.is_read is True
        assert audit_log.actions() == ["MARK_READ"]
        assert audit_log.entries[0].summary == "Marked out_of_stock notification as read"

    def test_mark_unknown_notification_audited(self, orchestrator, audit_log):
        with pytest.raises(NotificationNotFoundError):
            orchestrator.mark_notification_read(uuid4())
        assert audit_log.actions() == ["MARK_READ_FAILED"]

    def test_mark_all(self, orchestrator, make_batch):
        first = make_batch(current_qty=0)
        second = make_batch(current_qty=1)
        orchestrator.evaluate_batch_stock(first.id)
        orchestrator.evaluate_batch_stock(second.id)

        assert orchestrator.mark_all_notifications_read() == 2

    def test_expiry_scan_commits(self, orchestrator, session_factory, make_batch):
        record = make_batch(expiry_date=date(2024, 1, 3))
        result = orchestrator.run_expiry_scan(date(2024, 1, 1))

        assert result.near_expiry_created == 1
        assert _unread(session_factory, record.id) == [NotificationType.NEAR_EXPIRY]


class TestPostCommitEvaluation:

    def test_evaluation_failure_is_swallowed(self, orchestrator, session_factory, batch, user_id, monkeypatch, captured_logs):
        def boom(self, batch_id, snapshot=None):
            raise RuntimeError("evaluator down")

        monkeypatch.setattr(StockNotificationEvaluator, "evaluate_batch_stock", boom)

        entry = orchestrator.record_transaction(batch.id, "sale", 95, user_id)

        assert entry.status == EntryStatus.PENDING
        assert _qty(session_factory, batch.id) == 5
        assert _unread(session_factory, batch.id) == []
        assert "stock_evaluation_failed" in [r["message"] for r in captured_logs()]

    def test_explicit_evaluation_raises(self, orchestrator, batch, monkeypatch):
        def boom(self, batch_id, snapshot=None):
            raise RuntimeError("evaluator down")

        monkeypatch.setattr(StockNotificationEvaluator, "evaluate_batch_stock", boom)

        with pytest.raises(RuntimeError):
            orchestrator.evaluate_batch_stock(batch.id)

    def test_later_evaluation_repairs_alerts(self, orchestrator, session_factory, batch, user_id, monkeypatch):
        original = StockNotificationEvaluator.evaluate_batch_stock

        def boom(self, batch_id, snapshot=None):
            raise RuntimeError("evaluator down")

        monkeypatch.setattr(StockNotificationEvaluator, "evaluate_batch_stock", boom)
        orchestrator.record_transaction(batch.id, "sale", 95, user_id)
        monkeypatch.setattr(StockNotificationEvaluator, "evaluate_batch_stock", original)

        orchestrator.evaluate_batch_stock(batch.id)
        assert _unread(session_factory, batch.id) == [NotificationType.LOW_STOCK]


class TestLogging:

    def test_operation_lifecycle_logged(self, orchestrator, batch, user_id, captured_logs):
        orchestrator.record_transaction(batch.id, "inbound", 2, user_id)

        records = captured_logs()
        started = next(r for r in records if r["message"] == "record_transaction_started")
        completed = next(r for r in records if r["message"] == "record_transaction_completed")
        assert started["correlation_id"] == completed["correlation_id"]
        assert completed["actor_id"] == str(user_id)
        assert "duration_ms" in completed

    def test_rejection_logged_with_code(self, orchestrator, batch, user_id, captured_logs):
        with pytest.raises(InsufficientStockError):
            orchestrator.record_transaction(batch.id, "negative return", 500, user_id)

        rejected = next(r for r in captured_logs() if r["message"] == "record_transaction_rejected")
        assert rejected["level"] == "WARNING"
        assert rejected["error_code"] == "INSUFFICIENT_STOCK"
