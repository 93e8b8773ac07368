"""
Concurrent stock movements.

Many threads debit the same batch at once through the orchestrator.
The guarded UPDATE must never let the quantity go below zero, and
concurrent evaluations must leave exactly one unread alert per key.

Runs against SQLite by default (writers serialize on BEGIN IMMEDIATE);
set DATABASE_URL to run the same races on PostgreSQL.
"""

from concurrent.futures import ThreadPoolExecutor
from threading import Barrier

import pytest

from stock_kernel.domain.stock_alerts import BATCH_ENTITY, NotificationType
from stock_kernel.exceptions import InsufficientStockError
from stock_kernel.selectors import BatchSelector, LedgerSelector, NotificationSelector

pytestmark = pytest.mark.slow_locks

THREADS = 12


def _race(fn, n: int = THREADS) -> list:
    """Run ``fn`` in ``n`` threads released together; return outcomes."""
    barrier = Barrier(n)

    def worker(i):
        barrier.wait(timeout=30)
        try:
            return fn(i)
        except InsufficientStockError as exc:
            return exc

    with ThreadPoolExecutor(max_workers=n) as pool:
        return list(pool.map(worker, range(n)))


class TestConcurrentDebits:

    def test_sales_never_overdraw(self, orchestrator, session_factory, make_batch, user_id):
        record = make_batch(current_qty=50, low_stock_threshold=5)

        outcomes = _race(
            lambda i: orchestrator.record_transaction(record.id, "sale", 10, user_id)
        )

        succeeded = [o for o in outcomes if not isinstance(o, Exception)]
        rejected = [o for o in outcomes if isinstance(o, InsufficientStockError)]
        assert len(succeeded) == 5
        assert len(rejected) == THREADS - 5

        with session_factory() as s:
            assert BatchSelector(s).get(record.id).current_qty == 0
            assert len(LedgerSelector(s).pending_sales(record.id)) == 5
            assert LedgerSelector(s).net_movement(record.id) == -50

    def test_mixed_credits_and_debits_reconcile(self, orchestrator, session_factory, make_batch, user_id):
        record = make_batch(current_qty=20)

        def move(i):
            entry_type = "inbound" if i % 2 == 0 else "negative return"
            return orchestrator.record_transaction(record.id, entry_type, 7, user_id)

        outcomes = _race(move)

        with session_factory() as s:
            current = BatchSelector(s).get(record.id).current_qty
            net = LedgerSelector(s).net_movement(record.id)
            history = LedgerSelector(s).batch_history(record.id)
        assert current >= 0
        assert 20 + net == current
        assert sum(1 for o in outcomes if not isinstance(o, Exception)) == len(history)

    def test_concurrent_evaluation_single_alert(self, orchestrator, session_factory, make_batch):
        record = make_batch(current_qty=0)

        _race(lambda i: orchestrator.evaluate_batch_stock(record.id))

        with session_factory() as s:
            alerts = NotificationSelector(s).for_entity(BATCH_ENTITY, str(record.id))
        unread = [a for a in alerts if not a.is_read]
        assert [a.notification_type for a in unread] == [NotificationType.OUT_OF_STOCK]
