"""
ExpiryScanScheduler -- In-process daily expiry scan.

Contract:
    Runs ``StockOrchestrator.run_expiry_scan`` once at start-up and then
    once per day at ``run_at_hour`` (UTC).  At most one scan runs at a
    time, whichever thread triggers it.

Architecture: stock_kernel/services.  Uses the orchestrator for the scan
    itself; this module only owns timing and the single-flight guard.

Invariants enforced:
    - All timestamps from injected Clock.
    - Single-flight: an overlapping ``run_once`` is skipped, not queued.
    - Graceful shutdown: ``stop()`` wakes the loop, which exits after the
      scan in progress (if any) finishes.
"""

from __future__ import annotations

import threading
from datetime import datetime, timedelta

from stock_kernel.domain.clock import Clock, SystemClock
from stock_kernel.domain.stock_alerts import ExpiryScanResult
from stock_kernel.logging_config import get_logger
from stock_kernel.services.stock_orchestrator import StockOrchestrator

logger = get_logger("services.expiry_scheduler")


def seconds_until_next_run(now: datetime, run_at_hour: int) -> float:
    """Seconds from ``now`` until the next ``run_at_hour``:00 (same tz as ``now``)."""
    next_run = now.replace(hour=run_at_hour, minute=0, second=0, microsecond=0)
    if next_run <= now:
        next_run += timedelta(days=1)
    return (next_run - now).total_seconds()


class ExpiryScanScheduler:
    """Daily expiry scan on a background thread.

    Non-goals:
        - NOT a distributed scheduler: with several processes, each runs
          its own scan; notification dedup keeps the result correct.
    """

    def __init__(
        self,
        orchestrator: StockOrchestrator,
        clock: Clock | None = None,
        run_at_hour: int = 0,
    ):
        if not 0 <= run_at_hour <= 23:
            raise ValueError("run_at_hour must be between 0 and 23")
        self._orchestrator = orchestrator
        self._clock = clock or SystemClock()
        self._run_at_hour = run_at_hour
        self._scan_lock = threading.Lock()
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None

    # -------------------------------------------------------------------------
    # Public API
    # -------------------------------------------------------------------------

    def run_once(self) -> ExpiryScanResult | None:
        """Run one scan unless another is in progress.

        Returns:
            The scan result, or None if skipped (overlap) or failed.
        """
        if not self._scan_lock.acquire(blocking=False):
            logger.info("expiry_scan_skipped_overlap")
            return None
        try:
            return self._orchestrator.run_expiry_scan(self._clock.today())
        except Exception:
            logger.exception("expiry_scan_failed")
            return None
        finally:
            self._scan_lock.release()

    def start(self) -> None:
        """Start the scheduler in a background thread."""
        if self._thread is not None and self._thread.is_alive():
            return

        self._stop_event.clear()
        self._thread = threading.Thread(
            target=self._run_loop,
            name="expiry-scan-scheduler",
            daemon=True,
        )
        self._thread.start()
        logger.info("expiry_scheduler_started", extra={"run_at_hour": self._run_at_hour})

    def stop(self, timeout: float = 30.0) -> None:
        """Signal stop and wait for the loop to finish."""
        self._stop_event.set()
        if self._thread is not None and self._thread.is_alive():
            self._thread.join(timeout=timeout)
        logger.info("expiry_scheduler_stopped")

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    # -------------------------------------------------------------------------
    # Internal
    # -------------------------------------------------------------------------

    def _run_loop(self) -> None:
        while not self._stop_event.is_set():
            self.run_once()
            wait = seconds_until_next_run(self._clock.now(), self._run_at_hour)
            logger.debug("expiry_scan_next_run", extra={"seconds": wait})
            self._stop_event.wait(timeout=wait)
