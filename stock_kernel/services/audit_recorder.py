"""
stock_kernel.services.audit_recorder -- Activity log writer.

Responsibility:
    Persists ``AuditEntry`` records to ``audit_logs``.  ``log`` writes
    synchronously; ``log_async`` hands the entry to a background worker
    so the calling operation never waits on (or fails because of) the
    audit write.

Architecture position:
    Kernel > Services.  Owns its sessions: every entry is written in its
    own short transaction from the injected session factory, independent
    of the business transaction that produced it.

Invariants enforced:
    - Audit failures never propagate to the caller.
    - An entry whose user no longer exists is retried once with
      ``user_id`` cleared (FK violation -> IntegrityError -> retry).

Failure modes:
    - Any other write error is logged with ``audit_write_failed`` and the
      entry is dropped.
"""

from __future__ import annotations

import queue
import threading
import time
from typing import Callable

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from stock_kernel.domain.audit import AuditEntry
from stock_kernel.logging_config import get_logger
from stock_kernel.models.audit_log import AuditLog

logger = get_logger("services.audit")

_STOP = object()


class AuditRecorder:
    """AuditLogger backed by the ``audit_logs`` table.

    Contract:
        - ``log()`` returns after the entry is committed or dropped.
        - ``log_async()`` returns immediately; ``drain()`` waits for the
          queue to empty (tests, shutdown).
        - ``close()`` stops the worker after the queue is drained.
    """

    def __init__(self, session_factory: Callable[[], Session]):
        self._session_factory = session_factory
        self._queue: queue.Queue = queue.Queue()
        self._thread: threading.Thread | None = None
        self._lock = threading.Lock()

    # -------------------------------------------------------------------------
    # AuditLogger
    # -------------------------------------------------------------------------

    def log(self, entry: AuditEntry) -> None:
        self._write(entry)

    def log_async(self, entry: AuditEntry) -> None:
        self._ensure_worker()
        self._queue.put(entry)

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    def drain(self, timeout: float = 10.0) -> bool:
        """Block until every queued entry has been handled.

        Returns:
            False if the timeout elapsed first.
        """
        deadline = time.monotonic() + timeout
        with self._queue.all_tasks_done:
            while self._queue.unfinished_tasks:
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    return False
                self._queue.all_tasks_done.wait(remaining)
        return True

    def close(self, timeout: float = 10.0) -> None:
        with self._lock:
            thread = self._thread
            self._thread = None
        if thread is None:
            return
        self._queue.put(_STOP)
        thread.join(timeout=timeout)
        logger.info("audit_recorder_stopped")

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    # -------------------------------------------------------------------------
    # Internal
    # -------------------------------------------------------------------------

    def _ensure_worker(self) -> None:
        with self._lock:
            if self._thread is not None and self._thread.is_alive():
                return
            self._thread = threading.Thread(
                target=self._run_loop,
                name="audit-recorder",
                daemon=True,
            )
            self._thread.start()

    def _run_loop(self) -> None:
        while True:
            item = self._queue.get()
            try:
                if item is _STOP:
                    return
                self._write(item)
            except Exception:
                logger.exception("audit_worker_exception")
            finally:
                self._queue.task_done()

    def _write(self, entry: AuditEntry) -> bool:
        try:
            self._insert(entry)
            return True
        except IntegrityError:
            if entry.user_id is None:
                logger.exception(
                    "audit_write_failed",
                    extra={"entity_name": entry.entity_name, "action": entry.action},
                )
                return False
            logger.warning(
                "audit_user_missing_retrying",
                extra={
                    "entity_name": entry.entity_name,
                    "entity_id": entry.entity_id,
                    "user_id": str(entry.user_id),
                },
            )
        except Exception:
            logger.exception(
                "audit_write_failed",
                extra={"entity_name": entry.entity_name, "action": entry.action},
            )
            return False

        try:
            self._insert(entry.without_user())
            return True
        except Exception:
            logger.exception(
                "audit_write_failed",
                extra={"entity_name": entry.entity_name, "action": entry.action},
            )
            return False

    def _insert(self, entry: AuditEntry) -> None:
        session = self._session_factory()
        try:
            session.add(AuditLog.from_entry(entry))
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()
