"""
Background Persistence
======================

Fire-and-forget durability writes for the ledger.

GUARANTEES:
- Writes run on a single worker, in submission order
- The caller never blocks on, and never sees, a write failure
- Failures go to the notification collaborator as StorageError data
"""

from __future__ import annotations
from concurrent.futures import Future, ThreadPoolExecutor, wait
from typing import List, Optional, Sequence
import logging
import threading

from ..contracts.base import Error, ErrorCode, StorageError
from ..contracts.events import NotificationLevel, StorageWriteResult, Thread
from . import StorageBackend


logger = logging.getLogger(__name__)


class PersistenceWorker:
    """
    Serialises `StorageBackend.save` calls onto one background thread.

    With `background=False` the write runs inline; the failure path
    stays the same (reported, never raised).
    """

    def __init__(
        self,
        backend: StorageBackend,
        notifier=None,
        background: bool = True
    ):
        self._backend = backend
        self._notifier = notifier
        self._background = background
        self._executor: Optional[ThreadPoolExecutor] = (
            ThreadPoolExecutor(max_workers=1, thread_name_prefix="tapestry-persist")
            if background else None
        )
        self._pending: List[Future] = []
        self._lock = threading.Lock()
        self._failures = 0
        self._last_result: Optional[StorageWriteResult] = None

    @property
    def backend(self) -> StorageBackend:
        return self._backend

    @property
    def failure_count(self) -> int:
        return self._failures

    @property
    def last_result(self) -> Optional[StorageWriteResult]:
        return self._last_result

    def submit(self, threads: Sequence[Thread]) -> Future:
        snapshot = tuple(threads)
        if self._executor is None:
            future: Future = Future()
            future.set_result(self._write(snapshot))
            return future

        future = self._executor.submit(self._write, snapshot)
        with self._lock:
            self._pending = [f for f in self._pending if not f.done()]
            self._pending.append(future)
        return future

    def flush(self, timeout: Optional[float] = None) -> bool:
        """Wait for queued writes. Returns False if the timeout expired."""
        with self._lock:
            pending = list(self._pending)
        if not pending:
            return True
        _, not_done = wait(pending, timeout=timeout)
        return not not_done

    def shutdown(self, wait_for_pending: bool = True) -> None:
        if self._executor is not None:
            self._executor.shutdown(wait=wait_for_pending)

    def _write(self, threads: Sequence[Thread]) -> StorageWriteResult:
        try:
            result = self._backend.save(threads)
        except StorageError as e:
            result = StorageWriteResult(success=False, error=e.error)
        except Exception as e:
            logger.exception("Storage backend raised during save")
            result = StorageWriteResult(
                success=False,
                error=Error.create(ErrorCode.STORAGE_WRITE_FAILED, str(e))
            )

        self._last_result = result
        if not result.success:
            self._failures += 1
            self._report(result)
        return result

    def _report(self, result: StorageWriteResult) -> None:
        message = result.error.message if result.error else "Storage write failed"
        if self._notifier is None:
            logger.warning("Persistence failure: %s", message)
            return
        self._notifier.notify(
            NotificationLevel.ERROR,
            "ledger",
            f"Persistence failure, in-memory ledger remains authoritative: {message}",
            code=ErrorCode.STORAGE_WRITE_FAILED.name
        )
