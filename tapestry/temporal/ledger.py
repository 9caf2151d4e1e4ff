"""
Thread Ledger
=============

Append-only, ordered store of Thread records.

INVARIANTS:
- Insertion order is preserved; append never reorders or removes
- Every thread is ledger-unique by id
- Ledger-assigned timestamps are non-decreasing
- Threads form a hash chain (previous_hash -> hash) for integrity checks
- The in-memory ledger is authoritative; persistence is best-effort

This is the SOURCE OF TRUTH for Sentinel, Mnemosyne and Valkyrie.
The ledger never interprets thread content.
"""

from __future__ import annotations
from dataclasses import dataclass, replace
from typing import Callable, Dict, List, Optional, Sequence, Tuple
import json
import logging
import threading

from ..contracts.base import (
    Error, ErrorCode, LedgerError, MalformedRecordError, ScrollImportError,
    StorageError, TimeOfDay
)
from ..contracts.events import (
    GENESIS_HASH, AuditEventType, NotificationLevel, Thread
)
from ..storage import StorageBackend
from ..storage.persistence import PersistenceWorker
from ..storage.records import to_record, validate_record
from .clock import LogicalClock


logger = logging.getLogger(__name__)

LEGACY_TITLE = "Legacy Thread"

_LOG_LEVELS = {
    NotificationLevel.INFO: logging.INFO,
    NotificationLevel.WARNING: logging.WARNING,
    NotificationLevel.ERROR: logging.ERROR,
}


@dataclass
class LedgerConfig:
    """Configuration for the ledger."""
    background_persistence: bool = True
    max_scroll_bytes: int = 5 * 1024 * 1024
    max_scroll_threads: int = 1000


@dataclass(frozen=True)
class LedgerState:
    """Immutable summary of the ledger head."""
    entry_count: int
    head_hash: str
    last_timestamp: int


def verify_chain(threads: Sequence[Thread]) -> Tuple[bool, Optional[Error]]:
    """
    Recompute the hash chain over `threads`.

    Returns (is_valid, error). The error names the first broken index.
    """
    previous = GENESIS_HASH
    for index, thread in enumerate(threads):
        if thread.previous_hash != previous:
            return (False, Error.create(
                ErrorCode.TIMELINE_CORRUPTION,
                f"Hash chain broken at thread {index}",
                index=index,
                expected_hash=previous,
                actual_hash=thread.previous_hash
            ))
        calculated = thread.compute_hash(previous)
        if calculated != thread.hash:
            return (False, Error.create(
                ErrorCode.TIMELINE_CORRUPTION,
                f"Integrity failure at thread {index}",
                index=index,
                expected_hash=calculated,
                actual_hash=thread.hash
            ))
        previous = thread.hash
    return (True, None)


class Ledger:
    """
    Append-only thread ledger.

    GUARANTEES:
    ===========
    1. `append` returns as soon as the record is in memory
    2. Persistence happens on a background worker; failures are
       reported to the notifier and never roll back the append
    3. `get_all` is O(1): it returns the cached immutable snapshot
    4. Appends are serialised by a single-writer lock
    """

    def __init__(
        self,
        storage: StorageBackend,
        notifier=None,
        clock: Optional[Callable[[], int]] = None,
        config: Optional[LedgerConfig] = None,
        audit=None
    ):
        self._config = config or LedgerConfig()
        self._notifier = notifier
        self._clock = clock or LogicalClock.live()
        self._audit = audit
        self._persistence = PersistenceWorker(
            storage,
            notifier=notifier,
            background=self._config.background_persistence
        )

        self._lock = threading.RLock()
        self._threads: List[Thread] = []
        self._index: Dict[str, int] = {}
        self._snapshot: Tuple[Thread, ...] = ()
        self._last_timestamp = 0
        self._integrity_verified = False

        self._hydrate()

    # =========================================================================
    # STARTUP
    # =========================================================================

    def _hydrate(self) -> None:
        try:
            loaded = self._persistence.backend.load()
        except StorageError as e:
            self._notify(
                NotificationLevel.ERROR,
                f"Failed to load ledger, starting empty: {e}",
                ErrorCode.STORAGE_READ_FAILED
            )
            loaded = []

        self._replace_contents(loaded)

        if any(not t.hash for t in self._threads):
            logger.info("Migrating %d legacy threads to ledger format", len(self._threads))
            self._migrate_legacy()

        self.verify_integrity()

    def _migrate_legacy(self) -> None:
        migrated: List[Thread] = []
        previous = GENESIS_HASH
        for thread in self._threads:
            filled = replace(
                thread,
                time_of_day=thread.time_of_day if thread.time_of_day.is_known else TimeOfDay.MIDDAY,
                title=thread.title or LEGACY_TITLE
            )
            timestamp = filled.timestamp if filled.timestamp is not None else self._clock()
            sealed = filled.sealed(timestamp, previous)
            migrated.append(sealed)
            previous = sealed.hash

        self._replace_contents(migrated)
        self._persistence.submit(self._snapshot)
        self._notify(
            NotificationLevel.INFO,
            f"Migrated {len(migrated)} legacy threads to the hash-chained format"
        )

    def _replace_contents(self, threads: Sequence[Thread]) -> None:
        with self._lock:
            self._threads = []
            self._index = {}
            for thread in threads:
                if thread.id and thread.id in self._index:
                    self._notify(
                        NotificationLevel.WARNING,
                        f"Dropping duplicate thread id {thread.id} from storage",
                        ErrorCode.DUPLICATE_THREAD
                    )
                    continue
                if thread.id:
                    self._index[thread.id] = len(self._threads)
                self._threads.append(thread)
            self._snapshot = tuple(self._threads)
            self._last_timestamp = max(
                (t.timestamp for t in self._threads if t.timestamp is not None),
                default=0
            )

    # =========================================================================
    # WRITE OPERATIONS
    # =========================================================================

    def append(self, thread: Thread) -> Thread:
        """
        Append a thread, assigning id and timestamp when absent.

        Raises LedgerError if the thread carries an id already present.
        """
        with self._lock:
            if thread.id and thread.id in self._index:
                raise LedgerError(
                    f"Thread {thread.id} already exists in the ledger",
                    Error.create(ErrorCode.DUPLICATE_THREAD, "duplicate id", thread_id=thread.id)
                )

            if thread.timestamp is None:
                timestamp = max(self._clock(), self._last_timestamp)
            else:
                timestamp = thread.timestamp

            sealed = thread.sealed(timestamp, self._head_hash())
            if sealed.id in self._index:
                raise LedgerError(
                    f"Thread {sealed.id} already exists in the ledger",
                    Error.create(ErrorCode.DUPLICATE_THREAD, "duplicate id", thread_id=sealed.id)
                )

            self._index[sealed.id] = len(self._threads)
            self._threads.append(sealed)
            self._snapshot = tuple(self._threads)
            self._last_timestamp = max(self._last_timestamp, timestamp)

            # submitted under the lock so writes reach storage in append order
            self._persistence.submit(self._snapshot)

        if self._audit is not None:
            self._audit.record(
                AuditEventType.LEDGER_APPEND, "append", entity_id=sealed.id,
                region=sealed.region.value, intention=sealed.intention.value
            )
        return sealed

    def clear(self) -> None:
        """Empty in-memory and persisted state. Destructive."""
        with self._lock:
            count = len(self._threads)
            self._threads = []
            self._index = {}
            self._snapshot = ()
            self._last_timestamp = 0
            self._integrity_verified = True
            self._persistence.submit(self._snapshot)

        logger.info("Ledger cleared (%d threads removed)", count)
        if self._audit is not None:
            self._audit.record(AuditEventType.LEDGER_CLEAR, "clear", removed=count)

    # =========================================================================
    # READ OPERATIONS
    # =========================================================================

    def get_all(self) -> Tuple[Thread, ...]:
        """Return the full ordered snapshot (immutable)."""
        return self._snapshot

    def get(self, thread_id: str) -> Optional[Thread]:
        snapshot = self._snapshot
        position = self._index.get(thread_id)
        if position is None or position >= len(snapshot):
            return None
        return snapshot[position]

    def __len__(self) -> int:
        return len(self._snapshot)

    @property
    def state(self) -> LedgerState:
        with self._lock:
            return LedgerState(
                entry_count=len(self._threads),
                head_hash=self._head_hash(),
                last_timestamp=self._last_timestamp
            )

    def _head_hash(self) -> str:
        return self._threads[-1].hash if self._threads else GENESIS_HASH

    # =========================================================================
    # INTEGRITY
    # =========================================================================

    @property
    def is_integrity_verified(self) -> bool:
        return self._integrity_verified

    def verify_integrity(self) -> Tuple[bool, Optional[Error]]:
        valid, error = verify_chain(self._snapshot)
        self._integrity_verified = valid
        if not valid:
            self._notify(NotificationLevel.WARNING, error.message, ErrorCode.TIMELINE_CORRUPTION)
        return (valid, error)

    # =========================================================================
    # SCROLLS (Import / Export)
    # =========================================================================

    def export_scroll(self) -> str:
        return json.dumps([to_record(t) for t in self._snapshot], indent=2)

    def import_scroll(self, text: str) -> int:
        """
        Replace the ledger with a validated scroll.

        Raises ScrollImportError on size, format, schema or chain
        violations; the current ledger is left untouched in that case.
        """
        if len(text.encode("utf-8")) > self._config.max_scroll_bytes:
            raise ScrollImportError(
                "File too large",
                Error.create(ErrorCode.SCROLL_TOO_LARGE, "scroll exceeds size limit")
            )
        try:
            imported = json.loads(text)
        except ValueError as e:
            raise ScrollImportError(f"Invalid scroll: {e}") from e

        if not isinstance(imported, list):
            raise ScrollImportError("Invalid format: root must be an array")
        if len(imported) > self._config.max_scroll_threads:
            raise ScrollImportError(
                f"Too many threads in scroll (limit: {self._config.max_scroll_threads})",
                Error.create(ErrorCode.SCROLL_TOO_LARGE, "too many threads")
            )

        try:
            threads = [validate_record(record) for record in imported]
        except MalformedRecordError as e:
            raise ScrollImportError(
                f"Invalid schema or data types in imported threads: {e}",
                Error.create(ErrorCode.SCROLL_INVALID_SCHEMA, str(e))
            ) from e

        ids = [t.id for t in threads]
        if len(set(ids)) != len(ids):
            raise ScrollImportError(
                "Duplicate thread ids in scroll",
                Error.create(ErrorCode.DUPLICATE_THREAD, "duplicate ids in scroll")
            )

        valid, error = verify_chain(threads)
        if not valid:
            raise ScrollImportError("Integrity check failed for imported scroll", error)

        with self._lock:
            self._replace_contents(threads)
            self._integrity_verified = True
            self._persistence.submit(self._snapshot)

        if self._audit is not None:
            self._audit.record(AuditEventType.LEDGER_IMPORT, "import", imported=len(threads))
        return len(threads)

    # =========================================================================
    # LIFECYCLE
    # =========================================================================

    def flush(self, timeout: Optional[float] = None) -> bool:
        """Wait for pending persistence writes."""
        return self._persistence.flush(timeout)

    def close(self) -> None:
        self._persistence.flush()
        self._persistence.shutdown()

    @property
    def persistence(self) -> PersistenceWorker:
        return self._persistence

    def _notify(self, level: NotificationLevel, message: str, code: Optional[ErrorCode] = None) -> None:
        if self._notifier is None:
            logger.log(_LOG_LEVELS[level], message)
            return
        self._notifier.notify(level, "ledger", message, code=code.name if code else None)
