"""
Test Fixtures

Deterministic builders for threads, ledgers and engines.
All timestamps are fixed; nothing reads the wall clock.
"""

from typing import Iterable, List, Optional, Sequence, Tuple

from tapestry.config import TapestryConfig
from tapestry.contracts.base import Error, ErrorCode, StorageError
from tapestry.contracts.events import (
    GENESIS_HASH, Directive, StorageWriteResult, Thread
)
from tapestry.core.valkyrie import ActionExecutor
from tapestry.engine import TapestryEngine
from tapestry.observability import NotificationCenter
from tapestry.storage import InMemoryStorageBackend, StorageBackend
from tapestry.storage.records import to_record
from tapestry.temporal.clock import SteppingClock
from tapestry.temporal.ledger import Ledger, LedgerConfig


# =============================================================================
# FIXED TIMESTAMPS (deterministic)
# =============================================================================

T0 = 1_767_225_600_000  # 2026-01-01T00:00:00Z in ms
SECOND = 1_000
MINUTE = 60 * SECOND


def make_clock(start: int = T0, step: int = 10 * SECOND) -> SteppingClock:
    return SteppingClock(start=start, step=step)


# =============================================================================
# THREAD BUILDERS
# =============================================================================

def make_thread(
    intention: str = "serenity",
    time_of_day: str = "dawn",
    region: str = "coast",
    title: Optional[str] = None,
    timestamp: Optional[int] = None,
    id: str = ""
) -> Thread:
    return Thread.draft(intention, time_of_day, region, title=title, timestamp=timestamp, id=id)


def seal_chain(threads: Iterable[Thread]) -> List[Thread]:
    """Seal drafts into a valid hash chain, as the ledger would."""
    sealed = []
    previous = GENESIS_HASH
    for index, thread in enumerate(threads):
        timestamp = thread.timestamp if thread.timestamp is not None else T0 + index * SECOND
        entry = thread.sealed(timestamp, previous)
        sealed.append(entry)
        previous = entry.hash
    return sealed


def spaced(specs: Sequence[Tuple[str, str, str]], start: int = T0, gap: int = 10 * SECOND) -> List[Thread]:
    """Sealed chain of (intention, time, region) threads `gap` ms apart."""
    return seal_chain(
        make_thread(i, t, r, timestamp=start + n * gap)
        for n, (i, t, r) in enumerate(specs)
    )


def burst(count: int, region: str = "coast", start: int = T0, gap: int = 100) -> List[Thread]:
    """`count` threads in one region inside a short window."""
    intentions = ("serenity", "vibrancy", "awe", "legacy")
    return seal_chain(
        make_thread(intentions[n % 4], "dusk", region, timestamp=start + n * gap)
        for n in range(count)
    )


def records_for(threads: Iterable[Thread]) -> List[dict]:
    return [to_record(t) for t in threads]


# =============================================================================
# COLLABORATORS
# =============================================================================

class FailingStorageBackend(StorageBackend):
    """Storage whose reads raise and/or whose writes fail."""

    def __init__(self, fail_load: bool = False, fail_save: bool = True, raise_on_save: bool = False):
        self.fail_load = fail_load
        self.fail_save = fail_save
        self.raise_on_save = raise_on_save
        self.save_attempts = 0

    def load(self) -> List[Thread]:
        if self.fail_load:
            raise StorageError("disk unreadable")
        return []

    def save(self, threads: Sequence[Thread]) -> StorageWriteResult:
        self.save_attempts += 1
        if self.raise_on_save:
            raise StorageError("disk full")
        if self.fail_save:
            return StorageWriteResult(
                success=False,
                error=Error.create(ErrorCode.STORAGE_WRITE_FAILED, "disk full")
            )
        return StorageWriteResult(success=True, record_count=len(threads))


class RecordingExecutor(ActionExecutor):
    """Executor that records directives and can be told to fail."""

    def __init__(self, fail: bool = False):
        self.fail = fail
        self.directives: List[Directive] = []

    def execute(self, directive: Directive) -> None:
        self.directives.append(directive)
        if self.fail:
            raise RuntimeError("actuator offline")


# =============================================================================
# LEDGER / ENGINE BUILDERS
# =============================================================================

def make_ledger(
    records: Optional[List[dict]] = None,
    storage: Optional[StorageBackend] = None,
    clock=None,
    background: bool = False
) -> Tuple[Ledger, StorageBackend, NotificationCenter]:
    storage = storage if storage is not None else InMemoryStorageBackend(records)
    notifier = NotificationCenter(clock=lambda: T0)
    ledger = Ledger(
        storage,
        notifier=notifier,
        clock=clock or make_clock(),
        config=LedgerConfig(background_persistence=background)
    )
    return ledger, storage, notifier


def make_engine(
    storage: Optional[StorageBackend] = None,
    executor: Optional[ActionExecutor] = None,
    config: Optional[TapestryConfig] = None,
    clock=None
) -> TapestryEngine:
    config = config or TapestryConfig(ledger=LedgerConfig(background_persistence=False))
    return TapestryEngine(
        config=config,
        storage=storage if storage is not None else InMemoryStorageBackend(),
        clock=clock or make_clock(),
        executor=executor or RecordingExecutor()
    )
