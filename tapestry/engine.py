"""
Engine Orchestration Module

The single application context. Owns one instance of every component
and injects references between them.

DESIGN PRINCIPLES:
==================
1. Components communicate ONLY through contracts
2. No module-level singletons; callers build an engine and pass it on
3. All operations are traceable through the audit collectors
4. The ledger is the only mutable shared state
"""

from __future__ import annotations
from typing import Any, Callable, Dict, List, Optional, Tuple, Union
import logging

from .config import TapestryConfig
from .contracts.base import Error, ErrorCode, LedgerError, TapestryError
from .contracts.events import (
    ActionType, AuditEventType, AuditLogEntry, ExecutionLogEntry, NotificationLevel,
    Report, SimilarityMatch, Thread
)
from .core.sentinel import Sentinel
from .core.valkyrie import ActionExecutor, NotifyingExecutor, Valkyrie
from .observability import AuditCollector, NotificationCenter
from .query.mnemosyne import Mnemosyne
from .storage import StorageBackend, create_storage
from .temporal.ledger import Ledger


logger = logging.getLogger(__name__)

COMMANDS = ("weave", "scan", "recall", "evaluate", "override", "status", "arm", "disarm", "log")


class TapestryEngine:
    """
    Unified engine for the analytics core.

    FLOW:
    =====
    1. Ledger: weave() appends a thread
    2. Sentinel: assess() reads the snapshot and produces a Report
    3. Valkyrie: evaluate() turns the Report into a logged decision
    4. Mnemosyne: recall() ranks related threads for a given one

    Sentinel, Mnemosyne and Valkyrie only ever see ledger snapshots.
    """

    def __init__(
        self,
        config: Optional[TapestryConfig] = None,
        storage: Optional[StorageBackend] = None,
        clock: Optional[Callable[[], int]] = None,
        executor: Optional[ActionExecutor] = None
    ):
        self._config = config or TapestryConfig()

        self._notifications = NotificationCenter(
            clock=clock,
            max_entries=self._config.observability.max_notifications
        )
        self._ledger_audit = AuditCollector("ledger", clock=clock)
        self._sentinel_audit = AuditCollector("sentinel", clock=clock)
        self._valkyrie_audit = AuditCollector("valkyrie", clock=clock)

        self._ledger = Ledger(
            storage if storage is not None else create_storage(self._config.storage),
            notifier=self._notifications,
            clock=clock,
            config=self._config.ledger,
            audit=self._ledger_audit
        )
        self._sentinel = Sentinel(self._config.sentinel)
        self._mnemosyne = Mnemosyne(self._ledger.get_all, self._config.mnemosyne)
        self._valkyrie = Valkyrie(
            policy=self._config.policy,
            executor=executor or NotifyingExecutor(self._notifications),
            clock=clock,
            audit=self._valkyrie_audit
        )

    # =========================================================================
    # COMPONENTS
    # =========================================================================

    @property
    def config(self) -> TapestryConfig:
        return self._config

    @property
    def ledger(self) -> Ledger:
        return self._ledger

    @property
    def sentinel(self) -> Sentinel:
        return self._sentinel

    @property
    def mnemosyne(self) -> Mnemosyne:
        return self._mnemosyne

    @property
    def valkyrie(self) -> Valkyrie:
        return self._valkyrie

    @property
    def notifications(self) -> NotificationCenter:
        return self._notifications

    # =========================================================================
    # LEDGER
    # =========================================================================

    def weave(
        self,
        intention: Optional[str],
        time_of_day: Optional[str],
        region: Optional[str],
        title: Optional[str] = None,
        timestamp: Optional[int] = None
    ) -> Thread:
        """Append a new thread. Unrecognised values are stored as UNKNOWN."""
        draft = Thread.draft(intention, time_of_day, region, title=title, timestamp=timestamp)
        if draft.is_malformed:
            self._notifications.notify(
                NotificationLevel.WARNING, "ledger",
                f"Weaving thread with unknown fields: intention={intention!r} "
                f"time={time_of_day!r} region={region!r}",
                code=ErrorCode.MALFORMED_RECORD.name
            )
        return self._ledger.append(draft)

    def threads(self) -> Tuple[Thread, ...]:
        return self._ledger.get_all()

    def get_thread(self, thread_id: str) -> Thread:
        thread = self._ledger.get(thread_id)
        if thread is None:
            raise LedgerError(
                f"Thread {thread_id} not found",
                Error.create(ErrorCode.THREAD_NOT_FOUND, "unknown thread id", thread_id=thread_id)
            )
        return thread

    # =========================================================================
    # ANALYTICS
    # =========================================================================

    def assess(self) -> Report:
        report = self._sentinel.assess(self._ledger.get_all())
        self._sentinel_audit.record(
            AuditEventType.SCAN, "assess",
            defcon=report.defcon_level,
            threats=",".join(t.value for t in report.threat_types()) or "none",
            total=report.total
        )
        return report

    def recall(self, thread_id: str, limit: Optional[int] = None) -> List[SimilarityMatch]:
        """Top related threads for a ledger thread. Raises LedgerError if the id is unknown."""
        target = self.get_thread(thread_id)
        matches = self._mnemosyne.top(target, k=limit)
        self._sentinel_audit.record(
            AuditEventType.RECALL, "recall", entity_id=thread_id, matches=len(matches)
        )
        return matches

    def evaluate(self) -> ExecutionLogEntry:
        snapshot = self._ledger.get_all()
        report = self._sentinel.assess(snapshot)
        return self._valkyrie.evaluate(report, snapshot)

    def run_cycle(self) -> Tuple[Report, ExecutionLogEntry]:
        """One assess-then-evaluate pass over a single snapshot."""
        snapshot = self._ledger.get_all()
        report = self._sentinel.assess(snapshot)
        return (report, self._valkyrie.evaluate(report, snapshot))

    def override(
        self,
        action: Union[ActionType, str],
        region: Optional[str] = None,
        note: str = ""
    ) -> ExecutionLogEntry:
        return self._valkyrie.override(action, region=region, note=note)

    def arm(self) -> None:
        self._valkyrie.arm()

    def disarm(self) -> None:
        self._valkyrie.disarm()

    def execution_log(self, limit: Optional[int] = None) -> Tuple[ExecutionLogEntry, ...]:
        entries = self._valkyrie.execution_log
        if limit is not None:
            entries = entries[-limit:] if limit > 0 else ()
        return entries

    def status(self) -> Dict[str, Any]:
        report = self._sentinel.assess(self._ledger.get_all())
        state = self._ledger.state
        return {
            "ledger_size": state.entry_count,
            "head_hash": state.head_hash,
            "integrity_verified": self._ledger.is_integrity_verified,
            "defcon_level": report.defcon_level,
            "sentinel_status": report.status.value,
            "valkyrie_status": self._valkyrie.status.value,
            "policy_threshold": self._valkyrie.threshold,
            "decisions_logged": len(self._valkyrie.execution_log),
        }

    # =========================================================================
    # COMMAND SHELL
    # =========================================================================

    def dispatch(self, verb: str, **kwargs: Any) -> Any:
        """
        Route a parsed shell command to the engine.

        Argument parsing happens in the caller; kwargs are passed through.
        """
        handlers: Dict[str, Callable[..., Any]] = {
            "weave": self.weave,
            "scan": self.assess,
            "recall": self.recall,
            "evaluate": self.evaluate,
            "override": self.override,
            "status": self.status,
            "arm": self.arm,
            "disarm": self.disarm,
            "log": self.execution_log,
        }
        handler = handlers.get(verb.lower().strip())
        if handler is None:
            raise TapestryError(
                f"Unknown command: {verb}",
                Error.create(ErrorCode.UNKNOWN_COMMAND, "unknown command", verb=verb)
            )
        logger.debug("Dispatching %s", verb)
        return handler(**kwargs)

    # =========================================================================
    # AUDIT & LIFECYCLE
    # =========================================================================

    def audit_summary(self) -> Dict[str, Dict[str, int]]:
        return {
            collector.layer_name: collector.summary()
            for collector in (self._ledger_audit, self._sentinel_audit, self._valkyrie_audit)
        }

    def audit_trail(self, layer: str) -> List[AuditLogEntry]:
        collectors = {
            c.layer_name: c
            for c in (self._ledger_audit, self._sentinel_audit, self._valkyrie_audit)
        }
        if layer not in collectors:
            raise KeyError(f"No audit collector for layer {layer!r}")
        return collectors[layer].get_entries()

    def close(self) -> None:
        self._ledger.close()

    def __enter__(self) -> TapestryEngine:
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()
