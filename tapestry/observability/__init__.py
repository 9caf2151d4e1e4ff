"""
Observability & Audit Layer

RESPONSIBILITY: Logging, notifications, audit trail
ALLOWED INPUTS: Copies of events from other layers
OUTPUTS: AuditLogEntry records, Notification records, log lines

WHAT THIS LAYER MUST NOT DO:
============================
- Modify system behavior
- Filter or interpret events (only record them)
- Make decisions based on logged data
- Raise into the caller: a broken listener never breaks an append

BOUNDARY ENFORCEMENT:
=====================
- Collectors are append-only
- Read access returns copies
- Notifications are the side channel for non-fatal failures
  (StorageError and friends); they are never thrown
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Tuple
import logging
import threading
import time

from ..contracts.events import (
    AuditEventType, AuditLogEntry, Notification, NotificationLevel
)


LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"

_LEVEL_TO_LOGGING = {
    NotificationLevel.INFO: logging.INFO,
    NotificationLevel.WARNING: logging.WARNING,
    NotificationLevel.ERROR: logging.ERROR,
}

logger = logging.getLogger(__name__)


def _now_ms() -> int:
    return time.time_ns() // 1_000_000


def configure_logging(level: str = "INFO") -> None:
    """Install a single stream handler on the package logger."""
    root = logging.getLogger("tapestry")
    root.setLevel(level.upper())
    if not any(getattr(h, "_tapestry_handler", False) for h in root.handlers):
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        handler._tapestry_handler = True
        root.addHandler(handler)


@dataclass
class ObservabilityConfig:
    log_level: str = "INFO"
    max_notifications: int = 500


# =============================================================================
# NOTIFICATIONS (Side channel for non-fatal failures)
# =============================================================================

class NotificationCenter:
    """
    The notification collaborator.

    Persistence failures and data-quality warnings are reported here
    instead of being raised. Every notification is also written to the
    `tapestry` logger. Safe to call from the persistence worker thread.
    """

    def __init__(
        self,
        clock: Optional[Callable[[], int]] = None,
        max_entries: int = 500
    ):
        self._clock = clock or _now_ms
        self._max_entries = max_entries
        self._entries: List[Notification] = []
        self._listeners: List[Callable[[Notification], None]] = []
        self._lock = threading.Lock()

    def notify(
        self,
        level: NotificationLevel,
        source: str,
        message: str,
        code: Optional[str] = None
    ) -> Notification:
        notification = Notification(
            level=level,
            source=source,
            message=message,
            timestamp=self._clock(),
            code=code
        )
        with self._lock:
            self._entries.append(notification)
            if len(self._entries) > self._max_entries:
                del self._entries[: len(self._entries) - self._max_entries]
            listeners = list(self._listeners)

        logging.getLogger(f"tapestry.{source}").log(
            _LEVEL_TO_LOGGING[level], "%s%s", message, f" ({code})" if code else ""
        )

        for listener in listeners:
            try:
                listener(notification)
            except Exception:
                logger.exception("Notification listener failed")
        return notification

    def subscribe(self, listener: Callable[[Notification], None]) -> None:
        with self._lock:
            self._listeners.append(listener)

    def entries(self, level: Optional[NotificationLevel] = None) -> List[Notification]:
        with self._lock:
            entries = list(self._entries)
        if level:
            entries = [n for n in entries if n.level == level]
        return entries

    @property
    def entry_count(self) -> int:
        with self._lock:
            return len(self._entries)


# =============================================================================
# AUDIT COLLECTOR
# =============================================================================

class AuditCollector:
    """
    Append-only audit trail for a single layer.

    Entries are numbered with a monotonic sequence. No modification
    of collected data.
    """

    def __init__(self, layer_name: str, clock: Optional[Callable[[], int]] = None):
        self._layer_name = layer_name
        self._clock = clock or _now_ms
        self._entries: List[AuditLogEntry] = []
        self._sequence = 0
        self._lock = threading.Lock()

    def record(
        self,
        event_type: AuditEventType,
        action: str,
        entity_id: Optional[str] = None,
        **metadata: object
    ) -> AuditLogEntry:
        with self._lock:
            self._sequence += 1
            entry = AuditLogEntry(
                sequence=self._sequence,
                event_type=event_type,
                timestamp=self._clock(),
                layer=self._layer_name,
                action=action,
                entity_id=entity_id,
                metadata=tuple((k, str(v)) for k, v in sorted(metadata.items()))
            )
            self._entries.append(entry)
        return entry

    def get_entries(self, event_type: Optional[AuditEventType] = None) -> List[AuditLogEntry]:
        with self._lock:
            entries = list(self._entries)
        if event_type:
            entries = [e for e in entries if e.event_type == event_type]
        return entries

    def summary(self) -> Dict[str, int]:
        counts: Dict[str, int] = {}
        for entry in self.get_entries():
            counts[entry.event_type.value] = counts.get(entry.event_type.value, 0) + 1
        return counts

    @property
    def layer_name(self) -> str:
        return self._layer_name

    @property
    def entry_count(self) -> int:
        return len(self._entries)


__all__: Tuple[str, ...] = (
    "LOG_FORMAT", "configure_logging", "ObservabilityConfig",
    "NotificationCenter", "AuditCollector",
)
