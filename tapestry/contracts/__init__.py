"""
Contracts shared by every tapestry layer.

Layers import types from here and never from each other's
implementation modules.
"""

from .base import (
    ErrorCode, Error,
    TapestryError, StorageError, MalformedRecordError, PolicyConfigError,
    LedgerError, ScrollImportError,
    Intention, TimeOfDay, Region,
)
from .events import (
    GENESIS_HASH, Thread,
    ThreatType, Severity, SentinelStatus, Threat, DominantIntention,
    ZoneIntensity, Report,
    SimilarityMatch,
    ActionType, Outcome, ValkyrieStatus, Directive, ExecutionLogEntry,
    TRIGGER_MANUAL, TRIGGER_NONE, GLOBAL_TARGET,
    AuditEventType, AuditLogEntry, NotificationLevel, Notification,
    StorageWriteResult,
)

__all__ = [
    "ErrorCode", "Error",
    "TapestryError", "StorageError", "MalformedRecordError", "PolicyConfigError",
    "LedgerError", "ScrollImportError",
    "Intention", "TimeOfDay", "Region",
    "GENESIS_HASH", "Thread",
    "ThreatType", "Severity", "SentinelStatus", "Threat", "DominantIntention",
    "ZoneIntensity", "Report",
    "SimilarityMatch",
    "ActionType", "Outcome", "ValkyrieStatus", "Directive", "ExecutionLogEntry",
    "TRIGGER_MANUAL", "TRIGGER_NONE", "GLOBAL_TARGET",
    "AuditEventType", "AuditLogEntry", "NotificationLevel", "Notification",
    "StorageWriteResult",
]
