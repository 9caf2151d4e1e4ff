"""
Event and Report Contracts

Immutable records exchanged between the ledger, the analytics engines and
their collaborators.

BOUNDARY ENFORCEMENT:
=====================
- Threads are created once and never mutated
- Reports are pure data: no timestamps, no references to engine state
- Execution log entries are append-only audit records
"""

from __future__ import annotations
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Dict, Optional, Tuple, Union
import hashlib
import json
import re

from .base import Error, Intention, TimeOfDay, Region


GENESIS_HASH = "GENESIS_HASH"

_WHITESPACE = re.compile(r"\s+")


# =============================================================================
# THREAD (The atomic unit of the ledger)
# =============================================================================

@dataclass(frozen=True)
class Thread:
    """
    One recorded user action.

    `id`, `timestamp`, `previous_hash` and `hash` are assigned by the
    ledger on append when absent. Everything else is the semantic payload.
    """
    intention: Intention
    time_of_day: TimeOfDay
    region: Region
    title: Optional[str] = None
    timestamp: Optional[int] = None
    id: str = ""
    previous_hash: str = ""
    hash: str = ""

    def __post_init__(self):
        # stored records carry "" for a missing title
        if self.title == "":
            object.__setattr__(self, "title", None)

    @staticmethod
    def draft(
        intention: Union[Intention, str, None],
        time_of_day: Union[TimeOfDay, str, None],
        region: Union[Region, str, None],
        title: Optional[str] = None,
        timestamp: Optional[int] = None,
        id: str = ""
    ) -> Thread:
        """Build an unsaved thread, mapping unrecognised values to UNKNOWN."""
        return Thread(
            intention=Intention.parse(intention),
            time_of_day=TimeOfDay.parse(time_of_day),
            region=Region.parse(region),
            title=title,
            timestamp=timestamp,
            id=id
        )

    @property
    def is_malformed(self) -> bool:
        return not (
            self.intention.is_known
            and self.time_of_day.is_known
            and self.region.is_known
        )

    @property
    def semantic_key(self) -> Tuple[str, str, str, str]:
        """Fields that define semantic identity (id and timestamp excluded)."""
        title = _WHITESPACE.sub(" ", (self.title or "").strip().lower())
        return (
            self.intention.value,
            self.time_of_day.value,
            self.region.value,
            title
        )

    def chain_payload(self, previous_hash: str) -> str:
        """Canonical JSON covered by the hash chain."""
        return json.dumps({
            "intention": self.intention.value,
            "time": self.time_of_day.value,
            "region": self.region.value,
            "title": self.title or "",
            "timestamp": self.timestamp,
            "previousHash": previous_hash,
        }, separators=(",", ":"))

    def compute_hash(self, previous_hash: str) -> str:
        return hashlib.sha256(self.chain_payload(previous_hash).encode("utf-8")).hexdigest()

    def sealed(self, timestamp: int, previous_hash: str) -> Thread:
        """Return a copy with timestamp, chain hashes and id filled in."""
        stamped = replace(self, timestamp=timestamp)
        entry_hash = stamped.compute_hash(previous_hash)
        return replace(
            stamped,
            id=self.id or entry_hash[:12],
            previous_hash=previous_hash,
            hash=entry_hash
        )


# =============================================================================
# SENTINEL REPORT
# =============================================================================

class ThreatType(str, Enum):
    TEMPORAL_SURGE = "TEMPORAL_SURGE"
    LOCALIZED_CONGESTION = "LOCALIZED_CONGESTION"
    POLARIZATION = "POLARIZATION"
    MALFORMED_DATA = "MALFORMED_DATA"


class Severity(str, Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    CRITICAL = "CRITICAL"

    @property
    def rank(self) -> int:
        return _SEVERITY_RANK[self]


_SEVERITY_RANK = {
    Severity.LOW: 1,
    Severity.MEDIUM: 2,
    Severity.HIGH: 3,
    Severity.CRITICAL: 4,
}


class SentinelStatus(str, Enum):
    STANDBY = "STANDBY"
    ACTIVE = "ACTIVE"
    ALERT = "ALERT"


@dataclass(frozen=True)
class Threat:
    """A single detected anomaly with the evidence that triggered it."""
    type: ThreatType
    severity: Severity
    message: str
    region: Optional[Region] = None
    evidence: Tuple[Tuple[str, str], ...] = field(default_factory=tuple)

    def evidence_dict(self) -> Dict[str, str]:
        return dict(self.evidence)


@dataclass(frozen=True)
class DominantIntention:
    intention: Optional[Intention]
    percent_share: float

    @staticmethod
    def neutral() -> DominantIntention:
        return DominantIntention(intention=None, percent_share=0.0)


@dataclass(frozen=True)
class ZoneIntensity:
    region: Region
    intensity: float
    count: int


@dataclass(frozen=True)
class Report:
    """
    Pure output of Sentinel.assess.

    Identical input snapshots produce equal reports, and `fingerprint()`
    is stable across calls and processes.
    """
    defcon_level: int
    status: SentinelStatus
    threats: Tuple[Threat, ...]
    dominant: DominantIntention
    counts_by_intention: Tuple[Tuple[Intention, int], ...]
    zones: Tuple[ZoneIntensity, ...]
    total: int = 0
    malformed_count: int = 0

    def count_for(self, intention: Intention) -> int:
        return dict(self.counts_by_intention).get(intention, 0)

    def threat_types(self) -> Tuple[ThreatType, ...]:
        return tuple(t.type for t in self.threats)

    def has_threat(self, threat_type: ThreatType) -> bool:
        return any(t.type == threat_type for t in self.threats)

    def to_dict(self) -> dict:
        return {
            "defcon_level": self.defcon_level,
            "status": self.status.value,
            "threats": [
                {
                    "type": t.type.value,
                    "severity": t.severity.value,
                    "message": t.message,
                    "region": t.region.value if t.region else None,
                    "evidence": dict(t.evidence),
                }
                for t in self.threats
            ],
            "dominant": {
                "intention": self.dominant.intention.value if self.dominant.intention else None,
                "percent_share": self.dominant.percent_share,
            },
            "counts_by_intention": {i.value: c for i, c in self.counts_by_intention},
            "zones": [
                {"region": z.region.value, "intensity": z.intensity, "count": z.count}
                for z in self.zones
            ],
            "total": self.total,
            "malformed_count": self.malformed_count,
        }

    def fingerprint(self) -> str:
        content = json.dumps(self.to_dict(), sort_keys=True, separators=(",", ":"))
        return hashlib.sha256(content.encode("utf-8")).hexdigest()


# =============================================================================
# MNEMOSYNE RESULTS
# =============================================================================

@dataclass(frozen=True)
class SimilarityMatch:
    thread: Thread
    score: int  # rounded percentage, 0..100
    raw_score: float
    common_terms: Tuple[str, ...] = field(default_factory=tuple)


# =============================================================================
# VALKYRIE AUDIT TRAIL
# =============================================================================

class ActionType(str, Enum):
    NO_ACTION = "NO_ACTION"
    TEMPORAL_BRAKE = "TEMPORAL_BRAKE"
    SECTOR_DISPERSAL = "SECTOR_DISPERSAL"
    CONTAINMENT = "CONTAINMENT"
    MEMETIC_STABILIZATION = "MEMETIC_STABILIZATION"
    DATA_AUDIT = "DATA_AUDIT"
    SYSTEM_LOCK = "SYSTEM_LOCK"
    NOTIFY = "NOTIFY"


class Outcome(str, Enum):
    DEPLOYED = "DEPLOYED"
    FAILED = "FAILED"
    STANDBY = "STANDBY"
    SUSPENDED = "SUSPENDED"


class ValkyrieStatus(str, Enum):
    ACTIVE = "ACTIVE"
    INACTIVE = "INACTIVE"


TRIGGER_MANUAL = "MANUAL"
TRIGGER_NONE = "NONE"
GLOBAL_TARGET = "global"


@dataclass(frozen=True)
class Directive:
    """An action Valkyrie has decided to execute."""
    action: ActionType
    target_region: str
    trigger: str
    severity: Optional[Severity] = None
    note: str = ""


@dataclass(frozen=True)
class ExecutionLogEntry:
    timestamp: int
    trigger: str  # ThreatType value, MANUAL or NONE
    action_taken: ActionType
    outcome: Outcome
    target_region: Optional[str] = None
    defcon_level: Optional[int] = None
    note: str = ""


# =============================================================================
# OBSERVABILITY RECORDS
# =============================================================================

class AuditEventType(Enum):
    """Explicit audit event types."""
    LEDGER_APPEND = "ledger_append"
    LEDGER_CLEAR = "ledger_clear"
    LEDGER_IMPORT = "ledger_import"
    SCAN = "scan"
    RECALL = "recall"
    DECISION = "decision"
    ERROR = "error"


@dataclass(frozen=True)
class AuditLogEntry:
    """Immutable audit log entry."""
    sequence: int
    event_type: AuditEventType
    timestamp: int
    layer: str
    action: str
    entity_id: Optional[str] = None
    metadata: Tuple[Tuple[str, str], ...] = field(default_factory=tuple)


class NotificationLevel(str, Enum):
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


@dataclass(frozen=True)
class Notification:
    level: NotificationLevel
    source: str
    message: str
    timestamp: int
    code: Optional[str] = None


@dataclass(frozen=True)
class StorageWriteResult:
    """Result of a save; failures carry an Error instead of raising."""
    success: bool
    record_count: int = 0
    error: Optional[Error] = None
