"""
API Mapper
==========

Transforms internal contracts into the DTOs the rendering client consumes.
DTOs expose raw values; no smoothing or interpretation happens here.
"""

from typing import Dict, List, Optional

from pydantic import BaseModel, Field

from ..contracts.events import (
    ExecutionLogEntry, Notification, Report, SimilarityMatch, Thread
)


# =============================================================================
# REQUEST MODELS
# =============================================================================

class WeaveRequest(BaseModel):
    intention: str
    time: str
    region: str
    title: Optional[str] = Field(default=None, max_length=100)
    timestamp: Optional[int] = None


class OverrideRequest(BaseModel):
    action: str
    region: Optional[str] = None
    note: str = ""


class StatusRequest(BaseModel):
    armed: bool


# =============================================================================
# RESPONSE MODELS
# =============================================================================

class ThreadDTO(BaseModel):
    id: str
    intention: str
    time: str
    region: str
    title: Optional[str]
    timestamp: Optional[int]
    previous_hash: str
    hash: str


class ThreatDTO(BaseModel):
    type: str
    severity: str
    message: str
    region: Optional[str]
    evidence: Dict[str, str]


class ZoneDTO(BaseModel):
    region: str
    intensity: float
    count: int


class DominantDTO(BaseModel):
    intention: Optional[str]
    percent_share: float


class ReportDTO(BaseModel):
    defcon_level: int
    status: str
    threats: List[ThreatDTO]
    dominant: DominantDTO
    counts_by_intention: Dict[str, int]
    zones: List[ZoneDTO]
    total: int
    malformed_count: int
    fingerprint: str


class MatchDTO(BaseModel):
    thread: ThreadDTO
    score: int
    raw_score: float
    common_terms: List[str]


class LogEntryDTO(BaseModel):
    timestamp: int
    trigger: str
    action_taken: str
    outcome: str
    target_region: Optional[str]
    defcon_level: Optional[int]
    note: str


class NotificationDTO(BaseModel):
    level: str
    source: str
    message: str
    timestamp: int
    code: Optional[str]


# =============================================================================
# MAPPERS
# =============================================================================

def map_thread(thread: Thread) -> ThreadDTO:
    return ThreadDTO(
        id=thread.id,
        intention=thread.intention.value,
        time=thread.time_of_day.value,
        region=thread.region.value,
        title=thread.title,
        timestamp=thread.timestamp,
        previous_hash=thread.previous_hash,
        hash=thread.hash
    )


def map_report(report: Report) -> ReportDTO:
    return ReportDTO(fingerprint=report.fingerprint(), **report.to_dict())


def map_match(match: SimilarityMatch) -> MatchDTO:
    return MatchDTO(
        thread=map_thread(match.thread),
        score=match.score,
        raw_score=match.raw_score,
        common_terms=list(match.common_terms)
    )


def map_log_entry(entry: ExecutionLogEntry) -> LogEntryDTO:
    return LogEntryDTO(
        timestamp=entry.timestamp,
        trigger=entry.trigger,
        action_taken=entry.action_taken.value,
        outcome=entry.outcome.value,
        target_region=entry.target_region,
        defcon_level=entry.defcon_level,
        note=entry.note
    )


def map_notification(notification: Notification) -> NotificationDTO:
    return NotificationDTO(
        level=notification.level.value,
        source=notification.source,
        message=notification.message,
        timestamp=notification.timestamp,
        code=notification.code
    )
