"""
Persisted Thread Records
========================

Conversion between Thread contracts and the persisted record format:

    {intention, time, region, title, timestamp, id, previousHash, hash}

Two read paths:
- `from_record`: lenient, used when hydrating from our own storage.
  Unrecognised enum values become UNKNOWN so the analytics can count
  them as malformed instead of losing them.
- `validate_record`: strict schema check used for scroll imports.
"""

from __future__ import annotations
from typing import Any, Dict, Literal, Mapping

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from ..contracts.base import Intention, MalformedRecordError, Region, TimeOfDay
from ..contracts.events import Thread


MAX_ID_LENGTH = 32
MAX_TITLE_LENGTH = 100
MAX_REGION_LENGTH = 50


class ThreadRecord(BaseModel):
    """Strict schema of one persisted thread."""

    model_config = ConfigDict(extra="ignore", strict=True, frozen=True)

    id: str = Field(min_length=1, max_length=MAX_ID_LENGTH)
    intention: Literal["serenity", "vibrancy", "awe", "legacy", "unknown"]
    time: Literal["dawn", "midday", "dusk", "night", "unknown"]
    region: str = Field(max_length=MAX_REGION_LENGTH)
    title: str = Field(max_length=MAX_TITLE_LENGTH)
    timestamp: int
    previousHash: str
    hash: str = Field(pattern=r"^[0-9a-f]{64}$")


def to_record(thread: Thread) -> Dict[str, Any]:
    return {
        "id": thread.id,
        "intention": thread.intention.value,
        "time": thread.time_of_day.value,
        "region": thread.region.value,
        "title": thread.title or "",
        "timestamp": thread.timestamp,
        "previousHash": thread.previous_hash,
        "hash": thread.hash,
    }


def from_record(data: Mapping[str, Any]) -> Thread:
    if not isinstance(data, Mapping):
        raise MalformedRecordError(f"Thread record must be an object, got {type(data).__name__}")

    timestamp = data.get("timestamp")
    if timestamp is not None and not isinstance(timestamp, bool):
        try:
            timestamp = int(timestamp)
        except (TypeError, ValueError):
            timestamp = None
    else:
        timestamp = None

    title = data.get("title")
    return Thread(
        intention=Intention.parse(data.get("intention")),
        time_of_day=TimeOfDay.parse(data.get("time")),
        region=Region.parse(data.get("region")),
        title=str(title) if title else None,
        timestamp=timestamp,
        id=str(data.get("id") or ""),
        previous_hash=str(data.get("previousHash") or ""),
        hash=str(data.get("hash") or "")
    )


def validate_record(data: Any) -> Thread:
    try:
        record = ThreadRecord.model_validate(data)
    except ValidationError as e:
        raise MalformedRecordError(f"Invalid thread record: {e.error_count()} schema violation(s)") from e
    return from_record(record.model_dump())
