"""
Base Contracts and Shared Types

These are the foundational types used across all layers.
All types here are IMMUTABLE and represent pure data.

BOUNDARY ENFORCEMENT:
=====================
- This module is READ-ONLY from all layers
- Layers may import types but MUST NOT modify this module
- Enumerations carry an explicit UNKNOWN variant so malformed records
  are representable instead of being silently dropped
"""

from __future__ import annotations
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional, Tuple
from enum import Enum, auto


# =============================================================================
# ERROR STATES (Explicit, never silent)
# =============================================================================

class ErrorCode(Enum):
    """
    Explicit error codes for deterministic error handling.
    Every error state is enumerated.
    """
    # Ledger errors
    DUPLICATE_THREAD = auto()
    TIMELINE_CORRUPTION = auto()
    MALFORMED_RECORD = auto()

    # Storage errors
    STORAGE_READ_FAILED = auto()
    STORAGE_WRITE_FAILED = auto()

    # Import errors
    SCROLL_TOO_LARGE = auto()
    SCROLL_INVALID_FORMAT = auto()
    SCROLL_INVALID_SCHEMA = auto()

    # Policy errors
    INVALID_POLICY = auto()
    DUPLICATE_RULE = auto()

    # Engine errors
    THREAD_NOT_FOUND = auto()
    UNKNOWN_COMMAND = auto()


@dataclass(frozen=True)
class Error:
    """
    Immutable error representation with full context.
    Errors are data, not exceptions - they can be stored and queried.
    """
    code: ErrorCode
    message: str
    timestamp: datetime
    context: Tuple[Tuple[str, str], ...] = field(default_factory=tuple)

    @staticmethod
    def create(code: ErrorCode, message: str, **context: str) -> Error:
        return Error(
            code=code,
            message=message,
            timestamp=datetime.now(timezone.utc),
            context=tuple((k, str(v)) for k, v in context.items())
        )


# =============================================================================
# EXCEPTIONS (Raised only at the boundaries that must fail loudly)
# =============================================================================

class TapestryError(Exception):
    """Base class for all errors raised by the tapestry core."""

    code: ErrorCode = ErrorCode.MALFORMED_RECORD

    def __init__(self, message: str, error: Optional[Error] = None):
        super().__init__(message)
        self.error = error or Error.create(self.code, message)


class StorageError(TapestryError):
    """Persistence I/O failure. Recovered locally, never fatal."""
    code = ErrorCode.STORAGE_WRITE_FAILED


class MalformedRecordError(TapestryError):
    """A thread record missing or carrying an invalid enumerated field."""
    code = ErrorCode.MALFORMED_RECORD


class PolicyConfigError(TapestryError):
    """Invalid or missing policy configuration. Always fatal."""
    code = ErrorCode.INVALID_POLICY


class LedgerError(TapestryError):
    """Violation of the ledger's append-only guarantees."""
    code = ErrorCode.DUPLICATE_THREAD


class ScrollImportError(TapestryError):
    """A scroll (exported ledger) was rejected on import."""
    code = ErrorCode.SCROLL_INVALID_FORMAT


# =============================================================================
# THREAD VOCABULARY (Closed enumerations with UNKNOWN variants)
# =============================================================================

class _Vocabulary(str, Enum):
    """String enum that maps unrecognised values onto UNKNOWN."""

    @classmethod
    def parse(cls, value: Optional[str]):
        if isinstance(value, cls):
            return value
        if value is None:
            return cls.UNKNOWN
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            return cls.UNKNOWN

    @classmethod
    def known(cls) -> Tuple:
        return tuple(member for member in cls if member.value != "unknown")

    @property
    def is_known(self) -> bool:
        return self.value != "unknown"


class Intention(_Vocabulary):
    SERENITY = "serenity"
    VIBRANCY = "vibrancy"
    AWE = "awe"
    LEGACY = "legacy"
    UNKNOWN = "unknown"


class TimeOfDay(_Vocabulary):
    DAWN = "dawn"
    MIDDAY = "midday"
    DUSK = "dusk"
    NIGHT = "night"
    UNKNOWN = "unknown"


class Region(_Vocabulary):
    COAST = "coast"
    MEDINA = "medina"
    SAHARA = "sahara"
    KASBAH = "kasbah"
    UNKNOWN = "unknown"
