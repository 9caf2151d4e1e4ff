"""
Storage Layer

RESPONSIBILITY: Durable load/save of the thread ledger
ALLOWED INPUTS: Ordered tuples of sealed Thread contracts
OUTPUTS: Ordered Thread lists, StorageWriteResult

WHAT THIS LAYER MUST NOT DO:
============================
- Interpret thread content
- Reorder or deduplicate threads
- Raise on write failure (failures are returned as data)

BOUNDARY ENFORCEMENT:
=====================
- `load()` returns threads in the order they were saved
- `save()` replaces the persisted ledger with the given snapshot
- Read failures raise StorageError; the ledger decides how to recover
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import List, Optional, Sequence
import json
import os
import tempfile

from ..contracts.base import Error, ErrorCode, MalformedRecordError, StorageError
from ..contracts.events import StorageWriteResult, Thread
from .records import from_record, to_record


# =============================================================================
# CONFIGURATION
# =============================================================================

@dataclass
class StorageConfig:
    """Configuration for the storage collaborator."""
    backend_type: str = "memory"  # "memory" or "file"
    storage_path: Optional[str] = None


# =============================================================================
# STORAGE INTERFACE (Dependency Inversion)
# =============================================================================

class StorageBackend:
    """
    Abstract storage collaborator.

    Implementations can use any persistence mechanism while keeping
    the same ordered load/save contract.
    """

    def load(self) -> List[Thread]:
        """Return the persisted ledger (or an empty list)."""
        raise NotImplementedError

    def save(self, threads: Sequence[Thread]) -> StorageWriteResult:
        """Persist the full ledger snapshot."""
        raise NotImplementedError


# =============================================================================
# IN-MEMORY STORAGE BACKEND (Reference Implementation)
# =============================================================================

class InMemoryStorageBackend(StorageBackend):
    """Keeps serialised records in memory. Suitable for tests and demos."""

    def __init__(self, records: Optional[List[dict]] = None):
        self._records: List[dict] = [dict(r) for r in (records or [])]
        self._save_count = 0

    def load(self) -> List[Thread]:
        try:
            return [from_record(r) for r in self._records]
        except MalformedRecordError as e:
            raise StorageError(f"Failed to load threads: {e}") from e

    def save(self, threads: Sequence[Thread]) -> StorageWriteResult:
        self._records = [to_record(t) for t in threads]
        self._save_count += 1
        return StorageWriteResult(success=True, record_count=len(self._records))

    @property
    def records(self) -> List[dict]:
        return [dict(r) for r in self._records]

    @property
    def save_count(self) -> int:
        return self._save_count


# =============================================================================
# FILE-BASED STORAGE BACKEND
# =============================================================================

class JsonFileStorageBackend(StorageBackend):
    """
    Stores the ledger as one JSON array.

    Writes go to a temporary file in the same directory and are moved
    into place with os.replace, so a crash never leaves a half-written
    ledger behind.
    """

    def __init__(self, path: str):
        self._path = path
        directory = os.path.dirname(os.path.abspath(path))
        os.makedirs(directory, exist_ok=True)

    @property
    def path(self) -> str:
        return self._path

    def load(self) -> List[Thread]:
        if not os.path.exists(self._path):
            return []
        try:
            with open(self._path, 'r', encoding='utf-8') as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            raise StorageError(
                f"Failed to load threads from {self._path}: {e}",
                Error.create(ErrorCode.STORAGE_READ_FAILED, str(e), path=self._path)
            ) from e

        if not isinstance(data, list):
            raise StorageError(
                "Invalid storage format: root must be an array",
                Error.create(ErrorCode.STORAGE_READ_FAILED, "root is not an array", path=self._path)
            )
        try:
            return [from_record(r) for r in data]
        except MalformedRecordError as e:
            raise StorageError(f"Failed to load threads: {e}") from e

    def save(self, threads: Sequence[Thread]) -> StorageWriteResult:
        directory = os.path.dirname(os.path.abspath(self._path))
        tmp_path = None
        try:
            fd, tmp_path = tempfile.mkstemp(prefix=".threads-", suffix=".json", dir=directory)
            with os.fdopen(fd, 'w', encoding='utf-8') as f:
                json.dump([to_record(t) for t in threads], f)
            os.replace(tmp_path, self._path)
            tmp_path = None
            return StorageWriteResult(success=True, record_count=len(threads))
        except (OSError, TypeError, ValueError) as e:
            return StorageWriteResult(
                success=False,
                error=Error.create(
                    ErrorCode.STORAGE_WRITE_FAILED,
                    f"Failed to write threads: {e}",
                    path=self._path
                )
            )
        finally:
            if tmp_path and os.path.exists(tmp_path):
                os.remove(tmp_path)


def create_storage(config: StorageConfig) -> StorageBackend:
    if config.backend_type == "memory":
        return InMemoryStorageBackend()
    if config.backend_type == "file":
        if not config.storage_path:
            raise ValueError("storage_path is required for the file backend")
        return JsonFileStorageBackend(config.storage_path)
    raise ValueError(f"Unknown storage backend: {config.backend_type}")


__all__ = [
    "StorageConfig", "StorageBackend", "InMemoryStorageBackend",
    "JsonFileStorageBackend", "create_storage",
]
