"""
Logical Clock
=============

Injectable millisecond clock shared by the ledger and Valkyrie.

GUARANTEES:
- Never reads system time implicitly in replay mode
- Same tick sequence = identical timestamps on replay
- Ticks are integer milliseconds since the Unix epoch
- Live mode holds no per-tick state, so a long-running process
  does not grow with every read
"""

from __future__ import annotations
from dataclasses import dataclass, field
from typing import Iterable, List
import time


class ClockExhausted(Exception):
    """Raised when replay clock runs out of ticks."""
    pass


@dataclass
class LogicalClock:
    """
    Injectable clock for deterministic execution.

    MODES:
    ======
    1. LIVE mode: reads wall-clock time in ms and counts reads
    2. REPLAY mode: returns a pre-recorded tick sequence

    Instances are callable, so anything that accepts a
    `Callable[[], int]` clock accepts a LogicalClock.
    """
    _ticks: List[int] = field(default_factory=list)
    _current_index: int = 0
    _is_live: bool = True

    def now(self) -> int:
        if self._is_live:
            self._current_index += 1
            return time.time_ns() // 1_000_000

        if self._current_index >= len(self._ticks):
            raise ClockExhausted(
                f"Replay clock exhausted at index {self._current_index}. "
                f"Original execution had {len(self._ticks)} ticks."
            )
        tick = self._ticks[self._current_index]
        self._current_index += 1
        return tick

    __call__ = now

    def tick_count(self) -> int:
        return self._current_index

    def is_live(self) -> bool:
        return self._is_live

    @classmethod
    def live(cls) -> 'LogicalClock':
        return cls(_is_live=True)

    @classmethod
    def replay(cls, ticks: Iterable[int]) -> 'LogicalClock':
        return cls(_ticks=[int(t) for t in ticks], _current_index=0, _is_live=False)

    def __repr__(self) -> str:
        mode = "LIVE" if self._is_live else "REPLAY"
        return f"LogicalClock({mode}, ticks={len(self._ticks)}, index={self._current_index})"


class SteppingClock:
    """
    Deterministic clock that advances by a fixed step on every read.

    Used by fixtures and demos that need reproducible timestamps
    without recording a tick log first.
    """

    def __init__(self, start: int = 0, step: int = 1):
        self._current = start
        self._step = step

    def now(self) -> int:
        current = self._current
        self._current += self._step
        return current

    __call__ = now

    def advance(self, ms: int) -> None:
        self._current += ms
