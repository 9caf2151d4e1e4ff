"""
Temporal layer: the append-only thread ledger and its clock.
"""

from .clock import ClockExhausted, LogicalClock, SteppingClock
from .ledger import Ledger, LedgerConfig, LedgerState, verify_chain

__all__ = [
    "ClockExhausted", "LogicalClock", "SteppingClock",
    "Ledger", "LedgerConfig", "LedgerState", "verify_chain",
]
