"""
Horizon Analysis

Intention distribution over a thread snapshot: counts, dominance,
balance score and the current streak.

Pure functions only. Threads with an UNKNOWN intention are excluded from
counts, dominance and balance.
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Dict, Optional, Sequence, Tuple

from ..contracts.base import Intention
from ..contracts.events import DominantIntention, Thread


@dataclass(frozen=True)
class IntentionAnalysis:
    counts: Tuple[Tuple[Intention, int], ...]
    known_total: int
    dominant: DominantIntention
    balance_score: int  # 0 (one intention only) .. 100 (even split)
    streak: int
    last_intention: Optional[Intention]


def analyze_intentions(threads: Sequence[Thread]) -> IntentionAnalysis:
    known = Intention.known()
    counts: Dict[Intention, int] = {i: 0 for i in known}
    first_seen: Dict[Intention, int] = {}

    streak = 0
    last_intention: Optional[Intention] = None
    for position, thread in enumerate(threads):
        intention = thread.intention
        if intention.is_known:
            counts[intention] += 1
            first_seen.setdefault(intention, position)

        streak = streak + 1 if intention == last_intention else 1
        last_intention = intention

    known_total = sum(counts.values())
    ordered_counts = tuple((i, counts[i]) for i in known)

    if known_total == 0:
        return IntentionAnalysis(
            counts=ordered_counts,
            known_total=0,
            dominant=DominantIntention.neutral(),
            balance_score=0,
            streak=streak,
            last_intention=last_intention
        )

    # ties go to the intention seen first in the snapshot
    dominant = min(
        (i for i in known if counts[i] > 0),
        key=lambda i: (-counts[i], first_seen[i])
    )
    percent_share = round(counts[dominant] / known_total * 100, 2)

    ideal = known_total / len(known)
    deviation = sum(abs(c - ideal) for c in counts.values())
    max_deviation = 2 * known_total * (len(known) - 1) / len(known)
    balance_score = round((1 - deviation / max_deviation) * 100)

    return IntentionAnalysis(
        counts=ordered_counts,
        known_total=known_total,
        dominant=DominantIntention(intention=dominant, percent_share=percent_share),
        balance_score=balance_score,
        streak=streak,
        last_intention=last_intention
    )
