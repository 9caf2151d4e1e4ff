"""
Sentinel: Anomaly Detection
===========================

Stateless threat assessment over a ledger snapshot.

INVARIANTS:
- Report is a pure function of the snapshot (no clock, no history)
- defcon_level stays in [1, 5] and never rises when threats are added
  or escalated
- No exception escapes `assess`; malformed records degrade the report
  instead of failing it

DETECTORS:
==========
1. TEMPORAL_SURGE        burst of events inside a sliding time window
2. LOCALIZED_CONGESTION  one region holding a disproportionate share
3. POLARIZATION          intention balance collapsed onto one value
4. MALFORMED_DATA        records with UNKNOWN enum fields or no timestamp
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Sequence, Tuple
import logging

from ..contracts.base import Intention, Region
from ..contracts.events import (
    DominantIntention, Report, SentinelStatus, Severity, Thread, Threat,
    ThreatType, ZoneIntensity
)
from .horizon import analyze_intentions


logger = logging.getLogger(__name__)

MAX_DEFCON = 5
MIN_DEFCON = 1


# =============================================================================
# CONFIGURATION
# =============================================================================

@dataclass
class SentinelConfig:
    """
    Detection policy baseline.

    Defaults make six events inside ~500ms a surge and a single region
    holding more than half the ledger a congestion.
    """
    window_ms: int = 1000
    surge_threshold: int = 5
    congestion_ratio: float = 0.5
    congestion_count: int = 12
    congestion_min_sample: int = 3
    detect_polarization: bool = True
    polarization_balance_floor: int = 25
    polarization_min_sample: int = 5

    def __post_init__(self):
        if self.window_ms <= 0:
            raise ValueError("window_ms must be positive")
        if self.surge_threshold < 1:
            raise ValueError("surge_threshold must be at least 1")
        if not 0.0 < self.congestion_ratio < 1.0:
            raise ValueError("congestion_ratio must be between 0 and 1")
        if self.congestion_count < 1:
            raise ValueError("congestion_count must be at least 1")


# =============================================================================
# SENTINEL ENGINE
# =============================================================================

class Sentinel:
    """
    Anomaly detector.

    Holds configuration only. Every call to `assess` recomputes from
    the snapshot it is given.
    """

    def __init__(self, config: Optional[SentinelConfig] = None):
        self._config = config or SentinelConfig()

    @property
    def config(self) -> SentinelConfig:
        return self._config

    def assess(self, threads: Optional[Iterable[Thread]]) -> Report:
        try:
            snapshot = tuple(threads or ())
            return self._assess(snapshot)
        except Exception:
            logger.exception("Sentinel assessment failed; returning degraded report")
            return self._degraded_report()

    # -------------------------------------------------------------------------

    def _assess(self, snapshot: Tuple[Thread, ...]) -> Report:
        if not snapshot:
            return Report(
                defcon_level=MAX_DEFCON,
                status=SentinelStatus.STANDBY,
                threats=(),
                dominant=DominantIntention.neutral(),
                counts_by_intention=tuple((i, 0) for i in Intention.known()),
                zones=(),
                total=0,
                malformed_count=0
            )

        region_counts = self._count_regions(snapshot)
        analysis = analyze_intentions(snapshot)
        malformed = sum(1 for t in snapshot if t.is_malformed or t.timestamp is None)

        threats: List[Threat] = []
        surge = self._detect_surge(snapshot)
        if surge:
            threats.append(surge)
        threats.extend(self._detect_congestion(region_counts))
        if self._config.detect_polarization:
            polarization = self._detect_polarization(analysis)
            if polarization:
                threats.append(polarization)
        if malformed:
            threats.append(Threat(
                type=ThreatType.MALFORMED_DATA,
                severity=Severity.LOW,
                message=f"{malformed} record(s) with missing or unknown fields.",
                evidence=(("malformed_count", str(malformed)), ("total", str(len(snapshot))))
            ))

        defcon = self._defcon_for(threats)
        return Report(
            defcon_level=defcon,
            status=self._status_for(defcon),
            threats=tuple(threats),
            dominant=analysis.dominant,
            counts_by_intention=analysis.counts,
            zones=self._zones(region_counts),
            total=len(snapshot),
            malformed_count=malformed
        )

    def _detect_surge(self, snapshot: Sequence[Thread]) -> Optional[Threat]:
        timestamps = sorted(t.timestamp for t in snapshot if t.timestamp is not None)
        if not timestamps:
            return None

        window = self._config.window_ms
        peak = 0
        peak_start = peak_end = timestamps[0]
        left = 0
        for right, ts in enumerate(timestamps):
            while ts - timestamps[left] > window:
                left += 1
            count = right - left + 1
            if count > peak:
                peak = count
                peak_start, peak_end = timestamps[left], ts

        threshold = self._config.surge_threshold
        if peak <= threshold:
            return None

        excess = peak - threshold
        if excess <= 2:
            severity = Severity.LOW
        elif excess <= threshold:
            severity = Severity.MEDIUM
        else:
            severity = Severity.HIGH

        return Threat(
            type=ThreatType.TEMPORAL_SURGE,
            severity=severity,
            message="Rapid narrative acceleration detected.",
            evidence=(
                ("peak_count", str(peak)),
                ("excess", str(excess)),
                ("window_ms", str(window)),
                ("span_ms", str(peak_end - peak_start)),
            )
        )

    def _detect_congestion(self, region_counts: Dict[Region, int]) -> List[Threat]:
        known_total = sum(region_counts.values())
        if known_total == 0:
            return []

        config = self._config
        threats = []
        for region, count in region_counts.items():
            share = count / known_total
            over_ratio = known_total >= config.congestion_min_sample and share > config.congestion_ratio
            over_count = count > config.congestion_count
            if not (over_ratio or over_count):
                continue

            if share >= 0.9 or count >= 2 * config.congestion_count:
                severity = Severity.HIGH
            elif share >= 0.75:
                severity = Severity.MEDIUM
            else:
                severity = Severity.LOW

            threats.append(Threat(
                type=ThreatType.LOCALIZED_CONGESTION,
                severity=severity,
                message=f"High concentration in {region.value} sector.",
                region=region,
                evidence=(
                    ("count", str(count)),
                    ("share", f"{share:.4f}"),
                    ("known_total", str(known_total)),
                )
            ))
        return threats

    def _detect_polarization(self, analysis) -> Optional[Threat]:
        config = self._config
        if analysis.known_total <= config.polarization_min_sample:
            return None
        if analysis.balance_score >= config.polarization_balance_floor:
            return None
        dominant = analysis.dominant.intention
        return Threat(
            type=ThreatType.POLARIZATION,
            severity=Severity.MEDIUM,
            message=f"Extreme dominance of {dominant.value}. System equilibrium at risk.",
            evidence=(
                ("balance_score", str(analysis.balance_score)),
                ("dominant", dominant.value),
            )
        )

    # -------------------------------------------------------------------------

    @staticmethod
    def _count_regions(snapshot: Sequence[Thread]) -> Dict[Region, int]:
        counts = {r: 0 for r in Region.known()}
        for thread in snapshot:
            if thread.region.is_known:
                counts[thread.region] += 1
        return {r: c for r, c in counts.items() if c > 0}

    @staticmethod
    def _zones(region_counts: Dict[Region, int]) -> Tuple[ZoneIntensity, ...]:
        if not region_counts:
            return ()
        max_count = max(region_counts.values())
        return tuple(
            ZoneIntensity(region=r, intensity=c / max_count, count=c)
            for r, c in region_counts.items()
        )

    @staticmethod
    def _defcon_for(threats: Sequence[Threat]) -> int:
        distinct = len({t.type for t in threats})
        escalation = 1 if any(t.severity.rank >= Severity.HIGH.rank for t in threats) else 0
        return max(MIN_DEFCON, min(MAX_DEFCON, MAX_DEFCON - distinct - escalation))

    @staticmethod
    def _status_for(defcon: int) -> SentinelStatus:
        if defcon >= MAX_DEFCON:
            return SentinelStatus.STANDBY
        if defcon >= 3:
            return SentinelStatus.ACTIVE
        return SentinelStatus.ALERT

    def _degraded_report(self) -> Report:
        threats = (Threat(
            type=ThreatType.MALFORMED_DATA,
            severity=Severity.LOW,
            message="Snapshot could not be assessed.",
        ),)
        defcon = self._defcon_for(threats)
        return Report(
            defcon_level=defcon,
            status=self._status_for(defcon),
            threats=threats,
            dominant=DominantIntention.neutral(),
            counts_by_intention=tuple((i, 0) for i in Intention.known()),
            zones=()
        )
