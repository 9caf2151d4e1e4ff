"""
Sentinel Tests
==============

INVARIANTS TESTED:
1. Empty snapshot is DEFCON 5 with no threats
2. Bursts and regional concentration are detected with graded severity
3. Reports are pure functions of the snapshot
4. Malformed input degrades the report instead of raising
"""

import pytest

from tapestry.contracts.base import Intention, Region
from tapestry.contracts.events import SentinelStatus, Severity, ThreatType
from tapestry.core.horizon import analyze_intentions
from tapestry.core.sentinel import Sentinel, SentinelConfig

from tests.fixtures import T0, burst, make_thread, seal_chain, spaced


def threat_of(report, threat_type):
    return next(t for t in report.threats if t.type == threat_type)


REGIONS = ("coast", "medina", "sahara", "kasbah")


def balanced(count: int):
    """Widely spaced threads rotating through every region and intention."""
    intentions = ("serenity", "vibrancy", "awe", "legacy")
    return spaced([(intentions[n % 4], "dawn", REGIONS[n % 4]) for n in range(count)])


class TestEmptyAndQuiet:

    def test_empty_snapshot_is_standby(self):
        report = Sentinel().assess([])

        assert report.defcon_level == 5
        assert report.status == SentinelStatus.STANDBY
        assert report.threats == ()
        assert report.zones == ()
        assert report.dominant.intention is None
        assert report.dominant.percent_share == 0.0
        assert all(count == 0 for _, count in report.counts_by_intention)

    def test_none_snapshot_is_standby(self):
        assert Sentinel().assess(None).defcon_level == 5

    def test_balanced_spaced_ledger_has_no_threats(self):
        report = Sentinel().assess(balanced(8))

        assert report.threats == ()
        assert report.defcon_level == 5
        assert report.total == 8


class TestTemporalSurge:

    def test_six_coast_threads_within_half_second(self):
        """Surge and congestion together drop DEFCON below 5."""
        report = Sentinel().assess(burst(6, region="coast", gap=100))

        assert report.has_threat(ThreatType.TEMPORAL_SURGE)
        assert report.has_threat(ThreatType.LOCALIZED_CONGESTION)
        assert report.defcon_level < 5
        assert threat_of(report, ThreatType.LOCALIZED_CONGESTION).region == Region.COAST

    def test_threshold_count_is_not_a_surge(self):
        report = Sentinel().assess(burst(5, gap=100))
        assert not report.has_threat(ThreatType.TEMPORAL_SURGE)

    @pytest.mark.parametrize("count,severity", [
        (6, Severity.LOW),
        (7, Severity.LOW),
        (8, Severity.MEDIUM),
        (10, Severity.MEDIUM),
        (11, Severity.HIGH),
    ])
    def test_severity_grows_with_excess(self, count, severity):
        report = Sentinel().assess(burst(count, gap=50))
        assert threat_of(report, ThreatType.TEMPORAL_SURGE).severity == severity

    def test_window_is_inclusive(self):
        """Six events spanning exactly window_ms still count as one burst."""
        report = Sentinel().assess(burst(6, gap=200))
        surge = threat_of(report, ThreatType.TEMPORAL_SURGE)
        assert surge.evidence_dict()["span_ms"] == "1000"

    def test_events_just_outside_window(self):
        report = Sentinel().assess(burst(6, gap=201))
        assert not report.has_threat(ThreatType.TEMPORAL_SURGE)

    def test_unsorted_timestamps_are_handled(self):
        threads = seal_chain(
            make_thread(region=REGIONS[n % 4], timestamp=T0 + ts)
            for n, ts in enumerate([900, 100, 500, 300, 700, 0])
        )
        assert Sentinel().assess(threads).has_threat(ThreatType.TEMPORAL_SURGE)

    def test_custom_window_and_threshold(self):
        config = SentinelConfig(window_ms=100, surge_threshold=2)
        report = Sentinel(config).assess(burst(3, gap=40))
        assert report.has_threat(ThreatType.TEMPORAL_SURGE)


class TestLocalizedCongestion:

    def test_majority_share_is_congestion(self):
        threads = spaced([("awe", "dusk", "coast"), ("awe", "dusk", "coast"), ("awe", "dusk", "medina")])
        congestion = threat_of(Sentinel().assess(threads), ThreatType.LOCALIZED_CONGESTION)

        assert congestion.region == Region.COAST
        assert congestion.severity == Severity.LOW

    def test_small_sample_is_ignored(self):
        threads = spaced([("awe", "dusk", "coast"), ("awe", "dusk", "coast")])
        assert not Sentinel().assess(threads).has_threat(ThreatType.LOCALIZED_CONGESTION)

    def test_half_share_is_not_congestion(self):
        threads = spaced([("awe", "dusk", "coast"), ("awe", "dusk", "coast"),
                          ("awe", "dusk", "medina"), ("awe", "dusk", "sahara")])
        assert not Sentinel().assess(threads).has_threat(ThreatType.LOCALIZED_CONGESTION)

    def test_absolute_count_triggers_without_majority(self):
        specs = [("awe", "dusk", "coast")] * 13 + [("awe", "dusk", r) for r in ("medina", "sahara", "kasbah")] * 9
        report = Sentinel().assess(spaced(specs))

        congestion = [t for t in report.threats if t.type == ThreatType.LOCALIZED_CONGESTION]
        assert [t.region for t in congestion] == [Region.COAST]

    def test_single_region_is_high(self):
        report = Sentinel().assess(spaced([("awe", "dusk", "sahara")] * 4))
        assert threat_of(report, ThreatType.LOCALIZED_CONGESTION).severity == Severity.HIGH

    def test_zones_are_relative_to_busiest_region(self):
        threads = spaced([("awe", "dusk", "kasbah"), ("awe", "dusk", "coast"), ("awe", "dusk", "coast"),
                          ("awe", "dusk", "coast"), ("awe", "dusk", "medina"), ("awe", "dusk", "medina")])
        zones = Sentinel().assess(threads).zones

        assert [z.region for z in zones] == [Region.COAST, Region.MEDINA, Region.KASBAH]
        assert [z.count for z in zones] == [3, 2, 1]
        assert zones[0].intensity == 1.0
        assert zones[2].intensity == pytest.approx(1 / 3)


class TestPolarization:

    def _single_intention(self, count):
        return spaced([("serenity", "dawn", REGIONS[n % 4]) for n in range(count)])

    def test_dominant_intention_is_polarization(self):
        report = Sentinel().assess(self._single_intention(6))

        polarization = threat_of(report, ThreatType.POLARIZATION)
        assert polarization.severity == Severity.MEDIUM
        assert report.defcon_level == 4
        assert report.status == SentinelStatus.ACTIVE

    def test_needs_more_than_minimum_sample(self):
        report = Sentinel().assess(self._single_intention(5))
        assert not report.has_threat(ThreatType.POLARIZATION)

    def test_can_be_disabled(self):
        report = Sentinel(SentinelConfig(detect_polarization=False)).assess(self._single_intention(6))
        assert report.threats == ()


class TestMalformedData:

    def test_unknown_fields_are_counted(self):
        threads = seal_chain([
            make_thread("awe", "dusk", "coast", timestamp=T0),
            make_thread("awe", "dusk", "atlantis", timestamp=T0 + 60_000),
            make_thread("chaos", "dusk", "medina", timestamp=T0 + 120_000),
        ])
        report = Sentinel().assess(threads)

        malformed = threat_of(report, ThreatType.MALFORMED_DATA)
        assert malformed.severity == Severity.LOW
        assert report.malformed_count == 2
        assert report.count_for(Intention.AWE) == 2
        assert Region.UNKNOWN not in [z.region for z in report.zones]

    def test_missing_timestamp_is_malformed(self):
        report = Sentinel().assess([make_thread()])
        assert report.malformed_count == 1
        assert not report.has_threat(ThreatType.TEMPORAL_SURGE)

    def test_garbage_entries_degrade_instead_of_raising(self):
        report = Sentinel().assess([make_thread(timestamp=T0), None, "not a thread"])

        assert report.threat_types() == (ThreatType.MALFORMED_DATA,)
        assert report.defcon_level == 4


class TestReportShape:

    def test_dominant_share_over_known_intentions(self):
        threads = spaced([("awe", "dawn", "coast"), ("legacy", "dawn", "medina"),
                          ("awe", "dawn", "sahara")])
        report = Sentinel().assess(threads)

        assert report.dominant.intention == Intention.AWE
        assert report.dominant.percent_share == 66.67

    def test_dominant_tie_goes_to_first_seen(self):
        threads = spaced([("legacy", "dawn", "coast"), ("awe", "dawn", "medina")])
        assert Sentinel().assess(threads).dominant.intention == Intention.LEGACY

    def test_counts_cover_every_known_intention(self):
        report = Sentinel().assess(spaced([("awe", "dawn", "coast")]))
        assert [i for i, _ in report.counts_by_intention] == list(Intention.known())

    def test_repeated_assessment_is_equal(self):
        threads = burst(9, region="medina")
        sentinel = Sentinel()

        first, second = sentinel.assess(threads), sentinel.assess(threads)

        assert first == second
        assert first.fingerprint() == second.fingerprint()

    def test_escalated_threat_lowers_defcon(self):
        low = Sentinel().assess(spaced([("awe", "dusk", "coast"), ("awe", "dusk", "coast"), ("awe", "dusk", "medina")]))
        high = Sentinel().assess(spaced([("awe", "dusk", "coast")] * 3))

        assert low.defcon_level == 4
        assert high.defcon_level == 3


class TestSentinelConfig:

    @pytest.mark.parametrize("kwargs", [
        {"window_ms": 0},
        {"surge_threshold": 0},
        {"congestion_ratio": 1.0},
        {"congestion_count": 0},
    ])
    def test_invalid_values_rejected(self, kwargs):
        with pytest.raises(ValueError):
            SentinelConfig(**kwargs)


class TestHorizon:

    def test_even_split_is_fully_balanced(self):
        analysis = analyze_intentions(balanced(4))
        assert analysis.balance_score == 100

    def test_single_intention_has_zero_balance(self):
        analysis = analyze_intentions(spaced([("awe", "dawn", "coast")] * 3))
        assert analysis.balance_score == 0
        assert analysis.streak == 3
        assert analysis.last_intention == Intention.AWE

    def test_unknown_intentions_are_excluded(self):
        analysis = analyze_intentions(seal_chain([make_thread("chaos", timestamp=T0)]))
        assert analysis.known_total == 0
        assert analysis.dominant.intention is None
