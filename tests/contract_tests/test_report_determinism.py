"""
Deterministic Replay Test
Same inputs + same clock ticks = identical ledger, reports and decisions.

Two independent engines are fed the same weave sequence under replay
clocks. Nothing in the outputs may depend on wall-clock time or on
which engine instance produced them.
"""

from tapestry.temporal.clock import LogicalClock

from tests.fixtures import T0, RecordingExecutor, make_engine


WEAVES = [
    ("serenity", "dawn", "coast", "Morning tide"),
    ("vibrancy", "midday", "medina", "Spice market"),
    ("vibrancy", "midday", "medina", None),
    ("awe", "night", "sahara", "Dunes under stars"),
    ("vibrancy", "dusk", "medina", "Lanterns"),
    ("vibrancy", "dusk", "medina", None),
    ("vibrancy", "dusk", "medina", None),
    ("legacy", "dusk", "kasbah", "Old walls"),
]

# every component reads the same clock; the weaves all land inside one second
TICKS = [T0 + 10 * i for i in range(200)]


def run_session():
    engine = make_engine(executor=RecordingExecutor(), clock=LogicalClock.replay(TICKS))
    for intention, time_of_day, region, title in WEAVES:
        engine.weave(intention, time_of_day, region, title=title)

    report, entry = engine.run_cycle()
    matches = engine.recall(engine.threads()[0].id, limit=10)
    snapshot = engine.threads()
    engine.close()
    return snapshot, report, entry, matches


def test_ledger_replay_is_identical():
    """Replayed sessions produce byte-identical hash chains."""
    first, _, _, _ = run_session()
    second, _, _, _ = run_session()

    assert [t.hash for t in first] == [t.hash for t in second]
    assert [t.id for t in first] == [t.id for t in second]


def test_report_replay_is_identical():
    _, first, _, _ = run_session()
    _, second, _, _ = run_session()

    assert first == second
    assert first.fingerprint() == second.fingerprint()
    assert first.defcon_level < 5


def test_decision_replay_is_identical():
    _, _, first, _ = run_session()
    _, _, second, _ = run_session()

    assert first == second


def test_similarity_replay_is_identical():
    _, _, _, first = run_session()
    _, _, _, second = run_session()

    assert [(m.thread.id, m.score, m.common_terms) for m in first] == \
        [(m.thread.id, m.score, m.common_terms) for m in second]
    assert len(first) == len(WEAVES) - 1
