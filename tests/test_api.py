"""
API Tests
=========

HTTP surface over an injected engine, exercised with TestClient.
"""

import pytest
from fastapi.testclient import TestClient

from tapestry.api.server import create_app

from tests.fixtures import RecordingExecutor, make_clock, make_engine


@pytest.fixture
def engine():
    eng = make_engine(executor=RecordingExecutor(), clock=make_clock(step=100))
    yield eng
    eng.close()


@pytest.fixture
def client(engine):
    return TestClient(create_app(engine))


def weave(client, intention="awe", time="night", region="sahara", **extra):
    response = client.post(
        "/api/v1/threads",
        json={"intention": intention, "time": time, "region": region, **extra}
    )
    assert response.status_code == 201, response.text
    return response.json()


class TestLedgerEndpoints:

    def test_health(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json() == {"status": "online", "threads": 0, "integrity_verified": True}

    def test_weave_and_list(self, client):
        created = weave(client, title="Dunes at night")

        listed = client.get("/api/v1/threads").json()

        assert listed == [created]
        assert created["title"] == "Dunes at night"
        assert created["id"] == created["hash"][:12]
        assert created["previous_hash"] == "GENESIS_HASH"

    def test_overlong_title_rejected(self, client):
        response = client.post(
            "/api/v1/threads",
            json={"intention": "awe", "time": "night", "region": "sahara", "title": "x" * 101}
        )
        assert response.status_code == 422

    def test_unknown_values_are_accepted_as_unknown(self, client):
        created = weave(client, intention="bliss")
        assert created["intention"] == "unknown"

    def test_clear_requires_confirmation(self, client):
        weave(client)

        assert client.delete("/api/v1/threads").status_code == 400
        response = client.delete("/api/v1/threads", params={"confirm": "true"})

        assert response.json() == {"removed": 1}
        assert client.get("/api/v1/threads").json() == []

    def test_integrity(self, client):
        weave(client)
        weave(client, region="coast")
        assert client.get("/api/v1/integrity").json() == {"valid": True, "error": None, "context": {}}


class TestAnalyticsEndpoints:

    def test_empty_report(self, client):
        report = client.get("/api/v1/sentinel/report").json()

        assert report["defcon_level"] == 5
        assert report["status"] == "STANDBY"
        assert report["threats"] == []
        assert len(report["fingerprint"]) == 64

    def test_burst_report(self, client):
        for _ in range(6):
            weave(client, intention="vibrancy", time="dusk", region="coast")

        report = client.get("/api/v1/sentinel/report").json()
        types = {t["type"] for t in report["threats"]}

        assert {"TEMPORAL_SURGE", "LOCALIZED_CONGESTION"} <= types
        assert report["defcon_level"] < 5
        assert report["zones"] == [{"region": "coast", "intensity": 1.0, "count": 6}]

    def test_related_threads(self, client):
        original = weave(client, intention="serenity", time="dawn", region="coast", title="Morning tide")
        weave(client)
        twin = weave(client, intention="serenity", time="dawn", region="coast", title="Morning tide")

        matches = client.get(f"/api/v1/mnemosyne/{original['id']}", params={"limit": 1}).json()

        assert len(matches) == 1
        assert matches[0]["thread"]["id"] == twin["id"]
        assert matches[0]["score"] == 100

    def test_related_threads_unknown_id(self, client):
        response = client.get("/api/v1/mnemosyne/missing")

        assert response.status_code == 404
        assert response.json()["code"] == "THREAD_NOT_FOUND"


class TestValkyrieEndpoints:

    def test_evaluate_logs_decision(self, client):
        entry = client.post("/api/v1/valkyrie/evaluate").json()

        assert entry["action_taken"] == "NO_ACTION"
        assert entry["outcome"] == "STANDBY"
        assert len(client.get("/api/v1/valkyrie/log").json()) == 1

    def test_override(self, client):
        response = client.post("/api/v1/valkyrie/override", json={"action": "sector_dispersal", "region": "medina"})
        entry = response.json()

        assert entry["trigger"] == "MANUAL"
        assert entry["action_taken"] == "SECTOR_DISPERSAL"
        assert entry["target_region"] == "medina"

    def test_override_unknown_action(self, client):
        response = client.post("/api/v1/valkyrie/override", json={"action": "launch"})
        assert response.status_code == 422

    def test_disarm_and_arm(self, client):
        status = client.post("/api/v1/valkyrie/status", json={"armed": False}).json()
        assert status["valkyrie_status"] == "INACTIVE"

        entry = client.post("/api/v1/valkyrie/evaluate").json()
        assert entry["outcome"] == "SUSPENDED"

        status = client.post("/api/v1/valkyrie/status", json={"armed": True}).json()
        assert status["valkyrie_status"] == "ACTIVE"

    def test_log_limit(self, client):
        for _ in range(3):
            client.post("/api/v1/valkyrie/evaluate")
        assert len(client.get("/api/v1/valkyrie/log", params={"limit": 2}).json()) == 2


class TestNotificationsEndpoint:

    def test_filters_by_level(self, client):
        weave(client, region="atlantis")

        warnings = client.get("/api/v1/notifications", params={"level": "warning"}).json()
        errors = client.get("/api/v1/notifications", params={"level": "error"}).json()

        assert [n["code"] for n in warnings] == ["MALFORMED_RECORD"]
        assert errors == []


class TestIsolation:

    def test_apps_do_not_share_engines(self):
        first = make_engine(clock=make_clock())
        second = make_engine(clock=make_clock())
        client_a = TestClient(create_app(first))
        client_b = TestClient(create_app(second))

        weave(client_a)

        assert len(client_a.get("/api/v1/threads").json()) == 1
        assert client_b.get("/api/v1/threads").json() == []
