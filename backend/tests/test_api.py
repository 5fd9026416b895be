"""
Tests for the proctoring HTTP API
"""
import pytest
from unittest.mock import AsyncMock, patch
from fastapi.testclient import TestClient

from proctoring.api.deps import get_registry
from proctoring.main import app
from proctoring.core.fallback_store import fallback_store
from proctoring.services.proctor_session import SessionRegistry

from conftest import InMemoryFallbackStore, RecordingTransport
from proctoring.services.delivery import ViolationApiClient


BASE = "/api/v1/proctoring"


@pytest.fixture
def test_transport():
    return RecordingTransport()


@pytest.fixture
def test_registry(test_transport):
    client = ViolationApiClient(
        base_url="http://assessment.test/api/v1",
        transport=test_transport.as_transport()
    )
    return SessionRegistry(client=client, store=InMemoryFallbackStore())


@pytest.fixture
def client(test_registry):
    """FastAPI test client sharing one event loop across requests"""
    app.dependency_overrides[get_registry] = lambda: test_registry
    with patch.object(fallback_store, "ahealth_check", AsyncMock(return_value=True)):
        with TestClient(app) as test_client:
            yield test_client
            test_client.portal.call(test_registry.close_all)
    app.dependency_overrides.clear()


def start(client, session_id="session-1", **overrides):
    body = {
        "assessment_id": "assessment-1",
        "session_id": session_id,
        "is_fullscreen": True,
        "track_location": False,
    }
    body.update(overrides)
    response = client.post(f"{BASE}/sessions", json=body)
    assert response.status_code == 201
    return response.json()


class TestSessions:
    """Test session lifecycle endpoints"""

    def test_start_session(self, client):
        data = start(client, duration_minutes=45)

        assert data["session_id"] == "session-1"
        assert data["active"]
        assert not data["paused"]
        assert data["remaining_seconds"] == 2700
        assert data["remaining_display"] == "45:00"
        assert data["fullscreen"]["required"]

    def test_duplicate_session_conflict(self, client):
        start(client)
        response = client.post(f"{BASE}/sessions", json={"assessment_id": "assessment-1", "session_id": "session-1"})
        assert response.status_code == 409

    def test_unknown_session(self, client):
        response = client.get(f"{BASE}/sessions/missing")
        assert response.status_code == 404
        response = client.post(f"{BASE}/sessions/missing/signals/print")
        assert response.status_code == 404

    def test_summary(self, client):
        start(client)
        client.post(f"{BASE}/sessions/session-1/signals/context-menu", json={"target": "IMG"})

        response = client.get(f"{BASE}/sessions/session-1/summary")

        assert response.status_code == 200
        summary = response.json()["summary"]
        assert summary["total"] == 1
        assert summary["counts_by_kind"]["RIGHT_CLICK"] == 1

    def test_candidate_submit(self, client):
        start(client)

        first = client.post(f"{BASE}/sessions/session-1/submit", json={})
        second = client.post(f"{BASE}/sessions/session-1/submit", json={})

        assert first.json()["accepted"]
        assert first.json()["submitted"]
        assert not second.json()["accepted"]

    def test_close_session(self, client, test_transport):
        start(client)

        response = client.delete(f"{BASE}/sessions/session-1")

        assert response.status_code == 204
        assert client.get(f"{BASE}/sessions/session-1").status_code == 404
        assert len(test_transport.requests_to("/submit")) == 1


class TestViolations:
    """Test raw violation logging"""

    def test_log_violation(self, client):
        start(client)

        response = client.post(
            f"{BASE}/sessions/session-1/violations",
            json={"kind": "TAB_SWITCH", "details": {"action": "hidden"}}
        )

        assert response.status_code == 200
        data = response.json()
        assert data["violations"][0]["kind"] == "TAB_SWITCH"
        assert data["violations"][0]["sequence_count"] == 1
        assert data["violations"][0]["timestamp_local"]
        assert data["should_warn"]
        assert not data["submitted"]

    def test_unknown_kind_rejected(self, client):
        start(client)

        response = client.post(f"{BASE}/sessions/session-1/violations", json={"kind": "TELEPATHY"})

        assert response.status_code == 422
        summary = client.get(f"{BASE}/sessions/session-1/summary").json()["summary"]
        assert summary["total"] == 0

    def test_threshold_submits(self, client):
        start(client)

        for _ in range(2):
            client.post(f"{BASE}/sessions/session-1/signals/visibility", json={"hidden": True})
        response = client.post(f"{BASE}/sessions/session-1/signals/visibility", json={"hidden": True})

        assert response.json()["submitted"]

        late = client.post(f"{BASE}/sessions/session-1/signals/keydown", json={"key": "F12"})
        assert late.status_code == 200
        assert late.json()["violations"] == []


class TestSignals:
    """Test sensor signal endpoints"""

    def test_keydown(self, client):
        start(client)

        blocked = client.post(
            f"{BASE}/sessions/session-1/signals/keydown",
            json={"key": "c", "ctrl": True}
        )
        allowed = client.post(f"{BASE}/sessions/session-1/signals/keydown", json={"key": "b"})

        assert blocked.json()["violations"][0]["details"]["shortcut"] == "Ctrl+C"
        assert allowed.json()["violations"] == []

    def test_invalid_clipboard_action(self, client):
        start(client)

        response = client.post(f"{BASE}/sessions/session-1/signals/clipboard", json={"action": "drag"})

        assert response.status_code == 422

    def test_fullscreen_exit_with_devtools(self, client):
        start(client)

        response = client.post(
            f"{BASE}/sessions/session-1/signals/fullscreen",
            json={
                "is_fullscreen": False,
                "window": {"outer_width": 1920, "outer_height": 1080, "inner_width": 1920, "inner_height": 600},
            }
        )

        data = response.json()
        assert [v["kind"] for v in data["violations"]] == ["FULLSCREEN_EXIT", "DEVTOOLS_OPEN"]
        assert data["paused"]

    def test_face_samples(self, client):
        start(client)

        response = client.post(f"{BASE}/sessions/session-1/signals/face", json={"face_count": 2})

        assert response.json()["violations"][0]["kind"] == "MULTIPLE_FACES"

    def test_location_change(self, client):
        start(client)
        client.post(f"{BASE}/sessions/session-1/signals/location", json={"ip": "95.56.1.10"})

        response = client.post(f"{BASE}/sessions/session-1/signals/location", json={"ip": "10.0.0.7"})

        data = response.json()
        assert data["violations"][0]["kind"] == "IP_CHANGE"
        assert data["submitted"]


class TestHealth:
    """Test health endpoints"""

    def test_root_health(self, client):
        response = client.get("/health")

        assert response.status_code == 200
        assert response.json()["services"]["fallback_store"] == "healthy"

    def test_violation_kinds(self, client):
        response = client.get(f"{BASE}/kinds")

        assert response.json()["TAB_SWITCH"]["auto_submit_threshold"] == 3
