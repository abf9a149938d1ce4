"""
API Endpoint Tests

Tests the FastAPI endpoints using TestClient with MockTransport.
"""

import pytest
from fastapi.testclient import TestClient

import api.dependencies
from api.app import create_app
from api.dependencies import AppState


@pytest.fixture
def client(clock):
    """Create test client with fresh app state on a hand-driven clock."""
    api.dependencies._app_state = AppState(clock=clock)

    app = create_app()
    with TestClient(app) as client:
        yield client

    # Cleanup
    api.dependencies._app_state.disconnect()
    api.dependencies._app_state = None


@pytest.fixture
def connected_client(client):
    """Client connected to mock transport, polled by hand."""
    response = client.post("/api/connect", json={"port": "mock", "poll": False})
    assert response.json()["success"]
    return client


def run_for(client, clock, ms, step=100):
    """Advance the clock, posting one poll per step. Returns the actions taken."""
    actions = []
    for _ in range(ms // step):
        clock.advance(step)
        actions.append(client.post("/api/poll").json()["action"])
    return actions


@pytest.fixture
def synced_client(connected_client, clock):
    """Client whose mirrored model has caught up with the mock controller."""
    run_for(connected_client, clock, 30_000)
    return connected_client


class TestConnectionEndpoints:
    """Test connection endpoints."""

    def test_get_status_disconnected(self, client):
        """Status shows disconnected initially."""
        response = client.get("/api/status")
        assert response.status_code == 200
        data = response.json()
        assert data["connected"] is False
        assert data["polling"] is False

    def test_connect_mock(self, client):
        """Can connect to mock transport."""
        response = client.post("/api/connect", json={"port": "mock", "poll": False})
        assert response.status_code == 200
        assert response.json()["success"]

    def test_status_after_connect(self, connected_client):
        """Status shows connected and the first summary request."""
        data = connected_client.get("/api/status").json()
        assert data["connected"] is True
        assert data["initialized"] is False
        assert data["last_request"] == 'M409 F"d99f"'

    def test_disconnect(self, connected_client):
        """Can disconnect."""
        response = connected_client.post("/api/disconnect")
        assert response.json()["success"]

        # Verify disconnected
        response = connected_client.get("/api/status")
        assert response.json()["connected"] is False

    def test_history_records_summary(self, connected_client):
        """The summary sent on connect is in the history."""
        history = connected_client.get("/api/history").json()["history"]
        assert len(history) == 1
        assert history[0]["kind"] == "summary"
        assert history[0]["success"] is True

    def test_history_limit(self, synced_client):
        history = synced_client.get("/api/history?limit=2").json()["history"]
        assert len(history) == 2

    def test_connect_bad_port(self, client):
        """Unknown serial port reports failure without raising."""
        response = client.post("/api/connect", json={"port": "/dev/does-not-exist", "poll": False})
        assert response.status_code == 200
        data = response.json()
        assert data["success"] is False
        assert data["message"]


class TestNotConnected:
    """Engine routes refuse requests without a connection."""

    @pytest.mark.parametrize("path", ["/api/model", "/api/scheduler", "/api/events", "/api/model/tools/0"])
    def test_get_rejected(self, client, path):
        response = client.get(path)
        assert response.status_code == 400

    def test_poll_rejected(self, client):
        assert client.post("/api/poll").status_code == 400


class TestPolling:
    """Driving the engine through POST /api/poll."""

    def test_waits_inside_poll_interval(self, connected_client, clock):
        clock.advance(100)
        response = connected_client.post("/api/poll")
        assert response.json() == {"success": True, "action": "wait"}

    def test_summary_marks_subsystems_dirty(self, connected_client, clock):
        run_for(connected_client, clock, 100)
        dirty = connected_client.get("/api/scheduler").json()["dirty"]
        assert "move" in dirty
        assert "tools" in dirty

    def test_details_follow_summary(self, connected_client, clock):
        actions = run_for(connected_client, clock, 5_000)
        assert "detail" in actions
        assert connected_client.get("/api/scheduler").json()["initialized"] is True

    def test_sync_completes(self, synced_client):
        scheduler = synced_client.get("/api/scheduler").json()
        assert scheduler["dirty"] == []
        assert all(seq is not None for seq in scheduler["seqs"].values())


class TestModelEndpoints:
    """Test the mirrored model endpoints."""

    def test_axes(self, synced_client):
        axes = synced_client.get("/api/model").json()["axes"]
        assert [axis["letter"] for axis in axes] == ["X", "Y", "Z"]
        assert [axis["homed"] for axis in axes] == [True, True, False]

    def test_tools(self, synced_client):
        tools = synced_client.get("/api/model").json()["tools"]
        assert [tool["index"] for tool in tools] == [0, 1]

    def test_tool_by_index(self, synced_client):
        response = synced_client.get("/api/model/tools/1")
        assert response.status_code == 200
        data = response.json()
        assert data["heater"] == 2
        assert data["extruder"] == 1

    def test_tool_not_found(self, synced_client):
        response = synced_client.get("/api/model/tools/7")
        assert response.status_code == 404

    def test_machine_fields(self, synced_client):
        machine = synced_client.get("/api/model").json()["machine"]
        assert machine["machine_name"] == "mock-printer"
        assert machine["ip_address"] == "10.0.0.42"
        assert machine["firmware_name"] == "RepRapFirmware"

    def test_events(self, synced_client):
        events = synced_client.get("/api/events?limit=500").json()["events"]
        types = {event["type"] for event in events}
        assert "STATUS_STRING_RECEIVED" in types
        assert "AXIS_CHANGED" in types

    def test_events_limit(self, synced_client):
        events = synced_client.get("/api/events?limit=3").json()["events"]
        assert len(events) == 3


class TestErrorHandling:
    """Unhandled errors come back as JSON with the sync context."""

    def test_unhandled_error_returns_500_with_context(self, clock, monkeypatch):
        api.dependencies._app_state = AppState(clock=clock)

        def fail(self):
            raise RuntimeError("engine exploded")

        monkeypatch.setattr(AppState, "get_status", fail)
        with TestClient(create_app(), raise_server_exceptions=False) as client:
            response = client.get("/api/status")

        api.dependencies._app_state = None
        assert response.status_code == 500
        data = response.json()
        assert data["detail"] == "engine exploded"
        assert data["path"] == "/api/status"
        assert data["connected"] is False

    def test_custom_cors_origins(self, client):
        app = create_app(cors_origins=["http://panel.local"])
        with TestClient(app) as custom:
            response = custom.get(
                "/api/status",
                headers={"Origin": "http://panel.local"},
            )
        assert response.headers["access-control-allow-origin"] == "http://panel.local"
