"""
HTTP API tests for the terminal endpoints.

Runs the FastAPI app against an in-memory sandbox adapter.
"""

from __future__ import annotations

import asyncio
import importlib
import time

import pytest
from fastapi.testclient import TestClient
from httpx import ASGITransport, AsyncClient

from sandterm.models import SessionStatus
from sandterm.server import create_app
from sandterm.server.config import reset_settings
from sandterm.server.routers import terminal
from sandterm.terminal import TerminalConfig, TerminalSessionManager
from tests.sandboxes.fake_sandbox import FakeSandboxAdapter, parse_frames

app_module = importlib.import_module("sandterm.server.app")


# =============================================================================
# TEST FIXTURES
# =============================================================================


@pytest.fixture
def app(manager):
    """Fresh app bound to the test manager."""
    return create_app(manager)


@pytest.fixture
def client(app):
    """Sync test client; the context keeps one event loop for background commands."""
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
async def async_client(app):
    """Async test client."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as test_client:
        yield test_client


# =============================================================================
# HELPER FUNCTIONS
# =============================================================================


def create_session(client) -> dict:
    resp = client.post("/api/terminal/sessions")
    assert resp.status_code == 201
    return resp.json()


def wait_for_history(client, session_id: str, count: int, timeout: float = 2.0) -> list:
    """Poll until `count` commands have finished."""
    deadline = time.monotonic() + timeout
    while True:
        history = client.get(f"/api/terminal/sessions/{session_id}").json()["command_history"]
        done = [h for h in history if h["status"] != "started"]
        if len(done) >= count or time.monotonic() > deadline:
            return history
        time.sleep(0.01)


# =============================================================================
# TESTS
# =============================================================================


class TestSessions:
    def test_health_endpoint(self, client):
        resp = client.get("/health")
        assert resp.status_code == 200
        assert resp.json()["status"] == "healthy"

    def test_create_session(self, client):
        body = create_session(client)

        assert body["sandbox_id"] == "fake-sandbox-1"
        assert body["status"] == "active"
        assert body["expires_in_ms"] == 1_800_000
        assert body["created_at"].endswith("+00:00")

    def test_get_session(self, client):
        session_id = create_session(client)["session_id"]

        resp = client.get(f"/api/terminal/sessions/{session_id}")

        assert resp.status_code == 200
        body = resp.json()
        assert body["session_id"] == session_id
        assert body["command_history"] == []
        assert body["uptime_ms"] >= 0
        assert "last_activity_at" in body

    def test_session_not_found(self, client):
        resp = client.get("/api/terminal/sessions/does-not-exist")

        assert resp.status_code == 404
        error = resp.json()["error"]
        assert error["code"] == "session_not_found"
        assert error["request_id"] == resp.headers["X-Request-ID"]

    def test_destroyed_session_is_gone(self, client, manager):
        session_id = create_session(client)["session_id"]
        manager.registry.peek(session_id).status = SessionStatus.DESTROYED

        resp = client.get(f"/api/terminal/sessions/{session_id}")

        assert resp.status_code == 410
        assert resp.json()["error"]["code"] == "session_destroyed"

    def test_delete_session(self, client, adapter):
        body = create_session(client)
        session_id = body["session_id"]

        resp = client.delete(f"/api/terminal/sessions/{session_id}")
        assert resp.status_code == 200
        assert resp.json()["session_id"] == session_id
        assert adapter.destroyed == [body["sandbox_id"]]

        assert client.get(f"/api/terminal/sessions/{session_id}").status_code == 404
        assert client.delete(f"/api/terminal/sessions/{session_id}").status_code == 404

    def test_capacity_exceeded(self):
        manager = TerminalSessionManager(FakeSandboxAdapter(), TerminalConfig(max_sessions=1))
        with TestClient(create_app(manager)) as client:
            create_session(client)
            resp = client.post("/api/terminal/sessions")

        assert resp.status_code == 503
        assert resp.json()["error"]["code"] == "capacity_exceeded"

    def test_sandbox_failure_is_bad_gateway(self):
        adapter = FakeSandboxAdapter(create_error=RuntimeError("no capacity upstream"))
        with TestClient(create_app(TerminalSessionManager(adapter))) as client:
            resp = client.post("/api/terminal/sessions")

        assert resp.status_code == 502
        assert resp.json()["error"]["code"] == "session_creation_failed"

    def test_resize_is_not_offered(self, client):
        session_id = create_session(client)["session_id"]

        resp = client.post(f"/api/terminal/{session_id}/resize", json={"cols": 80, "rows": 24})

        assert resp.status_code == 404

    def test_request_id_propagation(self, client):
        resp = client.get("/api/terminal/stats", headers={"X-Request-ID": "req-test-123"})
        assert resp.headers["X-Request-ID"] == "req-test-123"


class TestExecute:
    def test_execute_is_accepted_and_recorded(self, client, adapter):
        session_id = create_session(client)["session_id"]

        resp = client.post(f"/api/terminal/{session_id}/execute", json={"command": "echo ready"})

        assert resp.status_code == 202
        body = resp.json()
        assert body["status"] == "started"
        history = wait_for_history(client, session_id, 1)
        assert history[0]["command_id"] == body["command_id"]
        assert history[0]["status"] == "completed"
        assert history[0]["exit_code"] == 0
        assert history[0]["language"] == "bash"
        assert adapter.calls[0].timeout_seconds == 30

    def test_execute_with_timeout(self, client, adapter):
        session_id = create_session(client)["session_id"]

        resp = client.post(
            f"/api/terminal/{session_id}/execute",
            json={"command": "sleep 5", "timeout_ms": 120000, "language": "bash"},
        )

        assert resp.status_code == 202
        wait_for_history(client, session_id, 1)
        assert adapter.calls[0].timeout_seconds == 120

    def test_execute_on_unknown_session(self, client):
        resp = client.post("/api/terminal/nope/execute", json={"command": "ls"})
        assert resp.status_code == 404

    @pytest.mark.parametrize(
        "payload",
        [
            {"command": ""},
            {"command": "x" * 10001},
            {"command": "ls", "language": "ruby"},
            {"command": "ls", "timeout_ms": 999},
            {"command": "ls", "timeout_ms": 300001},
            {},
        ],
    )
    def test_execute_rejects_invalid_body(self, client, payload):
        session_id = create_session(client)["session_id"]

        resp = client.post(f"/api/terminal/{session_id}/execute", json=payload)

        assert resp.status_code == 422

    def test_execute_rejects_blank_command(self, client):
        session_id = create_session(client)["session_id"]

        resp = client.post(f"/api/terminal/{session_id}/execute", json={"command": "   "})

        assert resp.status_code == 400
        assert resp.json()["error"]["code"] == "validation_error"

    def test_cd_and_export_persist_across_commands(self, client, adapter):
        session_id = create_session(client)["session_id"]

        for command in ("cd /tmp", "export FOO=bar", "ls"):
            resp = client.post(f"/api/terminal/{session_id}/execute", json={"command": command})
            assert resp.status_code == 202
        wait_for_history(client, session_id, 3)

        assert adapter.calls[-1].command == "ls"
        assert adapter.calls[-1].working_dir == "/tmp"
        assert adapter.created[0].env == {"FOO": "bar"}


class TestAdmin:
    def test_stats(self, client):
        first = create_session(client)["session_id"]
        create_session(client)
        client.post(f"/api/terminal/{first}/execute", json={"command": "echo hi"})
        wait_for_history(client, first, 1)

        stats = client.get("/api/terminal/stats").json()

        assert stats["total_sessions"] == 2
        assert stats["total_commands"] == 1
        assert stats["connected_clients"] == 0
        assert stats["destroyed_sessions"] == 0

    def test_cleanup_reports_swept_sessions(self, client, manager):
        stale = create_session(client)["session_id"]
        fresh = create_session(client)["session_id"]
        manager.registry.peek(stale).last_activity_at = time.time() - 3600

        resp = client.post("/api/terminal/cleanup")

        assert resp.status_code == 200
        body = resp.json()
        assert body["cleaned_sessions"] == 1
        assert body["errors"] == []
        assert client.get(f"/api/terminal/sessions/{stale}").status_code == 404
        assert client.get(f"/api/terminal/sessions/{fresh}").status_code == 200


class TestAuth:
    def test_api_key_required_when_configured(self, monkeypatch, manager):
        monkeypatch.setenv("SANDTERM_API_KEY", "s3cret")
        reset_settings()

        with TestClient(create_app(manager)) as client:
            missing = client.post("/api/terminal/sessions")
            wrong = client.post("/api/terminal/sessions", headers={"X-API-Key": "nope"})
            ok = client.post("/api/terminal/sessions", headers={"X-API-Key": "s3cret"})
            health = client.get("/health")

        assert missing.status_code == 401
        assert missing.json()["error"]["code"] == "authentication_error"
        assert wrong.status_code == 401
        assert ok.status_code == 201
        assert health.status_code == 200

    def test_stream_accepts_key_as_query_param(self, monkeypatch, manager):
        monkeypatch.setenv("SANDTERM_API_KEY", "s3cret")
        reset_settings()

        with TestClient(create_app(manager)) as client:
            anonymous = client.get("/api/terminal/missing/stream")
            keyed = client.get("/api/terminal/missing/stream", params={"api_key": "s3cret"})

        assert anonymous.status_code == 401
        # Authenticated, then rejected for the unknown session
        assert keyed.status_code == 404


class TestStream:
    @pytest.mark.asyncio
    async def test_stream_unknown_session(self, async_client):
        resp = await async_client.get("/api/terminal/missing/stream")

        assert resp.status_code == 404
        assert resp.json()["error"]["code"] == "session_not_found"

    @pytest.mark.asyncio
    async def test_stream_delivers_events_until_destroyed(self, manager):
        session = await manager.create_session()

        response = await terminal.stream_session(session.session_id, manager=manager, api_key=None)

        assert response.media_type == "text/event-stream"
        assert response.headers["cache-control"] == "no-cache"
        assert response.headers["x-accel-buffering"] == "no"
        assert manager.hub.subscriber_count(session.session_id) == 0

        frames = response.body_iterator
        connected = await frames.__anext__()
        assert manager.hub.subscriber_count(session.session_id) == 1
        manager.send_heartbeat()
        await manager.destroy_session(session.session_id)
        rest = [frame async for frame in frames]

        events = parse_frames([connected] + rest)
        assert [name for name, _ in events] == ["connected", "heartbeat", "session_destroyed"]
        assert events[0][1]["sandbox_id"] == session.sandbox_id

    @pytest.mark.asyncio
    async def test_unread_stream_leaves_no_subscriber(self, manager):
        session = await manager.create_session()

        await terminal.stream_session(session.session_id, manager=manager, api_key=None)

        assert manager.hub.subscriber_count(session.session_id) == 0
        assert manager.hub.connected_clients == 0

    @pytest.mark.asyncio
    async def test_stream_of_session_destroyed_before_first_read_is_empty(self, manager):
        session = await manager.create_session()
        response = await terminal.stream_session(session.session_id, manager=manager, api_key=None)

        await manager.destroy_session(session.session_id)
        frames = [frame async for frame in response.body_iterator]

        assert frames == []
        assert manager.hub.connected_clients == 0


class TestLifespan:
    def test_default_manager_is_built_off_the_event_loop(self, monkeypatch, manager):
        calls = []

        def build_manager():
            try:
                asyncio.get_running_loop()
                calls.append("event loop")
            except RuntimeError:
                calls.append("worker thread")
            return manager

        monkeypatch.setattr(app_module, "get_terminal_manager", build_manager)

        with TestClient(create_app()) as client:
            assert client.get("/api/terminal/stats").status_code == 200

        assert calls == ["worker thread"]
