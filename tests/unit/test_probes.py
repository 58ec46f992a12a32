"""Unit tests for the HTTP, WebSocket and event-log probes."""

from unittest.mock import MagicMock, patch

import httpx
import pytest

from app.services.uptime.probes import EventLogProbe, HttpProbe, WebSocketProbe, build_default_probes


def _client(handler) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


def _respond(status_code: int = 200, json: dict | None = None):
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(status_code, json=json if json is not None else {"status": "ok"})

    return handler


def _refuse(request: httpx.Request) -> httpx.Response:
    raise httpx.ConnectError("Connection refused", request=request)


def _elapsed(ms: int):
    return patch("app.services.uptime.probes._elapsed_ms", return_value=ms)


class TestHttpProbe:
    async def test_fast_response_is_excellent(self):
        probe = HttpProbe("http://svc", http_client=_client(_respond()))
        with _elapsed(40):
            result = await probe.probe("http")
        assert result.status == "up"
        assert result.metadata == {"response_time_ms": 40, "performance_grade": "excellent"}

    async def test_medium_response_is_good(self):
        probe = HttpProbe("http://svc", http_client=_client(_respond()))
        with _elapsed(300):
            result = await probe.probe("http")
        assert result.status == "up"
        assert result.metadata["performance_grade"] == "good"

    async def test_slow_response_is_degraded(self):
        probe = HttpProbe("http://svc", http_client=_client(_respond()))
        with _elapsed(800):
            result = await probe.probe("http")
        assert result.status == "degraded"
        assert result.metadata["performance_grade"] == "slow"

    async def test_error_status_is_down(self):
        probe = HttpProbe("http://svc", http_client=_client(_respond(502)))
        result = await probe.probe("http")
        assert result.status == "down"
        assert result.metadata["error"] == "HTTP 502"

    async def test_connection_failure_is_down(self):
        probe = HttpProbe("http://svc", http_client=_client(_refuse))
        result = await probe.probe("http")
        assert result.status == "down"
        assert "Connection refused" in result.metadata["error"]

    async def test_requests_health_path(self):
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(str(request.url))
            return httpx.Response(200, json={})

        probe = HttpProbe("http://svc:8000/", http_client=_client(handler))
        await probe.probe("http")
        assert seen == ["http://svc:8000/health"]


class TestEventLogProbe:
    async def test_healthy(self):
        probe = EventLogProbe("http://svc", http_client=_client(_respond(json={"status": "healthy", "connected": True})))
        with _elapsed(20):
            result = await probe.probe("database")
        assert result.status == "up"
        assert result.metadata["performance_grade"] == "excellent"

    @pytest.mark.parametrize("ms,grade,status", [(80, "good", "up"), (400, "acceptable", "up"), (900, "slow", "degraded")])
    async def test_grades(self, ms, grade, status):
        probe = EventLogProbe("http://svc", http_client=_client(_respond(json={"status": "healthy", "connected": True})))
        with _elapsed(ms):
            result = await probe.probe("database")
        assert result.status == status
        assert result.metadata["performance_grade"] == grade

    async def test_unhealthy_body_is_degraded(self):
        probe = EventLogProbe("http://svc", http_client=_client(_respond(json={"status": "unhealthy", "connected": False})))
        result = await probe.probe("database")
        assert result.status == "degraded"
        assert result.metadata["error"] == "Event log not healthy: unhealthy"

    async def test_error_status_is_degraded(self):
        probe = EventLogProbe("http://svc", http_client=_client(_respond(500)))
        result = await probe.probe("database")
        assert result.status == "degraded"
        assert result.metadata["error"] == "HTTP 500"

    async def test_connection_failure_is_degraded(self):
        probe = EventLogProbe("http://svc", http_client=_client(_refuse))
        result = await probe.probe("database")
        assert result.status == "degraded"
        assert "error" in result.metadata


class TestWebSocketProbe:
    async def test_connect_is_up(self):
        probe = WebSocketProbe("ws://svc")
        with patch("app.services.uptime.probes.websockets.connect", return_value=MagicMock()) as connect:
            result = await probe.probe("websocket")
        connect.assert_called_once_with("ws://svc/ws/health", open_timeout=2.0)
        assert result.status == "up"
        assert "response_time_ms" in result.metadata

    async def test_timeout_is_down(self):
        probe = WebSocketProbe("ws://svc", timeout=0.1)
        with patch("app.services.uptime.probes.websockets.connect", side_effect=TimeoutError()):
            result = await probe.probe("websocket")
        assert result.status == "down"
        assert result.metadata["error"] == "WebSocket connection timeout"

    async def test_refused_is_down(self):
        probe = WebSocketProbe("ws://svc")
        with patch("app.services.uptime.probes.websockets.connect", side_effect=OSError("refused")):
            result = await probe.probe("websocket")
        assert result.status == "down"
        assert result.metadata["error"] == "WebSocket connection failed"


def test_default_probes_cover_tracked_services():
    probes = build_default_probes("http://a", "ws://a", "http://a", http_client=httpx.AsyncClient())
    assert set(probes) == {"http", "websocket", "database"}
    assert isinstance(probes["database"], EventLogProbe)
