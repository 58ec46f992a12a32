"""Health probes for the tracked services.

A probe never raises: connection failures and timeouts resolve to ``down``
(or ``degraded`` for the event log) with the error in the metadata.
"""

import time
from typing import Protocol

import httpx
import structlog
import websockets

from app.services.uptime.models import DEGRADED, DOWN, UP, ProbeResult

logger = structlog.get_logger()

# (max response ms, grade, status); first match wins
HTTP_GRADES = ((100, "excellent", UP), (500, "good", UP))
EVENTLOG_GRADES = ((50, "excellent", UP), (100, "good", UP), (500, "acceptable", UP))


def _elapsed_ms(start: float) -> int:
    return round((time.perf_counter() - start) * 1000)


def _grade(response_ms: int, grades: tuple) -> tuple[str, str]:
    for limit, grade, status in grades:
        if response_ms <= limit:
            return grade, status
    return "slow", DEGRADED


class Probe(Protocol):
    async def probe(self, service_name: str) -> ProbeResult: ...


class HttpProbe:
    """GET {base_url}/health; graded by response time."""

    def __init__(self, base_url: str, http_client: httpx.AsyncClient | None = None, timeout: float = 2.0):
        self.base_url = base_url.rstrip("/")
        self._client = http_client or httpx.AsyncClient(timeout=timeout)

    async def probe(self, service_name: str) -> ProbeResult:
        start = time.perf_counter()
        try:
            response = await self._client.get(f"{self.base_url}/health")
        except httpx.HTTPError as e:
            return ProbeResult(
                status=DOWN,
                metadata={"response_time_ms": _elapsed_ms(start), "error": str(e) or "Connection failed"},
            )

        response_ms = _elapsed_ms(start)
        if not response.is_success:
            return ProbeResult(status=DOWN, metadata={"response_time_ms": response_ms, "error": f"HTTP {response.status_code}"})

        grade, status = _grade(response_ms, HTTP_GRADES)
        return ProbeResult(status=status, metadata={"response_time_ms": response_ms, "performance_grade": grade})


class WebSocketProbe:
    """Open (and immediately close) a WebSocket to {base_url}/ws/health."""

    def __init__(self, base_url: str, timeout: float = 2.0):
        self.base_url = base_url.rstrip("/")
        self._timeout = timeout

    async def probe(self, service_name: str) -> ProbeResult:
        start = time.perf_counter()
        try:
            async with websockets.connect(f"{self.base_url}/ws/health", open_timeout=self._timeout):
                pass
        except TimeoutError:
            return ProbeResult(
                status=DOWN, metadata={"response_time_ms": _elapsed_ms(start), "error": "WebSocket connection timeout"}
            )
        except Exception as e:
            logger.debug("websocket_probe_failed", error=str(e))
            return ProbeResult(
                status=DOWN, metadata={"response_time_ms": _elapsed_ms(start), "error": "WebSocket connection failed"}
            )

        response_ms = _elapsed_ms(start)
        grade = "excellent" if response_ms <= 100 else "good"
        return ProbeResult(status=UP, metadata={"response_time_ms": response_ms, "performance_grade": grade})


class EventLogProbe:
    """GET {base_url}/health/eventlog; any failure counts as degraded."""

    def __init__(self, base_url: str, http_client: httpx.AsyncClient | None = None, timeout: float = 2.0):
        self.base_url = base_url.rstrip("/")
        self._client = http_client or httpx.AsyncClient(timeout=timeout)

    async def probe(self, service_name: str) -> ProbeResult:
        start = time.perf_counter()
        try:
            response = await self._client.get(f"{self.base_url}/health/eventlog")
        except httpx.HTTPError as e:
            return ProbeResult(
                status=DEGRADED,
                metadata={"response_time_ms": _elapsed_ms(start), "error": str(e) or "Connection failed"},
            )

        response_ms = _elapsed_ms(start)
        metadata: dict = {"response_time_ms": response_ms}
        if not response.is_success:
            metadata["error"] = f"HTTP {response.status_code}"
            return ProbeResult(status=DEGRADED, metadata=metadata)

        try:
            body = response.json()
        except ValueError:
            body = {}
        if not isinstance(body, dict) or body.get("status") != "healthy" or not body.get("connected"):
            health = body.get("status") if isinstance(body, dict) else None
            metadata["error"] = f"Event log not healthy: {health}"
            return ProbeResult(status=DEGRADED, metadata=metadata)

        grade, status = _grade(response_ms, EVENTLOG_GRADES)
        metadata["performance_grade"] = grade
        return ProbeResult(status=status, metadata=metadata)


def build_default_probes(
    http_url: str,
    ws_url: str,
    eventlog_url: str,
    http_client: httpx.AsyncClient | None = None,
    timeout: float = 2.0,
) -> dict[str, Probe]:
    """Probe per tracked service, keyed by service name."""
    return {
        "http": HttpProbe(http_url, http_client=http_client, timeout=timeout),
        "websocket": WebSocketProbe(ws_url, timeout=timeout),
        "database": EventLogProbe(eventlog_url, http_client=http_client, timeout=timeout),
    }
