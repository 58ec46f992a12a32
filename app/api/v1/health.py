import time

from fastapi import APIRouter, Depends, WebSocket

from app.dependencies import get_event_log
from app.schemas.health import EventLogHealthResponse, HealthResponse
from app.services.event_log.base import EventLog

router = APIRouter()

_start_time = time.monotonic()


@router.get("/health")
async def health_check() -> HealthResponse:
    """Process liveness; target of the http probe."""
    return HealthResponse(status="ok", uptime_seconds=round(time.monotonic() - _start_time, 1))


@router.get("/health/eventlog")
async def event_log_health(event_log: EventLog = Depends(get_event_log)) -> EventLogHealthResponse:
    """Durable event log reachability; target of the database probe."""
    connected = await event_log.health_check()
    return EventLogHealthResponse(status="healthy" if connected else "unhealthy", connected=connected)


@router.websocket("/ws/health")
async def websocket_health(websocket: WebSocket):
    """Accept and close; target of the websocket probe."""
    await websocket.accept()
    await websocket.close()
