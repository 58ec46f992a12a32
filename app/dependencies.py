from fastapi import Request

from app.core.exceptions import UptimeError
from app.services.event_log.base import EventLog
from app.services.uptime.service import UptimeTrackingService


def get_uptime_service(request: Request) -> UptimeTrackingService:
    """Return the uptime tracking service stored on app state during lifespan."""
    service = getattr(request.app.state, "uptime_service", None)
    if service is None:
        raise UptimeError(
            code="uptime_unavailable",
            message="Uptime tracking is not initialized.",
            status=503,
        )
    return service


def get_event_log(request: Request) -> EventLog:
    """Return the durable event log stored on app state during lifespan."""
    return request.app.state.event_log
