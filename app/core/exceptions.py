from fastapi import Request
from fastapi.responses import JSONResponse


class UptimeError(Exception):
    """Base exception for uptime tracker errors."""

    def __init__(
        self,
        code: str,
        message: str,
        status: int = 500,
        details: dict | None = None,
    ):
        self.code = code
        self.message = message
        self.status = status
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> dict:
        result = {
            "error": {
                "code": self.code,
                "message": self.message,
                "status": self.status,
            }
        }
        if self.details:
            result["error"]["details"] = self.details
        return result


class NotFoundError(UptimeError):
    def __init__(self, message: str = "Resource not found.", details: dict | None = None):
        super().__init__(code="not_found", message=message, status=404, details=details)


class InvalidWindowError(UptimeError):
    def __init__(self, message: str = "Invalid time window.", details: dict | None = None):
        super().__init__(
            code="invalid_window",
            message=message,
            status=400,
            details=details or {"suggestion": "Use a positive number of hours, or -1 for all time."},
        )


class EventLogUnavailableError(UptimeError):
    def __init__(self, message: str = "Event log is unavailable.", details: dict | None = None):
        super().__init__(code="event_log_unavailable", message=message, status=503, details=details)


async def uptime_error_handler(request: Request, exc: UptimeError) -> JSONResponse:
    """Global exception handler for UptimeError and subclasses."""
    return JSONResponse(status_code=exc.status, content=exc.to_dict())
