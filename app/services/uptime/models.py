"""Uptime domain types and query results."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Literal

Status = Literal["up", "down", "degraded"]

UP = "up"
DOWN = "down"
DEGRADED = "degraded"
VALID_STATUSES = frozenset({UP, DOWN, DEGRADED})

# Services whose uptime is tracked
TRACKED_SERVICES = ("http", "websocket", "database")

STATUS_CHANGE_EVENT = "service_status_change"


def _parse_timestamp(value: str) -> datetime:
    ts = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=timezone.utc)
    return ts


@dataclass
class UptimeRecord:
    """One observed status interval. ``duration`` is in milliseconds."""

    id: str
    service_name: str
    status: Status
    timestamp: datetime
    duration: float | None = None
    metadata: dict = field(default_factory=dict)

    def to_event_data(self) -> dict:
        """Wire form stored in the durable log."""
        data = {
            "id": self.id,
            "serviceName": self.service_name,
            "status": self.status,
            "timestamp": self.timestamp.isoformat(),
        }
        if self.duration is not None:
            data["duration"] = self.duration
        if self.metadata:
            data["metadata"] = self.metadata
        return data

    @classmethod
    def from_event_data(cls, data: dict, fallback_id: str) -> "UptimeRecord":
        """Parse the wire form. Raises ValueError when a required field is missing or invalid."""
        if not isinstance(data, dict):
            raise ValueError("event data is not an object")

        missing = [key for key in ("serviceName", "status", "timestamp") if not data.get(key)]
        if missing:
            raise ValueError(f"missing required fields: {', '.join(missing)}")

        status = data["status"]
        if status not in VALID_STATUSES:
            raise ValueError(f"unknown status: {status}")

        try:
            timestamp = _parse_timestamp(str(data["timestamp"]))
        except ValueError:
            raise ValueError(f"unparseable timestamp: {data['timestamp']}")

        duration = data.get("duration")
        if duration is not None:
            try:
                duration = float(duration)
            except (TypeError, ValueError):
                duration = None

        metadata = data.get("metadata")
        return cls(
            id=str(data.get("id") or fallback_id),
            service_name=str(data["serviceName"]),
            status=status,
            timestamp=timestamp,
            duration=duration,
            metadata=metadata if isinstance(metadata, dict) else {},
        )


@dataclass
class ServiceProjection:
    """In-memory, bounded view of one service's status history."""

    service_name: str
    records: list[UptimeRecord] = field(default_factory=list)
    current_status: Status | None = None
    last_status_change: datetime | None = None
    start_time: datetime | None = None
    tail_cursor: int = -1  # last consumed log position; -1 = nothing consumed
    consecutive_tail_errors: int = 0
    record_ids: set[str] = field(default_factory=set, repr=False)


@dataclass
class Timeline:
    service_name: str
    total_uptime: float  # ms
    total_downtime: float  # ms
    uptime_percentage: float
    current_status: Status
    last_status_change: datetime
    records: list[UptimeRecord]
    start_time: datetime
    end_time: datetime


@dataclass
class Summary:
    service_name: str
    current_status: Status
    uptime_percentage: float
    total_uptime: str
    total_downtime: str
    last_status_change: datetime
    is_currently_up: bool


@dataclass
class ProbeResult:
    status: Status
    metadata: dict = field(default_factory=dict)
