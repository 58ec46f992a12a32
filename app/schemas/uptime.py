from datetime import datetime

from pydantic import BaseModel


class UptimeRecordOut(BaseModel):
    id: str
    service_name: str
    status: str  # "up", "down", or "degraded"
    timestamp: datetime
    duration_ms: float | None = None
    metadata: dict = {}


class ServiceUptimeSummary(BaseModel):
    service_name: str
    current_status: str
    uptime_percentage: float
    total_uptime: str  # e.g. "2h 15m"
    total_downtime: str
    last_status_change: datetime
    is_currently_up: bool


class ServiceUptimeTimeline(BaseModel):
    service_name: str
    total_uptime_ms: float
    total_downtime_ms: float
    uptime_percentage: float
    current_status: str
    last_status_change: datetime
    timeline: list[UptimeRecordOut]
    start_time: datetime
    end_time: datetime


class UptimeSummaryResponse(BaseModel):
    timestamp: datetime
    period: str
    services: list[ServiceUptimeSummary]


class UptimeServiceResponse(BaseModel):
    timestamp: datetime
    period: str
    service: ServiceUptimeSummary


class UptimeTimelineResponse(BaseModel):
    timestamp: datetime
    period: str
    timeline: ServiceUptimeTimeline


class UptimeStatusResponse(BaseModel):
    timestamp: datetime
    services: dict[str, str]  # service_name → status


class MemoryStats(BaseModel):
    total_records: int
    records_per_service: dict[str, int]
    memory_estimate: str


class UptimeStatsResponse(BaseModel):
    timestamp: datetime
    memory: MemoryStats


class ServiceCheckResult(BaseModel):
    service: str
    status: str
    timestamp: datetime
    metadata: dict = {}


class UptimeCheckResponse(BaseModel):
    timestamp: datetime
    message: str
    results: list[ServiceCheckResult]


class StreamCreateResult(BaseModel):
    service: str
    stream_name: str
    success: bool
    created: bool = False
    error: str | None = None


class StreamCreateResponse(BaseModel):
    timestamp: datetime
    message: str
    results: list[StreamCreateResult]


class ResetResponse(BaseModel):
    timestamp: datetime
    message: str
