from datetime import datetime, timezone

from fastapi import APIRouter, Depends, Query

from app.core.exceptions import InvalidWindowError, NotFoundError
from app.dependencies import get_uptime_service
from app.schemas.uptime import (
    MemoryStats,
    ResetResponse,
    ServiceCheckResult,
    ServiceUptimeSummary,
    ServiceUptimeTimeline,
    StreamCreateResponse,
    StreamCreateResult,
    UptimeCheckResponse,
    UptimeRecordOut,
    UptimeServiceResponse,
    UptimeStatsResponse,
    UptimeStatusResponse,
    UptimeSummaryResponse,
    UptimeTimelineResponse,
)
from app.services.uptime.aggregator import ALL_TIME, format_period
from app.services.uptime.models import Summary, Timeline
from app.services.uptime.service import UptimeTrackingService

router = APIRouter(prefix="/api/uptime")

HOURS_QUERY = Query(24, description="Window in hours (use -1 for all time)")


def _validate_hours(hours: float) -> float:
    if hours != ALL_TIME and hours <= 0:
        raise InvalidWindowError(f"hours must be positive or -1, got {hours:g}")
    return hours


def _summary_out(summary: Summary) -> ServiceUptimeSummary:
    return ServiceUptimeSummary(
        service_name=summary.service_name,
        current_status=summary.current_status,
        uptime_percentage=round(summary.uptime_percentage, 4),
        total_uptime=summary.total_uptime,
        total_downtime=summary.total_downtime,
        last_status_change=summary.last_status_change,
        is_currently_up=summary.is_currently_up,
    )


def _timeline_out(timeline: Timeline) -> ServiceUptimeTimeline:
    return ServiceUptimeTimeline(
        service_name=timeline.service_name,
        total_uptime_ms=timeline.total_uptime,
        total_downtime_ms=timeline.total_downtime,
        uptime_percentage=round(timeline.uptime_percentage, 4),
        current_status=timeline.current_status,
        last_status_change=timeline.last_status_change,
        timeline=[
            UptimeRecordOut(
                id=r.id,
                service_name=r.service_name,
                status=r.status,
                timestamp=r.timestamp,
                duration_ms=r.duration,
                metadata=r.metadata,
            )
            for r in timeline.records
        ],
        start_time=timeline.start_time,
        end_time=timeline.end_time,
    )


def _now() -> datetime:
    return datetime.now(timezone.utc)


@router.get("/summary")
async def uptime_summary(
    hours: float = HOURS_QUERY,
    service: UptimeTrackingService = Depends(get_uptime_service),
) -> UptimeSummaryResponse:
    """Uptime summary for every tracked service with data in the window."""
    _validate_hours(hours)
    summaries = service.get_all_service_uptime_summaries(hours)
    return UptimeSummaryResponse(
        timestamp=_now(),
        period=format_period(hours),
        services=[_summary_out(s) for s in summaries],
    )


@router.get("/service/{service_name}")
async def service_uptime(
    service_name: str,
    hours: float = HOURS_QUERY,
    service: UptimeTrackingService = Depends(get_uptime_service),
) -> UptimeServiceResponse:
    _validate_hours(hours)
    summary = service.get_service_uptime_summary(service_name, hours)
    if summary is None:
        raise NotFoundError(f"No uptime data found for service: {service_name}")
    return UptimeServiceResponse(timestamp=_now(), period=format_period(hours), service=_summary_out(summary))


@router.get("/timeline/{service_name}")
async def service_timeline(
    service_name: str,
    hours: float = HOURS_QUERY,
    service: UptimeTrackingService = Depends(get_uptime_service),
) -> UptimeTimelineResponse:
    """Full record timeline with inferred totals for one service."""
    _validate_hours(hours)
    timeline = service.get_service_uptime_timeline(service_name, hours)
    if timeline is None:
        raise NotFoundError(f"No timeline data found for service: {service_name}")
    return UptimeTimelineResponse(timestamp=_now(), period=format_period(hours), timeline=_timeline_out(timeline))


@router.get("/status")
async def current_statuses(
    service: UptimeTrackingService = Depends(get_uptime_service),
) -> UptimeStatusResponse:
    return UptimeStatusResponse(timestamp=_now(), services=service.get_current_service_statuses())


@router.get("/stats")
async def memory_stats(
    service: UptimeTrackingService = Depends(get_uptime_service),
) -> UptimeStatsResponse:
    return UptimeStatsResponse(timestamp=_now(), memory=MemoryStats(**service.get_memory_stats()))


@router.post("/check")
async def manual_check(
    service: UptimeTrackingService = Depends(get_uptime_service),
) -> UptimeCheckResponse:
    """Probe every service now; transitions are recorded like a timer tick."""
    results = await service.check_now()
    return UptimeCheckResponse(
        timestamp=_now(),
        message="Manual status check completed",
        results=[ServiceCheckResult(**r) for r in results],
    )


@router.post("/create-streams")
async def create_streams(
    service: UptimeTrackingService = Depends(get_uptime_service),
) -> StreamCreateResponse:
    results = await service.create_streams()
    return StreamCreateResponse(
        timestamp=_now(),
        message="Stream creation completed",
        results=[StreamCreateResult(**r) for r in results],
    )


@router.post("/reset")
async def reset_uptime(
    service: UptimeTrackingService = Depends(get_uptime_service),
) -> ResetResponse:
    """Clear in-memory uptime history. The durable log is untouched."""
    service.reset()
    return ResetResponse(timestamp=_now(), message="All uptime tracking data cleared")
