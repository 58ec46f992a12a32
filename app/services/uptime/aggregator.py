"""Uptime aggregation: timelines and summaries over a time window.

Everything here is a pure function of (projections, now). The newest record
is usually open-ended; its duration is inferred up to ``now``, so repeated
queries report a growing live interval.
"""

import math
from datetime import datetime, timedelta

from app.services.uptime.models import DOWN, TRACKED_SERVICES, UP, Summary, Timeline, UptimeRecord
from app.services.uptime.projection import ProjectionStore

ALL_TIME = -1
MAX_WINDOW_HOURS = 8760  # one year; anything longer means all records


def _select_records(records: list[UptimeRecord], window_hours: float, now: datetime) -> list[UptimeRecord]:
    if window_hours == ALL_TIME or window_hours > MAX_WINDOW_HOURS:
        # No cutoff, so the earliest record survives regardless of its age
        return list(records)
    cutoff = now - timedelta(hours=window_hours)
    return [r for r in records if r.timestamp >= cutoff]


def _inferred_duration(records: list[UptimeRecord], index: int, now: datetime) -> float:
    """Duration in ms for records[index]; 0 when it cannot be inferred sensibly."""
    record = records[index]
    if record.duration is not None:
        duration = record.duration
    elif index + 1 < len(records):
        duration = (records[index + 1].timestamp - record.timestamp).total_seconds() * 1000
    else:
        duration = (now - record.timestamp).total_seconds() * 1000

    if not isinstance(duration, (int, float)) or not math.isfinite(duration) or duration < 0:
        return 0.0
    return float(duration)


def get_timeline(
    store: ProjectionStore, service_name: str, window_hours: float, now: datetime
) -> Timeline | None:
    """Uptime/downtime totals for one service. None when the window holds no records."""
    projection = store.find(service_name)
    if projection is None or not projection.records:
        return None

    records = _select_records(projection.records, window_hours, now)
    if not records:
        return None

    total_uptime = 0.0
    total_downtime = 0.0
    for i, record in enumerate(records):
        duration = _inferred_duration(records, i, now)
        if record.status == UP:
            total_uptime += duration
        else:
            total_downtime += duration

    total = total_uptime + total_downtime
    percentage = total_uptime / total * 100 if total > 0 else 0.0

    start_time = records[0].timestamp
    return Timeline(
        service_name=service_name,
        total_uptime=total_uptime,
        total_downtime=total_downtime,
        uptime_percentage=percentage,
        current_status=projection.current_status or DOWN,
        last_status_change=projection.last_status_change or start_time,
        records=records,
        start_time=start_time,
        end_time=records[-1].timestamp,
    )


def get_summary(
    store: ProjectionStore, service_name: str, window_hours: float, now: datetime
) -> Summary | None:
    timeline = get_timeline(store, service_name, window_hours, now)
    if timeline is None:
        return None

    return Summary(
        service_name=service_name,
        current_status=timeline.current_status,
        uptime_percentage=timeline.uptime_percentage,
        total_uptime=format_duration(timeline.total_uptime),
        total_downtime=format_duration(timeline.total_downtime),
        last_status_change=timeline.last_status_change,
        is_currently_up=timeline.current_status == UP,
    )


def get_all_summaries(
    store: ProjectionStore,
    window_hours: float,
    now: datetime,
    services: tuple[str, ...] = TRACKED_SERVICES,
) -> list[Summary]:
    """Summaries for every tracked service that has data in the window."""
    summaries = []
    for service_name in services:
        summary = get_summary(store, service_name, window_hours, now)
        if summary is not None:
            summaries.append(summary)
    return summaries


def format_duration(milliseconds: float) -> str:
    """Render ms as '1d 2h 3m', '2h 3m', '3m 4s' or '4s' (largest non-zero unit first)."""
    seconds = int(max(0.0, milliseconds) // 1000)
    minutes = seconds // 60
    hours = minutes // 60
    days = hours // 24

    if days > 0:
        return f"{days}d {hours % 24}h {minutes % 60}m"
    if hours > 0:
        return f"{hours}h {minutes % 60}m"
    if minutes > 0:
        return f"{minutes}m {seconds % 60}s"
    return f"{seconds}s"


def format_period(hours: float) -> str:
    """Human label for a query window, e.g. '30 minutes', '2 days', 'All time'."""
    if hours == ALL_TIME:
        return "All time"
    if hours < 1:
        return f"{round(hours * 60)} minutes"
    if hours == 1:
        return "1 hour"
    if hours < 24:
        return f"{hours:g} hours"

    for unit_hours, unit in ((8760, "year"), (720, "month"), (168, "week"), (24, "day")):
        if hours >= unit_hours:
            count = round(hours / unit_hours)
            return f"{count} {unit}{'s' if count > 1 else ''}"
    return f"{hours:g} hours"
