"""Status change detector: turns probe samples into sparse transition records."""

import asyncio
import uuid
from datetime import datetime

import structlog

from app.services.event_log.base import EventLog, NewEvent
from app.services.uptime.models import DOWN, STATUS_CHANGE_EVENT, Status, UptimeRecord
from app.services.uptime.projection import ProjectionStore

logger = structlog.get_logger()


def stream_name(prefix: str, service_name: str) -> str:
    return f"{prefix}-{service_name}"


class StatusChangeDetector:
    """Records a transition whenever a probe result differs from the cached status.

    Steady-state samples are not recorded. Durable appends are fire-and-forget:
    a failed append is logged and never retried, so the record may stay
    invisible to other instances.
    """

    def __init__(self, store: ProjectionStore, event_log: EventLog, stream_prefix: str = "service-uptime"):
        self._store = store
        self._event_log = event_log
        self._stream_prefix = stream_prefix
        self._pending: set[asyncio.Task] = set()

    @property
    def pending_writes(self) -> int:
        return len(self._pending)

    def on_probe_result(
        self, service_name: str, status: Status, metadata: dict | None, now: datetime
    ) -> UptimeRecord | None:
        """Apply one probe result. Returns the new record on a transition, else None."""
        projection = self._store.get(service_name)
        previous_status = projection.current_status
        if status == previous_status:
            return None

        if projection.records:
            last = projection.records[-1]
            # A merged record from another instance may be ahead of the local clock
            if last.timestamp > now:
                logger.info("status_change_clock_behind", service=service_name, newest=last.timestamp.isoformat())
                now = last.timestamp
            if last.duration is None:
                last.duration = (now - last.timestamp).total_seconds() * 1000
                self._persist(last)

        record_id = f"{service_name}_{int(now.timestamp() * 1000)}"
        if record_id in projection.record_ids:
            record_id = f"{record_id}_{uuid.uuid4().hex[:8]}"

        record = UptimeRecord(
            id=record_id,
            service_name=service_name,
            status=status,
            timestamp=now,
            metadata={k: v for k, v in (metadata or {}).items() if v is not None},
        )
        if not self._store.insert(record):
            logger.warning("status_change_not_retained", service=service_name, record_id=record_id)
        self._persist(record)

        self._store.sync_current_status(service_name)
        if projection.start_time is None:
            projection.start_time = now

        log = logger.warning if status == DOWN else logger.info
        log("service_status_changed", service=service_name, previous=previous_status, status=status)
        return record

    def _persist(self, record: UptimeRecord) -> None:
        """Issue a durable append without awaiting it."""
        event = NewEvent(
            type=STATUS_CHANGE_EVENT,
            data=record.to_event_data(),
            metadata={
                "service": record.service_name,
                "status": record.status,
                "timestamp": record.timestamp.isoformat(),
            },
        )
        task = asyncio.get_running_loop().create_task(
            self._append(stream_name(self._stream_prefix, record.service_name), event)
        )
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _append(self, stream: str, event: NewEvent) -> None:
        try:
            await self._event_log.append(stream, event)
        except Exception:
            logger.exception("uptime_record_persist_failed", stream=stream, record_id=event.data.get("id"))

    async def drain(self, timeout: float) -> int:
        """Wait up to ``timeout`` seconds for in-flight appends. Returns how many are still pending."""
        if not self._pending:
            return 0
        _, still_pending = await asyncio.wait(set(self._pending), timeout=timeout)
        return len(still_pending)
