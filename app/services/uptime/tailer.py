"""Stream tailer: merges transitions written by any instance into the local projections."""

import asyncio

import structlog

from app.services.event_log.base import EventLog, StoredEvent
from app.services.uptime.detector import stream_name
from app.services.uptime.models import STATUS_CHANGE_EVENT, UptimeRecord
from app.services.uptime.projection import ProjectionStore

logger = structlog.get_logger()


class StreamTailer:
    """Reads each service stream forward from its saved cursor.

    A stream that fails ``max_errors`` reads in a row is skipped on later
    cycles until its counter is cleared with ``reset_backoff``. Any successful
    read before the threshold resets the counter.
    """

    def __init__(
        self,
        store: ProjectionStore,
        event_log: EventLog,
        stream_prefix: str = "service-uptime",
        max_errors: int = 5,
        batch_size: int = 100,
    ):
        self._store = store
        self._event_log = event_log
        self._stream_prefix = stream_prefix
        self._max_errors = max_errors
        self._batch_size = batch_size

    async def replay(self, service_name: str) -> int:
        """Rebuild a projection from the newest events of its stream (startup).

        Each record is usually written twice (open, then finalized), so pages
        are read backward until ``max_records`` distinct records are covered or
        the stream is exhausted. Returns the number of records held afterwards.
        Read failures are logged and leave the projection empty.
        """
        stream = stream_name(self._stream_prefix, service_name)
        page_size = self._store.max_records
        events: list[StoredEvent] = []
        record_ids: set[str] = set()
        from_position = None
        try:
            while len(record_ids) < self._store.max_records:
                page = await self._event_log.read(
                    stream, from_position=from_position, direction="backward", max_count=page_size
                )
                events.extend(page)
                record_ids.update(
                    str(e.data.get("id") or e.id)
                    for e in page
                    if e.type == STATUS_CHANGE_EVENT and isinstance(e.data, dict)
                )
                if len(page) < page_size or page[-1].position == 0:
                    break
                from_position = page[-1].position - 1
        except Exception:
            logger.warning("uptime_replay_failed", stream=stream, exc_info=True)
            return 0

        events.reverse()
        self._apply(service_name, events)
        loaded = len(self._store.get(service_name).records)
        logger.info("uptime_replayed", service=service_name, records=loaded, cursor=self._store.get(service_name).tail_cursor)
        return loaded

    async def tail_all(self, services: list[str] | tuple[str, ...]) -> dict[str, int]:
        """Run one tail cycle for every service. Streams are read concurrently."""
        counts = await asyncio.gather(*(self.tail_service(svc) for svc in services))
        return dict(zip(services, counts))

    async def tail_service(self, service_name: str) -> int:
        """Read and merge new events for one service. Returns how many records were merged or finalized."""
        projection = self._store.get(service_name)
        stream = stream_name(self._stream_prefix, service_name)

        errors = projection.consecutive_tail_errors
        if errors >= self._max_errors:
            logger.debug("tail_skipped_backoff", stream=stream, errors=errors)
            return 0

        try:
            events = await self._event_log.read(
                stream,
                from_position=projection.tail_cursor + 1,
                direction="forward",
                max_count=self._batch_size,
            )
        except Exception as e:
            projection.consecutive_tail_errors += 1
            errors = projection.consecutive_tail_errors
            if errors >= self._max_errors:
                logger.error("tail_backoff_entered", stream=stream, errors=errors, error=str(e))
            else:
                logger.warning(
                    "tail_read_failed", stream=stream, errors=errors, max_errors=self._max_errors, error=str(e)
                )
            return 0

        merged = self._apply(service_name, events)
        if events:
            logger.debug("tail_read", stream=stream, events=len(events), merged=merged)

        if projection.consecutive_tail_errors > 0:
            projection.consecutive_tail_errors = 0
            logger.info("tail_recovered", stream=stream)
        return merged

    def reset_backoff(self, service_name: str) -> None:
        self._store.get(service_name).consecutive_tail_errors = 0

    def _apply(self, service_name: str, events: list[StoredEvent]) -> int:
        """Merge a batch (ascending positions) and advance the cursor past all of it."""
        if not events:
            return 0

        projection = self._store.get(service_name)
        merged = 0
        for event in events:
            if event.type != STATUS_CHANGE_EVENT:
                continue
            try:
                record = UptimeRecord.from_event_data(event.data, fallback_id=event.id)
            except ValueError as e:
                logger.warning(
                    "malformed_uptime_event_dropped", service=service_name, position=event.position, reason=str(e)
                )
                continue
            if record.service_name != service_name:
                logger.warning(
                    "foreign_uptime_event_dropped",
                    service=service_name,
                    event_service=record.service_name,
                    position=event.position,
                )
                continue
            if self._store.insert(record):
                merged += 1

        projection.tail_cursor = max(projection.tail_cursor, max(e.position for e in events))
        if merged:
            self._store.sync_current_status(service_name)
        return merged
