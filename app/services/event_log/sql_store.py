"""SQL-backed durable event log: one row per event, positions per stream."""

import json
import uuid
from datetime import datetime, timezone

import structlog
from sqlalchemy import func, select, text
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import async_sessionmaker

from app.core.database import StreamEvent
from app.core.exceptions import EventLogUnavailableError
from app.services.event_log.base import AppendResult, Direction, EventLog, NewEvent, StoredEvent

logger = structlog.get_logger()

STREAM_CREATED = "stream_created"
_APPEND_ATTEMPTS = 3  # concurrent writers may race for the same position


def _to_stored(row: StreamEvent) -> StoredEvent:
    created = row.created_at
    if created is not None and created.tzinfo is None:
        created = created.replace(tzinfo=timezone.utc)
    return StoredEvent(
        id=row.id,
        type=row.event_type,
        data=json.loads(row.data_json) if row.data_json else {},
        metadata=json.loads(row.metadata_json) if row.metadata_json else {},
        position=row.position,
        timestamp=created.isoformat() if created else "",
    )


class SqlEventLog(EventLog):
    def __init__(self, session_factory: async_sessionmaker):
        self._session_factory = session_factory

    async def append(self, stream_id: str, event: NewEvent) -> AppendResult:
        """Append an event at the next free position of the stream."""
        event_id = str(uuid.uuid4())
        for attempt in range(1, _APPEND_ATTEMPTS + 1):
            try:
                async with self._session_factory() as session:
                    last = await session.scalar(
                        select(func.max(StreamEvent.position)).where(StreamEvent.stream_id == stream_id)
                    )
                    position = 0 if last is None else last + 1
                    session.add(StreamEvent(
                        id=event_id,
                        stream_id=stream_id,
                        position=position,
                        event_type=event.type,
                        data_json=json.dumps(event.data),
                        metadata_json=json.dumps(event.metadata) if event.metadata else None,
                        created_at=datetime.now(timezone.utc),
                    ))
                    await session.commit()
                return AppendResult(event_id=event_id, position=position)
            except IntegrityError:
                logger.debug("event_log_append_conflict", stream=stream_id, attempt=attempt)
            except SQLAlchemyError as e:
                raise EventLogUnavailableError(f"Append to {stream_id} failed: {e}")

        raise EventLogUnavailableError(
            f"Append to {stream_id} failed after {_APPEND_ATTEMPTS} position conflicts."
        )

    async def read(
        self,
        stream_id: str,
        from_position: int | None = None,
        direction: Direction = "forward",
        max_count: int = 100,
    ) -> list[StoredEvent]:
        query = select(StreamEvent).where(StreamEvent.stream_id == stream_id)
        if direction == "forward":
            query = query.where(StreamEvent.position >= (from_position or 0))
            query = query.order_by(StreamEvent.position.asc())
        else:
            if from_position is not None:
                query = query.where(StreamEvent.position <= from_position)
            query = query.order_by(StreamEvent.position.desc())

        try:
            async with self._session_factory() as session:
                result = await session.execute(query.limit(max_count))
                rows = list(result.scalars().all())
        except SQLAlchemyError as e:
            raise EventLogUnavailableError(f"Read from {stream_id} failed: {e}")

        return [_to_stored(row) for row in rows]

    async def create_stream(self, stream_id: str, description: str = "", tags: list[str] | None = None) -> bool:
        existing = await self.read(stream_id, max_count=1)
        if existing:
            return False

        await self.append(
            stream_id,
            NewEvent(
                type=STREAM_CREATED,
                data={"name": stream_id, "description": description, "tags": tags or []},
                metadata={"owner": "system"},
            ),
        )
        logger.info("event_stream_created", stream=stream_id)
        return True

    async def health_check(self) -> bool:
        try:
            async with self._session_factory() as session:
                await session.execute(text("SELECT 1"))
            return True
        except SQLAlchemyError:
            return False
