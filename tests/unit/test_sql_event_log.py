"""Unit tests for the SQL-backed event log (in-memory SQLite)."""

from unittest.mock import MagicMock

import pytest
from sqlalchemy.exc import OperationalError

from app.core.exceptions import EventLogUnavailableError
from app.services.event_log.base import NewEvent
from app.services.event_log.sql_store import SqlEventLog


@pytest.fixture
def log(session_factory):
    return SqlEventLog(session_factory)


def _event(n: int) -> NewEvent:
    return NewEvent(type="service_status_change", data={"n": n})


async def test_append_assigns_sequential_positions(log):
    first = await log.append("s", _event(0))
    second = await log.append("s", _event(1))
    other = await log.append("t", _event(0))

    assert (first.position, second.position, other.position) == (0, 1, 0)
    assert first.event_id != second.event_id


async def test_forward_read_from_position(log):
    for n in range(5):
        await log.append("s", _event(n))

    events = await log.read("s", from_position=2, direction="forward", max_count=2)

    assert [e.position for e in events] == [2, 3]
    assert [e.data["n"] for e in events] == [2, 3]


async def test_backward_read_newest_first(log):
    for n in range(5):
        await log.append("s", _event(n))

    newest = await log.read("s", direction="backward", max_count=3)
    assert [e.position for e in newest] == [4, 3, 2]

    older = await log.read("s", from_position=1, direction="backward")
    assert [e.position for e in older] == [1, 0]


async def test_read_missing_stream_is_empty(log):
    assert await log.read("nope") == []


async def test_round_trips_metadata_and_timestamp(log):
    result = await log.append("s", NewEvent(type="x", data={"a": 1}, metadata={"owner": "system"}))

    (event,) = await log.read("s")

    assert event.id == result.event_id
    assert event.type == "x"
    assert event.metadata == {"owner": "system"}
    assert event.timestamp.endswith("+00:00")


async def test_create_stream_only_once(log):
    assert await log.create_stream("s", description="svc", tags=["uptime"]) is True
    assert await log.create_stream("s") is False

    (marker,) = await log.read("s")
    assert marker.type == "stream_created"
    assert marker.data["tags"] == ["uptime"]


async def test_health_check(log):
    assert await log.health_check() is True


async def test_database_error_raises_unavailable():
    session = MagicMock()
    session.__aenter__.side_effect = OperationalError("SELECT", {}, Exception("disk I/O error"))
    log = SqlEventLog(MagicMock(return_value=session))

    with pytest.raises(EventLogUnavailableError):
        await log.read("s")
    with pytest.raises(EventLogUnavailableError):
        await log.append("s", _event(0))
    assert await log.health_check() is False
