from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Literal

Direction = Literal["forward", "backward"]


@dataclass
class NewEvent:
    """An event to be appended to a stream."""

    type: str
    data: dict
    metadata: dict = field(default_factory=dict)


@dataclass
class StoredEvent:
    """An event as read back from a stream."""

    id: str
    type: str
    data: dict
    metadata: dict
    position: int  # zero-based, monotonically increasing per stream
    timestamp: str  # ISO 8601, when the log accepted the event


@dataclass
class AppendResult:
    event_id: str
    position: int


class EventLog(ABC):
    """Append-only, per-stream durable event log."""

    @abstractmethod
    async def append(self, stream_id: str, event: NewEvent) -> AppendResult:
        """Append one event to the end of a stream."""
        ...

    @abstractmethod
    async def read(
        self,
        stream_id: str,
        from_position: int | None = None,
        direction: Direction = "forward",
        max_count: int = 100,
    ) -> list[StoredEvent]:
        """Read events from a stream.

        Forward reads return ascending positions starting at ``from_position``
        (default 0). Backward reads start at ``from_position`` (default: the
        end of the stream) and return descending positions.
        """
        ...

    @abstractmethod
    async def create_stream(self, stream_id: str, description: str = "", tags: list[str] | None = None) -> bool:
        """Create a stream if it is empty. Returns True if a stream was created."""
        ...

    @abstractmethod
    async def health_check(self) -> bool:
        """Check if the log is reachable."""
        ...

    async def close(self) -> None:
        """Release any resources held by the log."""
        return None
