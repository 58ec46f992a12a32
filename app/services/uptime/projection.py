"""Bounded per-service projections of the uptime event stream. No I/O."""

import bisect
from collections.abc import Iterator
from datetime import datetime

from app.services.uptime.models import ServiceProjection, UptimeRecord

# Rough per-record footprint used for memory stats
RECORD_SIZE_ESTIMATE_BYTES = 200


class ProjectionStore:
    """Holds one ServiceProjection per tracked service.

    Records stay sorted by timestamp and unique by id. Each projection holds
    at most ``max_records`` records; inserting past the cap evicts the oldest.
    """

    def __init__(self, max_records: int = 1000):
        if max_records < 1:
            raise ValueError("max_records must be at least 1")
        self.max_records = max_records
        self._projections: dict[str, ServiceProjection] = {}

    def get(self, service_name: str) -> ServiceProjection:
        """Return the projection for a service, creating an empty one on first use."""
        projection = self._projections.get(service_name)
        if projection is None:
            projection = ServiceProjection(service_name=service_name)
            self._projections[service_name] = projection
        return projection

    def find(self, service_name: str) -> ServiceProjection | None:
        return self._projections.get(service_name)

    def __iter__(self) -> Iterator[ServiceProjection]:
        return iter(list(self._projections.values()))

    def __len__(self) -> int:
        return len(self._projections)

    # ── Mutation ─────────────────────────────────────────────────────────────

    def insert(self, record: UptimeRecord) -> bool:
        """Insert a record in timestamp order.

        A record whose id is already present is not inserted again. If the held
        copy is still open and the incoming copy is finalized, the duration is
        copied onto the held copy and True is returned.

        Returns False for any other duplicate, or if the record is older than
        everything in a full projection (it would be evicted immediately).
        """
        projection = self.get(record.service_name)
        if record.id in projection.record_ids:
            return self._finalize_held(projection, record)

        timestamps = [r.timestamp for r in projection.records]
        index = bisect.bisect_right(timestamps, record.timestamp)
        if index == 0 and len(projection.records) >= self.max_records:
            return False

        projection.records.insert(index, record)
        projection.record_ids.add(record.id)
        self._evict_overflow(projection)
        return True

    @staticmethod
    def _finalize_held(projection: ServiceProjection, record: UptimeRecord) -> bool:
        if record.duration is None:
            return False
        for held in projection.records:
            if held.id == record.id:
                if held.duration is not None:
                    return False
                held.duration = record.duration
                return True
        return False

    def _evict_overflow(self, projection: ServiceProjection) -> None:
        overflow = len(projection.records) - self.max_records
        if overflow <= 0:
            return
        for evicted in projection.records[:overflow]:
            projection.record_ids.discard(evicted.id)
        del projection.records[:overflow]

    def sync_current_status(self, service_name: str) -> None:
        """Point the cached status fields at the newest record."""
        projection = self.get(service_name)
        if not projection.records:
            return
        latest = projection.records[-1]
        projection.current_status = latest.status
        projection.last_status_change = latest.timestamp
        if projection.start_time is None or projection.records[0].timestamp < projection.start_time:
            projection.start_time = projection.records[0].timestamp

    def prune_before(self, service_name: str, cutoff: datetime) -> int:
        """Drop records with timestamp < cutoff. Returns the number removed."""
        projection = self.get(service_name)
        keep_from = bisect.bisect_left([r.timestamp for r in projection.records], cutoff)
        if keep_from == 0:
            return 0
        for removed in projection.records[:keep_from]:
            projection.record_ids.discard(removed.id)
        del projection.records[:keep_from]
        return keep_from

    def clear(self, service_name: str | None = None) -> None:
        """Drop records and cached status. Tail cursors are kept."""
        targets = [self.get(service_name)] if service_name else list(self._projections.values())
        for projection in targets:
            projection.records.clear()
            projection.record_ids.clear()
            projection.current_status = None
            projection.last_status_change = None
            projection.start_time = None

    # ── Introspection ────────────────────────────────────────────────────────

    def memory_stats(self) -> dict:
        records_per_service = {p.service_name: len(p.records) for p in self._projections.values()}
        total = sum(records_per_service.values())
        return {
            "total_records": total,
            "records_per_service": records_per_service,
            "memory_estimate": _format_bytes(total * RECORD_SIZE_ESTIMATE_BYTES),
        }


def _format_bytes(size: int) -> str:
    if size < 1024:
        return f"{size} B"
    if size < 1024 * 1024:
        return f"{round(size / 1024)} KB"
    return f"{round(size / (1024 * 1024))} MB"
