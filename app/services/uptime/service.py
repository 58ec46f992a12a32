"""Uptime tracking service: runs the probe, tail and cleanup timers."""

import asyncio
from collections.abc import Awaitable, Callable
from datetime import datetime, timedelta, timezone

import structlog

from app.services.event_log.base import EventLog
from app.services.uptime import aggregator
from app.services.uptime.detector import StatusChangeDetector, stream_name
from app.services.uptime.models import DOWN, TRACKED_SERVICES, ProbeResult, Summary, Timeline
from app.services.uptime.probes import Probe
from app.services.uptime.projection import ProjectionStore
from app.services.uptime.retention import sweep
from app.services.uptime.tailer import StreamTailer

logger = structlog.get_logger()


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class UptimeTrackingService:
    """Tracks per-service status history and answers uptime queries.

    Construct once at process start, then ``init()`` (replay the log),
    ``start()`` (timers) and finally ``shutdown()``. All projection
    mutations happen in synchronous sections on the event loop, so the
    probe, tail and cleanup timers never interleave inside one update.
    """

    def __init__(
        self,
        event_log: EventLog,
        probes: dict[str, Probe],
        services: tuple[str, ...] = TRACKED_SERVICES,
        stream_prefix: str = "service-uptime",
        max_records: int = 1000,
        max_age_hours: int = 168,
        max_stream_errors: int = 5,
        tail_batch_size: int = 100,
        probe_interval: float = 30.0,
        tail_interval: float = 10.0,
        cleanup_interval: float = 3600.0,
        probe_timeout: float = 2.0,
        shutdown_grace: float = 1.0,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self._event_log = event_log
        self._probes = probes
        self.services = services
        self._stream_prefix = stream_prefix
        self._max_age = timedelta(hours=max_age_hours)
        self._probe_interval = probe_interval
        self._tail_interval = tail_interval
        self._cleanup_interval = cleanup_interval
        self._probe_timeout = probe_timeout
        self._shutdown_grace = shutdown_grace
        self._clock = clock

        self.store = ProjectionStore(max_records=max_records)
        self.detector = StatusChangeDetector(self.store, event_log, stream_prefix=stream_prefix)
        self.tailer = StreamTailer(
            self.store,
            event_log,
            stream_prefix=stream_prefix,
            max_errors=max_stream_errors,
            batch_size=tail_batch_size,
        )

        self._probe_task: asyncio.Task | None = None
        self._tail_task: asyncio.Task | None = None
        self._cleanup_task: asyncio.Task | None = None

    @classmethod
    def from_settings(cls, event_log: EventLog, probes: dict[str, Probe], settings) -> "UptimeTrackingService":
        return cls(
            event_log,
            probes,
            stream_prefix=settings.uptime_stream_prefix,
            max_records=settings.uptime_max_records_per_service,
            max_age_hours=settings.uptime_max_age_hours,
            max_stream_errors=settings.uptime_max_stream_errors,
            tail_batch_size=settings.uptime_tail_batch_size,
            probe_interval=settings.uptime_probe_interval_seconds,
            tail_interval=settings.uptime_tail_interval_seconds,
            cleanup_interval=settings.uptime_cleanup_interval_seconds,
            probe_timeout=settings.uptime_probe_timeout_seconds,
            shutdown_grace=settings.uptime_shutdown_grace_seconds,
        )

    # ── Lifecycle ────────────────────────────────────────────────────────────

    async def init(self) -> None:
        """Ensure streams exist and rebuild projections from the log."""
        await self.create_streams()
        for svc in self.services:
            await self.tailer.replay(svc)
        logger.info("uptime_tracking_initialized", services=len(self.services))

    async def start(self) -> None:
        """Start the probe, tail and cleanup timers."""
        self.start_probing()
        self.start_tailing()
        self.start_cleanup()
        logger.info(
            "uptime_tracking_started",
            probe_interval=self._probe_interval,
            tail_interval=self._tail_interval,
            cleanup_interval=self._cleanup_interval,
        )

    @property
    def is_running(self) -> bool:
        return any(t is not None for t in (self._probe_task, self._tail_task, self._cleanup_task))

    def start_probing(self) -> None:
        if self._probe_task is None:
            self._probe_task = asyncio.create_task(self._timer("probe", self._probe_interval, self.probe_once))

    def start_tailing(self) -> None:
        if self._tail_task is None:
            self._tail_task = asyncio.create_task(self._timer("tail", self._tail_interval, self.tail_once))

    def start_cleanup(self) -> None:
        if self._cleanup_task is None:
            self._cleanup_task = asyncio.create_task(self._timer("cleanup", self._cleanup_interval, self._cleanup_tick))

    async def stop_probing(self) -> None:
        self._probe_task = await self._cancel(self._probe_task)

    async def stop_tailing(self) -> None:
        self._tail_task = await self._cancel(self._tail_task)

    async def stop_cleanup(self) -> None:
        self._cleanup_task = await self._cancel(self._cleanup_task)

    async def shutdown(self) -> None:
        """Stop timers, then record every non-down service as down before exit."""
        logger.info("uptime_tracking_shutting_down")
        await self.stop_probing()
        await self.stop_tailing()
        await self.stop_cleanup()

        now = self._clock()
        for svc in self.services:
            projection = self.store.find(svc)
            if projection is None or projection.current_status in (None, DOWN):
                continue
            self.detector.on_probe_result(svc, DOWN, {"reason": "shutdown"}, now)
            logger.info("service_marked_down_on_shutdown", service=svc)

        unfinished = await self.detector.drain(self._shutdown_grace)
        if unfinished:
            logger.warning("uptime_shutdown_writes_abandoned", pending=unfinished)
        logger.info("uptime_tracking_stopped")

    @staticmethod
    async def _cancel(task: asyncio.Task | None) -> None:
        if task:
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
        return None

    async def _timer(self, name: str, interval: float, tick: Callable[[], Awaitable]) -> None:
        while True:
            try:
                await asyncio.sleep(interval)
                await tick()
            except asyncio.CancelledError:
                break
            except Exception:
                logger.exception("uptime_timer_error", timer=name)

    # ── Ticks ────────────────────────────────────────────────────────────────

    async def probe_once(self) -> list[dict]:
        """Probe every service concurrently and feed results to the detector."""
        now = self._clock()
        results = await asyncio.gather(*(self._run_probe(svc) for svc in self.services))

        checks = []
        for svc, result in zip(self.services, results):
            self.detector.on_probe_result(svc, result.status, result.metadata, now)
            checks.append({
                "service": svc,
                "status": result.status,
                "timestamp": now,
                "metadata": result.metadata,
            })
        return checks

    async def _run_probe(self, service_name: str) -> ProbeResult:
        probe = self._probes.get(service_name)
        if probe is None:
            return ProbeResult(status=DOWN, metadata={"error": "No probe configured"})
        try:
            return await asyncio.wait_for(probe.probe(service_name), timeout=self._probe_timeout)
        except TimeoutError:
            return ProbeResult(status=DOWN, metadata={"error": "Probe timed out"})
        except Exception as e:
            logger.exception("uptime_probe_error", service=service_name)
            return ProbeResult(status=DOWN, metadata={"error": str(e) or type(e).__name__})

    async def tail_once(self) -> dict[str, int]:
        return await self.tailer.tail_all(self.services)

    async def _cleanup_tick(self) -> None:
        self.cleanup_once()

    def cleanup_once(self) -> int:
        return sweep(self.store, self._clock(), self._max_age)

    # ── Query surface ────────────────────────────────────────────────────────

    def get_service_uptime_timeline(self, service_name: str, hours: float = 24) -> Timeline | None:
        try:
            return aggregator.get_timeline(self.store, service_name, hours, self._clock())
        except Exception:
            logger.exception("uptime_timeline_failed", service=service_name, hours=hours)
            return None

    def get_service_uptime_summary(self, service_name: str, hours: float = 24) -> Summary | None:
        try:
            return aggregator.get_summary(self.store, service_name, hours, self._clock())
        except Exception:
            logger.exception("uptime_summary_failed", service=service_name, hours=hours)
            return None

    def get_all_service_uptime_summaries(self, hours: float = 24) -> list[Summary]:
        try:
            return aggregator.get_all_summaries(self.store, hours, self._clock(), services=self.services)
        except Exception:
            logger.exception("uptime_summaries_failed", hours=hours)
            return []

    def get_current_service_statuses(self) -> dict[str, str]:
        return {p.service_name: p.current_status for p in self.store if p.current_status is not None}

    def get_memory_stats(self) -> dict:
        return self.store.memory_stats()

    async def check_now(self) -> list[dict]:
        """Run one probe tick on demand."""
        return await self.probe_once()

    async def create_streams(self) -> list[dict]:
        """Create the per-service streams if they do not exist yet."""
        results = []
        for svc in self.services:
            stream = stream_name(self._stream_prefix, svc)
            try:
                created = await self._event_log.create_stream(
                    stream,
                    description=f"Service uptime tracking for {svc}",
                    tags=["uptime", "monitoring", svc],
                )
                results.append({"service": svc, "stream_name": stream, "success": True, "created": created})
            except Exception as e:
                logger.warning("uptime_stream_create_failed", stream=stream, error=str(e))
                results.append({"service": svc, "stream_name": stream, "success": False, "error": str(e)})
        return results

    def reset(self) -> None:
        """Clear all in-memory uptime data. Cursors are kept, so cleared history is not re-read."""
        self.store.clear()
        for svc in self.services:
            self.tailer.reset_backoff(svc)
        logger.info("uptime_data_cleared")
