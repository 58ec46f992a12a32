from contextlib import asynccontextmanager

import httpx
import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

import app.core.database as db_module
from app.api.v1.router import v1_router
from app.config import settings
from app.core.exceptions import UptimeError, uptime_error_handler
from app.core.middleware import RequestLoggingMiddleware
from app.services.event_log.sql_store import SqlEventLog
from app.services.uptime.probes import build_default_probes
from app.services.uptime.service import UptimeTrackingService

_NAME_TO_LEVEL = {
    "debug": 10,
    "info": 20,
    "warning": 30,
    "warn": 30,
    "error": 40,
    "critical": 50,
}

structlog.configure(
    processors=[
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.format_exc_info,
        structlog.processors.JSONRenderer(),
    ],
    wrapper_class=structlog.make_filtering_bound_logger(
        _NAME_TO_LEVEL.get(settings.uptime_log_level.lower(), 20)
    ),
)

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application startup and shutdown."""
    await db_module.init_db()

    event_log = SqlEventLog(db_module.async_session)
    app.state.event_log = event_log

    # Shared client for the http and event-log probes
    http_client = httpx.AsyncClient(timeout=settings.uptime_probe_timeout_seconds)
    probes = build_default_probes(
        http_url=settings.uptime_http_probe_url,
        ws_url=settings.uptime_ws_probe_url,
        eventlog_url=settings.uptime_eventlog_probe_url,
        http_client=http_client,
        timeout=settings.uptime_probe_timeout_seconds,
    )

    uptime_service = UptimeTrackingService.from_settings(event_log, probes, settings)
    app.state.uptime_service = uptime_service
    try:
        await uptime_service.init()
    except Exception:
        # Tracking still runs without history; the tailer catches up later
        logger.exception("uptime_init_failed")
    await uptime_service.start()

    logger.info("uptime_tracker_starting", db_url=settings.uptime_db_url)
    yield

    # SIGTERM/SIGINT land here via uvicorn: mark services down before exit
    await uptime_service.shutdown()
    await http_client.aclose()
    await event_log.close()
    await db_module.close_db()
    logger.info("uptime_tracker_stopping")


app = FastAPI(
    title="Uptime Tracker",
    description="Service uptime tracking with event-sourced reconciliation",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_exception_handler(UptimeError, uptime_error_handler)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.uptime_cors_origins.split(","),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(RequestLoggingMiddleware)

app.include_router(v1_router)


@app.get("/")
async def root():
    return {"service": "uptime-tracker", "version": "0.1.0"}
