import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from app.core.database import Base
from app.services.uptime.models import TRACKED_SERVICES, ProbeResult
from app.services.uptime.projection import ProjectionStore
from app.services.uptime.service import UptimeTrackingService
from tests.mocks.fake_event_log import FakeEventLog
from tests.mocks.fake_probe import ScriptedProbe
from tests.mocks.uptime_factories import FakeClock


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def event_log():
    return FakeEventLog()


@pytest.fixture
def store():
    return ProjectionStore(max_records=1000)


@pytest_asyncio.fixture
async def db_engine():
    """In-memory SQLite engine for tests."""
    engine = create_async_engine("sqlite+aiosqlite://", echo=False)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture
async def session_factory(db_engine):
    return async_sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def uptime_service(event_log, clock):
    """Tracking service with scripted probes; timers are not started."""
    probes = {svc: ScriptedProbe(ProbeResult("up", {"response_time_ms": 5})) for svc in TRACKED_SERVICES}
    service = UptimeTrackingService(event_log, probes, clock=clock, shutdown_grace=0.5)
    yield service
    await service.detector.drain(0.5)


@pytest_asyncio.fixture
async def client(uptime_service, event_log):
    """HTTP client for the app, with the uptime service wired onto app state.

    ASGITransport does not run the lifespan, so nothing touches the real
    database or probes the network.
    """
    from app.main import app

    app.state.uptime_service = uptime_service
    app.state.event_log = event_log
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
    del app.state.uptime_service
    del app.state.event_log
