"""Alembic integration: brings the event log schema to head at startup."""

import asyncio
from pathlib import Path

import structlog
from alembic import command
from alembic.config import Config
from sqlalchemy import inspect, text

from app.core.database import Base, engine

logger = structlog.get_logger()

_PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent

# Present in every schema revision
_SENTINEL_TABLE = "stream_events"


def _alembic_cfg() -> Config:
    """Build Alembic Config with absolute paths (cwd-independent)."""
    cfg = Config(str(_PROJECT_ROOT / "alembic.ini"))
    cfg.set_main_option("script_location", str(_PROJECT_ROOT / "alembic"))
    return cfg


def _check_db_state(connection) -> tuple[bool, bool, str | None]:
    """Return (has_alembic_version, has_event_table, current_revision)."""
    tables = inspect(connection).get_table_names()
    has_alembic = "alembic_version" in tables
    has_event_table = _SENTINEL_TABLE in tables

    current_rev = None
    if has_alembic:
        row = connection.execute(text("SELECT version_num FROM alembic_version")).first()
        current_rev = row[0] if row else None

    return has_alembic, has_event_table, current_rev


def _stamp_head() -> None:
    command.stamp(_alembic_cfg(), "head")


def _upgrade_head() -> None:
    command.upgrade(_alembic_cfg(), "head")


async def ensure_db_migrated() -> None:
    """Bring the schema to head.

    1. Fresh DB (no tables, no alembic_version): create_all + stamp head
    2. Untracked DB (event table exists, no alembic_version): stamp head
    3. Tracked DB (alembic_version exists): upgrade head
    """
    async with engine.begin() as conn:
        has_alembic, has_event_table, current_rev = await conn.run_sync(_check_db_state)

    if not has_event_table and not has_alembic:
        logger.info("migrations_fresh_db", action="create_all_and_stamp")
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        await asyncio.to_thread(_stamp_head)
    elif has_event_table and not has_alembic:
        logger.info("migrations_existing_db", action="stamp_head")
        await asyncio.to_thread(_stamp_head)
    else:
        logger.info("migrations_tracked_db", current_rev=current_rev, action="upgrade_head")
        await asyncio.to_thread(_upgrade_head)
