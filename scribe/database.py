"""Async SQLAlchemy engine and sessions for the recording store.

The engine is built on first use so the realtime pipeline and its tests can
import the store without a database driver connection being configured.
"""

from __future__ import annotations

import logging
import re
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator

from sqlalchemy import text
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import NullPool

from scribe.config.settings import settings

# Import models so they are attached to Base.metadata before table creation
from scribe.models import Base  # noqa: F401 - ensures metadata is registered
from scribe.models import log, recording_session, transcript  # noqa: F401

logger = logging.getLogger(__name__)

_SCHEMA_NAME_PATTERN = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


def _schema_name(raw_schema: str | None) -> str | None:
    """Configured schema when it is a plain identifier, else ``None``."""

    schema = (raw_schema or "").strip()
    if not schema:
        return None
    if not _SCHEMA_NAME_PATTERN.fullmatch(schema):
        logger.warning("Ignoring invalid schema name '%s'; using default search_path.", raw_schema)
        return None
    return schema


_SCHEMA_NAME = _schema_name(settings.database.search_schema)

if _SCHEMA_NAME:
    for table in Base.metadata.tables.values():
        if table.schema is None:
            table.schema = _SCHEMA_NAME

_bound: tuple[AsyncEngine, async_sessionmaker[AsyncSession]] | None = None


def _connect() -> tuple[AsyncEngine, async_sessionmaker[AsyncSession]]:
    global _bound

    if _bound is None:
        options: dict[str, Any] = {"echo": settings.debug, "pool_pre_ping": True}
        if settings.database.serverless or settings.debug:
            # Serverless databases pause between requests; pooled connections would go stale.
            options["poolclass"] = NullPool
        engine = create_async_engine(settings.database.url, **options)
        _bound = engine, async_sessionmaker(engine, expire_on_commit=False, class_=AsyncSession)
    return _bound


def get_engine() -> AsyncEngine:
    return _connect()[0]


async def _set_search_path(target: Any) -> None:
    if _SCHEMA_NAME:
        await target.execute(text(f'SET search_path TO "{_SCHEMA_NAME}", public'))


@asynccontextmanager
async def session_scope() -> AsyncIterator[AsyncSession]:
    """Yield a session bound to the configured schema."""

    _, factory = _connect()
    async with factory() as session:
        await _set_search_path(session)
        yield session


async def init_models() -> None:
    """Create the schema and tables if they do not exist."""

    async with get_engine().begin() as conn:
        if _SCHEMA_NAME:
            await conn.execute(text(f'CREATE SCHEMA IF NOT EXISTS "{_SCHEMA_NAME}"'))
        await _set_search_path(conn)
        await conn.run_sync(Base.metadata.create_all)

    logger.info("Ensured database tables in schema '%s'.", _SCHEMA_NAME or "default")


async def dispose_engine() -> None:
    global _bound

    if _bound is not None:
        engine, _ = _bound
        _bound = None
        await engine.dispose()
