from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, create_async_engine
from sqlalchemy.orm import sessionmaker
from sqlmodel import SQLModel

from sitebuilder.settings import get_settings
from sitebuilder.utils.logging import get_logger

from . import models  # noqa: F401  registers tables on SQLModel.metadata

LOGGER = get_logger(__name__)

_engine: Optional[AsyncEngine] = None
_session_factory: Optional[sessionmaker] = None


def _set_sqlite_pragma(dbapi_connection, connection_record):
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA journal_mode=WAL")
    cursor.execute("PRAGMA synchronous=NORMAL")
    cursor.close()


def get_engine() -> AsyncEngine:
    global _engine, _session_factory
    if _engine is None:
        url = get_settings().resolved_database_url
        connect_args = {"check_same_thread": False} if url.startswith("sqlite") else {}
        _engine = create_async_engine(url, echo=False, future=True, connect_args=connect_args)
        if url.startswith("sqlite"):
            event.listen(_engine.sync_engine, "connect", _set_sqlite_pragma)
        _session_factory = sessionmaker(_engine, class_=AsyncSession, expire_on_commit=False)
    return _engine


async def init_db() -> None:
    engine = get_engine()
    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
    LOGGER.info("Database initialised at %s", engine.url)


async def dispose_engine() -> None:
    global _engine, _session_factory
    if _engine is not None:
        await _engine.dispose()
    _engine = None
    _session_factory = None


@asynccontextmanager
async def get_session() -> AsyncIterator[AsyncSession]:
    get_engine()
    async with _session_factory() as session:
        try:
            yield session
        finally:
            await session.close()


def reset_engine() -> None:
    """Forget the cached engine so the next use picks up current settings."""
    global _engine, _session_factory
    _engine = None
    _session_factory = None
