"""Async SQLAlchemy engine, session factory, declarative Base, and FastAPI dependency.

The engine is built from ``settings.database_url``. SQLite URLs get the
driver options they need; an in-memory SQLite database is shared by every
session through a single connection so the schema created by
:func:`init_db` stays visible. SQLite transactions are begun by SQLAlchemy
instead of the driver so that SAVEPOINTs nest inside them.
"""


import logging
from collections.abc import AsyncGenerator
from typing import Any

from sqlalchemy import event
from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase
from sqlalchemy.pool import StaticPool

from apitoolbox.core.config import settings

logger = logging.getLogger(__name__)


def engine_options(database_url: str) -> dict[str, Any]:
    """Keyword arguments for create_async_engine() for *database_url*."""
    options: dict[str, Any] = {"echo": settings.app_env == "development"}

    url = make_url(database_url)
    if url.get_backend_name() != "sqlite":
        options["pool_pre_ping"] = True
        return options

    options["connect_args"] = {"check_same_thread": False}
    if url.database in (None, "", ":memory:"):
        options["poolclass"] = StaticPool
    return options


# ---------------------------------------------------------------------------
# Engine + session factory
# ---------------------------------------------------------------------------
def build_engine(database_url: str) -> AsyncEngine:
    async_engine = create_async_engine(database_url, **engine_options(database_url))
    if async_engine.dialect.name != "sqlite":
        return async_engine

    @event.listens_for(async_engine.sync_engine, "connect")
    def _disable_driver_begin(dbapi_connection, connection_record):
        # the driver would otherwise BEGIN lazily, after our SAVEPOINT
        dbapi_connection.isolation_level = None

    @event.listens_for(async_engine.sync_engine, "begin")
    def _begin(conn):
        conn.exec_driver_sql("BEGIN")

    return async_engine


engine = build_engine(settings.database_url)

async_session_factory = async_sessionmaker(
    bind=engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autoflush=False,
)


class Base(DeclarativeBase):
    """All ORM models inherit from this base."""


# ---------------------------------------------------------------------------
# Schema bootstrap
# ---------------------------------------------------------------------------
async def init_db(bind: AsyncEngine | None = None) -> None:
    """Create every table registered on Base.metadata (existing tables are kept)."""
    import apitoolbox.domain  # noqa: F401  registers the models

    target = bind or engine
    async with target.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Database schema ready (%d tables)", len(Base.metadata.tables))


# ---------------------------------------------------------------------------
# FastAPI dependency
# ---------------------------------------------------------------------------
async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Yield a session for one request: commit on success, roll back on error."""
    async with async_session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
