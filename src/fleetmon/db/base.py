"""Database connection and session management."""

import time
import weakref
from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator

from sqlalchemy import Engine, event
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from fleetmon.config import settings
from fleetmon.observability.metrics import metrics


class Base(DeclarativeBase):
    """SQLAlchemy declarative base."""

    pass


def _engine_options(database_url: str) -> dict[str, Any]:
    options: dict[str, Any] = {"echo": settings.debug, "pool_pre_ping": True}
    if database_url.startswith("postgresql"):
        options.update(pool_size=10, max_overflow=5)
    return options


# Engines that already carry the query metrics listeners
_metered_engines: "weakref.WeakSet[Engine]" = weakref.WeakSet()


def _attach_query_metrics(target_engine: AsyncEngine) -> None:
    """Attach SQLAlchemy event listeners for query metrics."""
    sync_engine = target_engine.sync_engine
    if sync_engine in _metered_engines:
        return

    @event.listens_for(sync_engine, "before_cursor_execute")
    def before_cursor_execute(conn, cursor, statement, parameters, context, executemany):
        conn.info["query_start_time"] = time.perf_counter()

    @event.listens_for(sync_engine, "after_cursor_execute")
    def after_cursor_execute(conn, cursor, statement, parameters, context, executemany):
        start_time = conn.info.pop("query_start_time", None)
        if start_time is None:
            return
        duration_ms = (time.perf_counter() - start_time) * 1000.0
        metrics.inc_counter("db.query.count")
        metrics.observe("db.query.duration_ms", duration_ms)

    _metered_engines.add(sync_engine)


def _enable_sqlite_savepoints(target_engine: AsyncEngine) -> None:
    """Let SQLite honour SAVEPOINTs; the driver otherwise manages BEGIN itself."""
    sync_engine = target_engine.sync_engine

    @event.listens_for(sync_engine, "connect")
    def do_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(sync_engine, "begin")
    def do_begin(conn):
        conn.exec_driver_sql("BEGIN")


def create_engine(database_url: str) -> AsyncEngine:
    """Create an async engine with fleetmon's listeners attached."""
    new_engine = create_async_engine(database_url, **_engine_options(database_url))
    if database_url.startswith("sqlite"):
        _enable_sqlite_savepoints(new_engine)
    _attach_query_metrics(new_engine)
    return new_engine


# Create async engine
engine = create_engine(settings.database_url)

# Create async session factory
async_session_factory = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


async def init_db() -> None:
    """Initialize database tables."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def close_db() -> None:
    """Close database connections."""
    await engine.dispose()


@asynccontextmanager
async def get_session() -> AsyncGenerator[AsyncSession, None]:
    """Get a database session."""
    async with async_session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
