"""
Database configuration and session management.
Uses async SQLAlchemy for non-blocking database operations.

- SQL echo disabled
- Slow queries (>= 1s) logged as WARNING
- Session errors counted and logged before re-raising
"""
import logging
import time
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

from sqlalchemy import event
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase
from sqlalchemy.pool import NullPool

from photolog.config import get_settings
from photolog.exceptions import PhotoLogError
from photolog.utils.prometheus_metrics import db_errors_total

_logger = logging.getLogger("photolog.db")

settings = get_settings()

SLOW_QUERY_THRESHOLD = 1.0


def create_engine_for_url(database_url: str) -> AsyncEngine:
    """Build an async engine. SQLite gets NullPool, everything else a sized pool."""
    if "sqlite" in database_url:
        new_engine = create_async_engine(database_url, echo=False, poolclass=NullPool)
    else:
        new_engine = create_async_engine(
            database_url,
            echo=False,
            pool_size=settings.db_pool_size,
            max_overflow=settings.db_max_overflow,
            pool_timeout=settings.db_pool_timeout,
            pool_recycle=settings.db_pool_recycle,
            pool_pre_ping=True,
        )
    _install_slow_query_logging(new_engine)
    return new_engine


def _install_slow_query_logging(target: AsyncEngine) -> None:
    @event.listens_for(target.sync_engine, "before_cursor_execute")
    def _before_cursor_execute(conn, cursor, statement, parameters, context, executemany):
        conn.info.setdefault("query_start_time", []).append(time.perf_counter())

    @event.listens_for(target.sync_engine, "after_cursor_execute")
    def _after_cursor_execute(conn, cursor, statement, parameters, context, executemany):
        start_times = conn.info.get("query_start_time")
        if start_times:
            elapsed = time.perf_counter() - start_times.pop()
            if elapsed >= SLOW_QUERY_THRESHOLD:
                short_stmt = statement[:100] + "..." if len(statement) > 100 else statement
                _logger.warning(
                    "Slow query",
                    extra={"event": "db", "ms": round(elapsed * 1000), "query": short_stmt},
                )


engine = create_engine_for_url(settings.database_url)

async_session_maker = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autoflush=False,
)


class Base(DeclarativeBase):
    """Base class for all database models."""
    pass


async def init_db(reset: bool = False, bind: Optional[AsyncEngine] = None) -> None:
    """
    Create all tables.

    With ``reset=True`` every table is dropped first and existing data is lost.
    """
    # Register models on Base.metadata
    import photolog.models  # noqa: F401

    target = bind or engine
    async with target.begin() as conn:
        if reset:
            _logger.warning("Dropping all tables before create", extra={"event": "lifecycle"})
            await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)


async def close_db() -> None:
    """Dispose engine connections."""
    await engine.dispose()


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """
    Dependency that provides a database session.

    Services commit explicitly; anything left uncommitted on error is rolled back.

    Usage:
        @router.get("/items")
        async def get_items(db: AsyncSession = Depends(get_db)):
            ...
    """
    async with async_session_maker() as session:
        try:
            yield session
        except PhotoLogError:
            await session.rollback()
            raise
        except Exception as e:
            db_errors_total.inc()
            _logger.error(
                "DB error",
                extra={
                    "event": "db",
                    "error_type": type(e).__name__,
                    "error": str(e)[:200],
                },
            )
            await session.rollback()
            raise


@asynccontextmanager
async def get_db_context() -> AsyncGenerator[AsyncSession, None]:
    """
    Session context manager for code outside a request (background loops).

    Usage:
        async with get_db_context() as session:
            result = await session.execute(query)
    """
    async with async_session_maker() as session:
        try:
            yield session
        except Exception as e:
            _logger.error(
                "DB context error",
                extra={
                    "event": "db",
                    "error_type": type(e).__name__,
                    "error": str(e)[:200],
                },
            )
            await session.rollback()
            raise
