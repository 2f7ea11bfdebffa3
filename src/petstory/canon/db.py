# src/petstory/canon/db.py
"""Database engine, session creation, and transaction helpers."""

from __future__ import annotations

import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

from sqlalchemy import event
from sqlalchemy import text as sa_text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from petstory.config import config
from petstory.core.errors import StoryError, TransactionAborted
from petstory.core.logs import get_event_logger
from petstory.models.base import Base

# Initialize EventLogger for database session management
event_logger = get_event_logger()

_ENGINE: AsyncEngine | None = None
SessionLocal: async_sessionmaker[AsyncSession] | None = None


def _enable_sqlite_foreign_keys(dbapi_connection: Any, _record: Any) -> None:
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def init_engine(url: str | None = None, **engine_kwargs: Any) -> AsyncEngine:
    """Create the global engine and session factory.

    ``url`` defaults to the configured database URL. Extra keyword arguments
    go straight to :func:`create_async_engine` (tests pass ``poolclass``).
    """
    global _ENGINE, SessionLocal

    database_url = url or config.database.url
    engine_kwargs.setdefault("echo", config.database.echo)
    _ENGINE = create_async_engine(database_url, **engine_kwargs)
    if _ENGINE.dialect.name == "sqlite":
        event.listen(_ENGINE.sync_engine, "connect", _enable_sqlite_foreign_keys)
    SessionLocal = async_sessionmaker(
        bind=_ENGINE, class_=AsyncSession, expire_on_commit=False
    )
    event_logger.log_db_operation(
        f"Database engine initialised ({_ENGINE.dialect.name})",
        operation="engine_init",
        dialect=_ENGINE.dialect.name,
    )
    return _ENGINE


def get_engine() -> AsyncEngine:
    """Return the global engine, creating it on first use."""
    if _ENGINE is None:
        return init_engine()
    return _ENGINE


async def dispose_engine() -> None:
    """Close every pooled connection and forget the engine."""
    global _ENGINE, SessionLocal
    if _ENGINE is not None:
        await _ENGINE.dispose()
    _ENGINE = None
    SessionLocal = None


@asynccontextmanager
async def get_pg() -> AsyncIterator[AsyncSession]:
    """Return a SQLAlchemy asynchronous session."""
    get_engine()
    assert SessionLocal is not None

    start_time = time.time()
    try:
        async with SessionLocal() as session:
            yield session
    except SQLAlchemyError as exc:
        event_logger.log_error_handling_start(
            error_type=type(exc).__name__,
            error_msg=str(exc),
            context="database session",
            operation="session",
            duration=time.time() - start_time,
        )
        raise
    event_logger.log_db_operation(
        "Database session completed",
        operation="session_complete",
        total_duration=time.time() - start_time,
    )


@asynccontextmanager
async def transaction(session: AsyncSession, operation: str) -> AsyncIterator[AsyncSession]:
    """Run the enclosed block as one unit of work on ``session``.

    The block's writes are committed together when it exits normally.
    :class:`StoryError` raised inside the block rolls back and propagates
    unchanged. Any other failure rolls back, is logged, and surfaces as
    :class:`TransactionAborted` chained to the original exception.
    """
    start_time = time.time()
    try:
        yield session
        await session.commit()
    except StoryError:
        await session.rollback()
        raise
    except Exception as exc:
        await session.rollback()
        event_logger.log_error_rollback(
            operation,
            error_type=type(exc).__name__,
            error=str(exc),
            duration=time.time() - start_time,
        )
        raise TransactionAborted(operation, str(exc)) from exc
    event_logger.log_db_operation(
        f"Committed {operation}",
        operation=operation,
        duration=time.time() - start_time,
    )


async def ping() -> None:
    """Run ``SELECT 1`` against the database."""
    async with get_engine().connect() as conn:
        await conn.execute(sa_text("SELECT 1"))


async def ensure_schema() -> None:
    """Create any missing tables from the ORM metadata.

    Production deployments apply Alembic migrations instead
    (``scripts/init_db.py``); ``create_all`` never alters existing tables.
    """
    start_time = time.time()
    async with get_engine().begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    event_logger.log_db_operation(
        "Schema ensured",
        operation="schema_ensure",
        duration=time.time() - start_time,
    )


__all__ = [
    "SessionLocal",
    "dispose_engine",
    "ensure_schema",
    "get_engine",
    "get_pg",
    "init_engine",
    "ping",
    "transaction",
]
