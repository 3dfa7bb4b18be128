"""Database connection and session management.

Async SQLAlchemy setup for SQLite (dev) and PostgreSQL (prod). The job
store, usage ledger and quota gate all receive the session factory from
here instead of opening connections themselves.

Examples:
    >>> from chatforge.database import get_session, init_db
    >>> await init_db()  # Create tables
    >>> async with get_session() as session:
    ...     result = await session.execute(select(GenerationJob))

Tests:
    - tests/unit/test_database.py::TestDatabaseLifecycle
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from sqlalchemy import event, text
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool

from chatforge.config import get_settings

logger = logging.getLogger(__name__)

# Global engine and session factory (initialized lazily)
_engine: AsyncEngine | None = None
_async_session_factory: async_sessionmaker[AsyncSession] | None = None


def create_engine_for(url: str, echo: bool = False) -> AsyncEngine:
    """Build an async engine configured for the database type.

    Args:
        url: SQLAlchemy async database URL.
        echo: Log emitted SQL.

    Returns:
        AsyncEngine: Configured engine.

    Note:
        SQLite gets WAL mode and a busy timeout so concurrent job updates
        wait instead of failing. In-memory SQLite shares one connection.
    """
    if url.startswith("sqlite"):
        kwargs: dict = {"connect_args": {"check_same_thread": False}}
        if ":memory:" in url:
            kwargs["poolclass"] = StaticPool
        engine = create_async_engine(url, echo=echo, **kwargs)

        @event.listens_for(engine.sync_engine, "connect")
        def set_sqlite_pragma(dbapi_connection, connection_record):
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA journal_mode=WAL")
            cursor.execute("PRAGMA busy_timeout=5000")
            cursor.close()

        return engine

    return create_async_engine(
        url,
        echo=echo,
        pool_size=5,
        max_overflow=10,
        pool_pre_ping=True,
    )


def get_engine() -> AsyncEngine:
    """Get or create the process-wide async database engine."""
    global _engine

    if _engine is None:
        settings = get_settings()
        _engine = create_engine_for(settings.DATABASE_URL, echo=settings.DEBUG)
        logger.info(f"Database engine created: {settings.DATABASE_URL.split('@')[-1]}")

    return _engine


def make_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Session factory bound to an engine."""
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    """Get or create async session factory.

    Returns:
        async_sessionmaker: Session factory for creating sessions.
    """
    global _async_session_factory

    if _async_session_factory is None:
        _async_session_factory = make_session_factory(get_engine())

    return _async_session_factory


@asynccontextmanager
async def get_session() -> AsyncGenerator[AsyncSession, None]:
    """Get database session as async context manager.

    Yields:
        AsyncSession: Database session.

    Note:
        Session is automatically committed on success, rolled back on error.
    """
    factory = get_session_factory()
    session = factory()

    try:
        yield session
        await session.commit()
    except Exception:
        await session.rollback()
        raise
    finally:
        await session.close()


async def init_db(engine: AsyncEngine | None = None) -> None:
    """Create all tables.

    Should be called once at application startup.
    """
    from chatforge.models import Base

    engine = engine or get_engine()

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    logger.info("Database tables created")


async def drop_db(engine: AsyncEngine | None = None) -> None:
    """Drop all database tables.

    Warning:
        This is destructive! Only use in testing or development.
    """
    from chatforge.models import Base

    engine = engine or get_engine()

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    logger.warning("Database tables dropped")


async def check_db_connection() -> bool:
    """Check if database is accessible.

    Returns:
        bool: True if database is healthy.
    """
    try:
        engine = get_engine()
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
        return True
    except Exception as e:
        logger.error(f"Database health check failed: {e}")
        return False


async def close_db() -> None:
    """Close database connections.

    Should be called at application shutdown.
    """
    global _engine, _async_session_factory

    if _engine is not None:
        await _engine.dispose()
        _engine = None
        _async_session_factory = None
        logger.info("Database connections closed")

