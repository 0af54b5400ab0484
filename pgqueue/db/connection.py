"""
Database connection management.
Handles async SQLAlchemy engine and session creation, and table provisioning.
"""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from pgqueue.config import get_settings
from pgqueue.db.models import get_tables
from pgqueue.types.job import TableOptions

logger = logging.getLogger(__name__)

# Global engine instance
_engine: AsyncEngine | None = None
AsyncSessionLocal: async_sessionmaker[AsyncSession] | None = None


def get_engine() -> AsyncEngine:
    """
    Get or create the async database engine.

    Returns:
        AsyncEngine: The SQLAlchemy async engine instance.
    """
    global _engine
    if _engine is None:
        settings = get_settings()
        _engine = create_async_engine(
            settings.database_url,
            pool_size=settings.database_pool_size,
            max_overflow=settings.database_max_overflow,
            echo=settings.log_level == "DEBUG",
            pool_pre_ping=True,
        )
    return _engine


def make_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """
    Build a session factory suitable for queues bound to the given engine.

    Args:
        engine: The async engine to bind sessions to.

    Returns:
        async_sessionmaker: The session factory.
    """
    return async_sessionmaker(
        bind=engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


async def init_db() -> None:
    """
    Initialize the database connection and session factory.
    Should be called on application startup.
    """
    global AsyncSessionLocal
    AsyncSessionLocal = make_session_factory(get_engine())
    logger.info("Database connection initialized")


async def close_db() -> None:
    """
    Close the database connection.
    Should be called on application shutdown.
    """
    global _engine, AsyncSessionLocal
    if _engine is not None:
        await _engine.dispose()
        _engine = None
        AsyncSessionLocal = None
        logger.info("Database connection closed")


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    """
    Get the session factory created by init_db().

    Raises:
        RuntimeError: If the database is not initialized.
    """
    if AsyncSessionLocal is None:
        raise RuntimeError("Database not initialized. Call init_db() first.")
    return AsyncSessionLocal


@asynccontextmanager
async def transaction(
    session_factory: async_sessionmaker[AsyncSession],
) -> AsyncGenerator[AsyncSession]:
    """
    Run a block inside a single transaction.

    Commits when the block exits normally and rolls back (releasing any row
    locks taken) when it raises.

    Yields:
        AsyncSession: A session with an open transaction.
    """
    async with session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


async def create_tables(
    engine: AsyncEngine,
    options: TableOptions | None = None,
) -> None:
    """
    Create the job and result tables if they do not exist.

    Args:
        engine: The engine to create the tables with.
        options: Table names. Defaults come from settings.
    """
    tables = get_tables(options)
    async with engine.begin() as conn:
        await conn.run_sync(tables.jobs.create, checkfirst=True)
        await conn.run_sync(tables.results.create, checkfirst=True)
    logger.info(
        "Queue tables ready",
        extra={"table": tables.jobs.name, "result_table": tables.results.name},
    )


async def drop_tables(
    engine: AsyncEngine,
    options: TableOptions | None = None,
) -> None:
    """
    Drop the job and result tables if they exist.

    Args:
        engine: The engine to drop the tables with.
        options: Table names. Defaults come from settings.
    """
    tables = get_tables(options)
    async with engine.begin() as conn:
        await conn.run_sync(tables.results.drop, checkfirst=True)
        await conn.run_sync(tables.jobs.drop, checkfirst=True)
    logger.info(
        "Queue tables dropped",
        extra={"table": tables.jobs.name, "result_table": tables.results.name},
    )
