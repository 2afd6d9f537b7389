"""
Database connection management with SQLAlchemy async engine.

This module provides async database connection management using SQLAlchemy 2.0
with connection pooling, health checks and startup/shutdown helpers. PostgreSQL
is reached through asyncpg; SQLite through aiosqlite for local runs.
"""

import asyncio
from typing import Any, Optional

from sqlalchemy import text
from sqlalchemy.exc import DBAPIError, OperationalError, SQLAlchemyError
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from carsline.core.config import get_settings, is_memory_sqlite_url
from carsline.core.logging import get_logger

logger = get_logger(__name__)

_engine: Optional[AsyncEngine] = None
_session_factory: Optional[async_sessionmaker[AsyncSession]] = None


def _convert_database_url_to_async(url: str) -> str:
    """
    Convert PostgreSQL URL to async format.

    Args:
        url: Database connection URL

    Returns:
        Async-compatible database URL with asyncpg driver
    """
    if url.startswith("postgresql://"):
        return url.replace("postgresql://", "postgresql+asyncpg://", 1)
    return url


def create_engine(database_url: Optional[str] = None) -> AsyncEngine:
    """
    Create async SQLAlchemy engine with connection pooling.

    Args:
        database_url: Optional URL overriding the configured one

    Returns:
        Configured async SQLAlchemy engine

    Raises:
        ValueError: If the URL names an in-memory SQLite database
    """
    settings = get_settings()
    url = _convert_database_url_to_async(database_url or settings.database_url)

    engine_kwargs: dict[str, Any] = {"echo": settings.debug}
    if url.startswith("sqlite"):
        if is_memory_sqlite_url(url):
            raise ValueError(
                "In-memory SQLite shares one connection across sessions; use a file database"
            )
        engine_kwargs["connect_args"] = {"check_same_thread": False, "timeout": 30}
    else:
        engine_kwargs.update(
            pool_size=settings.db_pool_size,
            max_overflow=settings.db_max_overflow,
            pool_pre_ping=True,
            pool_recycle=3600,
            connect_args={
                "server_settings": {"application_name": settings.app_name},
                "command_timeout": 60,
                "timeout": 10,
            },
        )

    engine = create_async_engine(url, **engine_kwargs)

    logger.info(
        "Database engine created",
        dialect=engine.dialect.name,
        environment=settings.environment,
    )

    return engine


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Build the session factory used for every unit of work."""
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


def get_engine() -> AsyncEngine:
    """
    Get or create the global async database engine.

    Raises:
        RuntimeError: If engine initialization fails
    """
    global _engine

    if _engine is None:
        try:
            _engine = create_engine()
        except Exception as e:
            logger.error(
                "Failed to create database engine",
                error=str(e),
                error_type=type(e).__name__,
            )
            raise RuntimeError(f"Database engine initialization failed: {e}") from e

    return _engine


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    """Get or create the global session factory."""
    global _session_factory

    if _session_factory is None:
        _session_factory = create_session_factory(get_engine())
        logger.info("Database session factory created")

    return _session_factory


async def check_database_health(
    engine: Optional[AsyncEngine] = None,
    max_retries: int = 3,
    retry_delay: float = 1.0,
) -> bool:
    """
    Check database connectivity with retry logic.

    Args:
        engine: Engine to probe, defaults to the global one
        max_retries: Maximum number of connection attempts
        retry_delay: Base delay between retries in seconds

    Returns:
        True if database is healthy, False otherwise
    """
    engine = engine or get_engine()

    for attempt in range(max_retries):
        try:
            async with engine.connect() as conn:
                await conn.execute(text("SELECT 1"))
            logger.debug("Database health check passed", attempt=attempt + 1)
            return True
        except (OperationalError, DBAPIError) as e:
            logger.warning(
                "Database health check failed",
                attempt=attempt + 1,
                max_retries=max_retries,
                error=str(e),
            )
        except SQLAlchemyError as e:
            logger.error(
                "Database health check failed - SQLAlchemy error",
                attempt=attempt + 1,
                error=str(e),
                error_type=type(e).__name__,
            )
        if attempt < max_retries - 1:
            await asyncio.sleep(retry_delay * (2**attempt))

    logger.error("Database health check failed after all retries", max_retries=max_retries)
    return False


async def create_tables(engine: Optional[AsyncEngine] = None) -> None:
    """Create missing tables from the ORM metadata."""
    from carsline.database.models import Base

    engine = engine or get_engine()
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Database tables ensured", tables=sorted(Base.metadata.tables))


async def initialize_database() -> None:
    """
    Initialize database connection and verify connectivity.

    Raises:
        RuntimeError: If database initialization fails
    """
    settings = get_settings()
    logger.info("Initializing database connection")
    engine = get_engine()
    get_session_factory()

    if not await check_database_health(engine, max_retries=5, retry_delay=2.0):
        raise RuntimeError("Database health check failed during initialization")

    if settings.create_tables_on_startup:
        await create_tables(engine)


async def close_database_connections() -> None:
    """
    Close all database connections and dispose of the engine.

    Called during application shutdown.
    """
    global _engine, _session_factory

    if _engine is not None:
        try:
            await _engine.dispose()
            logger.info("Database connections closed and engine disposed")
        finally:
            _engine = None
            _session_factory = None
