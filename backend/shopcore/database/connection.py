"""
Database connection management with SQLAlchemy async engine.

This module provides async database connection management using SQLAlchemy 2.0
with connection pooling, health checks, and proper error handling. Services
receive an async_sessionmaker and open one session per unit of work; every
stock-mutating operation runs inside exactly one transaction obtained here.
"""

import asyncio
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

from sqlalchemy import text
from sqlalchemy.exc import DBAPIError, OperationalError, SQLAlchemyError
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import NullPool

from shopcore.core.config import get_settings
from shopcore.core.exceptions import StorageError
from shopcore.core.logging import get_logger

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
    """
    settings = get_settings()
    url = _convert_database_url_to_async(database_url or settings.database_url)

    if url.startswith("sqlite"):
        engine = create_async_engine(url, echo=settings.debug)
    elif settings.is_test:
        engine = create_async_engine(url, echo=settings.debug, poolclass=NullPool)
    else:
        engine = create_async_engine(
            url,
            echo=settings.debug,
            pool_size=settings.db_pool_size,
            max_overflow=settings.db_max_overflow,
            pool_pre_ping=True,
            pool_recycle=3600,
            connect_args={
                "server_settings": {
                    "application_name": settings.app_name,
                },
                "command_timeout": 60,
                "timeout": 10,
            },
        )

    logger.info(
        "Database engine created",
        dialect=engine.dialect.name,
        pool_size=settings.db_pool_size,
        environment=settings.environment,
    )

    return engine


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """
    Build a session factory bound to the given engine.

    Args:
        engine: Async engine to bind

    Returns:
        Session factory producing sessions that keep loaded state after commit
    """
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


def get_engine() -> AsyncEngine:
    """
    Get or create the global async database engine.

    Returns:
        Global async SQLAlchemy engine instance

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
    """
    Get or create the global session factory.

    Returns:
        Configured async session factory
    """
    global _session_factory

    if _session_factory is None:
        _session_factory = create_session_factory(get_engine())
        logger.info("Database session factory created")

    return _session_factory


@asynccontextmanager
async def get_session() -> AsyncGenerator[AsyncSession, None]:
    """
    Create async database session with automatic commit or rollback.

    Yields:
        Async database session

    Raises:
        SQLAlchemyError: If session creation or cleanup fails
    """
    session = get_session_factory()()

    try:
        yield session
        await session.commit()
    except Exception as e:
        await session.rollback()
        logger.error(
            "Database session rolled back",
            error=str(e),
            error_type=type(e).__name__,
        )
        raise
    finally:
        await session.close()


@asynccontextmanager
async def transaction_scope(
    session_factory: async_sessionmaker[AsyncSession],
    session: Optional[AsyncSession] = None,
    operation: str = "database operation",
) -> AsyncGenerator[AsyncSession, None]:
    """
    Join the caller's transaction or run a new one.

    When a session is passed it is yielded untouched and the caller owns
    commit and rollback. Otherwise a session is opened from the factory and
    the block runs inside one transaction that commits on success and rolls
    back on any exception.

    SQLAlchemy failures are logged and re-raised as StorageError, so the
    enclosing transaction is always aborted and never partially applied.

    Args:
        session_factory: Factory used when no session is supplied
        session: Optional session of an enclosing unit of work
        operation: Operation name for log context

    Yields:
        Session bound to an open transaction

    Raises:
        StorageError: If the relational store fails
    """
    try:
        if session is not None:
            yield session
            return

        async with session_factory() as own_session, own_session.begin():
            yield own_session
    except SQLAlchemyError as e:
        logger.error(
            "Database operation failed",
            operation=operation,
            error=str(e),
            error_type=type(e).__name__,
        )
        raise StorageError(
            f"Storage failure during {operation}",
            operation=operation,
            error_type=type(e).__name__,
        ) from e


async def create_schema(engine: AsyncEngine) -> None:
    """
    Create all tables for the registered models.

    Used by tests and local development; production schemas are managed
    by the Alembic migrations.
    """
    from shopcore.database.models import Base

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    logger.info("Database schema created", tables=len(Base.metadata.tables))


async def check_database_health(max_retries: int = 3, retry_delay: float = 1.0) -> bool:
    """
    Check database connectivity with retry logic.

    Args:
        max_retries: Maximum number of connection attempts
        retry_delay: Delay between retries in seconds

    Returns:
        True if database is healthy, False otherwise
    """
    for attempt in range(max_retries):
        try:
            engine = get_engine()
            async with engine.connect() as conn:
                await conn.execute(text("SELECT 1"))
                logger.info("Database health check passed", attempt=attempt + 1)
                return True
        except (OperationalError, DBAPIError) as e:
            logger.warning(
                "Database health check failed",
                attempt=attempt + 1,
                max_retries=max_retries,
                error=str(e),
            )
            if attempt < max_retries - 1:
                await asyncio.sleep(retry_delay * (2**attempt))
        except SQLAlchemyError as e:
            logger.error(
                "Database health check failed - SQLAlchemy error",
                attempt=attempt + 1,
                error=str(e),
                error_type=type(e).__name__,
            )
            return False

    logger.error("Database health check failed after all retries", max_retries=max_retries)
    return False


async def close_database_connections() -> None:
    """
    Close all database connections and dispose of the engine.

    This should be called during application shutdown to ensure
    proper cleanup of database resources.
    """
    global _engine, _session_factory

    if _engine is not None:
        try:
            await _engine.dispose()
            logger.info("Database connections closed and engine disposed")
        finally:
            _engine = None
            _session_factory = None
