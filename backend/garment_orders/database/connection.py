"""
Database connection management with SQLAlchemy async engine.

The engine and session factory are created lazily from settings. Request
handlers receive a session through ``get_db``; order and stock writes made
inside one ``unit_of_work`` block commit or roll back together.
"""

import asyncio
from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator, Optional

from sqlalchemy import text
from sqlalchemy.exc import DBAPIError, OperationalError, SQLAlchemyError
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import NullPool

from garment_orders.core.config import get_settings
from garment_orders.core.exceptions import PersistenceConflictError
from garment_orders.core.logging import get_logger

logger = get_logger(__name__)

_engine: Optional[AsyncEngine] = None
_session_factory: Optional[async_sessionmaker[AsyncSession]] = None


def create_engine() -> AsyncEngine:
    """
    Create the async engine for the configured database.

    PostgreSQL gets a sized, pre-pinged pool; SQLite runs with its default
    pool (or NullPool under the test environment).
    """
    settings = get_settings()
    engine_kwargs: dict[str, Any] = {"echo": settings.db_echo}

    if settings.is_sqlite:
        if settings.environment == "test":
            engine_kwargs["poolclass"] = NullPool
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

    engine = create_async_engine(settings.database_url, **engine_kwargs)

    logger.info(
        "Database engine created",
        dialect=engine.dialect.name,
        environment=settings.environment,
    )

    return engine


def get_engine() -> AsyncEngine:
    """Get or create the global async database engine."""
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
        _session_factory = async_sessionmaker(
            get_engine(),
            class_=AsyncSession,
            expire_on_commit=False,
            autoflush=False,
        )
        logger.info("Database session factory created")

    return _session_factory


@asynccontextmanager
async def get_session() -> AsyncGenerator[AsyncSession, None]:
    """
    Create an async session, committing on success and rolling back on error.

    Yields:
        Async database session
    """
    session = get_session_factory()()

    try:
        yield session
        await session.commit()
    except Exception as e:
        await session.rollback()
        logger.debug(
            "Database session rolled back",
            error_type=type(e).__name__,
        )
        raise
    finally:
        await session.close()


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """
    FastAPI dependency for database session injection.

    Example:
        @router.get("/orders/{order_id}")
        async def read_order(db: AsyncSession = Depends(get_db)):
            ...
    """
    async with get_session() as session:
        yield session


@asynccontextmanager
async def unit_of_work(session: AsyncSession) -> AsyncGenerator[AsyncSession, None]:
    """
    Scope a group of writes to one transaction.

    Commits when the block exits cleanly. Any exception rolls the whole
    transaction back; SQLAlchemy failures are re-raised as
    PersistenceConflictError, domain errors propagate unchanged.
    """
    try:
        yield session
        await session.commit()
    except SQLAlchemyError as e:
        await session.rollback()
        logger.error(
            "Unit of work failed at the database",
            error=str(e),
            error_type=type(e).__name__,
        )
        raise PersistenceConflictError(
            "Database write failed", error_type=type(e).__name__
        ) from e
    except BaseException:
        await session.rollback()
        raise


async def check_database_health(max_retries: int = 3, retry_delay: float = 1.0) -> bool:
    """
    Check database connectivity with exponential backoff.

    Returns:
        True if a trivial query succeeds within ``max_retries`` attempts
    """
    for attempt in range(max_retries):
        try:
            async with get_engine().connect() as conn:
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
            if attempt < max_retries - 1:
                await asyncio.sleep(retry_delay * (2**attempt))
        except SQLAlchemyError as e:
            logger.error(
                "Database health check failed - SQLAlchemy error",
                error=str(e),
                error_type=type(e).__name__,
            )
            return False

    logger.error("Database health check failed after all retries", max_retries=max_retries)
    return False


async def close_database_connections() -> None:
    """Dispose of the engine; called on application shutdown."""
    global _engine, _session_factory

    if _engine is not None:
        try:
            await _engine.dispose()
            logger.info("Database connections closed and engine disposed")
        finally:
            _engine = None
            _session_factory = None
