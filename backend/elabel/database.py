"""
eLabel API — Database Session Management
=========================================

What:  Async SQLAlchemy engine, session factory, FastAPI session dependency,
       and the startup/shutdown helpers for the store connection.
Why:   Centralizes all connection logic in one place.
How:   Creates an async engine with connection pooling, provides a session
       dependency that commits on success and rolls back on error.
Who:   Route handlers via FastAPI's dependency injection; the lifespan in
       main.py for `verify_connection()` and `dispose_engine()`.

Connection Pooling Strategy:
    pool_size / max_overflow come from settings for server databases.
    SQLite (used by the test suite) picks its own pool class, so the pool
    arguments are left out for sqlite URLs.
"""

import asyncio
import logging
from typing import Any, AsyncGenerator, Dict

from sqlalchemy import text
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase
from tenacity import (
    AsyncRetrying,
    before_sleep_log,
    stop_after_attempt,
    wait_exponential_jitter,
)

from elabel.config import settings

logger = logging.getLogger(__name__)


def _engine_options(url: str) -> Dict[str, Any]:
    options: Dict[str, Any] = {"echo": settings.log_level == "DEBUG"}
    if url.startswith("sqlite"):
        return options
    options.update(
        pool_size=settings.db_pool_size,
        max_overflow=settings.db_max_overflow,
        pool_pre_ping=settings.db_pool_pre_ping,
        pool_recycle=3600,
    )
    return options


# ── Engine Configuration ──────────────────────────────────────────────────
engine: AsyncEngine = create_async_engine(
    settings.database_url,
    **_engine_options(settings.database_url),
)

# ── Session Factory ───────────────────────────────────────────────────────
# expire_on_commit=False: attributes stay readable after commit, which the
# response serializers rely on
async_session_factory = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


class Base(DeclarativeBase):
    """
    Base class for all SQLAlchemy ORM models.

    Shares a single metadata object, which Alembic reads for migrations and
    the test suite uses for `create_all`.
    """
    pass


# ── Session Dependency ────────────────────────────────────────────────────
async def get_db_session() -> AsyncGenerator[AsyncSession, None]:
    """
    FastAPI dependency that provides a database session per request.

    How it works:
        1. Creates a new session from the factory
        2. Yields it to the route handler
        3. On success: commits the transaction
        4. On error: rolls back and re-raises for the global error handler
        5. Always: closes the session (returns connection to pool)
    """
    async with async_session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()


# ── Lifecycle Helpers ─────────────────────────────────────────────────────
async def ping(bind: AsyncEngine = engine) -> None:
    """Executes SELECT 1; raises whatever the driver raises."""
    async with bind.connect() as conn:
        await conn.execute(text("SELECT 1"))


async def verify_connection() -> None:
    """
    What:  Opens the store connection once before the server takes traffic.
    When:  Called from the lifespan at startup.
    How:   tenacity retries `ping()` with exponential backoff and jitter;
           after the last attempt the driver error propagates and startup
           aborts.
    """
    async for attempt in AsyncRetrying(
        stop=stop_after_attempt(settings.retry_max_attempts),
        wait=wait_exponential_jitter(
            initial=settings.retry_min_wait,
            max=settings.retry_max_wait,
            jitter=1,
        ),
        before_sleep=before_sleep_log(logger, logging.WARNING),
        reraise=True,
    ):
        with attempt:
            await ping()
    logger.info("Database connected: %s", engine.url.render_as_string(hide_password=True))


async def dispose_engine(timeout: float) -> None:
    """
    What:  Gracefully closes all connections in the pool.
    When:  Called during application shutdown (lifespan handler).
    Raises:
        asyncio.TimeoutError when disposal does not finish within `timeout`.
    """
    await asyncio.wait_for(engine.dispose(), timeout=timeout)
