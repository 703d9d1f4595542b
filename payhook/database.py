"""
Async SQLAlchemy engine and session construction.
Uses asyncpg driver for PostgreSQL async connections (aiosqlite in tests).
CRITICAL: expire_on_commit=False prevents lazy-loading issues in async contexts.

Nothing here is cached at module level: the server and the worker pool each
build one engine at startup and hand it to the store they own.
"""
import logging
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

logger = logging.getLogger(__name__)


class Base(DeclarativeBase):
    pass


def build_engine(settings=None) -> AsyncEngine:
    """Create the async engine from settings."""
    if settings is None:
        from payhook.config import get_settings
        settings = get_settings()

    kwargs = {"echo": settings.app_env == "development"}
    # Pool sizing only applies to real connection pools (not SQLite)
    if not settings.database_url.startswith("sqlite"):
        kwargs["pool_size"] = settings.database_pool_size
        kwargs["max_overflow"] = settings.database_max_overflow
        kwargs["pool_pre_ping"] = True

    return create_async_engine(settings.database_url, **kwargs)


def build_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


async def ensure_schema(engine: AsyncEngine) -> None:
    """
    Create any missing tables. Idempotent; alembic remains the source of truth
    for schema changes in managed environments.
    """
    import payhook.models  # noqa: F401 - registers models on Base.metadata

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Database schema ensured")
