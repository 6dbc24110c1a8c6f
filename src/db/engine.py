"""Async database engine, session factory, and lifespan management.

SQLAlchemy 2.0 async with the asyncpg driver for PostgreSQL. A Redis
client is created only for ``LOCK_BACKEND=redis``, where it backs the
cross-process booking locks.
"""

from __future__ import annotations

import contextlib
import logging
from collections.abc import AsyncGenerator

import redis.asyncio as aioredis
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from src.config import settings

logger = logging.getLogger(__name__)

# ── Async PostgreSQL engine ──────────────────────────────────────────

engine: AsyncEngine = create_async_engine(
    settings.db.database_url,
    echo=settings.log_level == "DEBUG",
    pool_size=10,
    max_overflow=20,
    pool_pre_ping=True,
    pool_recycle=3600,
)

# ── Session factory ──────────────────────────────────────────────────

async_session_factory = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


async def get_session() -> AsyncGenerator[AsyncSession, None]:
    """Dependency for FastAPI — one transaction per request.

    Commits when the handler returns, rolls back when it raises. Row locks
    taken by the booking workflow are held until this commit.
    """
    async with async_session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


# ── Redis client (booking locks) ─────────────────────────────────────

_redis_client: aioredis.Redis | None = None


def get_redis_client() -> aioredis.Redis:
    """Shared Redis client, created on first use."""
    global _redis_client
    if _redis_client is None:
        _redis_client = aioredis.from_url(settings.db.redis_url, decode_responses=True)
    return _redis_client


# ── Lifespan helpers ─────────────────────────────────────────────────


async def init_db() -> None:
    """Verify connectivity; outside production also create missing tables.

    In production the schema (including the overlap exclusion constraint)
    comes from Alembic migrations. With the Redis lock backend, Redis must
    answer before the app accepts bookings.
    """
    async with engine.begin() as conn:
        # Import here to ensure all models are registered with Base.metadata
        from src.models import Base

        if not settings.is_production:
            await conn.run_sync(Base.metadata.create_all)

    if settings.scheduling.lock_backend == "redis":
        await get_redis_client().ping()
        logger.info("Redis reachable for booking locks")


async def close_db() -> None:
    """Dispose the database engine, and the Redis client if one was opened."""
    global _redis_client
    await engine.dispose()
    if _redis_client is not None:
        await _redis_client.aclose()
        _redis_client = None


@contextlib.asynccontextmanager
async def db_lifespan() -> AsyncGenerator[None, None]:
    """Context manager for database lifecycle.

    Usage in FastAPI lifespan:
        @asynccontextmanager
        async def lifespan(app: FastAPI):
            async with db_lifespan():
                yield
    """
    await init_db()
    try:
        yield
    finally:
        await close_db()
