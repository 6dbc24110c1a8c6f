"""Per-doctor critical sections for check-then-insert.

Two bookings for the same doctor must not both pass the conflict check
before either is written. Bookings for different doctors never wait on
each other.

Usage:
    async with locks.hold(doctor_id):
        ...check conflicts, insert, flush...
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import uuid
from collections.abc import AsyncIterator
from typing import TYPE_CHECKING, Protocol

from src.config import settings

if TYPE_CHECKING:
    import redis.asyncio as aioredis

logger = logging.getLogger(__name__)


class DoctorLockBackend(Protocol):
    def hold(self, doctor_id: uuid.UUID) -> contextlib.AbstractAsyncContextManager[None]: ...


class DoctorLocks:
    """In-process asyncio locks keyed by doctor id (single worker deployments, tests)."""

    def __init__(self) -> None:
        self._locks: dict[uuid.UUID, asyncio.Lock] = {}

    def _lock_for(self, doctor_id: uuid.UUID) -> asyncio.Lock:
        lock = self._locks.get(doctor_id)
        if lock is None:
            lock = self._locks[doctor_id] = asyncio.Lock()
        return lock

    @contextlib.asynccontextmanager
    async def hold(self, doctor_id: uuid.UUID) -> AsyncIterator[None]:
        async with self._lock_for(doctor_id):
            yield


class RedisDoctorLocks:
    """Redis locks keyed by doctor id, shared by every worker process."""

    def __init__(self, redis: aioredis.Redis, timeout: float, prefix: str = "booking:doctor") -> None:
        self._redis = redis
        self._timeout = timeout
        self._prefix = prefix

    @contextlib.asynccontextmanager
    async def hold(self, doctor_id: uuid.UUID) -> AsyncIterator[None]:
        name = f"{self._prefix}:{doctor_id}"
        lock = self._redis.lock(name, timeout=self._timeout, blocking_timeout=self._timeout)
        async with lock:
            logger.debug("Acquired booking lock %s", name)
            yield


def build_lock_backend() -> DoctorLockBackend:
    """Lock backend selected by ``settings.scheduling.lock_backend``."""
    if settings.scheduling.lock_backend == "redis":
        from src.db.engine import get_redis_client

        return RedisDoctorLocks(get_redis_client(), timeout=settings.scheduling.lock_timeout_seconds)
    return DoctorLocks()
