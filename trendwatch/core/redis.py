"""
Redis connection, stream names and the recompute lock.

Provides Redis client for both sync and async operations.
"""

import logging
from typing import Optional
from redis import Redis
from redis.exceptions import LockNotOwnedError
from redis.asyncio import Redis as AsyncRedis
from trendwatch.core.config import settings

logger = logging.getLogger(__name__)

# Synchronous Redis client (for Celery tasks and scripts)
redis_client: Optional[Redis] = None


def get_redis() -> Redis:
    """Get synchronous Redis client."""
    global redis_client
    if redis_client is None:
        redis_client = Redis.from_url(
            settings.REDIS_URL,
            decode_responses=True,
            max_connections=settings.REDIS_MAX_CONNECTIONS,
        )
    return redis_client


# Async Redis client (for the API)
async_redis_client: Optional[AsyncRedis] = None


async def get_async_redis() -> AsyncRedis:
    """Get async Redis client."""
    global async_redis_client
    if async_redis_client is None:
        async_redis_client = AsyncRedis.from_url(
            settings.REDIS_URL,
            decode_responses=True,
            max_connections=settings.REDIS_MAX_CONNECTIONS,
        )
    return async_redis_client


async def close_redis() -> None:
    """Close Redis connections."""
    global redis_client, async_redis_client

    if redis_client is not None:
        redis_client.close()
        redis_client = None

    if async_redis_client is not None:
        await async_redis_client.close()
        async_redis_client = None


# Redis Stream Names
class StreamNames:
    """Redis Stream names for the event bus."""

    MARKET_BARS = "market-bars"
    INDICATORS = "indicators"
    ALERTS = "alerts"


# Single global mutex: the universe is small and runs are batch oriented.
RECOMPUTE_LOCK_NAME = "trendwatch:lock:recompute"


def recompute_lock(client=None):
    """
    Non-blocking lock guarding indicator recomputation across processes.

    Works with either client flavour: the sync client returns a lock with
    sync acquire/release, the async client one with awaitable methods.
    The lock expires after RECOMPUTE_LOCK_TIMEOUT so a dead worker cannot
    hold it forever.
    """
    client = client if client is not None else get_redis()
    return client.lock(
        RECOMPUTE_LOCK_NAME,
        timeout=settings.RECOMPUTE_LOCK_TIMEOUT,
        blocking=False,
    )


def release_recompute_lock(lock) -> None:
    """Release a sync recompute lock; an expired lock only warrants a warning."""
    try:
        lock.release()
    except LockNotOwnedError:
        logger.warning("Recompute lock expired before release; run outlived RECOMPUTE_LOCK_TIMEOUT")


async def arelease_recompute_lock(lock) -> None:
    """Async counterpart of release_recompute_lock."""
    try:
        await lock.release()
    except LockNotOwnedError:
        logger.warning("Recompute lock expired before release; run outlived RECOMPUTE_LOCK_TIMEOUT")
