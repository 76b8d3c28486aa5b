"""
Async Redis client shared by publishers and the gateway subscriber.
"""

from __future__ import annotations

import asyncio

import redis.asyncio as redis

from shared.config.settings import settings, REDIS_URL
from shared.config.logging import get_logger

logger = get_logger(__name__)

_redis_pool: redis.Redis | None = None
_redis_pool_lock: asyncio.Lock | None = None


def _get_pool_lock() -> asyncio.Lock:
    global _redis_pool_lock
    if _redis_pool_lock is None:
        _redis_pool_lock = asyncio.Lock()
    return _redis_pool_lock


async def get_redis_pool() -> redis.Redis:
    """Get or create the pooled async client."""
    global _redis_pool
    if _redis_pool is not None:
        return _redis_pool

    async with _get_pool_lock():
        if _redis_pool is None:
            _redis_pool = redis.from_url(
                REDIS_URL,
                max_connections=settings.redis_pool_max_connections,
                decode_responses=True,
                socket_connect_timeout=settings.redis_socket_timeout,
                socket_timeout=settings.redis_socket_timeout,
                health_check_interval=30,
            )
            logger.info(
                "Redis pool initialized",
                max_connections=settings.redis_pool_max_connections,
            )
    return _redis_pool


async def close_redis_pool() -> None:
    """Close the pooled client. Safe to call when it was never opened."""
    global _redis_pool, _redis_pool_lock
    if _redis_pool is None:
        return
    try:
        await _redis_pool.aclose()
        logger.info("Redis pool closed")
    except (redis.RedisError, OSError) as e:
        logger.warning("Error closing Redis pool", error=str(e))
    finally:
        _redis_pool = None
        _redis_pool_lock = None
