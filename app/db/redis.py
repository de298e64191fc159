"""Redis connection management.

Mirrors engine.py: with REDIS_URL set, a shared connection pool backs the
stats cache and the notification task queue; without it, both fall back
to in-memory implementations and no Redis server is needed.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

import redis.asyncio as aioredis

from app.core.config import SETTINGS

logger = logging.getLogger(__name__)

if SETTINGS.redis_url:
    redis_pool: aioredis.Redis | None = aioredis.from_url(  # type: ignore[type-arg]
        SETTINGS.redis_url,
        decode_responses=True,
        max_connections=20,
    )
else:
    redis_pool = None


@asynccontextmanager
async def lifespan_redis():
    """Verify connectivity on startup and close the pool on shutdown.

    A failed ping is logged, not raised: the API still serves requests and
    the cache and queue calls surface their own errors.
    """
    if redis_pool is None:
        logger.info("No REDIS_URL configured, cache and queue are in-memory")
        yield
        return

    try:
        await redis_pool.ping()  # type: ignore[misc]
        logger.info("Redis connected: %s", SETTINGS.redis_url)
    except Exception:
        logger.exception("Redis connection failed on startup")
        yield
        return

    yield

    await redis_pool.aclose()
    logger.info("Redis connection pool closed")
