"""Redis connection management.

Same shape as engine.py: with REDIS_URL set there is one shared
connection pool, otherwise `redis_pool` is None and the verify rate
limiter keeps its buckets in process memory.

Redis only holds the verify-endpoint token buckets.  Several API
replicas behind a load balancer must share those buckets, or an
attacker gets `replicas * VERIFY_RATE_LIMIT` guesses per window.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

import redis.asyncio as aioredis

from certservice.core.config import SETTINGS

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
    """Startup/shutdown hook for Redis, mirroring lifespan_db()."""
    if redis_pool is None:
        logger.info("No REDIS_URL configured, rate limit buckets stay in memory")
        yield
        return

    try:
        await redis_pool.ping()  # type: ignore[misc]
        logger.info("Redis connected: %s", SETTINGS.redis_url)
    except Exception:
        # Keep serving; the limiter fails open per request and logs it
        logger.exception("Redis connection failed on startup")
        yield
        return

    yield

    await redis_pool.aclose()
    logger.info("Redis connection pool closed")
