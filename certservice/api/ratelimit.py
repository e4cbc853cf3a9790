"""Rate limiting dependency for FastAPI routes.

A dependency, not a middleware: only routes that declare it are
limited, and each can carry its own RateLimitConfig.  /health, /ready
and /metrics are never limited.

Buckets are keyed by client IP.  The public verify endpoint ignores any
Authorization header when keying; an unverified token would let a
caller mint fresh buckets at will.

X-RateLimit-* headers are attached to every limited response, not only
to 429s, so clients can throttle themselves.
"""

from __future__ import annotations

import logging

from fastapi import HTTPException, Request, Response, status
from redis.exceptions import RedisError

from certservice.core.config import SETTINGS
from certservice.core.metrics import RATE_LIMIT_HITS
from certservice.db.redis import redis_pool
from certservice.services.rate_limiter import (
    InMemoryRateLimiter,
    RateLimitConfig,
    RateLimiter,
    RateLimitResult,
    RedisRateLimiter,
)

logger = logging.getLogger(__name__)

_rate_limiter: RateLimiter
if redis_pool is not None:
    _rate_limiter = RedisRateLimiter(redis_pool)
else:
    _rate_limiter = InMemoryRateLimiter()

VERIFY_RATE_LIMIT = RateLimitConfig.per_minute(SETTINGS.verify_rate_limit)


def get_rate_limiter() -> RateLimiter:
    return _rate_limiter


def require_rate_limit(config: RateLimitConfig = RateLimitConfig()):
    """Dependency factory enforcing a token bucket per client IP.

    Usage:
        @router.get("/v1/verify", dependencies=[Depends(require_rate_limit(VERIFY_RATE_LIMIT))])
    """

    async def _check(request: Request, response: Response) -> None:
        key = _build_key(request)
        try:
            result: RateLimitResult = await _rate_limiter.check(key, config)
        except RedisError:
            # A Redis outage must not take verification down with it
            logger.exception("Rate limiter backend failed, allowing key=%s", key)
            return

        response.headers["X-RateLimit-Limit"] = str(result.limit)
        response.headers["X-RateLimit-Remaining"] = str(result.remaining)

        if not result.allowed:
            RATE_LIMIT_HITS.labels(key_type="ip").inc()
            logger.warning("Rate limit exceeded key=%s path=%s", key, request.url.path)
            raise HTTPException(
                status_code=status.HTTP_429_TOO_MANY_REQUESTS,
                detail="Rate limit exceeded",
                headers={
                    "Retry-After": str(int(result.retry_after) + 1),
                    "X-RateLimit-Limit": str(result.limit),
                    "X-RateLimit-Remaining": "0",
                },
            )

    return _check


def _build_key(request: Request) -> str:
    client_ip = request.client.host if request.client else "unknown"
    return f"ip:{client_ip}"
