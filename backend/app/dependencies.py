"""Application-level dependencies.

Provides the Redis connection and rate limiting as FastAPI
dependencies for injection into route handlers.
"""

from __future__ import annotations

import math
import time
import uuid
from typing import AsyncGenerator, Optional

import redis.asyncio as aioredis

from app.config import get_settings
from app.exceptions import RateLimitError
from app.logging_config import get_logger
from app.metrics import RATE_LIMIT_HITS

logger = get_logger(__name__)

# Global Redis connection pool
_redis_pool: Optional[aioredis.Redis] = None


async def init_redis() -> None:
    """Initialize Redis connection pool."""
    global _redis_pool
    settings = get_settings()
    _redis_pool = aioredis.from_url(
        settings.redis_url,
        encoding="utf-8",
        decode_responses=True,
        max_connections=20,
    )
    # Test connection
    await _redis_pool.ping()


async def close_redis() -> None:
    """Close Redis connection pool."""
    global _redis_pool
    if _redis_pool:
        await _redis_pool.aclose()
        _redis_pool = None


def get_redis_pool() -> Optional[aioredis.Redis]:
    """Return the current pool, if initialized."""
    return _redis_pool


async def get_redis() -> AsyncGenerator[aioredis.Redis, None]:
    """Get Redis connection as a FastAPI dependency."""
    if _redis_pool is None:
        raise RuntimeError("Redis not initialized. Call init_redis() first.")
    yield _redis_pool


class RateLimiter:
    """Redis-backed sliding window limiter.

    Each accepted request is a sorted-set member scored by its timestamp.
    Rejected attempts are removed again so they do not extend the block.
    """

    def __init__(
        self,
        key_prefix: str,
        max_requests: int,
        window_seconds: int,
    ) -> None:
        self.key_prefix = key_prefix
        self.max_requests = max_requests
        self.window_seconds = window_seconds

    async def check(self, identifier: str, redis: aioredis.Redis) -> None:
        """Record a request for `identifier`. Raises RateLimitError if over the limit."""
        key = f"ratelimit:{self.key_prefix}:{identifier}"
        now = time.time()
        member = f"{now}:{uuid.uuid4().hex[:8]}"

        pipe = redis.pipeline()
        pipe.zremrangebyscore(key, 0, now - self.window_seconds)
        pipe.zadd(key, {member: now})
        pipe.zcard(key)
        pipe.zrange(key, 0, 0, withscores=True)
        pipe.expire(key, self.window_seconds)
        _, _, request_count, oldest, _ = await pipe.execute()

        if request_count <= self.max_requests:
            return

        await redis.zrem(key, member)
        oldest_at = oldest[0][1] if oldest else now
        retry_after = max(1, math.ceil(oldest_at + self.window_seconds - now))
        RATE_LIMIT_HITS.labels(endpoint=self.key_prefix, limit_type="sliding_window").inc()
        logger.warning("rate_limit_exceeded", limiter=self.key_prefix, retry_after=retry_after)
        raise RateLimitError(limit_type=self.key_prefix, retry_after=retry_after)


# Pre-configured rate limiters
chat_rate_limiter = RateLimiter(
    key_prefix="chat",
    max_requests=get_settings().rate_limit_chat_per_minute,
    window_seconds=60,
)

login_rate_limiter = RateLimiter(
    key_prefix="login",
    max_requests=get_settings().rate_limit_login_per_minute,
    window_seconds=60,
)
