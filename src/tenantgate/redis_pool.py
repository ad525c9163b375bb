"""Process-wide Redis connection pool.

Learn: Only rate limiting uses Redis. The pool is created in the app lifespan;
when Redis is unreachable the app keeps serving without it and
``get_redis()`` returns None.
"""

from typing import Optional

import redis.asyncio as aioredis
from redis.exceptions import RedisError

from tenantgate.config import settings

# Initialized in lifespan
_redis: Optional[aioredis.Redis] = None


async def init_redis(url: Optional[str] = None) -> aioredis.Redis:
    """Connect and ping. Raises redis.RedisError when unreachable."""
    global _redis
    client = aioredis.from_url(
        url or settings.redis_url,
        encoding="utf-8",
        decode_responses=True,
    )
    try:
        await client.ping()
    except RedisError:
        await client.aclose()
        raise
    _redis = client
    return _redis


async def close_redis() -> None:
    global _redis
    if _redis is not None:
        await _redis.aclose()
        _redis = None


def get_redis() -> Optional[aioredis.Redis]:
    return _redis
