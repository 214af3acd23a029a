"""Redis client factory — used by the response cache and the rate limiter.

The client is created and owned by the application lifespan (see src/main.py)
and passed explicitly to whoever needs it; there is no module-level pool.
Responses are left as bytes: the cache store does its own decoding.
"""

import redis.asyncio as aioredis

from config.settings import settings


def create_redis(url: str | None = None) -> aioredis.Redis:
    """Build a Redis client. Connections are opened lazily by the pool."""
    return aioredis.from_url(
        url or settings.REDIS_URL,
        socket_timeout=settings.REDIS_SOCKET_TIMEOUT,
        socket_connect_timeout=settings.REDIS_CONNECT_TIMEOUT,
        health_check_interval=30,
    )
