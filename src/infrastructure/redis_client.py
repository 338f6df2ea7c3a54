"""Redis async client backed by a connection pool."""

import redis.asyncio as aioredis


def build_redis(redis_url: str) -> aioredis.Redis:
    """Return a Redis client with its own pool; close with ``aclose()``."""
    pool = aioredis.ConnectionPool.from_url(redis_url, decode_responses=True)
    return aioredis.Redis(connection_pool=pool)
