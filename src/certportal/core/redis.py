"""
Redis Configuration

Async Redis client used as the rate-limit backend.
"""

from redis.asyncio import Redis, from_url

from certportal.core.config import settings

# Redis client instance
redis_client: Redis | None = None


async def init_redis() -> Redis:
    """
    Initialize Redis connection.

    Call this on application startup. Rate limiting falls back to
    process memory while this is unset.
    """
    global redis_client
    client = from_url(
        settings.redis_url,
        encoding="utf-8",
        decode_responses=True,
    )
    # Only publish the client once it answers
    await client.ping()
    redis_client = client
    return redis_client


def is_redis_available() -> bool:
    """Check if Redis client is initialized and available."""
    return redis_client is not None


async def close_redis() -> None:
    """Close Redis connection."""
    global redis_client
    if redis_client:
        await redis_client.aclose()
        redis_client = None
