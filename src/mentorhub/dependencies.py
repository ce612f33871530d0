"""Shared FastAPI dependencies."""

from collections.abc import AsyncGenerator

from redis.asyncio import Redis

from mentorhub.redis_client import get_optional_redis


async def get_redis_dep() -> AsyncGenerator[Redis | None, None]:
    """Yield the Redis client, or None when Redis is disabled."""
    yield get_optional_redis()
