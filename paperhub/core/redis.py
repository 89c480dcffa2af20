"""Redis client for client cache scopes."""

import logging

import redis.asyncio as aioredis

from paperhub.core.config import settings

logger = logging.getLogger(__name__)


def create_redis_client(url: str | None = None) -> aioredis.Redis:
    """Create an async Redis client.

    The client owns its own connection pool; whoever creates it closes it
    with close_redis_client().

    Args:
        url: Redis URL (default from settings).
    """
    redis_url = url or str(settings.redis_url)
    logger.debug(f"Creating Redis client for {redis_url}")
    return aioredis.Redis.from_url(redis_url, decode_responses=True)


async def close_redis_client(client: aioredis.Redis) -> None:
    """Close a Redis client and disconnect its pool."""
    await client.aclose()

