"""Shared async Redis client, used for the revoked-token set."""

import logging

import redis.asyncio as redis

from app.config import settings

logger = logging.getLogger(__name__)

_client: redis.Redis | None = None


async def get_redis() -> redis.Redis:
    global _client
    if _client is None:
        _client = redis.from_url(
            settings.redis_url,
            decode_responses=True,
            socket_connect_timeout=5,
            socket_timeout=5,
        )
        logger.info("Redis client created for %s", settings.redis_url.rsplit("@", 1)[-1])
    return _client


def set_redis(client: redis.Redis | None) -> None:
    """Swap the shared client, e.g. for an in-memory fake."""
    global _client
    _client = client


async def close_redis() -> None:
    global _client
    if _client is not None:
        await _client.aclose()
        _client = None
