"""
Shared key-value store used for cross-instance request state (rate-limit counters).

Redis is the only store: nothing that must be shared between server instances
lives in process memory.
"""

import logging
from typing import Protocol

import redis.asyncio as redis

from app.core.config import settings

logger = logging.getLogger(__name__)


class KeyValueStore(Protocol):
    async def incr(self, key: str) -> int: ...

    async def expire(self, key: str, seconds: int) -> bool: ...

    async def ttl(self, key: str) -> int: ...


redis_client: redis.Redis | None = None


async def connect_redis():
    global redis_client
    if not settings.REDIS_URL:
        logger.info("REDIS_URL not set, shared key-value store disabled")
        return
    redis_client = redis.from_url(
        settings.REDIS_URL,
        decode_responses=True,
        socket_connect_timeout=2,
        socket_timeout=2,
    )
    logger.info("Redis client ready")


async def close_redis():
    global redis_client
    if redis_client:
        await redis_client.aclose()
        redis_client = None
        logger.info("Redis connection closed")


def get_kv_store() -> KeyValueStore | None:
    return redis_client
