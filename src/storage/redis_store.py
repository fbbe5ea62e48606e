"""Async Redis connection for rate limits, blocklist, cache, and analytics.

All governance state lives in Redis; components receive the client handle
through their constructors and only use the subset of commands described by
``KeyValueStore``. Tests substitute an in-memory object with the same
method names.
"""

import logging
from typing import Protocol

import redis.asyncio as aioredis

logger = logging.getLogger(__name__)


class KeyValueStore(Protocol):
    """The ``redis.asyncio.Redis`` commands the application relies on."""

    async def zremrangebyscore(self, name: str, min, max) -> int: ...

    async def zcard(self, name: str) -> int: ...

    async def zrange(self, name: str, start: int, end: int, withscores: bool = False) -> list: ...

    async def zadd(self, name: str, mapping: dict) -> int: ...

    async def expire(self, name: str, time: int) -> bool: ...

    async def get(self, name: str): ...

    async def set(self, name: str, value, ex: int | None = None): ...

    async def delete(self, *names: str) -> int: ...

    async def exists(self, *names: str) -> int: ...

    async def incr(self, name: str, amount: int = 1) -> int: ...

    async def hincrby(self, name: str, key: str, amount: int = 1) -> int: ...

    async def lpush(self, name: str, *values) -> int: ...

    async def ltrim(self, name: str, start: int, end: int): ...

    async def lrange(self, name: str, start: int, end: int) -> list: ...

    async def hgetall(self, name: str) -> dict: ...


def create_redis_client(url: str) -> aioredis.Redis:
    """Build an async Redis client. The connection is opened lazily."""
    logger.info("Redis client configured for %s", _redact(url))
    return aioredis.from_url(
        url,
        decode_responses=True,
        socket_connect_timeout=5,
        socket_timeout=5,
    )


def _redact(url: str) -> str:
    """Hide credentials in a redis:// URL before logging it."""
    if "@" not in url:
        return url
    scheme, _, rest = url.partition("://")
    return f"{scheme}://***@{rest.split('@', 1)[1]}"
