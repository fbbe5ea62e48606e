"""Sliding-window rate limiter backed by a Redis sorted set.

Each identifier owns a sorted set of request entries scored by their
millisecond timestamp. Stale entries are evicted before counting, so the
window moves with the clock instead of resetting on fixed boundaries.
The limiter fails open: a store outage never blocks legitimate traffic.
"""

import logging
import math
import random
import time
from dataclasses import dataclass
from typing import Callable

from src.observability import ErrorReporter
from src.storage.redis_store import KeyValueStore

logger = logging.getLogger(__name__)

KEY_PREFIX = "rate_limit:"


@dataclass(frozen=True)
class RateLimitResult:
    """Outcome of one rate-limit check."""

    allowed: bool
    limit: int
    remaining: int
    reset_epoch_seconds: int


class RateLimiter:
    """Per-identifier sliding-window counter.

    Usage:
        limiter = RateLimiter(redis_client)
        result = await limiter.check("203.0.113.7", limit=10, window_seconds=60)
        if not result.allowed:
            ...
    """

    def __init__(
        self,
        store: KeyValueStore,
        reporter: ErrorReporter | None = None,
        clock: Callable[[], float] = time.time,
    ):
        self.store = store
        self.reporter = reporter or ErrorReporter()
        self._clock = clock

    async def check(self, identifier: str, limit: int = 10, window_seconds: int = 60) -> RateLimitResult:
        """Count and, if admitted, record one request for ``identifier``.

        Raises:
            ValueError: If ``window_seconds`` is not positive.
        """
        if window_seconds <= 0:
            raise ValueError("window_seconds must be positive")

        key = f"{KEY_PREFIX}{identifier}"
        window_ms = window_seconds * 1000
        now_ms = int(self._clock() * 1000)

        try:
            # An entry exactly one window old has expired
            await self.store.zremrangebyscore(key, 0, now_ms - window_ms)
            count = await self.store.zcard(key)

            if count >= limit:
                oldest = await self.store.zrange(key, 0, 0, withscores=True)
                oldest_ms = float(oldest[0][1]) if oldest else now_ms
                logger.info("Rate limit hit for %s (%d/%d)", identifier, count, limit)
                return RateLimitResult(
                    allowed=False,
                    limit=limit,
                    remaining=0,
                    reset_epoch_seconds=math.ceil((oldest_ms + window_ms) / 1000),
                )

            member = f"{now_ms}:{random.random()}"
            await self.store.zadd(key, {member: now_ms})
            await self.store.expire(key, window_seconds)

            return RateLimitResult(
                allowed=True,
                limit=limit,
                remaining=limit - count - 1,
                reset_epoch_seconds=math.ceil((now_ms + window_ms) / 1000),
            )
        except Exception as exc:
            self.reporter.report("rate_limiter", "check", exc, identifier=identifier)
            return RateLimitResult(
                allowed=True,
                limit=limit,
                remaining=limit,
                reset_epoch_seconds=math.ceil((now_ms + window_ms) / 1000),
            )
