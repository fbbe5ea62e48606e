"""Response cache keyed by normalized query and model.

Queries that differ only in case or whitespace share one entry on purpose.
Caching is an optimization: every storage failure degrades to a miss.
"""

import json
import logging
import re

from src.observability import ErrorReporter
from src.storage.redis_store import KeyValueStore

logger = logging.getLogger(__name__)

CACHE_PREFIX = "query_cache:"
CACHE_TTL_SECONDS = 3600

_WHITESPACE = re.compile(r"\s+")


def normalize_query(query: str) -> str:
    """Lowercase, trim, and collapse internal whitespace runs."""
    return _WHITESPACE.sub(" ", query.lower().strip())


def cache_key(query: str, model_id: str) -> str:
    return f"{CACHE_PREFIX}{model_id}:{normalize_query(query)}"


class ResponseCache:
    """Stores generated answers in Redis with a fixed TTL."""

    def __init__(
        self,
        store: KeyValueStore,
        ttl_seconds: int = CACHE_TTL_SECONDS,
        reporter: ErrorReporter | None = None,
    ):
        self.store = store
        self.ttl_seconds = ttl_seconds
        self.reporter = reporter or ErrorReporter()

    async def get(self, query: str, model_id: str) -> dict | None:
        """Return the cached payload, or None on miss or error."""
        key = cache_key(query, model_id)
        try:
            raw = await self.store.get(key)
        except Exception as exc:
            self.reporter.report("cache", "get", exc, key=key)
            return None
        if raw is None:
            return None
        if isinstance(raw, dict):
            return raw
        try:
            payload = json.loads(raw)
        except (TypeError, ValueError) as exc:
            self.reporter.report("cache", "decode", exc, key=key)
            return None
        if not isinstance(payload, dict):
            self.reporter.report(
                "cache", "decode", TypeError(f"expected object, got {type(payload).__name__}"), key=key
            )
            return None
        logger.info("Cache hit: %s", key)
        return payload

    async def put(self, query: str, model_id: str, payload: dict) -> None:
        key = cache_key(query, model_id)
        try:
            await self.store.set(key, json.dumps(payload), ex=self.ttl_seconds)
        except Exception as exc:
            self.reporter.report("cache", "set", exc, key=key)

    async def invalidate(self, query: str, model_id: str) -> None:
        key = cache_key(query, model_id)
        try:
            await self.store.delete(key)
        except Exception as exc:
            self.reporter.report("cache", "invalidate", exc, key=key)
