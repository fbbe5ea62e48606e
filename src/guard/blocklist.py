"""Explicit deny-list of identifiers with TTL-based expiry."""

import logging

from src.observability import ErrorReporter
from src.storage.redis_store import KeyValueStore

logger = logging.getLogger(__name__)

KEY_PREFIX = "blocked:"
DEFAULT_BLOCK_SECONDS = 3600


class Blocklist:
    """Best-effort blocking: storage errors mean "not blocked"."""

    def __init__(self, store: KeyValueStore, reporter: ErrorReporter | None = None):
        self.store = store
        self.reporter = reporter or ErrorReporter()

    async def is_blocked(self, identifier: str) -> bool:
        try:
            return bool(await self.store.exists(f"{KEY_PREFIX}{identifier}"))
        except Exception as exc:
            self.reporter.report("blocklist", "is_blocked", exc, identifier=identifier)
            return False

    async def block(self, identifier: str, duration_seconds: int = DEFAULT_BLOCK_SECONDS) -> None:
        """Block ``identifier`` until the record's TTL runs out."""
        try:
            await self.store.set(f"{KEY_PREFIX}{identifier}", "1", ex=duration_seconds)
            logger.info("Blocked %s for %ds", identifier, duration_seconds)
        except Exception as exc:
            self.reporter.report("blocklist", "block", exc, identifier=identifier)

    async def unblock(self, identifier: str) -> None:
        try:
            await self.store.delete(f"{KEY_PREFIX}{identifier}")
            logger.info("Unblocked %s", identifier)
        except Exception as exc:
            self.reporter.report("blocklist", "unblock", exc, identifier=identifier)
