"""Error-reporting side channel for the defensive layers.

Components that fail open (blocklist, rate limiter, cache, analytics) never
raise storage errors to their callers. They hand the exception to an
``ErrorReporter`` instead, which logs it with structured context and keeps
a per-component tally that the health endpoint can expose.
"""

import logging
from collections import Counter

logger = logging.getLogger(__name__)


class ErrorReporter:
    """Records swallowed errors without affecting control flow."""

    def __init__(self, log: logging.Logger | None = None):
        self._log = log or logger
        self._counts: Counter[str] = Counter()

    def report(self, component: str, operation: str, exc: BaseException, **context) -> None:
        """Log a swallowed error and count it under ``component.operation``."""
        key = f"{component}.{operation}"
        self._counts[key] += 1
        self._log.warning(
            "[%s] %s failed: %s: %s",
            component,
            operation,
            type(exc).__name__,
            exc,
            extra={
                "component": component,
                "operation": operation,
                "error_type": type(exc).__name__,
                "context": context,
            },
        )

    def counts(self) -> dict[str, int]:
        """Snapshot of error counts keyed by ``component.operation``."""
        return dict(self._counts)
