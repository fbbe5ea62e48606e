"""Upstream failure taxonomy for search and generation.

Failures from the vector index or the LLM provider are never retried; they
are classified into a handful of categories so the caller can show an
actionable message.
"""

TIMEOUT = "timeout"
RATE_LIMIT = "rate_limit"
UNAVAILABLE = "unavailable"
GENERIC = "generic"

USER_MESSAGES = {
    TIMEOUT: (
        "Request timed out. The 70B model may be under heavy load. "
        "Try the 8B model for faster responses."
    ),
    RATE_LIMIT: (
        "Rate limit exceeded. Please wait a moment and try again, "
        "or switch to the 8B model."
    ),
    UNAVAILABLE: "The AI service is temporarily unavailable. Please try again in a moment.",
}


class UpstreamError(RuntimeError):
    """A search or generation call failed."""

    def __init__(self, category: str, message: str):
        super().__init__(message)
        self.category = category
        self.message = message


class UpstreamTimeout(UpstreamError):
    def __init__(self, message: str = USER_MESSAGES[TIMEOUT]):
        super().__init__(TIMEOUT, message)


def classify_upstream_error(exc: BaseException) -> UpstreamError:
    """Map an arbitrary upstream exception onto a user-facing category."""
    if isinstance(exc, UpstreamError):
        return exc

    text = str(exc).lower()
    if "rate limit" in text or "429" in text:
        return UpstreamError(RATE_LIMIT, USER_MESSAGES[RATE_LIMIT])
    if "timeout" in text or "timed out" in text:
        return UpstreamTimeout()
    if "503" in text or "service unavailable" in text:
        return UpstreamError(UNAVAILABLE, USER_MESSAGES[UNAVAILABLE])
    return UpstreamError(GENERIC, f"Failed to generate response: {exc}")
