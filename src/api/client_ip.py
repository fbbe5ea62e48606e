"""Client identification and rate-limit response headers."""

import time

from starlette.datastructures import Headers

from src.guard.rate_limiter import RateLimitResult


def get_client_ip(headers: Headers) -> str:
    """Extract client IP, respecting X-Forwarded-For and X-Real-IP behind a proxy."""
    forwarded = headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    real_ip = headers.get("x-real-ip")
    if real_ip:
        return real_ip.strip()
    return "unknown"


def rate_limit_headers(result: RateLimitResult) -> dict[str, str]:
    return {
        "X-RateLimit-Limit": str(result.limit),
        "X-RateLimit-Remaining": str(result.remaining),
        "X-RateLimit-Reset": str(result.reset_epoch_seconds),
    }


def retry_after_seconds(result: RateLimitResult, now: float | None = None) -> int:
    """Seconds until the window admits a request, clamped at zero."""
    now = time.time() if now is None else now
    return max(0, result.reset_epoch_seconds - int(now))
