"""Central configuration for FoodRAG."""

import os
from dataclasses import dataclass, field

from dotenv import load_dotenv

load_dotenv()

REQUIRED_ENV_VARS = (
    "GROQ_API_KEY",
    "UPSTASH_VECTOR_REST_URL",
    "UPSTASH_VECTOR_REST_TOKEN",
    "REDIS_URL",
)


class ConfigError(RuntimeError):
    """Raised when required environment variables are missing."""


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError as exc:
        raise ConfigError(f"{name} must be an integer, got {raw!r}") from exc


@dataclass
class Config:
    """Application configuration loaded from environment variables."""

    # LLM
    groq_api_key: str = field(default_factory=lambda: os.getenv("GROQ_API_KEY", ""))

    # Vector index
    vector_url: str = field(
        default_factory=lambda: os.getenv("UPSTASH_VECTOR_REST_URL", "")
    )
    vector_token: str = field(
        default_factory=lambda: os.getenv("UPSTASH_VECTOR_REST_TOKEN", "")
    )
    search_top_k: int = field(default_factory=lambda: _env_int("SEARCH_TOP_K", 3))

    # Key-value store
    redis_url: str = field(
        default_factory=lambda: os.getenv("REDIS_URL", "redis://localhost:6379/0")
    )

    # Request governance
    rate_limit_requests: int = field(
        default_factory=lambda: _env_int("RATE_LIMIT_REQUESTS", 10)
    )
    rate_limit_window_seconds: int = field(
        default_factory=lambda: _env_int("RATE_LIMIT_WINDOW_SECONDS", 60)
    )
    block_duration_seconds: int = field(
        default_factory=lambda: _env_int("BLOCK_DURATION_SECONDS", 3600)
    )
    cache_ttl_seconds: int = field(
        default_factory=lambda: _env_int("CACHE_TTL_SECONDS", 3600)
    )
    request_timeout_seconds: int = field(
        default_factory=lambda: _env_int("REQUEST_TIMEOUT_SECONDS", 30)
    )
    max_query_length: int = field(
        default_factory=lambda: _env_int("MAX_QUERY_LENGTH", 1000)
    )

    # Admin endpoints are disabled while this is empty
    admin_token: str = field(default_factory=lambda: os.getenv("ADMIN_TOKEN", ""))

    def __post_init__(self):
        if self.rate_limit_window_seconds <= 0:
            raise ConfigError("RATE_LIMIT_WINDOW_SECONDS must be positive")
        if self.request_timeout_seconds <= 0:
            raise ConfigError("REQUEST_TIMEOUT_SECONDS must be positive")

    def missing_required(self) -> list[str]:
        """Return the names of required settings that are empty."""
        values = {
            "GROQ_API_KEY": self.groq_api_key,
            "UPSTASH_VECTOR_REST_URL": self.vector_url,
            "UPSTASH_VECTOR_REST_TOKEN": self.vector_token,
            "REDIS_URL": self.redis_url,
        }
        return [name for name in REQUIRED_ENV_VARS if not values[name]]


def validate_config(config: Config) -> None:
    """Fail fast if the service cannot reach its collaborators."""
    missing = config.missing_required()
    if missing:
        raise ConfigError(
            f"Missing required environment variables: {', '.join(missing)}. "
            "Set them in the environment or a .env file."
        )


def get_config() -> Config:
    """Get a Config instance. Call this instead of constructing directly."""
    return Config()
