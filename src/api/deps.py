"""FastAPI dependency injection — shared component singletons.

Creates the Redis client, the HTTP client for the vector index, the Groq
backend, and every governance component once at startup, then provides
them via FastAPI Depends().
"""

import logging

import httpx

from src.analytics.recorder import AnalyticsRecorder
from src.config import Config, get_config, validate_config
from src.generation.groq_backend import GroqBackend
from src.generation.rag_engine import RAGEngine
from src.guard.blocklist import Blocklist
from src.guard.input_validator import InputValidator
from src.guard.rate_limiter import RateLimiter
from src.observability import ErrorReporter
from src.request_pipeline import PipelineSettings, RequestPipeline
from src.retrieval.vector_search import VectorSearchClient
from src.storage.redis_store import create_redis_client
from src.storage.response_cache import ResponseCache

logger = logging.getLogger(__name__)

# ── Singletons (populated by init_components) ───────────────────────

_config: Config | None = None
_redis = None
_http_client: httpx.AsyncClient | None = None
_reporter: ErrorReporter | None = None
_search_client: VectorSearchClient | None = None
_analytics: AnalyticsRecorder | None = None
_blocklist: Blocklist | None = None
_pipeline: RequestPipeline | None = None


def init_components(config: Config | None = None) -> None:
    """Initialize all clients and components. Call once at startup."""
    global _config, _redis, _http_client, _reporter, _search_client
    global _analytics, _blocklist, _pipeline

    _config = config or get_config()
    validate_config(_config)

    _reporter = ErrorReporter()
    _redis = create_redis_client(_config.redis_url)
    _http_client = httpx.AsyncClient(timeout=_config.request_timeout_seconds)

    _search_client = VectorSearchClient(
        _config.vector_url, _config.vector_token, _http_client
    )
    _analytics = AnalyticsRecorder(_redis, _reporter)
    _blocklist = Blocklist(_redis, _reporter)

    llm = GroqBackend(api_key=_config.groq_api_key)
    engine = RAGEngine(_search_client, llm, _analytics, top_k=_config.search_top_k)

    _pipeline = RequestPipeline(
        blocklist=_blocklist,
        rate_limiter=RateLimiter(_redis, _reporter),
        validator=InputValidator(),
        cache=ResponseCache(_redis, _config.cache_ttl_seconds, _reporter),
        engine=engine,
        analytics=_analytics,
        settings=PipelineSettings(
            rate_limit_requests=_config.rate_limit_requests,
            rate_limit_window_seconds=_config.rate_limit_window_seconds,
            max_query_length=_config.max_query_length,
            timeout_seconds=_config.request_timeout_seconds,
        ),
    )
    logger.info("All components initialized")


async def close_components() -> None:
    """Release network clients opened by init_components."""
    global _redis, _http_client
    if _http_client is not None:
        await _http_client.aclose()
        _http_client = None
    if _redis is not None:
        await _redis.aclose()
        _redis = None


def is_initialized() -> bool:
    """Check if components have been initialized (or mocked for testing)."""
    return _pipeline is not None


def get_config_dep() -> Config:
    return _config or get_config()


def get_pipeline() -> RequestPipeline:
    assert _pipeline is not None, "Components not initialized — call init_components()"
    return _pipeline


def get_analytics() -> AnalyticsRecorder:
    assert _analytics is not None, "Components not initialized — call init_components()"
    return _analytics


def get_blocklist() -> Blocklist:
    assert _blocklist is not None, "Components not initialized — call init_components()"
    return _blocklist


def get_search_client() -> VectorSearchClient | None:
    return _search_client


def get_reporter() -> ErrorReporter:
    return _reporter or ErrorReporter()
