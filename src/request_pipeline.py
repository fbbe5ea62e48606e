"""Per-query request pipeline.

Runs each inbound chat query through the governance layers before any
upstream call is made:

    blocklist → rate limit → validation → cache lookup → search + generate
    → cache write

Each stage can end the request with a terminal outcome. The defensive
stages (blocklist, rate limiter, cache) fail open; search and generation
failures are surfaced to the caller.
"""

import asyncio
import enum
import logging
import time
from dataclasses import dataclass, field

from src.analytics.recorder import AnalyticsRecorder, ResponseMetrics
from src.errors import UpstreamError, UpstreamTimeout
from src.generation.model_catalog import DEFAULT_MODEL
from src.generation.rag_engine import RAGEngine
from src.guard.blocklist import Blocklist
from src.guard.input_validator import InputValidator, validate_model_id
from src.guard.rate_limiter import RateLimiter, RateLimitResult
from src.storage.response_cache import ResponseCache

logger = logging.getLogger(__name__)

BLOCKED_MESSAGE = "Too many requests. Your IP has been temporarily blocked."
RATE_LIMITED_MESSAGE = "Rate limit exceeded. Please try again later."
INVALID_MODEL_MESSAGE = (
    "Invalid model ID. Must be 'llama-3.1-8b-instant' or 'llama-3.3-70b-versatile'"
)


class PipelineOutcome(str, enum.Enum):
    ADMITTED = "admitted"  # not terminal: passed blocklist and rate limit
    BLOCKED = "blocked"
    RATE_LIMITED = "rate_limited"
    INVALID = "invalid"
    CACHE_HIT = "cache_hit"
    SUCCESS = "success"
    FAILED = "failed"


@dataclass
class PipelineResult:
    """Terminal state of one query plus whatever the caller needs to respond."""

    outcome: PipelineOutcome
    payload: dict = field(default_factory=dict)
    error: str | None = None
    error_category: str | None = None
    rate_limit: RateLimitResult | None = None

    @property
    def ok(self) -> bool:
        return self.outcome in (PipelineOutcome.SUCCESS, PipelineOutcome.CACHE_HIT)


@dataclass
class PipelineSettings:
    rate_limit_requests: int = 10
    rate_limit_window_seconds: int = 60
    max_query_length: int = 1000
    timeout_seconds: float = 30.0


class RequestPipeline:
    """Orchestrates governance checks around the RAG engine."""

    def __init__(
        self,
        blocklist: Blocklist,
        rate_limiter: RateLimiter,
        validator: InputValidator,
        cache: ResponseCache,
        engine: RAGEngine,
        analytics: AnalyticsRecorder | None = None,
        settings: PipelineSettings | None = None,
    ):
        self.blocklist = blocklist
        self.rate_limiter = rate_limiter
        self.validator = validator
        self.cache = cache
        self.engine = engine
        self.analytics = analytics
        self.settings = settings or PipelineSettings()

    async def handle(self, identifier: str, query: str, model_id: str | None = None) -> PipelineResult:
        """Process one query from ``identifier`` to a terminal outcome."""
        start = time.perf_counter()
        admission = await self.admit(identifier)
        if admission.outcome != PipelineOutcome.ADMITTED:
            return admission
        return await self.answer(admission, query, model_id, start=start)

    async def admit(self, identifier: str) -> PipelineResult:
        """Run the blocklist and rate-limit stages.

        Returns BLOCKED or RATE_LIMITED, or ADMITTED carrying the rate-limit
        metadata for ``answer``. Admission consumes a rate slot whatever the
        request body turns out to be.
        """
        if await self.blocklist.is_blocked(identifier):
            logger.info("Rejected blocked identifier %s", identifier)
            return PipelineResult(PipelineOutcome.BLOCKED, error=BLOCKED_MESSAGE)

        rate = await self.rate_limiter.check(
            identifier,
            limit=self.settings.rate_limit_requests,
            window_seconds=self.settings.rate_limit_window_seconds,
        )
        if not rate.allowed:
            return PipelineResult(
                PipelineOutcome.RATE_LIMITED, error=RATE_LIMITED_MESSAGE, rate_limit=rate
            )
        return PipelineResult(PipelineOutcome.ADMITTED, rate_limit=rate)

    async def answer(
        self,
        admission: PipelineResult,
        query: str,
        model_id: str | None = None,
        start: float | None = None,
    ) -> PipelineResult:
        """Validate, consult the cache, and run the engine for an admitted request."""
        start = time.perf_counter() if start is None else start
        rate = admission.rate_limit
        if model_id is None:
            model_id = DEFAULT_MODEL

        validation = self.validator.validate(
            query,
            max_length=self.settings.max_query_length,
            min_length=1,
            allow_html=False,
            check_prompt_injection=True,
        )
        if not validation.is_valid:
            return PipelineResult(
                PipelineOutcome.INVALID, error=validation.error or "Invalid input", rate_limit=rate
            )
        if not validate_model_id(model_id):
            return PipelineResult(PipelineOutcome.INVALID, error=INVALID_MODEL_MESSAGE, rate_limit=rate)

        query = validation.sanitized

        cached = await self.cache.get(query, model_id)
        if cached:
            payload = dict(cached)
            payload["metrics"] = {
                **(cached.get("metrics") or {}),
                "totalLatency": round((time.perf_counter() - start) * 1000),
            }
            payload["cached"] = True
            return PipelineResult(PipelineOutcome.CACHE_HIT, payload=payload, rate_limit=rate)

        try:
            response = await asyncio.wait_for(
                self.engine.query(query, model_id=model_id),
                timeout=self.settings.timeout_seconds,
            )
        except asyncio.TimeoutError:
            logger.error("Search/generation timed out after %.1fs", self.settings.timeout_seconds)
            err = UpstreamTimeout()
            await self._track_timeout(start)
            return PipelineResult(
                PipelineOutcome.FAILED, error=err.message, error_category=err.category, rate_limit=rate
            )
        except UpstreamError as exc:
            return PipelineResult(
                PipelineOutcome.FAILED, error=exc.message, error_category=exc.category, rate_limit=rate
            )

        logger.info("Answered with %s (usage=%s)", response.model, response.usage)
        payload = response.to_payload()
        await self.cache.put(query, model_id, payload)
        return PipelineResult(
            PipelineOutcome.SUCCESS, payload={**payload, "cached": False}, rate_limit=rate
        )

    async def _track_timeout(self, start: float) -> None:
        # The engine was cancelled before it could record its own failure
        if self.analytics is None:
            return
        await self.analytics.track_response(
            ResponseMetrics(
                query_id="",
                total_latency=round((time.perf_counter() - start) * 1000),
                response_length=0,
                success=False,
                error_type="TimeoutError",
            )
        )
