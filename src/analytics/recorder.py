"""Query and response analytics stored in Redis.

Records every chat query and its outcome, and serves the aggregates behind
the analytics endpoints. Analytics are never allowed to fail a request:
write errors are reported and dropped, read errors return empty defaults.
"""

import json
import logging
import random
import string
import time
from dataclasses import asdict, dataclass, field
from datetime import datetime, timedelta, timezone

from src.observability import ErrorReporter
from src.storage.redis_store import KeyValueStore

logger = logging.getLogger(__name__)

QUERIES_KEY = "analytics:queries"
QUERY_COUNT_KEY = "analytics:query_count"
CATEGORIES_KEY = "analytics:categories"
MODELS_KEY = "analytics:models"
RESPONSE_METRICS_KEY = "analytics:response_metrics"
ERRORS_KEY = "analytics:errors"

HISTORY_SIZE = 1000
DAILY_TTL_SECONDS = 86400 * 7

_ALPHABET = string.ascii_lowercase + string.digits


def daily_key(day: str) -> str:
    return f"analytics:daily:{day}"


def _today() -> str:
    return datetime.now(timezone.utc).date().isoformat()


def new_query_id() -> str:
    suffix = "".join(random.choices(_ALPHABET, k=7))
    return f"{int(time.time() * 1000)}-{suffix}"


@dataclass
class QueryEvent:
    id: str
    query: str
    model: str
    timestamp: str
    category: str | None = None


@dataclass
class ResponseMetrics:
    """Outcome of one processed query (latencies in ms)."""

    query_id: str
    search_latency: int = 0
    generation_latency: int = 0
    total_latency: int = 0
    search_results_count: int = 0
    response_length: int = 0
    success: bool = True
    error_type: str | None = None


@dataclass
class AnalyticsSummary:
    total_queries: int = 0
    queries_last_24h: int = 0
    avg_response_time: int = 0
    success_rate: int = 100
    top_categories: list[dict] = field(default_factory=list)
    model_usage: list[dict] = field(default_factory=list)
    recent_queries: list[dict] = field(default_factory=list)


def _decode(raw) -> dict:
    return json.loads(raw) if isinstance(raw, str) else raw


class AnalyticsRecorder:
    """Writes query/response events and reads back dashboard aggregates."""

    def __init__(self, store: KeyValueStore, reporter: ErrorReporter | None = None):
        self.store = store
        self.reporter = reporter or ErrorReporter()

    # ── Writes ──────────────────────────────────────────────────────

    async def track_query(self, query: str, model: str, category: str | None = None) -> str:
        """Record a new query. The returned id is valid even if storage fails."""
        query_id = new_query_id()
        event = QueryEvent(
            id=query_id,
            query=query,
            model=model,
            timestamp=datetime.now(timezone.utc).isoformat(),
            category=category,
        )
        today = daily_key(_today())
        try:
            await self.store.lpush(QUERIES_KEY, json.dumps(asdict(event)))
            await self.store.ltrim(QUERIES_KEY, 0, HISTORY_SIZE - 1)
            await self.store.incr(QUERY_COUNT_KEY)
            await self.store.incr(today)
            await self.store.expire(today, DAILY_TTL_SECONDS)
            await self.store.hincrby(MODELS_KEY, model, 1)
            if category:
                await self.store.hincrby(CATEGORIES_KEY, category, 1)
        except Exception as exc:
            self.reporter.report("analytics", "track_query", exc, query_id=query_id)
        return query_id

    async def track_response(self, metrics: ResponseMetrics) -> None:
        try:
            await self.store.lpush(RESPONSE_METRICS_KEY, json.dumps(asdict(metrics)))
            await self.store.ltrim(RESPONSE_METRICS_KEY, 0, HISTORY_SIZE - 1)
            if not metrics.success and metrics.error_type:
                await self.store.hincrby(ERRORS_KEY, metrics.error_type, 1)
        except Exception as exc:
            self.reporter.report("analytics", "track_response", exc, query_id=metrics.query_id)

    # ── Reads ───────────────────────────────────────────────────────

    async def get_summary(self) -> AnalyticsSummary:
        try:
            total = int(await self.store.get(QUERY_COUNT_KEY) or 0)
            last_24h = int(await self.store.get(daily_key(_today())) or 0)
            recent = [_decode(q) for q in await self.store.lrange(QUERIES_KEY, 0, 9)]
            metrics = [_decode(m) for m in await self.store.lrange(RESPONSE_METRICS_KEY, 0, 99)]
            categories = await self.store.hgetall(CATEGORIES_KEY) or {}
            models = await self.store.hgetall(MODELS_KEY) or {}
        except Exception as exc:
            self.reporter.report("analytics", "get_summary", exc)
            return AnalyticsSummary()

        avg_response_time = 0
        success_rate = 100
        if metrics:
            avg_response_time = round(sum(m.get("total_latency", 0) for m in metrics) / len(metrics))
            succeeded = sum(1 for m in metrics if m.get("success"))
            success_rate = round(succeeded / len(metrics) * 100)

        top_categories = sorted(
            ({"category": k, "count": int(v)} for k, v in categories.items()),
            key=lambda c: c["count"],
            reverse=True,
        )[:5]
        model_usage = sorted(
            ({"model": k, "count": int(v)} for k, v in models.items()),
            key=lambda m: m["count"],
            reverse=True,
        )

        return AnalyticsSummary(
            total_queries=total,
            queries_last_24h=last_24h,
            avg_response_time=avg_response_time,
            success_rate=success_rate,
            top_categories=top_categories,
            model_usage=model_usage,
            recent_queries=recent,
        )

    async def get_performance_metrics(self, limit: int = 50) -> list[dict]:
        try:
            raw = await self.store.lrange(RESPONSE_METRICS_KEY, 0, limit - 1)
        except Exception as exc:
            self.reporter.report("analytics", "get_performance_metrics", exc)
            return []
        return [_decode(m) for m in raw]

    async def get_error_breakdown(self) -> dict[str, int]:
        try:
            errors = await self.store.hgetall(ERRORS_KEY) or {}
        except Exception as exc:
            self.reporter.report("analytics", "get_error_breakdown", exc)
            return {}
        return {k: int(v) for k, v in errors.items()}

    async def get_daily_query_counts(self, days: int = 7) -> list[dict]:
        """Per-day query counts, oldest first."""
        today = datetime.now(timezone.utc).date()
        counts = []
        try:
            for offset in range(days - 1, -1, -1):
                day = (today - timedelta(days=offset)).isoformat()
                counts.append({"date": day, "count": int(await self.store.get(daily_key(day)) or 0)})
        except Exception as exc:
            self.reporter.report("analytics", "get_daily_query_counts", exc)
            return []
        return counts
