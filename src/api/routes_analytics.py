"""Analytics endpoints — query volume, latency, errors, model usage."""

import logging
from dataclasses import asdict

from fastapi import APIRouter, Depends, Query

from src.analytics.recorder import AnalyticsRecorder
from src.api.deps import get_analytics
from src.api.models import AnalyticsSummaryResponse, DailyCount

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/analytics", tags=["analytics"])


@router.get("", response_model=AnalyticsSummaryResponse)
async def summary(analytics: AnalyticsRecorder = Depends(get_analytics)):
    """Totals, success rate, top categories, and recent queries."""
    return AnalyticsSummaryResponse(**asdict(await analytics.get_summary()))


@router.get("/performance", response_model=list[dict])
async def performance(
    limit: int = Query(default=50, ge=1, le=1000),
    analytics: AnalyticsRecorder = Depends(get_analytics),
):
    """Most recent response metrics, newest first."""
    return await analytics.get_performance_metrics(limit)


@router.get("/errors", response_model=dict[str, int])
async def errors(analytics: AnalyticsRecorder = Depends(get_analytics)):
    """Failure counts by error type."""
    return await analytics.get_error_breakdown()


@router.get("/daily", response_model=list[DailyCount])
async def daily(
    days: int = Query(default=7, ge=1, le=90),
    analytics: AnalyticsRecorder = Depends(get_analytics),
):
    """Per-day query counts, oldest first."""
    rows = await analytics.get_daily_query_counts(days)
    return [DailyCount(**r) for r in rows]
