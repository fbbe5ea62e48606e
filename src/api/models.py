"""Pydantic models for API request/response schemas."""

from pydantic import BaseModel, ConfigDict, Field


# ── Request models ───────────────────────────────────────────────────


class ChatRequest(BaseModel):
    """Chat query. Length and content checks happen in the pipeline."""

    model_config = ConfigDict(populate_by_name=True)

    query: str
    model_id: str | None = Field(default=None, alias="modelId")


class BlockRequest(BaseModel):
    """Admin request to block an identifier."""

    identifier: str = Field(..., min_length=1, max_length=256)
    # Falls back to BLOCK_DURATION_SECONDS when omitted
    duration_seconds: int | None = Field(default=None, ge=1, le=86400 * 30)


# ── Response models ──────────────────────────────────────────────────


class SearchResultItem(BaseModel):
    id: str
    title: str
    content: str
    relevance: float
    category: str | None = None
    origin: str | None = None


class ChatMetrics(BaseModel):
    searchLatency: int
    generationLatency: int
    totalLatency: int
    searchResultsCount: int


class ChatResponse(BaseModel):
    """Answer with the knowledge-base hits it was grounded on."""

    text: str
    searchResults: list[SearchResultItem]
    metrics: ChatMetrics
    cached: bool


class ErrorResponse(BaseModel):
    error: str


class RateLimitedResponse(ErrorResponse):
    limit: int
    remaining: int
    resetEpochSeconds: int


class CategoryCount(BaseModel):
    category: str
    count: int


class ModelCount(BaseModel):
    model: str
    count: int


class AnalyticsSummaryResponse(BaseModel):
    total_queries: int
    queries_last_24h: int
    avg_response_time: int
    success_rate: int
    top_categories: list[CategoryCount]
    model_usage: list[ModelCount]
    recent_queries: list[dict]


class DailyCount(BaseModel):
    date: str
    count: int


class VectorIndexInfo(BaseModel):
    vector_count: int
    dimension: int
    similarity_function: str


class HealthResponse(BaseModel):
    """System health status."""

    status: str
    vector_db: VectorIndexInfo | None = None
    error_counts: dict[str, int] = Field(default_factory=dict)
