"""End-to-end RAG engine.

Orchestrates knowledge-base search → context formatting → LLM generation,
timing each stage and recording the outcome in analytics. This is what the
request pipeline calls once a query has cleared the governance checks.
"""

import logging
import time
from dataclasses import dataclass, field

from src.analytics.recorder import AnalyticsRecorder, ResponseMetrics
from src.errors import classify_upstream_error
from src.generation.llm_backend_base import GenerationConfig, GenerationResult, LLMBackend
from src.generation.model_catalog import max_tokens_for
from src.retrieval.vector_search import SearchResult, VectorSearchClient

logger = logging.getLogger(__name__)

NO_RESULTS_CONTEXT = "No relevant documents found in the knowledge base."

CATEGORY_KEYWORDS: dict[str, list[str]] = {
    "Breakfast": ["breakfast", "morning", "brunch", "eggs", "pancake", "waffle"],
    "Lunch": ["lunch", "sandwich", "salad", "midday"],
    "Dinner": ["dinner", "supper", "evening meal"],
    "Dessert": ["dessert", "sweet", "cake", "cookie", "ice cream", "chocolate"],
    "Vegetarian": ["vegetarian", "veggie", "meatless", "plant-based"],
    "Healthy": ["healthy", "low calorie", "nutritious", "diet", "light"],
    "Quick Meals": ["quick", "fast", "10 minute", "15 minute", "easy", "simple"],
    "Grilling": ["grill", "bbq", "barbecue", "smoke"],
    "Soup": ["soup", "stew", "broth", "chowder"],
    "Salad": ["salad", "greens", "fresh"],
}


@dataclass
class QueryMetrics:
    """Stage latencies in milliseconds."""

    search_latency: int = 0
    generation_latency: int = 0
    total_latency: int = 0
    search_results_count: int = 0

    def to_dict(self) -> dict:
        return {
            "searchLatency": self.search_latency,
            "generationLatency": self.generation_latency,
            "totalLatency": self.total_latency,
            "searchResultsCount": self.search_results_count,
        }


@dataclass
class RAGResponse:
    """Answer text, the hits it was grounded on, and timing."""

    text: str
    search_results: list[SearchResult]
    metrics: QueryMetrics
    model: str = ""
    usage: dict = field(default_factory=dict)

    def to_payload(self) -> dict:
        """Wire shape shared by the HTTP response and the cache entry."""
        return {
            "text": self.text,
            "searchResults": [r.to_dict() for r in self.search_results],
            "metrics": self.metrics.to_dict(),
        }


def detect_category(query: str) -> str | None:
    """First category whose keywords appear in the query."""
    lowered = query.lower()
    for category, keywords in CATEGORY_KEYWORDS.items():
        if any(k in lowered for k in keywords):
            return category
    return None


def format_context(results: list[SearchResult]) -> str:
    """Format search hits into a context block for the LLM prompt."""
    if not results:
        return NO_RESULTS_CONTEXT

    blocks = [
        f"- {r.title} (relevance: {round(r.relevance * 100)}%)\n  {r.content}"
        for r in results
    ]
    return "Knowledge Base Results:\n" + "\n\n".join(blocks)


def build_prompt(query: str, context: str) -> str:
    """Build the user prompt with context and question."""
    return f"Knowledge Base Context:\n{context}\n\nUser Question: {query}"


def _elapsed_ms(start: float) -> int:
    return round((time.perf_counter() - start) * 1000)


class RAGEngine:
    """Orchestrates search and generation for end-to-end RAG.

    Usage:
        engine = RAGEngine(search_client, llm_backend, analytics)
        response = await engine.query("How do I make risotto?")
        print(response.text)
    """

    def __init__(
        self,
        search_client: VectorSearchClient,
        llm_backend: LLMBackend,
        analytics: AnalyticsRecorder | None = None,
        config: GenerationConfig | None = None,
        top_k: int = 3,
    ):
        self.search_client = search_client
        self.llm = llm_backend
        self.analytics = analytics
        self.config = config or GenerationConfig()
        self.top_k = top_k

    async def query(self, question: str, model_id: str | None = None) -> RAGResponse:
        """Answer a food question using retrieval-augmented generation.

        Raises:
            UpstreamError: If search or generation fails. The failure is
                recorded in analytics before it propagates.
        """
        model = model_id or self.config.model
        start = time.perf_counter()
        metrics = QueryMetrics()
        query_id = ""

        logger.info("RAG query: %r (model=%s, top_k=%d)", question, model, self.top_k)

        try:
            if self.analytics is not None:
                query_id = await self.analytics.track_query(question, model, detect_category(question))

            # Step 1: Search the knowledge base
            t0 = time.perf_counter()
            results = await self.search_client.search(question, top_k=self.top_k)
            metrics.search_latency = _elapsed_ms(t0)
            metrics.search_results_count = len(results)

            # Step 2: Build prompt and generate
            prompt = build_prompt(question, format_context(results))
            t0 = time.perf_counter()
            gen_result: GenerationResult = await self.llm.generate(
                prompt=prompt,
                system_prompt=self.config.system_prompt,
                model=model,
                max_tokens=max_tokens_for(model),
                temperature=self.config.temperature,
            )
            metrics.generation_latency = _elapsed_ms(t0)
        except Exception as exc:
            metrics.total_latency = _elapsed_ms(start)
            logger.error("RAG query failed: %s", exc)
            await self._track(query_id, metrics, 0, error=exc)
            raise classify_upstream_error(exc) from exc

        metrics.total_latency = _elapsed_ms(start)
        await self._track(query_id, metrics, len(gen_result.answer))

        return RAGResponse(
            text=gen_result.answer,
            search_results=results,
            metrics=metrics,
            model=gen_result.model,
            usage=gen_result.usage,
        )

    async def _track(
        self,
        query_id: str,
        metrics: QueryMetrics,
        response_length: int,
        error: BaseException | None = None,
    ) -> None:
        if self.analytics is None:
            return
        await self.analytics.track_response(
            ResponseMetrics(
                query_id=query_id,
                search_latency=metrics.search_latency,
                generation_latency=metrics.generation_latency,
                total_latency=metrics.total_latency,
                search_results_count=metrics.search_results_count,
                response_length=response_length,
                success=error is None,
                error_type=type(error).__name__ if error is not None else None,
            )
        )
