"""Smoke test against live services: Groq, Upstash Vector, and Redis.

Usage:
    python scripts/smoke_test_chat.py                            # full pipeline
    python scripts/smoke_test_chat.py --backend-only             # Groq only
    python scripts/smoke_test_chat.py --query "Best pizza dough?"
    python scripts/smoke_test_chat.py --model llama-3.3-70b-versatile
"""

import argparse
import asyncio
import sys
from pathlib import Path

import httpx

sys.path.insert(0, str(Path(__file__).parent.parent))

from src.analytics.recorder import AnalyticsRecorder
from src.config import get_config, validate_config
from src.generation.groq_backend import GroqBackend
from src.generation.llm_backend_base import LLMBackend
from src.generation.model_catalog import DEFAULT_MODEL, model_ids
from src.generation.rag_engine import RAGEngine
from src.guard.blocklist import Blocklist
from src.guard.input_validator import InputValidator
from src.guard.rate_limiter import RateLimiter
from src.request_pipeline import RequestPipeline
from src.retrieval.vector_search import VectorSearchClient
from src.storage.redis_store import create_redis_client
from src.storage.response_cache import ResponseCache

SMOKE_IDENTIFIER = "smoke-test"


async def test_backend(backend: LLMBackend, model: str) -> bool:
    """Test the backend with a simple query."""
    print("=" * 60)
    print(f"1. BACKEND TEST — {backend.backend_name}")
    print("=" * 60)

    available = await backend.is_available()
    print(f"Available: {available}")
    if not available:
        print(f"ERROR: {backend.backend_name} backend not reachable.")
        return False

    result = await backend.generate(
        "What is a roux in one sentence?",
        system_prompt="Be concise.",
        model=model,
        max_tokens=100,
    )
    print(f"Model:  {result.model}")
    print(f"Answer: {result.answer}")
    print(f"Usage:  {result.usage}")
    return True


async def test_pipeline(backend: LLMBackend, query: str, model: str) -> bool:
    """Run one query through the full governed pipeline, twice."""
    print("\n" + "=" * 60)
    print("2. PIPELINE TEST (live search + generation + cache)")
    print("=" * 60)

    config = get_config()
    redis_client = create_redis_client(config.redis_url)
    async with httpx.AsyncClient(timeout=config.request_timeout_seconds) as http:
        search = VectorSearchClient(config.vector_url, config.vector_token, http)
        analytics = AnalyticsRecorder(redis_client)
        pipeline = RequestPipeline(
            blocklist=Blocklist(redis_client),
            rate_limiter=RateLimiter(redis_client),
            validator=InputValidator(),
            cache=ResponseCache(redis_client),
            engine=RAGEngine(search, backend, analytics, top_k=config.search_top_k),
            analytics=analytics,
        )

        first = await pipeline.handle(SMOKE_IDENTIFIER, query, model)
        print(f"First call:  {first.outcome.value}")
        if not first.ok:
            print(f"ERROR: {first.error}")
            await redis_client.aclose()
            return False
        print(f"Answer:\n{first.payload['text']}")
        print(f"Metrics: {first.payload['metrics']}")

        second = await pipeline.handle(SMOKE_IDENTIFIER, query, model)
        print(f"Second call: {second.outcome.value} (expected cache_hit)")

    await redis_client.aclose()
    return True


async def run(args) -> int:
    config = get_config()
    validate_config(config)
    backend = GroqBackend(api_key=config.groq_api_key)

    if not await test_backend(backend, args.model):
        return 1
    if args.backend_only:
        return 0

    query = args.query or "How do I make a quick vegetarian dinner?"
    if not await test_pipeline(backend, query, args.model):
        return 1

    print("\n" + "=" * 60)
    print("ALL TESTS PASSED")
    print("=" * 60)
    return 0


def main():
    parser = argparse.ArgumentParser(description="Smoke test for the chat pipeline")
    parser.add_argument("--backend-only", action="store_true", help="Only test the LLM backend")
    parser.add_argument("--query", type=str, help="Custom query")
    parser.add_argument("--model", choices=model_ids(), default=DEFAULT_MODEL, help="Groq model")
    args = parser.parse_args()
    sys.exit(asyncio.run(run(args)))


if __name__ == "__main__":
    main()
