"""Upstash Vector client for the food knowledge base.

The index has built-in embeddings, so queries are sent as raw text to the
``/query-data`` endpoint and similarity search happens entirely upstream.
"""

import logging
from dataclasses import dataclass

import httpx

from src.errors import UNAVAILABLE, UpstreamError

logger = logging.getLogger(__name__)


@dataclass
class SearchResult:
    """A single knowledge-base hit, ready for context formatting."""

    id: str
    title: str
    content: str
    relevance: float
    category: str | None = None
    origin: str | None = None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "title": self.title,
            "content": self.content,
            "relevance": self.relevance,
            "category": self.category,
            "origin": self.origin,
        }


def parse_hit(hit: dict) -> SearchResult:
    """Map one raw vector hit onto a SearchResult."""
    metadata = hit.get("metadata") or {}
    return SearchResult(
        id=str(hit.get("id", "")),
        title=metadata.get("name") or "Food Item",
        content=metadata.get("text") or "",
        relevance=min(float(hit.get("score", 0.0)), 1.0),
        category=metadata.get("category"),
        origin=metadata.get("origin"),
    )


class VectorSearchClient:
    """Thin async wrapper around the Upstash Vector REST API."""

    def __init__(self, base_url: str, token: str, http_client: httpx.AsyncClient):
        self.base_url = base_url.rstrip("/")
        self._headers = {"Authorization": f"Bearer {token}"}
        self._http = http_client

    async def search(self, text: str, top_k: int = 3) -> list[SearchResult]:
        """Return up to ``top_k`` hits ranked by the index.

        Raises:
            UpstreamError: If the index responds with a non-2xx status.
        """
        resp = await self._http.post(
            f"{self.base_url}/query-data",
            headers=self._headers,
            json={"data": text, "topK": top_k, "includeMetadata": True},
        )
        if resp.is_error:
            logger.error("Vector search failed: %d %s", resp.status_code, resp.reason_phrase)
            raise UpstreamError(
                UNAVAILABLE, f"Vector search failed: {resp.status_code} {resp.reason_phrase}"
            )

        data = resp.json()
        # The API returns either a bare list or {"result": [...]}
        hits = data if isinstance(data, list) else data.get("result") or []
        results = [parse_hit(h) for h in hits]
        logger.info("Vector search returned %d hits", len(results))
        return results

    async def info(self) -> dict | None:
        """Index statistics, or None if the index cannot be reached."""
        try:
            resp = await self._http.get(f"{self.base_url}/info", headers=self._headers)
        except httpx.HTTPError as exc:
            logger.warning("Vector index info request failed: %s", exc)
            return None
        if resp.is_error:
            return None

        data = resp.json()
        result = data.get("result", data) if isinstance(data, dict) else {}
        return {
            "vector_count": result.get("vectorCount") or result.get("vector_count") or 0,
            "dimension": result.get("dimension") or 0,
            "similarity_function": (
                result.get("similarityFunction") or result.get("similarity_function") or "cosine"
            ),
        }
