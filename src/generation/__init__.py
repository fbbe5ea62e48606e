"""Generation module — LLM backend, model catalog, and RAG orchestration."""

from src.errors import UpstreamError, UpstreamTimeout, classify_upstream_error
from src.generation.groq_backend import GroqBackend
from src.generation.llm_backend_base import GenerationConfig, GenerationResult, LLMBackend
from src.generation.model_catalog import AVAILABLE_MODELS, DEFAULT_MODEL
from src.generation.rag_engine import QueryMetrics, RAGEngine, RAGResponse

__all__ = [
    "AVAILABLE_MODELS",
    "DEFAULT_MODEL",
    "GenerationConfig",
    "GenerationResult",
    "GroqBackend",
    "LLMBackend",
    "QueryMetrics",
    "RAGEngine",
    "RAGResponse",
    "UpstreamError",
    "UpstreamTimeout",
    "classify_upstream_error",
]
