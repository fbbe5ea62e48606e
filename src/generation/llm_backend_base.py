"""Abstract LLM backend interface.

Every LLM provider implements this interface so the rest of the system
never sees provider-specific details.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field

from src.generation.model_catalog import DEFAULT_MODEL


@dataclass
class GenerationConfig:
    """Knobs for LLM generation."""

    model: str = DEFAULT_MODEL
    temperature: float = 0.7
    system_prompt: str = (
        "You are a knowledgeable food and cooking expert assistant. You have access "
        "to a knowledge base about various foods, recipes, and cooking techniques. "
        "Use the provided context to answer questions accurately and helpfully. If "
        "the knowledge base doesn't have relevant information, let the user know. "
        "Always cite what you found in the knowledge base when applicable."
    )


@dataclass
class GenerationResult:
    """LLM response with metadata."""

    answer: str
    model: str
    usage: dict = field(default_factory=dict)


class LLMBackend(ABC):
    """Abstract interface for async LLM generation backends."""

    @abstractmethod
    async def generate(
        self,
        prompt: str,
        system_prompt: str | None = None,
        model: str = DEFAULT_MODEL,
        max_tokens: int = 1024,
        temperature: float = 0.7,
    ) -> GenerationResult:
        """Generate a response from the LLM.

        Args:
            prompt: The user prompt (including injected context).
            system_prompt: Optional system-level instruction.
            model: Provider model identifier.
            max_tokens: Maximum tokens to generate.
            temperature: Sampling temperature (0 = deterministic).

        Returns:
            GenerationResult with answer text and metadata.
        """
        ...

    @abstractmethod
    async def is_available(self) -> bool:
        """Check if the backend is reachable and ready."""
        ...

    @property
    @abstractmethod
    def backend_name(self) -> str:
        """Return the backend identifier (e.g., 'groq')."""
        ...
