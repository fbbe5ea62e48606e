"""Groq cloud LLM backend.

Uses the async Groq client for fast inference with the Llama models in the
model catalog. Requires a GROQ_API_KEY.
"""

import logging

from groq import AsyncGroq

from src.generation.llm_backend_base import GenerationResult, LLMBackend
from src.generation.model_catalog import DEFAULT_MODEL

logger = logging.getLogger(__name__)


class GroqBackend(LLMBackend):
    """LLM backend using the Groq cloud API."""

    def __init__(self, api_key: str, client: AsyncGroq | None = None):
        if not api_key and client is None:
            raise ValueError("Groq API key is required")
        self._client = client or AsyncGroq(api_key=api_key)

    @property
    def backend_name(self) -> str:
        return "groq"

    async def is_available(self) -> bool:
        """Check if the Groq API is reachable with valid credentials."""
        try:
            await self._client.models.list()
            return True
        except Exception:
            return False

    async def generate(
        self,
        prompt: str,
        system_prompt: str | None = None,
        model: str = DEFAULT_MODEL,
        max_tokens: int = 1024,
        temperature: float = 0.7,
    ) -> GenerationResult:
        """Generate via the Groq chat completions API."""
        messages = []
        if system_prompt:
            messages.append({"role": "system", "content": system_prompt})
        messages.append({"role": "user", "content": prompt})

        logger.info("Groq request: model=%s, tokens=%d", model, max_tokens)

        response = await self._client.chat.completions.create(
            model=model,
            messages=messages,
            max_tokens=max_tokens,
            temperature=temperature,
        )

        choice = response.choices[0]
        answer = choice.message.content or ""
        usage = {}
        if response.usage:
            usage = {
                "prompt_tokens": response.usage.prompt_tokens,
                "completion_tokens": response.usage.completion_tokens,
                "total_tokens": response.usage.total_tokens,
            }

        logger.info("Groq response: %d chars, usage=%s", len(answer), usage)

        return GenerationResult(answer=answer, model=model, usage=usage)
