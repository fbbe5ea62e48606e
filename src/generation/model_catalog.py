"""Groq models the chat endpoint accepts."""

from dataclasses import dataclass


@dataclass(frozen=True)
class ModelOption:
    id: str
    label: str
    description: str


AVAILABLE_MODELS: tuple[ModelOption, ...] = (
    ModelOption(
        id="llama-3.1-8b-instant",
        label="8B – Fast",
        description="Faster responses, lower cost",
    ),
    ModelOption(
        id="llama-3.3-70b-versatile",
        label="70B – Capable",
        description="Higher quality, more detailed",
    ),
)

DEFAULT_MODEL = "llama-3.1-8b-instant"


def model_ids() -> list[str]:
    return [m.id for m in AVAILABLE_MODELS]


def max_tokens_for(model_id: str) -> int:
    """70B models get a shorter budget to stay clear of upstream timeouts."""
    return 800 if "70b" in model_id.lower() else 1024
