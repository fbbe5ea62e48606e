"""Input validation and sanitization for untrusted chat queries.

A cheap first line of defense, not a security guarantee: two regex tables
reject markup/script injection and common prompt-override phrasings, then
surviving input has its tags stripped. Rejection reasons are deliberately
generic so callers never learn which pattern fired.
"""

import logging
import re
from dataclasses import dataclass

from src.generation.model_catalog import model_ids

logger = logging.getLogger(__name__)

MALICIOUS_CONTENT = "Input contains potentially malicious content"
SUSPICIOUS_PATTERNS = "Input contains suspicious patterns"


# ── Markup / script injection ────────────────────────────────────────
# Checked only when HTML is not allowed.

MARKUP_PATTERNS: dict[re.Pattern, str] = {
    re.compile(r"<script[^>]*>.*?</script>", re.IGNORECASE): MALICIOUS_CONTENT,
    re.compile(r"javascript:", re.IGNORECASE): MALICIOUS_CONTENT,
    re.compile(r"on\w+\s*=", re.IGNORECASE): MALICIOUS_CONTENT,  # onclick= etc.
    re.compile(r"data:text/html", re.IGNORECASE): MALICIOUS_CONTENT,
    re.compile(r"<iframe", re.IGNORECASE): MALICIOUS_CONTENT,
    re.compile(r"<object", re.IGNORECASE): MALICIOUS_CONTENT,
    re.compile(r"<embed", re.IGNORECASE): MALICIOUS_CONTENT,
}

# ── Prompt injection ─────────────────────────────────────────────────

PROMPT_INJECTION_PATTERNS: dict[re.Pattern, str] = {
    re.compile(
        r"ignore (all )?(previous|above|all|prior) (instructions|prompts?|commands?)", re.IGNORECASE
    ): SUSPICIOUS_PATTERNS,
    re.compile(
        r"disregard (all )?(previous|above|all|prior) (instructions|prompts?|commands?)", re.IGNORECASE
    ): SUSPICIOUS_PATTERNS,
    re.compile(
        r"forget (all )?(previous|above|all|prior) (instructions|prompts?|commands?)", re.IGNORECASE
    ): SUSPICIOUS_PATTERNS,
    re.compile(r"you are (now|hereby) (instructed|commanded)", re.IGNORECASE): SUSPICIOUS_PATTERNS,
    re.compile(r"new (instructions|system prompt)", re.IGNORECASE): SUSPICIOUS_PATTERNS,
    re.compile(r"override (system|instructions)", re.IGNORECASE): SUSPICIOUS_PATTERNS,
    re.compile(r"\[system\]", re.IGNORECASE): SUSPICIOUS_PATTERNS,
    re.compile(r"\{system\}", re.IGNORECASE): SUSPICIOUS_PATTERNS,
}

_TAG = re.compile(r"<[^>]*>")

# Order matters: &amp; last so "&amp;lt;" decodes to "&lt;", not "<"
_ENTITIES = (
    ("&lt;", "<"),
    ("&gt;", ">"),
    ("&quot;", '"'),
    ("&#x27;", "'"),
    ("&amp;", "&"),
)


@dataclass(frozen=True)
class ValidationResult:
    is_valid: bool
    sanitized: str
    error: str | None = None


def sanitize_html(text: str) -> str:
    """Strip tags and decode the common HTML entities."""
    out = _TAG.sub("", text)
    for entity, char in _ENTITIES:
        out = out.replace(entity, char)
    return out


def _first_match(text: str, table: dict[re.Pattern, str]) -> str | None:
    for pattern, reason in table.items():
        if pattern.search(text):
            return reason
    return None


class InputValidator:
    """Validates queries against configurable pattern tables.

    Pass replacement tables to extend or narrow the checks without touching
    the validation steps themselves.
    """

    def __init__(
        self,
        markup_patterns: dict[re.Pattern, str] | None = None,
        injection_patterns: dict[re.Pattern, str] | None = None,
    ):
        self.markup_patterns = MARKUP_PATTERNS if markup_patterns is None else markup_patterns
        self.injection_patterns = (
            PROMPT_INJECTION_PATTERNS if injection_patterns is None else injection_patterns
        )

    def validate(
        self,
        text: str,
        max_length: int = 1000,
        min_length: int = 1,
        allow_html: bool = False,
        check_prompt_injection: bool = True,
    ) -> ValidationResult:
        """Validate ``text``, stopping at the first failing check.

        Args:
            text: Raw user input.
            max_length: Upper bound on the trimmed length.
            min_length: Lower bound on the trimmed length.
            allow_html: Skip the markup table and the sanitization pass.
            check_prompt_injection: Run the prompt-injection table.

        Returns:
            ValidationResult. On success ``sanitized`` is the text every
            downstream stage should use in place of the original.
        """
        trimmed = text.strip()

        if len(trimmed) < min_length:
            return ValidationResult(
                False, trimmed, f"Input must be at least {min_length} character(s)"
            )
        if len(trimmed) > max_length:
            return ValidationResult(
                False, trimmed, f"Input must be no more than {max_length} characters"
            )
        if not trimmed:
            return ValidationResult(False, trimmed, "Input cannot be empty")

        if not allow_html:
            reason = _first_match(trimmed, self.markup_patterns)
            if reason:
                logger.warning("Rejected input with markup content (%d chars)", len(trimmed))
                return ValidationResult(False, trimmed, reason)

        if check_prompt_injection:
            reason = _first_match(trimmed, self.injection_patterns)
            if reason:
                logger.warning("Rejected input with prompt-injection pattern (%d chars)", len(trimmed))
                return ValidationResult(False, trimmed, reason)

        sanitized = trimmed if allow_html else sanitize_html(trimmed)
        return ValidationResult(True, sanitized)


_default_validator = InputValidator()


def validate_input(text: str, **options) -> ValidationResult:
    """Validate with the default pattern tables."""
    return _default_validator.validate(text, **options)


def validate_model_id(model_id: str) -> bool:
    return model_id in model_ids()
