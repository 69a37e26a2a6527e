"""Inbound field validation.

Free-text fields are rejected when missing, blank or oversized. Aggregate
context (codex, contextData, chat history entries) is never rejected for
size: it is truncated with TRUNCATION_MARKER instead.
"""

import json
from typing import Any

TRUNCATION_MARKER = "…[truncated]"


class ValidationError(ValueError):
    """A caller-fixable payload problem. The message is safe to return."""


def validate_text(value: Any, field: str, max_length: int) -> str:
    """Return ``value`` trimmed, or raise ValidationError naming ``field``."""
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f"Invalid input: {field} is missing or empty.")
    if len(value) > max_length:
        raise ValidationError(f"Invalid input: {field} exceeds {max_length} characters.")
    return value.strip()


def bound_text(value: Any, field: str, max_length: int) -> str:
    """Like validate_text, but oversized text is truncated instead of rejected."""
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f"Invalid input: {field} is missing or empty.")
    return truncate(value.strip(), max_length)


def require_object(value: Any, field: str) -> dict[str, Any]:
    if not isinstance(value, dict):
        raise ValidationError(f"Missing {field}")
    return value


def truncate(text: str, max_chars: int) -> str:
    """Cut ``text`` so that, marker included, it fits in ``max_chars``."""
    if len(text) <= max_chars:
        return text
    if max_chars < len(TRUNCATION_MARKER):
        return TRUNCATION_MARKER[:max(0, max_chars)]
    return text[:max_chars - len(TRUNCATION_MARKER)] + TRUNCATION_MARKER


def bound_context(value: Any, max_chars: int, field: str = "Context") -> str:
    """Serialize a JSON blob and truncate it to ``max_chars``."""
    try:
        text = json.dumps(value, ensure_ascii=False)
    except (TypeError, ValueError) as e:
        raise ValidationError(f"Invalid input: {field} is not serializable.") from e
    return truncate(text, max_chars)
