"""Normalisation of raw provider output.

Models asked for JSON still wrap it in prose or markdown fences now and
then. extract_json_object() recovers the payload; normalize_chat() and
normalize_elements() turn it into the response shapes of the chat and codex
actions; sanitize_tool_calls() filters proposed tool calls down to the
allow-listed, well-formed ones.
"""

from __future__ import annotations

import json
import logging
from typing import Any

from pydantic import ValidationError

from memorium.llm import GenerationFailedError
from memorium.models import GameElement
from memorium.tools import TOOL_SCHEMAS

logger = logging.getLogger(__name__)


def _strip_fence(text: str) -> str:
    cleaned = text.strip()
    if cleaned.startswith("```"):
        lines = cleaned.split("\n")
        lines = [l for l in lines[1:] if not l.strip().startswith("```")]
        cleaned = "\n".join(lines)
    return cleaned


def _balanced_objects(text: str):
    """Yield each top-level balanced {...} substring, in order.

    String-aware: braces inside string literals and escaped quotes do not
    affect the depth count.
    """
    depth = 0
    start = -1
    in_string = False
    escape = False
    for idx, ch in enumerate(text):
        if in_string:
            if escape:
                escape = False
            elif ch == "\\":
                escape = True
            elif ch == '"':
                in_string = False
            continue
        if ch == '"':
            # quotes only open a string inside an object; prose apostrophes
            # and stray quotes outside one are ignored
            if depth > 0:
                in_string = True
            continue
        if ch == "{":
            if depth == 0:
                start = idx
            depth += 1
        elif ch == "}" and depth > 0:
            depth -= 1
            if depth == 0:
                yield text[start:idx + 1]


def _loads_object(text: str) -> dict | None:
    try:
        data = json.loads(text)
    except json.JSONDecodeError:
        return None
    return data if isinstance(data, dict) else None


def extract_json_object(text: str) -> dict | None:
    """Parse the first JSON object in ``text``, or None when there is none."""
    if not text or not text.strip():
        return None
    data = _loads_object(text)
    if data is not None:
        return data
    cleaned = _strip_fence(text)
    data = _loads_object(cleaned)
    if data is not None:
        return data
    for candidate in _balanced_objects(cleaned):
        data = _loads_object(candidate)
        if data is not None:
            logger.warning("Recovered JSON object from noisy provider output (len=%d)", len(text))
            return data
    return None


def sanitize_tool_calls(items: Any) -> list[dict[str, Any]]:
    """Keep tool calls whose name is allow-listed and whose args fit the tool.

    Malformed entries are dropped, never raised, so one bad call does not
    cost the valid ones. The surviving entries are returned unchanged, which
    makes the operation idempotent.
    """
    if not isinstance(items, list):
        return []
    kept: list[dict[str, Any]] = []
    for item in items:
        if not isinstance(item, dict):
            continue
        name = item.get("name")
        args = item.get("args")
        if not isinstance(name, str) or not isinstance(args, dict):
            continue
        schema = TOOL_SCHEMAS.get(name)
        if schema is None:
            logger.warning("Dropping call to unknown tool %r", name)
            continue
        try:
            schema.model_validate(args)
        except ValidationError:
            logger.warning("Dropping %s call with malformed args", name)
            continue
        kept.append({"name": name, "args": args})
    return kept


def normalize_chat(text: str) -> dict[str, Any]:
    """Turn a chat reply into {text, toolCalls}. Never raises."""
    data = extract_json_object(text)
    if data is None or not isinstance(data.get("text", ""), str):
        return {"text": text.strip(), "toolCalls": []}
    return {
        "text": data.get("text", ""),
        "toolCalls": sanitize_tool_calls(data.get("toolCalls", [])),
    }


def normalize_elements(text: str) -> list[dict[str, Any]]:
    """Parse a complete element list. Any invalid element rejects the whole list."""
    try:
        data: Any = json.loads(_strip_fence(text))
    except json.JSONDecodeError:
        data = extract_json_object(text)
    if data is None:
        raise GenerationFailedError("Provider returned no codex JSON")
    raw = data.get("elements") if isinstance(data, dict) else data
    if not isinstance(raw, list):
        raise GenerationFailedError("Provider returned no element list")
    try:
        elements = [GameElement.model_validate(e) for e in raw]
    except ValidationError as e:
        raise GenerationFailedError("Provider returned malformed codex elements") from e
    return [e.to_wire() for e in elements]
