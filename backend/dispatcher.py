"""Action dispatch for POST /api/generate.

Each action maps to one async handler:

    handler(payload, provider, settings) -> response body

Handlers validate their payload before touching the provider, compose the
prompt, make a single provider call (retries are the provider's concern)
and normalise the output. They share no state.
"""

import logging
from collections.abc import Awaitable, Callable
from typing import Any

from memorium.llm import Provider
from memorium.models import ASPECT_RATIOS, ChatTurn
from memorium.normalize import normalize_chat, normalize_elements

from .config import Settings
from .prompts import compose_apply_iteration, compose_chat, compose_compile_bones
from .validation import ValidationError, bound_text, require_object, validate_text

logger = logging.getLogger(__name__)

Handler = Callable[[dict[str, Any], Provider, Settings], Awaitable[dict[str, Any]]]

TOOLS_SCHEDULED_REPLY = "I've scheduled that action for you."

# Wire name → human-readable field name
BRIEF_FIELDS: dict[str, str] = {
    "title": "Title",
    "genre": "Genre",
    "artStyle": "Art Style",
    "worldSetting": "Setting",
    "coreMechanicVisuals": "Mechanics",
    "keyCharacters": "Characters",
}


class UnsupportedActionError(ValueError):
    """The request named an action outside the fixed set."""


async def generate_image(payload: dict[str, Any], provider: Provider, settings: Settings) -> dict[str, Any]:
    prompt = validate_text(payload.get("prompt"), "Prompt", settings.limit("prompt"))
    aspect_ratio = payload.get("aspectRatio") or "3:4"
    if aspect_ratio not in ASPECT_RATIOS:
        raise ValidationError(f"Invalid input: Aspect Ratio must be one of {', '.join(ASPECT_RATIOS)}.")
    image_uri = await provider.image(prompt, aspect_ratio)
    return {"imageUri": image_uri}


async def compile_bones(payload: dict[str, Any], provider: Provider, settings: Settings) -> dict[str, Any]:
    brief = require_object(payload.get("brief"), "brief")
    fields = {
        key: validate_text(brief.get(key), label, settings.limit("brief"))
        for key, label in BRIEF_FIELDS.items()
    }
    text = await provider.complete(compose_compile_bones(fields), json_output=True)
    return {"elements": normalize_elements(text)}


async def apply_iteration(payload: dict[str, Any], provider: Provider, settings: Settings) -> dict[str, Any]:
    change_request = validate_text(
        payload.get("changeRequest"), "Change Request", settings.limit("change_request")
    )
    codex = require_object(payload.get("codex"), "codex")
    elements = codex.get("elements")
    if not isinstance(elements, list):
        raise ValidationError("Missing codex elements")
    prompt = compose_apply_iteration(elements, change_request, settings.context_budget)
    text = await provider.complete(prompt, json_output=True)
    return {"elements": normalize_elements(text)}


async def chat(payload: dict[str, Any], provider: Provider, settings: Settings) -> dict[str, Any]:
    message = validate_text(payload.get("message"), "Message", settings.limit("message"))
    raw_history = payload.get("history")
    raw_history = raw_history[-settings.history_window:] if isinstance(raw_history, list) else []
    history = []
    for entry in raw_history:
        entry = require_object(entry, "history entry")
        content = bound_text(entry.get("content"), "History Content", settings.limit("history"))
        history.append(ChatTurn(role="user" if entry.get("role") == "user" else "model", content=content))

    context_data = payload.get("contextData")
    context_data = context_data if isinstance(context_data, dict) else {}
    prompt = compose_chat(
        context_data, history, message, settings.context_budget, settings.history_window
    )
    text = await provider.complete(
        prompt.message, system=prompt.system, history=prompt.history, json_output=True
    )
    result = normalize_chat(text)
    if result["toolCalls"] and not result["text"]:
        result["text"] = TOOLS_SCHEDULED_REPLY
    return result


ACTIONS: dict[str, Handler] = {
    "chat": chat,
    "compile_bones": compile_bones,
    "apply_iteration": apply_iteration,
    "generate_image": generate_image,
}


def resolve(action: Any) -> Handler:
    """Return the handler for ``action`` or raise UnsupportedActionError."""
    handler = ACTIONS.get(action) if isinstance(action, str) else None
    if handler is None:
        raise UnsupportedActionError("Unknown action requested")
    return handler


async def dispatch(body: Any, provider: Provider, settings: Settings) -> dict[str, Any]:
    """Validate the request envelope and run its action."""
    body = require_object(body, "request body")
    handler = resolve(body.get("action"))
    payload = require_object(body.get("payload"), "payload")
    logger.info("generate action=%s", body["action"])
    return await handler(payload, provider, settings)
