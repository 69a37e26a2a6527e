"""Handlebars prompt composition for the generation actions."""

from collections.abc import Callable, Sequence
from dataclasses import dataclass
from typing import Any

import pybars

from memorium.models import ELEMENT_CATEGORIES, ChatTurn
from memorium.tools import tool_catalogue

from .validation import TRUNCATION_MARKER, bound_context, truncate

_compiler = pybars.Compiler()
_cache: dict[str, Callable] = {}

EXCERPT_CHARS = 100


class PromptError(Exception):
    """Raised when a Handlebars template fails to compile or render."""


def render_prompt(template_str: str, context: dict[str, Any]) -> str:
    """Compile and render a Handlebars template with the given context.

    Templates are cached by source string to avoid recompilation.
    """
    try:
        compiled = _cache.get(template_str)
        if compiled is None:
            compiled = _compiler.compile(template_str)
            _cache[template_str] = compiled
        return str(compiled(context))
    except Exception as e:
        raise PromptError(f"Template error: {e}") from e


# ── Templates ────────────────────────────────────────────
# Triple-stash everywhere: prompts are plain text, not HTML.

COMPILE_BONES_TEMPLATE = (
    "I am building a psychological card game about unlocking memories of a person in a coma.\n"
    "Here are the raw 'bones' from my project brief:\n"
    "\n"
    "TITLE: {{{title}}}\n"
    "GENRE/TONE: {{{genre}}}\n"
    "ART STYLE: {{{artStyle}}}\n"
    "WORLD/SETTING: {{{worldSetting}}}\n"
    "MECHANICS: {{{coreMechanicVisuals}}}\n"
    "CHARACTERS: {{{keyCharacters}}}\n"
    "\n"
    "Synthesize, reword, and expand this into a cohesive Game Codex.\n"
    "Return only a JSON object of the form\n"
    '{ "elements": [ { "id": "...", "category": "...", "title": "...", "content": "..." } ] }\n'
    "where category is one of: {{{categories}}}."
)

APPLY_ITERATION_TEMPLATE = (
    "You are Memorium, a Game Design Evolution Engine.\n"
    "\n"
    "CURRENT CODEX:\n"
    "{{{codex}}}\n"
    "\n"
    "USER CHANGE REQUEST:\n"
    '"{{{changeRequest}}}"\n'
    "\n"
    "Update the Codex elements to reflect these changes. You can modify existing elements, "
    "delete them, or add new ones. Elements you leave out are deleted.\n"
    "Return the FULL updated list as a JSON object\n"
    '{ "elements": [ { "id": "...", "category": "...", "title": "...", "content": "..." } ] }\n'
    "where category is one of: {{{categories}}}."
)

CHAT_CONTEXT_TEMPLATE = (
    "PROJECT: {{{brief.title}}}{{#if brief.genre}} ({{{brief.genre}}}){{/if}}\n"
    "CURRENT GAME CODEX:\n"
    "{{#each elements}}[{{{category}}}] {{{title}}}: {{{excerpt}}}\n{{/each}}"
    "CURRENT CHARACTERS:\n"
    "{{#each characters}}- {{{name}}} ({{{role}}}): {{{motivations}}}\n{{/each}}"
    "OPEN TASKS: {{{taskCount}}}, STORY NOTES: {{{noteCount}}}"
)

CHAT_SYSTEM_TEMPLATE = (
    "You are Memorium, a specialist in Psychological Game Design.\n"
    "\n"
    "{{{context}}}\n"
    "\n"
    "Always prioritize emotional resonance and psychological depth. Use the characters' "
    "motivations, fears, and relationships to generate deeper story details and task suggestions.\n"
    "\n"
    "You may ask the application to run these tools:\n"
    "{{{tools}}}\n"
    "\n"
    "Reply with strict JSON only, no prose around it:\n"
    '{"text": "<your reply>", "toolCalls": [{"name": "<tool>", "args": { } }]}\n'
    'Use an empty list for "toolCalls" when no tool is needed.'
)


# ── Composers ────────────────────────────────────────────


def compose_compile_bones(brief: dict[str, str]) -> str:
    """``brief`` holds the six validated fields, keyed by their wire names."""
    return render_prompt(COMPILE_BONES_TEMPLATE, {**brief, "categories": ", ".join(ELEMENT_CATEGORIES)})


def compose_apply_iteration(elements: list[Any], change_request: str, budget: int) -> str:
    return render_prompt(APPLY_ITERATION_TEMPLATE, {
        "codex": bound_context(elements, budget, "Codex"),
        "changeRequest": change_request,
        "categories": ", ".join(ELEMENT_CATEGORIES),
    })


def _excerpt(text: str) -> str:
    return text[:EXCERPT_CHARS] + ("..." if len(text) > EXCERPT_CHARS else "")


def build_chat_context(context_data: dict[str, Any]) -> dict[str, Any]:
    """Assemble template variables from the client's contextData.

    Entries of the wrong shape are skipped rather than rejected; contextData
    is aggregate context, not caller input to validate field by field.
    """
    codex = context_data.get("codex") if isinstance(context_data.get("codex"), dict) else {}
    elements = []
    for el in codex.get("elements") or []:
        if not isinstance(el, dict):
            continue
        elements.append({
            "category": str(el.get("category", "")).upper(),
            "title": str(el.get("title", "")),
            "excerpt": _excerpt(str(el.get("content", ""))),
        })

    characters = []
    for char in context_data.get("characters") or []:
        if not isinstance(char, dict):
            continue
        characters.append({
            "name": str(char.get("name", "")),
            "role": str(char.get("role", "")),
            "motivations": str(char.get("motivations", "")),
        })

    brief = context_data.get("brief") if isinstance(context_data.get("brief"), dict) else {}
    tasks = context_data.get("tasks") or []
    return {
        "brief": {"title": str(brief.get("title", "")), "genre": str(brief.get("genre", ""))},
        "elements": elements,
        "characters": characters,
        "taskCount": str(sum(1 for t in tasks if isinstance(t, dict) and t.get("status") != "DONE")),
        "noteCount": str(len(context_data.get("notes") or [])),
    }


def min_chat_budget() -> int:
    """Smallest context budget that fits the fixed chat instruction and the marker."""
    overhead = len(render_prompt(CHAT_SYSTEM_TEMPLATE, {"context": "", "tools": tool_catalogue()}))
    return overhead + len(TRUNCATION_MARKER)


@dataclass
class ChatPrompt:
    system: str
    history: list[ChatTurn]
    message: str


def compose_chat(
    context_data: dict[str, Any],
    history: Sequence[ChatTurn],
    message: str,
    budget: int,
    history_window: int = 10,
) -> ChatPrompt:
    """Build the system instruction and the turn list for a chat request.

    The system instruction never exceeds ``budget`` characters; when the
    context summary does not fit it is cut and carries the truncation marker.
    """
    tools = tool_catalogue()
    overhead = len(render_prompt(CHAT_SYSTEM_TEMPLATE, {"context": "", "tools": tools}))
    context = render_prompt(CHAT_CONTEXT_TEMPLATE, build_chat_context(context_data))
    context = truncate(context, max(0, budget - overhead))
    system = render_prompt(CHAT_SYSTEM_TEMPLATE, {"context": context, "tools": tools})
    recent = list(history)[-history_window:] if history_window > 0 else []
    return ChatPrompt(system=system, history=recent, message=message)
