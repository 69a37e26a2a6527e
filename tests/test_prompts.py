"""Tests for Handlebars prompt rendering and the per-action composers."""

import json

import pytest

from backend.prompts import (
    PromptError,
    build_chat_context,
    compose_apply_iteration,
    compose_chat,
    compose_compile_bones,
    min_chat_budget,
    render_prompt,
)
from backend.validation import TRUNCATION_MARKER
from memorium.models import ChatTurn


# ── render_prompt ────────────────────────────────────────────


def test_render_simple_variable():
    assert render_prompt("Hello {{name}}!", {"name": "World"}) == "Hello World!"


def test_render_triple_stash_is_not_escaped():
    assert render_prompt("{{{x}}}", {"x": '<a & "b">'}) == '<a & "b">'


def test_render_each_loop():
    tpl = "{{#each items}}{{this}} {{/each}}"
    assert render_prompt(tpl, {"items": ["a", "b", "c"]}) == "a b c "


def test_render_missing_variable():
    assert render_prompt("Hello {{name}}!", {}) == "Hello !"


def test_render_invalid_template():
    with pytest.raises(PromptError):
        render_prompt("{{> missing_partial}}", {})


# ── compile_bones / apply_iteration ──────────────────────────


BRIEF = {
    "title": "Memorium",
    "genre": "Drama",
    "artStyle": "Watercolour",
    "worldSetting": "A coma",
    "coreMechanicVisuals": "Cards",
    "keyCharacters": "Mara",
}


def test_compile_bones_embeds_brief_and_categories():
    prompt = compose_compile_bones(BRIEF)
    assert "TITLE: Memorium" in prompt
    assert "ART STYLE: Watercolour" in prompt
    assert "premise, mechanic, story, visual, character_arc" in prompt
    assert '"elements"' in prompt


def test_apply_iteration_embeds_codex_and_request():
    elements = [{"id": "e1", "category": "story", "title": "Act I", "content": "Waking."}]
    prompt = compose_apply_iteration(elements, "Make it darker", budget=5000)
    assert json.dumps(elements) in prompt
    assert '"Make it darker"' in prompt
    assert "FULL updated list" in prompt


def test_apply_iteration_truncates_large_codex():
    elements = [{"id": str(i), "category": "story", "title": "t", "content": "x" * 200} for i in range(50)]
    prompt = compose_apply_iteration(elements, "Trim", budget=500)
    assert TRUNCATION_MARKER in prompt


# ── chat ─────────────────────────────────────────────────────


def _context(n_elements: int = 1, content: str = "The patient dreams of the sea.") -> dict:
    return {
        "brief": {"title": "Memorium", "genre": "Drama"},
        "codex": {"elements": [
            {"id": str(i), "category": "story", "title": f"Element {i}", "content": content}
            for i in range(n_elements)
        ]},
        "characters": [{"name": "Mara", "role": "The Patient", "motivations": "Wake up"}],
        "tasks": [{"title": "a", "status": "TODO"}, {"title": "b", "status": "DONE"}],
        "notes": [],
    }


def test_chat_context_summaries():
    ctx = build_chat_context(_context(content="y" * 150))
    assert ctx["elements"][0]["category"] == "STORY"
    assert ctx["elements"][0]["excerpt"] == "y" * 100 + "..."
    assert ctx["characters"][0] == {"name": "Mara", "role": "The Patient", "motivations": "Wake up"}
    assert ctx["taskCount"] == "1"


def test_chat_context_skips_malformed_entries():
    ctx = build_chat_context({"codex": {"elements": ["junk", None]}, "characters": "nope"})
    assert ctx["elements"] == []


def test_chat_system_prompt_contents():
    prompt = compose_chat(_context(), [], "hello", budget=8000)
    assert "[STORY] Element 0: The patient dreams of the sea." in prompt.system
    assert "- Mara (The Patient): Wake up" in prompt.system
    assert "add_task(" in prompt.system
    assert '"toolCalls"' in prompt.system
    assert TRUNCATION_MARKER not in prompt.system
    assert prompt.message == "hello"


def test_chat_context_truncated_within_budget():
    prompt = compose_chat(_context(n_elements=500), [], "hello", budget=4000)
    assert TRUNCATION_MARKER in prompt.system
    assert len(prompt.system) <= 4000


def test_chat_history_window():
    history = [ChatTurn(role="user", content=f"m{i}") for i in range(15)]
    prompt = compose_chat(_context(), history, "next", budget=8000, history_window=10)
    assert [t.content for t in prompt.history] == [f"m{i}" for i in range(5, 15)]


def test_minimum_budget_keeps_marker_whole():
    budget = min_chat_budget()
    prompt = compose_chat(_context(n_elements=50), [], "hello", budget=budget)
    assert len(prompt.system) <= budget
    assert TRUNCATION_MARKER in prompt.system
