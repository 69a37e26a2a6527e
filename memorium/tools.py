"""Client-side tools the chat model can invoke.

The backend only proposes tool calls; they are executed here, against the
local Store, one state mutation per call and in the order the model emitted
them.

Tools:
  - generate_image(prompt, aspectRatio?)      — nested image request, non-fatal
  - add_task(title, description?, status?)    — unknown status becomes TODO
  - add_story_note(title, content, tags?)
  - add_character(name, role, description, backstory, occupation,
                  maritalStatus, personalityTraits, abilities?, motivations?,
                  fears?, relationships?)
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable, Iterable
from typing import Any

from pydantic import ValidationError

from memorium.models import (
    ASPECT_RATIOS,
    Character,
    StoryNote,
    Task,
    TaskStatus,
    ToolCall,
    WireModel,
)
from memorium.store import AddCharacter, AddStoryNote, AddTask, Store

logger = logging.getLogger(__name__)

ImageGenerator = Callable[[str, str], Awaitable[str | None]]

IMAGE_STYLE_SUFFIX = "Soft, warm, emotional art style."


# ---------------------------------------------------------------------------
# Argument schemas: the allow-list used by the sanitizer and the prompt
# ---------------------------------------------------------------------------

class GenerateImageArgs(WireModel):
    """Generates a visual concept, memory shard, or card art based on a prompt."""

    prompt: str
    aspect_ratio: str | None = None


class AddTaskArgs(WireModel):
    """Adds a new task to the project management board."""

    title: str
    description: str | None = None
    status: str | None = None


class AddStoryNoteArgs(WireModel):
    """Saves a piece of story, a memory description, or a mechanic to the Story Vault."""

    title: str
    content: str
    tags: list[str] = []


class AddCharacterArgs(WireModel):
    """Creates a new character profile."""

    name: str
    role: str
    description: str
    backstory: str
    occupation: str
    marital_status: str
    personality_traits: list[str]
    abilities: list[str] = []
    motivations: str = ""
    fears: str = ""
    relationships: str = ""


TOOL_SCHEMAS: dict[str, type[WireModel]] = {
    "generate_image": GenerateImageArgs,
    "add_task": AddTaskArgs,
    "add_story_note": AddStoryNoteArgs,
    "add_character": AddCharacterArgs,
}

TOOL_NAMES: tuple[str, ...] = tuple(TOOL_SCHEMAS)


def tool_catalogue() -> str:
    """One line per tool: name, camelCase arguments (? = optional), description."""
    lines = []
    for name, schema in TOOL_SCHEMAS.items():
        params = []
        for field_name, info in schema.model_fields.items():
            alias = info.alias or field_name
            params.append(alias if info.is_required() else f"{alias}?")
        lines.append(f"- {name}({', '.join(params)}): {schema.__doc__}")
    return "\n".join(lines)


# ---------------------------------------------------------------------------
# Executor
# ---------------------------------------------------------------------------

class ToolExecutor:
    """Applies tool calls to a Store.

    Args:
        store:           The application-state store to mutate.
        image_generator: ``async (prompt, aspect_ratio) -> data URI | None``.
                         Optional; without one, generate_image reports the
                         image as unavailable.
    """

    def __init__(self, store: Store, image_generator: ImageGenerator | None = None) -> None:
        self._store = store
        self._image_generator = image_generator
        self.last_image_uri: str | None = None

    async def execute(self, name: str, args: dict[str, Any]) -> dict[str, Any]:
        """Run one tool call and report the outcome. Never raises for bad input."""
        schema = TOOL_SCHEMAS.get(name)
        if schema is None:
            logger.warning("Unknown tool %r requested", name)
            return {"error": "Unknown tool"}
        try:
            parsed = schema.model_validate(args)
        except ValidationError:
            logger.warning("Invalid arguments for tool %s", name)
            return {"error": "Invalid arguments"}

        handler = getattr(self, f"_{name}")
        result = await handler(parsed)
        logger.debug("tool %s -> %s", name, result.get("status"))
        return result

    async def execute_all(self, calls: Iterable[ToolCall | dict[str, Any]]) -> list[dict[str, Any]]:
        """Execute calls sequentially, awaiting each before issuing the next."""
        results = []
        for call in calls:
            if isinstance(call, dict):
                call = ToolCall.model_validate(call)
            results.append(await self.execute(call.name, call.args))
        return results

    async def _generate_image(self, args: GenerateImageArgs) -> dict[str, Any]:
        aspect = args.aspect_ratio if args.aspect_ratio in ASPECT_RATIOS else "3:4"
        uri = None
        if self._image_generator is not None:
            try:
                uri = await self._image_generator(f"{args.prompt}. {IMAGE_STYLE_SUFFIX}", aspect)
            except Exception as e:
                logger.warning("Image generation failed: %s", e)
                uri = None
        if not uri:
            return {"status": "image_unavailable", "uri": None}
        self.last_image_uri = uri
        return {"status": "image_generated", "uri": uri}

    async def _add_task(self, args: AddTaskArgs) -> dict[str, Any]:
        task = Task(
            title=args.title,
            description=args.description or "",
            status=TaskStatus.coerce(args.status),
        )
        self._store.dispatch(AddTask(task=task))
        return {"status": "task_added", "title": task.title}

    async def _add_story_note(self, args: AddStoryNoteArgs) -> dict[str, Any]:
        note = StoryNote(title=args.title, content=args.content, tags=list(args.tags))
        self._store.dispatch(AddStoryNote(note=note))
        return {"status": "note_added", "title": note.title}

    async def _add_character(self, args: AddCharacterArgs) -> dict[str, Any]:
        character = Character(**args.model_dump())
        self._store.dispatch(AddCharacter(character=character))
        return {"status": "character_added", "name": character.name}
