"""Core domain models.

Every store action, tool call and HTTP payload operates on these types.
Pydantic is used for validation and serialisation at every data boundary.
JSON uses the camelCase names of the wire contract (``artStyle``,
``lastUpdated``); Python code uses the snake_case attribute names.
"""

from __future__ import annotations

import secrets
import string
import time
from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

_ID_ALPHABET = string.ascii_lowercase + string.digits


def new_id() -> str:
    """Opaque 9-character base-36 identifier. Collisions are unlikely, not impossible."""
    return "".join(secrets.choice(_ID_ALPHABET) for _ in range(9))


def now_ms() -> int:
    return int(time.time() * 1000)


class WireModel(BaseModel):
    """Base for models that travel as camelCase JSON."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


ElementCategory = Literal["premise", "mechanic", "story", "visual", "character_arc"]
ELEMENT_CATEGORIES: tuple[str, ...] = ("premise", "mechanic", "story", "visual", "character_arc")

FeedbackTarget = Literal["codex", "character", "task", "general"]
ChatRole = Literal["user", "model", "system"]
AspectRatio = Literal["1:1", "3:4", "4:3", "16:9", "9:16"]
ASPECT_RATIOS: tuple[str, ...] = ("1:1", "3:4", "4:3", "16:9", "9:16")


class TaskStatus(str, Enum):
    TODO = "TODO"
    IN_PROGRESS = "IN_PROGRESS"
    DONE = "DONE"

    @classmethod
    def coerce(cls, value: Any) -> TaskStatus:
        """Map any value onto a status; unknown values become TODO."""
        try:
            return cls(value)
        except ValueError:
            return cls.TODO


class ProjectBrief(WireModel):
    """The free-text seed document a codex is synthesised from."""

    title: str = ""
    genre: str = ""
    art_style: str = ""
    world_setting: str = ""
    core_mechanic_visuals: str = ""
    key_characters: str = ""


class GameElement(WireModel):
    id: str = Field(default_factory=new_id)
    category: ElementCategory
    title: str
    content: str


class GameCodex(WireModel):
    """Canonical narrative-design artifact. Replaced wholesale, never patched."""

    elements: list[GameElement] = Field(default_factory=list)
    last_updated: int = 0


class GameIteration(WireModel):
    """An append-only snapshot of the codex and the request that produced it."""

    id: str = Field(default_factory=new_id)
    timestamp: int = Field(default_factory=now_ms)
    change_description: str
    codex: GameCodex


class Character(WireModel):
    id: str = Field(default_factory=new_id)
    name: str
    role: str = ""
    description: str = ""
    backstory: str = ""
    occupation: str = ""
    marital_status: str = ""
    personality_traits: list[str] = Field(default_factory=list)
    abilities: list[str] = Field(default_factory=list)
    motivations: str = ""
    fears: str = ""
    relationships: str = ""
    image_url: str | None = None  # populated later by an image generation call
    created_at: int = Field(default_factory=now_ms)


class Task(WireModel):
    id: str = Field(default_factory=new_id)
    title: str
    description: str | None = None
    status: TaskStatus = TaskStatus.TODO
    created_at: int = Field(default_factory=now_ms)


class StoryNote(WireModel):
    id: str = Field(default_factory=new_id)
    title: str
    content: str
    tags: list[str] = Field(default_factory=list)
    created_at: int = Field(default_factory=now_ms)


class FeedbackNote(WireModel):
    """Review feedback. ``target_id`` is a non-owning reference and may dangle."""

    id: str = Field(default_factory=new_id)
    target_id: str
    target_type: FeedbackTarget
    target_title: str
    content: str
    timestamp: int = Field(default_factory=now_ms)


class ChatMessage(WireModel):
    """A single entry in the append-only chat transcript."""

    id: str = Field(default_factory=new_id)
    role: ChatRole
    content: str
    image_uri: str | None = None
    timestamp: int = Field(default_factory=now_ms)


class ChatTurn(WireModel):
    """The wire form of a history entry."""

    role: str
    content: str


class ToolCall(WireModel):
    """A backend-proposed, client-executed state mutation."""

    name: str
    args: dict[str, Any] = Field(default_factory=dict)


class ContextData(WireModel):
    tasks: list[Task] = Field(default_factory=list)
    notes: list[StoryNote] = Field(default_factory=list)
    characters: list[Character] = Field(default_factory=list)
    brief: ProjectBrief = Field(default_factory=ProjectBrief)
    codex: GameCodex = Field(default_factory=GameCodex)


class UserProfile(WireModel):
    name: str


class AppState(WireModel):
    """The whole client-held state of one project."""

    model_config = ConfigDict(frozen=True)

    tasks: tuple[Task, ...] = ()
    story_notes: tuple[StoryNote, ...] = ()
    characters: tuple[Character, ...] = ()
    project_brief: ProjectBrief = Field(default_factory=ProjectBrief)
    codex: GameCodex = Field(default_factory=GameCodex)
    iterations: tuple[GameIteration, ...] = ()
    feedback: tuple[FeedbackNote, ...] = ()
    messages: tuple[ChatMessage, ...] = ()
