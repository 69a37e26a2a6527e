"""Application-state store.

All client-side state lives in one immutable AppState. Mutations are
expressed as discrete action models passed to Store.dispatch(), which runs
the reducer and notifies subscribers. Nothing else replaces the state.

Codex invariants:
  * the codex is only ever replaced wholesale (CodexCompiled,
    IterationApplied, RevertToIteration) or shrunk by RemoveCodexElement;
  * iterations are append-only; reverting copies a snapshot back, it never
    rewrites the log.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Any, Literal, Union

from pydantic import BaseModel, Field

from memorium.models import (
    AppState,
    Character,
    ChatMessage,
    FeedbackNote,
    GameCodex,
    GameElement,
    GameIteration,
    ProjectBrief,
    StoryNote,
    Task,
    TaskStatus,
    now_ms,
)

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Actions
# ---------------------------------------------------------------------------

class AddTask(BaseModel):
    type: Literal["add_task"] = "add_task"
    task: Task


class MoveTask(BaseModel):
    type: Literal["move_task"] = "move_task"
    task_id: str
    status: TaskStatus


class DeleteTask(BaseModel):
    type: Literal["delete_task"] = "delete_task"
    task_id: str


class AddStoryNote(BaseModel):
    type: Literal["add_story_note"] = "add_story_note"
    note: StoryNote


class DeleteStoryNote(BaseModel):
    type: Literal["delete_story_note"] = "delete_story_note"
    note_id: str


class AddCharacter(BaseModel):
    type: Literal["add_character"] = "add_character"
    character: Character


class SetCharacterImage(BaseModel):
    type: Literal["set_character_image"] = "set_character_image"
    character_id: str
    image_url: str


class DeleteCharacter(BaseModel):
    type: Literal["delete_character"] = "delete_character"
    character_id: str


class UpdateBrief(BaseModel):
    type: Literal["update_brief"] = "update_brief"
    brief: ProjectBrief


class CodexCompiled(BaseModel):
    """A fresh synthesis: replaces the codex and restarts the iteration log."""

    type: Literal["codex_compiled"] = "codex_compiled"
    elements: list[GameElement]
    description: str = "Initial creative synthesis."
    record_iteration: bool = True


class IterationApplied(BaseModel):
    type: Literal["iteration_applied"] = "iteration_applied"
    elements: list[GameElement]
    change_description: str


class RevertToIteration(BaseModel):
    type: Literal["revert_to_iteration"] = "revert_to_iteration"
    iteration_id: str


class RemoveCodexElement(BaseModel):
    type: Literal["remove_codex_element"] = "remove_codex_element"
    element_id: str


class AddFeedback(BaseModel):
    type: Literal["add_feedback"] = "add_feedback"
    note: FeedbackNote


class DeleteFeedback(BaseModel):
    type: Literal["delete_feedback"] = "delete_feedback"
    note_id: str


class AppendMessage(BaseModel):
    type: Literal["append_message"] = "append_message"
    message: ChatMessage


Action = Union[
    AddTask, MoveTask, DeleteTask,
    AddStoryNote, DeleteStoryNote,
    AddCharacter, SetCharacterImage, DeleteCharacter,
    UpdateBrief, CodexCompiled, IterationApplied, RevertToIteration, RemoveCodexElement,
    AddFeedback, DeleteFeedback,
    AppendMessage,
]


# ---------------------------------------------------------------------------
# Reducer
# ---------------------------------------------------------------------------

def _codex(elements: list[GameElement]) -> GameCodex:
    return GameCodex(elements=[e.model_copy() for e in elements], last_updated=now_ms())


def reduce(state: AppState, action: Action) -> AppState:
    """Return the state that results from applying ``action`` to ``state``."""
    if isinstance(action, AddTask):
        return state.model_copy(update={"tasks": state.tasks + (action.task,)})
    if isinstance(action, MoveTask):
        tasks = tuple(
            t.model_copy(update={"status": action.status}) if t.id == action.task_id else t
            for t in state.tasks
        )
        return state.model_copy(update={"tasks": tasks})
    if isinstance(action, DeleteTask):
        return state.model_copy(update={"tasks": tuple(t for t in state.tasks if t.id != action.task_id)})

    if isinstance(action, AddStoryNote):
        return state.model_copy(update={"story_notes": state.story_notes + (action.note,)})
    if isinstance(action, DeleteStoryNote):
        notes = tuple(n for n in state.story_notes if n.id != action.note_id)
        return state.model_copy(update={"story_notes": notes})

    if isinstance(action, AddCharacter):
        return state.model_copy(update={"characters": state.characters + (action.character,)})
    if isinstance(action, SetCharacterImage):
        chars = tuple(
            c.model_copy(update={"image_url": action.image_url}) if c.id == action.character_id else c
            for c in state.characters
        )
        return state.model_copy(update={"characters": chars})
    if isinstance(action, DeleteCharacter):
        chars = tuple(c for c in state.characters if c.id != action.character_id)
        return state.model_copy(update={"characters": chars})

    if isinstance(action, UpdateBrief):
        return state.model_copy(update={"project_brief": action.brief})
    if isinstance(action, CodexCompiled):
        codex = _codex(action.elements)
        update: dict[str, Any] = {"codex": codex}
        if action.record_iteration:
            snapshot = GameIteration(change_description=action.description, codex=codex.model_copy(deep=True))
            update["iterations"] = (snapshot,)
        return state.model_copy(update=update)
    if isinstance(action, IterationApplied):
        codex = _codex(action.elements)
        snapshot = GameIteration(change_description=action.change_description, codex=codex.model_copy(deep=True))
        return state.model_copy(update={"codex": codex, "iterations": state.iterations + (snapshot,)})
    if isinstance(action, RevertToIteration):
        for iteration in state.iterations:
            if iteration.id == action.iteration_id:
                return state.model_copy(update={"codex": iteration.codex.model_copy(deep=True)})
        logger.warning("Revert to unknown iteration %s ignored", action.iteration_id)
        return state
    if isinstance(action, RemoveCodexElement):
        elements = [e for e in state.codex.elements if e.id != action.element_id]
        return state.model_copy(update={"codex": GameCodex(elements=elements, last_updated=now_ms())})

    if isinstance(action, AddFeedback):
        # newest first
        return state.model_copy(update={"feedback": (action.note,) + state.feedback})
    if isinstance(action, DeleteFeedback):
        notes = tuple(f for f in state.feedback if f.id != action.note_id)
        return state.model_copy(update={"feedback": notes})

    if isinstance(action, AppendMessage):
        return state.model_copy(update={"messages": state.messages + (action.message,)})

    raise TypeError(f"Unknown action {type(action).__name__}")


# ---------------------------------------------------------------------------
# Store
# ---------------------------------------------------------------------------

Listener = Callable[[AppState, Action], None]


class Store:
    def __init__(self, state: AppState | None = None) -> None:
        self._state = state or AppState()
        self._listeners: list[Listener] = []

    @property
    def state(self) -> AppState:
        return self._state

    def dispatch(self, action: Action) -> AppState:
        self._state = reduce(self._state, action)
        logger.debug("dispatched %s", action.type)
        for listener in list(self._listeners):
            listener(self._state, action)
        return self._state

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a listener; returns a function that unregisters it."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe


# ---------------------------------------------------------------------------
# Feedback resolution
# ---------------------------------------------------------------------------

class ResolvedTarget(BaseModel):
    title: str
    orphaned: bool = False
    target: Any = Field(default=None, exclude=True)


def resolve_feedback_target(state: AppState, note: FeedbackNote) -> ResolvedTarget:
    """Look up the entity a feedback note points at.

    Deleting a target does not delete its feedback. A missing target falls
    back to the title stored on the note and is flagged as orphaned.
    """
    if note.target_type == "general":
        return ResolvedTarget(title=note.target_title)
    pools: dict[str, tuple] = {
        "codex": tuple(state.codex.elements),
        "character": state.characters,
        "task": state.tasks,
    }
    for item in pools.get(note.target_type, ()):
        if item.id == note.target_id:
            title = getattr(item, "title", None) or getattr(item, "name", note.target_title)
            return ResolvedTarget(title=title, target=item)
    return ResolvedTarget(title=note.target_title, orphaned=True)
