"""Client-side flows: chat turns, codex synthesis, iterations, character art.

A Workspace ties the Store to a GenerateClient. The chat loop is:

  1. Append the user's message to the transcript.
  2. Send the last HISTORY_WINDOW messages, the message and the context.
  3. Execute the returned tool calls in order, one at a time.
  4. Append the model's reply (with the last generated image, if any).

Any backend failure during a chat turn is replaced by FALLBACK_REPLY so the
transcript always stays usable. Codex flows leave the codex untouched on
failure, except send_brief_to_library() which falls back to a locally
formatted codex.
"""

from __future__ import annotations

import logging

from pydantic import ValidationError

from memorium.client import GenerateClient, GenerateClientError
from memorium.models import (
    ChatMessage,
    ChatTurn,
    ContextData,
    GameElement,
    ProjectBrief,
)
from memorium.store import (
    AppendMessage,
    CodexCompiled,
    IterationApplied,
    RevertToIteration,
    SetCharacterImage,
    Store,
    UpdateBrief,
)
from memorium.storage import Storage
from memorium.tools import ToolExecutor

logger = logging.getLogger(__name__)

HISTORY_WINDOW = 10
FALLBACK_REPLY = "The mind is too cloudy to respond. Try again."
GREETING = "Memorium is here to support your creative journey. How are you feeling about your project today?"


class WorkspaceError(RuntimeError):
    """Raised for user-fixable problems, e.g. compiling a brief with no title."""


def format_brief_to_codex(brief: ProjectBrief) -> list[GameElement]:
    """Build codex elements straight from the brief fields, without a model."""
    fields = [
        ("premise", "Title", brief.title),
        ("premise", "Tone & Genre", brief.genre),
        ("visual", "Aesthetic", brief.art_style),
        ("story", "Setting", brief.world_setting),
        ("mechanic", "Core Mechanics", brief.core_mechanic_visuals),
        ("character_arc", "Key Figures", brief.key_characters),
    ]
    return [
        GameElement(category=category, title=title, content=content)
        for category, title, content in fields
        if content
    ]


class Workspace:
    def __init__(
        self,
        client: GenerateClient,
        store: Store | None = None,
        storage: Storage | None = None,
    ) -> None:
        self.client = client
        self.store = store or Store()
        self.storage = storage
        if not self.store.state.messages:
            self.store.dispatch(AppendMessage(message=ChatMessage(role="system", content=GREETING)))

    def _context(self) -> ContextData:
        state = self.store.state
        return ContextData(
            tasks=list(state.tasks),
            notes=list(state.story_notes),
            characters=list(state.characters),
            brief=state.project_brief,
            codex=state.codex,
        )

    async def _image(self, prompt: str, aspect_ratio: str) -> str | None:
        try:
            return await self.client.generate_image(prompt, aspect_ratio)
        except GenerateClientError as e:
            logger.warning("Image generation failed: %s", e)
            return None

    # ------------------------------------------------------------------
    # Chat
    # ------------------------------------------------------------------

    async def send_message(self, text: str) -> ChatMessage:
        """Run one chat turn and return the model's reply as appended to the transcript."""
        history = [
            ChatTurn(role=m.role, content=m.content)
            for m in self.store.state.messages[-HISTORY_WINDOW:]
            if m.content.strip()
        ]
        self.store.dispatch(AppendMessage(message=ChatMessage(role="user", content=text)))

        executor = ToolExecutor(self.store, self._image)
        try:
            response = await self.client.chat(history, text, self._context())
            await executor.execute_all(response.get("toolCalls") or [])
            reply_text = response.get("text") or ""
        except (GenerateClientError, ValidationError) as e:
            logger.warning("Chat turn failed: %s", e)
            reply_text = FALLBACK_REPLY

        reply = ChatMessage(role="model", content=reply_text, image_uri=executor.last_image_uri)
        self.store.dispatch(AppendMessage(message=reply))
        return reply

    # ------------------------------------------------------------------
    # Brief and codex
    # ------------------------------------------------------------------

    def update_brief(self, brief: ProjectBrief) -> None:
        self.store.dispatch(UpdateBrief(brief=brief))

    async def compile_bones(self) -> None:
        """Synthesise the brief into a new codex and restart the iteration log."""
        brief = self.store.state.project_brief
        if not brief.title.strip():
            raise WorkspaceError("Please give your project a name to begin.")
        raw = await self.client.compile_bones(brief)
        elements = [GameElement.model_validate(e) for e in raw]
        self.store.dispatch(CodexCompiled(elements=elements))

    async def send_brief_to_library(self, brief: ProjectBrief) -> bool:
        """Compile ``brief`` into the codex; returns False when the local fallback was used."""
        try:
            raw = await self.client.compile_bones(brief)
            elements = [GameElement.model_validate(e) for e in raw]
        except (GenerateClientError, ValidationError) as e:
            logger.warning("AI generation failed; used local formatting: %s", e)
            self.store.dispatch(CodexCompiled(elements=format_brief_to_codex(brief), record_iteration=False))
            return False
        self.store.dispatch(CodexCompiled(elements=elements, record_iteration=False))
        return True

    async def apply_iteration(self, change_request: str) -> None:
        raw = await self.client.apply_iteration(self.store.state.codex, change_request)
        elements = [GameElement.model_validate(e) for e in raw]
        self.store.dispatch(IterationApplied(elements=elements, change_description=change_request))

    def revert(self, iteration_id: str) -> None:
        self.store.dispatch(RevertToIteration(iteration_id=iteration_id))

    # ------------------------------------------------------------------
    # Characters
    # ------------------------------------------------------------------

    async def generate_character_art(self, character_id: str) -> str | None:
        """Best-effort portrait for a character. Failures leave it without an image."""
        char = next((c for c in self.store.state.characters if c.id == character_id), None)
        if char is None:
            return None
        prompt = (
            "Soft, dreamlike, emotional digital art, warm sunset lighting, gentle brushstrokes: "
            f"{char.name}, {char.role}. Visual: {char.description}. Focus on hope and memory."
        )
        uri = await self._image(prompt, "3:4")
        if uri:
            self.store.dispatch(SetCharacterImage(character_id=character_id, image_url=uri))
        return uri

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    @classmethod
    def open(cls, client: GenerateClient, storage: Storage, slug: str) -> Workspace:
        """Resume a saved project."""
        state = storage.load_project(slug)
        if state is None:
            raise WorkspaceError(f"No saved project named {slug!r}.")
        return cls(client, Store(state), storage)

    def save(self, slug: str | None = None) -> str:
        """Write the current state; returns the project's slug."""
        if self.storage is None:
            raise WorkspaceError("This workspace has no storage attached.")
        return self.storage.save_project(self.store.state, slug)
