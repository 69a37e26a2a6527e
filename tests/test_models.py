"""Tests for memorium.models."""

import pytest
from pydantic import ValidationError

from memorium.models import (
    AppState,
    Character,
    ChatMessage,
    GameElement,
    ProjectBrief,
    Task,
    TaskStatus,
    new_id,
)


class TestIds:
    def test_new_id_shape(self) -> None:
        ident = new_id()
        assert len(ident) == 9
        assert ident.isalnum()
        assert ident == ident.lower()

    def test_ids_differ(self) -> None:
        assert len({new_id() for _ in range(200)}) == 200


class TestWireFormat:
    def test_brief_uses_camel_case(self) -> None:
        brief = ProjectBrief(title="Memorium", art_style="Watercolour")
        wire = brief.to_wire()
        assert wire["artStyle"] == "Watercolour"
        assert "art_style" not in wire

    def test_brief_accepts_either_name(self) -> None:
        assert ProjectBrief.model_validate({"worldSetting": "A coma"}).world_setting == "A coma"
        assert ProjectBrief(world_setting="A coma").world_setting == "A coma"

    def test_character_without_image_omits_it(self) -> None:
        wire = Character(name="Mara").to_wire()
        assert "imageUrl" not in wire
        assert wire["personalityTraits"] == []

    def test_task_status_serializes_as_string(self) -> None:
        assert Task(title="x", status=TaskStatus.IN_PROGRESS).to_wire()["status"] == "IN_PROGRESS"


class TestGameElement:
    def test_id_generated_when_missing(self) -> None:
        assert GameElement(category="story", title="t", content="c").id

    def test_invalid_category_rejected(self) -> None:
        with pytest.raises(ValidationError):
            GameElement(category="soundtrack", title="t", content="c")


class TestTaskStatus:
    @pytest.mark.parametrize("value, expected", [
        ("TODO", TaskStatus.TODO),
        ("IN_PROGRESS", TaskStatus.IN_PROGRESS),
        ("DONE", TaskStatus.DONE),
        ("BLOCKED", TaskStatus.TODO),
        (None, TaskStatus.TODO),
    ])
    def test_coerce(self, value, expected) -> None:
        assert TaskStatus.coerce(value) is expected


class TestChatMessage:
    def test_invalid_role_rejected(self) -> None:
        with pytest.raises(ValidationError):
            ChatMessage(role="narrator", content="x")


class TestAppState:
    def test_defaults_are_empty(self) -> None:
        state = AppState()
        assert state.tasks == ()
        assert state.codex.elements == []
        assert state.project_brief.title == ""

    def test_frozen(self) -> None:
        with pytest.raises(ValidationError):
            AppState().tasks = (Task(title="x"),)
