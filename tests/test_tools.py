"""Tests for the client-side tool executor."""

from unittest.mock import AsyncMock

from memorium.models import TaskStatus, ToolCall
from memorium.store import Store
from memorium.tools import TOOL_NAMES, ToolExecutor, tool_catalogue


async def test_add_task_in_progress():
    store = Store()
    executor = ToolExecutor(store)
    result = await executor.execute("add_task", {"title": "Write intro", "status": "IN_PROGRESS"})
    assert result == {"status": "task_added", "title": "Write intro"}
    assert len(store.state.tasks) == 1
    assert store.state.tasks[0].title == "Write intro"
    assert store.state.tasks[0].status == TaskStatus.IN_PROGRESS


async def test_add_task_unknown_status_defaults_to_todo():
    store = Store()
    await ToolExecutor(store).execute("add_task", {"title": "T", "status": "BLOCKED"})
    assert store.state.tasks[0].status == TaskStatus.TODO


async def test_add_task_without_status():
    store = Store()
    await ToolExecutor(store).execute("add_task", {"title": "T", "description": "details"})
    task = store.state.tasks[0]
    assert task.status == TaskStatus.TODO
    assert task.description == "details"


async def test_add_story_note():
    store = Store()
    result = await ToolExecutor(store).execute(
        "add_story_note", {"title": "The hospital smell", "content": "Antiseptic.", "tags": ["memory"]}
    )
    assert result == {"status": "note_added", "title": "The hospital smell"}
    note = store.state.story_notes[0]
    assert note.content == "Antiseptic."
    assert note.tags == ["memory"]


async def test_add_character_without_image():
    store = Store()
    args = {
        "name": "Mara", "role": "The Patient", "description": "Pale, still.",
        "backstory": "A car crash.", "occupation": "Cartographer", "maritalStatus": "Married",
        "personalityTraits": ["stubborn", "curious"], "motivations": "Wake up",
    }
    result = await ToolExecutor(store).execute("add_character", args)
    assert result == {"status": "character_added", "name": "Mara"}
    char = store.state.characters[0]
    assert char.marital_status == "Married"
    assert char.personality_traits == ["stubborn", "curious"]
    assert char.abilities == []
    assert char.image_url is None


async def test_unknown_tool_reports_error():
    store = Store()
    result = await ToolExecutor(store).execute("drop_database", {})
    assert result == {"error": "Unknown tool"}
    assert store.state.tasks == ()


async def test_invalid_args_reports_error():
    store = Store()
    result = await ToolExecutor(store).execute("add_story_note", {"title": "no content"})
    assert result == {"error": "Invalid arguments"}
    assert store.state.story_notes == ()


async def test_generate_image_success():
    store = Store()
    generator = AsyncMock(return_value="data:image/png;base64,AAAA")
    executor = ToolExecutor(store, generator)
    result = await executor.execute("generate_image", {"prompt": "a lighthouse", "aspectRatio": "16:9"})
    assert result == {"status": "image_generated", "uri": "data:image/png;base64,AAAA"}
    assert executor.last_image_uri == "data:image/png;base64,AAAA"
    prompt, aspect = generator.call_args[0]
    assert prompt.startswith("a lighthouse.")
    assert aspect == "16:9"


async def test_generate_image_bad_aspect_uses_default():
    generator = AsyncMock(return_value="data:image/png;base64,AAAA")
    await ToolExecutor(Store(), generator).execute("generate_image", {"prompt": "p", "aspectRatio": "2:1"})
    assert generator.call_args[0][1] == "3:4"


async def test_generate_image_failure_is_non_fatal():
    generator = AsyncMock(side_effect=RuntimeError("provider down"))
    executor = ToolExecutor(Store(), generator)
    result = await executor.execute("generate_image", {"prompt": "p"})
    assert result == {"status": "image_unavailable", "uri": None}
    assert executor.last_image_uri is None


async def test_generate_image_without_generator():
    result = await ToolExecutor(Store()).execute("generate_image", {"prompt": "p"})
    assert result["status"] == "image_unavailable"


async def test_execute_all_runs_in_order():
    store = Store()
    calls = [
        ToolCall(name="add_task", args={"title": "first"}),
        {"name": "unknown", "args": {}},
        {"name": "add_task", "args": {"title": "second"}},
    ]
    results = await ToolExecutor(store).execute_all(calls)
    assert [r.get("status", r.get("error")) for r in results] == ["task_added", "Unknown tool", "task_added"]
    assert [t.title for t in store.state.tasks] == ["first", "second"]


def test_catalogue_lists_every_tool_with_camelcase_args():
    text = tool_catalogue()
    for name in TOOL_NAMES:
        assert f"- {name}(" in text
    assert "aspectRatio?" in text
    assert "maritalStatus" in text
    assert "description?" in text
