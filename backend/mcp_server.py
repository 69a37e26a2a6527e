"""FastMCP server exposing the workspace tools as MCP tools.

Tools:
  - add_task(title, description, status)    — append a task (unknown status → TODO)
  - add_story_note(title, content, tags)    — append a story note
  - add_character(name, role, ...)          — append a character without an image
  - list_tasks()                            — current tasks, as wire JSON

The tools run through the same ToolExecutor the chat loop uses, against an
in-memory Store replaced via set_store() for tests.

Usage:
    uv run python -m backend.mcp_server
"""

from mcp.server.fastmcp import FastMCP

from memorium.store import Store
from memorium.tools import ToolExecutor

mcp = FastMCP("memorium-workspace")

_store = Store()


def set_store(store: Store) -> None:
    """Replace the active store (used in tests)."""
    global _store
    _store = store


def get_store() -> Store:
    """Return the active store (used in tests to inspect state)."""
    return _store


@mcp.tool()
async def add_task(title: str, description: str = "", status: str = "TODO") -> dict:
    """Adds a new task to the project management board."""
    args = {"title": title, "description": description, "status": status}
    return await ToolExecutor(_store).execute("add_task", args)


@mcp.tool()
async def add_story_note(title: str, content: str, tags: list[str] | None = None) -> dict:
    """Saves a piece of story, a memory description, or a mechanic to the Story Vault."""
    args = {"title": title, "content": content, "tags": tags or []}
    return await ToolExecutor(_store).execute("add_story_note", args)


@mcp.tool()
async def add_character(
    name: str,
    role: str,
    description: str,
    backstory: str = "",
    occupation: str = "",
    marital_status: str = "",
    personality_traits: list[str] | None = None,
    abilities: list[str] | None = None,
    motivations: str = "",
    fears: str = "",
    relationships: str = "",
) -> dict:
    """Creates a new character profile."""
    args = {
        "name": name, "role": role, "description": description,
        "backstory": backstory, "occupation": occupation,
        "maritalStatus": marital_status,
        "personalityTraits": personality_traits or [],
        "abilities": abilities or [],
        "motivations": motivations, "fears": fears, "relationships": relationships,
    }
    return await ToolExecutor(_store).execute("add_character", args)


@mcp.tool()
def list_tasks() -> list[dict]:
    """Return every task on the board."""
    return [t.to_wire() for t in _store.state.tasks]


if __name__ == "__main__":
    mcp.run()
