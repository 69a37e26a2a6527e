"""JSON file storage.

Reads and writes go through plain helper methods that load and dump JSON.
There is no database.

Directory layout:

    {base}/
      profile.json            ← logged-in user's display name
      projects/
        {slug}.json           ← saved AppState of one project
"""

from __future__ import annotations

import json
import logging
import re
import unicodedata
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from memorium.models import AppState, UserProfile

logger = logging.getLogger(__name__)


def slugify(title: str) -> str:
    """Convert a title to a filesystem-safe slug.

    "The Last Memory" → "the-last-memory"
    """
    text = unicodedata.normalize("NFKD", title)
    text = text.encode("ascii", "ignore").decode("ascii")
    text = text.lower()
    text = re.sub(r"['\"]", "", text)
    text = re.sub(r"[^a-z0-9]+", "-", text)
    text = text.strip("-")
    return text or "untitled"


class Storage:
    def __init__(self, base_path: Path) -> None:
        self._base = base_path
        self._projects = base_path / "projects"
        self._projects.mkdir(parents=True, exist_ok=True)

    # ------------------------------------------------------------------
    # Internal path helpers
    # ------------------------------------------------------------------

    def _profile_file(self) -> Path:
        return self._base / "profile.json"

    def _project_file(self, slug: str) -> Path:
        return self._projects / f"{slug}.json"

    def _write_json(self, path: Path, data: Any) -> None:
        path.write_text(json.dumps(data, indent=2))

    # ------------------------------------------------------------------
    # Profile
    # ------------------------------------------------------------------

    def get_profile(self) -> UserProfile | None:
        """Return the stored profile; a corrupt or nameless file counts as none."""
        path = self._profile_file()
        if not path.exists():
            return None
        try:
            profile = UserProfile.model_validate_json(path.read_text())
        except ValidationError as e:
            logger.warning("Failed to read stored profile: %s", e)
            return None
        return profile if profile.name else None

    def save_profile(self, profile: UserProfile) -> None:
        self._write_json(self._profile_file(), profile.to_wire())

    def clear_profile(self) -> None:
        self._profile_file().unlink(missing_ok=True)

    # ------------------------------------------------------------------
    # Projects
    # ------------------------------------------------------------------

    def save_project(self, state: AppState, slug: str | None = None) -> str:
        """Write the project state; the slug defaults to the brief title's."""
        slug = slug or slugify(state.project_brief.title)
        self._project_file(slug).write_text(state.model_dump_json(by_alias=True, indent=2))
        return slug

    def load_project(self, slug: str) -> AppState | None:
        path = self._project_file(slug)
        if not path.exists():
            return None
        return AppState.model_validate_json(path.read_text())

    def list_projects(self) -> list[str]:
        return sorted(p.stem for p in self._projects.glob("*.json"))

    def delete_project(self, slug: str) -> bool:
        path = self._project_file(slug)
        if not path.exists():
            return False
        path.unlink()
        return True
