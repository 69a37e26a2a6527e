from collections.abc import Sequence

import pytest
from fastapi.testclient import TestClient

from backend.app import create_app
from backend.config import Settings
from memorium.llm import GenerationFailedError
from memorium.models import ChatTurn


class StubProvider:
    """Provider double: replays queued replies and records every call."""

    name = "stub"

    def __init__(self, replies: Sequence[str] = (), image_uri: str = "data:image/png;base64,AAAA") -> None:
        self.replies = list(replies)
        self.image_uri = image_uri
        self.calls: list[dict] = []
        self.fail = False

    async def complete(
        self,
        prompt: str,
        *,
        system: str | None = None,
        history: Sequence[ChatTurn] = (),
        json_output: bool = False,
    ) -> str:
        self.calls.append({
            "kind": "complete", "prompt": prompt, "system": system,
            "history": list(history), "json_output": json_output,
        })
        if self.fail:
            raise GenerationFailedError("stub provider failure")
        return self.replies.pop(0) if self.replies else ""

    async def image(self, prompt: str, aspect_ratio: str = "3:4") -> str:
        self.calls.append({"kind": "image", "prompt": prompt, "aspect_ratio": aspect_ratio})
        if self.fail:
            raise GenerationFailedError("stub provider failure")
        return self.image_uri


@pytest.fixture
def settings() -> Settings:
    return Settings(provider="stub", context_budget=4000)


@pytest.fixture
def provider() -> StubProvider:
    return StubProvider()


@pytest.fixture
def client(settings, provider) -> TestClient:
    return TestClient(create_app(settings, provider))
