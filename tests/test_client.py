"""Tests for GenerateClient, with httpx mocked."""

from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import pytest

from memorium.client import GenerateClient, GenerateClientError
from memorium.models import ChatTurn, ContextData, GameCodex, GameElement, ProjectBrief


def _mock_response(status_code: int, body) -> MagicMock:
    resp = MagicMock()
    resp.status_code = status_code
    resp.json.return_value = body
    return resp


def _sent(mock_post) -> dict:
    return mock_post.call_args.kwargs["json"]


async def test_chat_posts_envelope():
    client = GenerateClient("http://localhost:13013/")
    reply = {"text": "hi", "toolCalls": []}
    with patch("httpx.AsyncClient.post", new=AsyncMock(return_value=_mock_response(200, reply))) as post:
        result = await client.chat(
            [ChatTurn(role="user", content="earlier")],
            "Hello",
            ContextData(brief=ProjectBrief(title="Memorium")),
        )
    assert result == reply
    assert post.call_args.args[0] == "http://localhost:13013/api/generate"
    body = _sent(post)
    assert body["action"] == "chat"
    assert body["payload"]["message"] == "Hello"
    assert body["payload"]["history"] == [{"role": "user", "content": "earlier"}]
    assert body["payload"]["contextData"]["brief"]["title"] == "Memorium"


async def test_compile_bones_sends_camel_case_brief():
    client = GenerateClient("http://svc")
    elements = [{"id": "e1", "category": "premise", "title": "P", "content": "c"}]
    with patch("httpx.AsyncClient.post", new=AsyncMock(return_value=_mock_response(200, {"elements": elements}))) as post:
        result = await client.compile_bones(ProjectBrief(title="M", art_style="Ink"))
    assert result == elements
    assert _sent(post)["payload"]["brief"]["artStyle"] == "Ink"


async def test_apply_iteration_payload():
    client = GenerateClient("http://svc")
    codex = GameCodex(elements=[GameElement(id="e1", category="story", title="t", content="c")])
    with patch("httpx.AsyncClient.post", new=AsyncMock(return_value=_mock_response(200, {"elements": []}))) as post:
        assert await client.apply_iteration(codex, "Remove all") == []
    payload = _sent(post)["payload"]
    assert payload["changeRequest"] == "Remove all"
    assert payload["codex"]["elements"][0]["id"] == "e1"


async def test_generate_image_returns_uri():
    client = GenerateClient("http://svc")
    resp = _mock_response(200, {"imageUri": "data:image/png;base64,AAAA"})
    with patch("httpx.AsyncClient.post", new=AsyncMock(return_value=resp)) as post:
        assert await client.generate_image("a lighthouse", "16:9") == "data:image/png;base64,AAAA"
    assert _sent(post) == {"action": "generate_image", "payload": {"prompt": "a lighthouse", "aspectRatio": "16:9"}}


async def test_validation_error_carries_details():
    client = GenerateClient("http://svc")
    body = {"error": "Request could not be processed.", "details": "Invalid input: Message is missing or empty."}
    with patch("httpx.AsyncClient.post", new=AsyncMock(return_value=_mock_response(400, body))):
        with pytest.raises(GenerateClientError) as exc_info:
            await client.chat([], " ", ContextData())
    assert exc_info.value.status == 400
    assert exc_info.value.details == "Invalid input: Message is missing or empty."


async def test_non_json_error_body():
    client = GenerateClient("http://svc")
    resp = _mock_response(502, None)
    resp.json.side_effect = ValueError("not json")
    with patch("httpx.AsyncClient.post", new=AsyncMock(return_value=resp)):
        with pytest.raises(GenerateClientError, match="HTTP 502"):
            await client.generate_image("p")


async def test_connect_error():
    client = GenerateClient("http://svc")
    with patch("httpx.AsyncClient.post", new=AsyncMock(side_effect=httpx.ConnectError("refused"))):
        with pytest.raises(GenerateClientError, match="Cannot connect"):
            await client.generate_image("p")


async def test_timeout():
    client = GenerateClient("http://svc", timeout=5)
    with patch("httpx.AsyncClient.post", new=AsyncMock(side_effect=httpx.ReadTimeout("slow"))):
        with pytest.raises(GenerateClientError, match="timed out"):
            await client.generate_image("p")


async def test_dropped_connection():
    client = GenerateClient("http://svc")
    with patch("httpx.AsyncClient.post", new=AsyncMock(side_effect=httpx.RemoteProtocolError("Server disconnected"))):
        with pytest.raises(GenerateClientError, match="RemoteProtocolError"):
            await client.chat([], "hi", ContextData())


@pytest.mark.parametrize("body", [["not", "an", "object"], "text", None])
async def test_non_object_success_body(body):
    client = GenerateClient("http://svc")
    with patch("httpx.AsyncClient.post", new=AsyncMock(return_value=_mock_response(200, body))):
        with pytest.raises(GenerateClientError, match="unexpected body"):
            await client.chat([], "hi", ContextData())
