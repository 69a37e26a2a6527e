"""Generation providers — HTTP adapters for text and image generation backends.

Every provider implements the same protocol:

    async def complete(prompt, *, system=None, history=(), json_output=False) -> str
    async def image(prompt, aspect_ratio) -> str     # data:<mime>;base64,<...>

Three implementations are provided:

    GeminiProvider  — Google Generative Language REST API.
    OpenAIProvider  — OpenAI chat completions + image generations.
    EchoProvider    — echoes the prompt (as a JSON chat reply when asked) and a 1x1 PNG.
                      Useful for smoke-testing the service without a key.

The service constructs one provider at startup via create_provider() and
passes it to every request handler. Tests patch httpx.AsyncClient.post or
inject a stub provider instead.
"""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import Sequence
from typing import Any, Literal, Protocol

import httpx

from memorium.models import ChatTurn

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------

class GenerationFailedError(RuntimeError):
    """The provider could not be reached or returned unusable output.

    The message is terse and safe to log; it is never sent to HTTP callers.
    """

    def __init__(self, message: str, *, transient: bool = False) -> None:
        super().__init__(message)
        self.transient = transient


class MisconfiguredError(RuntimeError):
    """A required credential or setting is missing."""


# ---------------------------------------------------------------------------
# Protocol: every provider must match these signatures
# ---------------------------------------------------------------------------

class Provider(Protocol):
    name: str

    async def complete(
        self,
        prompt: str,
        *,
        system: str | None = None,
        history: Sequence[ChatTurn] = (),
        json_output: bool = False,
    ) -> str: ...

    async def image(self, prompt: str, aspect_ratio: str = "3:4") -> str: ...


ProviderName = Literal["gemini", "openai", "echo"]

# OpenAI image sizes available for each supported aspect ratio
IMAGE_SIZES: dict[str, str] = {
    "1:1": "1024x1024",
    "3:4": "1024x1536",
    "9:16": "1024x1536",
    "4:3": "1536x1024",
    "16:9": "1536x1024",
}


def data_uri(b64: str, mime_type: str = "image/png") -> str:
    return f"data:{mime_type};base64,{b64}"


# ---------------------------------------------------------------------------
# Shared HTTP plumbing
# ---------------------------------------------------------------------------

class _HttpProvider:
    """POST helper with error mapping and optional retry/backoff.

    Args:
        api_key:       Credential sent by the concrete provider.
        base_url:      API root, trailing slash stripped.
        text_model:    Model used for complete().
        image_model:   Model used for image().
        timeout:       HTTP timeout in seconds. Defaults to 120.
        retries:       Extra attempts after a transient failure. Defaults to 0
                       (a single attempt).
        retry_backoff: Delay before the first retry; doubled on each attempt.
    """

    name = "http"

    def __init__(
        self,
        api_key: str,
        base_url: str,
        text_model: str,
        image_model: str,
        timeout: float = 120.0,
        retries: int = 0,
        retry_backoff: float = 1.0,
    ) -> None:
        self._api_key = api_key
        self._base_url = base_url.rstrip("/")
        self._text_model = text_model
        self._image_model = image_model
        self._timeout = timeout
        self._retries = max(0, retries)
        self._retry_backoff = retry_backoff

    def _headers(self) -> dict[str, str]:
        return {"Content-Type": "application/json"}

    async def _post_once(self, url: str, body: dict) -> dict:
        try:
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                resp = await client.post(url, json=body, headers=self._headers())
                resp.raise_for_status()
        except httpx.ConnectError as e:
            raise GenerationFailedError(
                f"Cannot connect to {self.name} provider", transient=True
            ) from e
        except httpx.HTTPStatusError as e:
            status = e.response.status_code
            raise GenerationFailedError(
                f"{self.name} provider returned HTTP {status}",
                transient=status == 429 or status >= 500,
            ) from e
        except httpx.TimeoutException as e:
            raise GenerationFailedError(
                f"{self.name} provider timed out after {self._timeout}s", transient=True
            ) from e
        except httpx.TransportError as e:
            raise GenerationFailedError(
                f"{self.name} provider connection failed: {type(e).__name__}", transient=True
            ) from e

        try:
            data = resp.json()
        except ValueError as e:
            raise GenerationFailedError(f"{self.name} provider returned a non-JSON body") from e
        if not isinstance(data, dict):
            raise GenerationFailedError(f"Unexpected response format from {self.name} provider")
        return data

    async def _post(self, url: str, body: dict) -> dict:
        attempt = 0
        delay = self._retry_backoff
        while True:
            try:
                return await self._post_once(url, body)
            except GenerationFailedError as e:
                if not e.transient or attempt >= self._retries:
                    raise
                attempt += 1
                logger.warning(
                    "%s call failed (%s), retry %d/%d in %.1fs",
                    self.name, e, attempt, self._retries, delay,
                )
                await asyncio.sleep(delay)
                delay *= 2


# ---------------------------------------------------------------------------
# GeminiProvider
# ---------------------------------------------------------------------------

class GeminiProvider(_HttpProvider):
    """Google Generative Language API.

      text   — POST /v1beta/models/{model}:generateContent
               Response: {"candidates": [{"content": {"parts": [{"text": ...}]}}]}
      image  — same endpoint with generationConfig.imageConfig.aspectRatio
               Response parts carry {"inlineData": {"mimeType", "data"}}

    The key travels in the x-goog-api-key header, never in the URL.
    """

    name = "gemini"

    def __init__(
        self,
        api_key: str,
        text_model: str = "gemini-3-flash-preview",
        image_model: str = "gemini-2.5-flash-image",
        base_url: str = "https://generativelanguage.googleapis.com",
        **kwargs: Any,
    ) -> None:
        super().__init__(api_key, base_url, text_model, image_model, **kwargs)

    def _headers(self) -> dict[str, str]:
        headers = super()._headers()
        headers["x-goog-api-key"] = self._api_key
        return headers

    def _url(self, model: str) -> str:
        return f"{self._base_url}/v1beta/models/{model}:generateContent"

    def _parts(self, data: dict) -> list[dict]:
        candidates = data.get("candidates")
        if not candidates or not isinstance(candidates, list):
            raise GenerationFailedError("Unexpected response format from gemini provider")
        content = candidates[0].get("content") or {}
        return content.get("parts") or []

    async def complete(
        self,
        prompt: str,
        *,
        system: str | None = None,
        history: Sequence[ChatTurn] = (),
        json_output: bool = False,
    ) -> str:
        contents = [
            {"role": "user" if turn.role == "user" else "model", "parts": [{"text": turn.content}]}
            for turn in history
        ]
        contents.append({"role": "user", "parts": [{"text": prompt}]})
        body: dict[str, Any] = {"contents": contents}
        if system:
            body["systemInstruction"] = {"parts": [{"text": system}]}
        if json_output:
            body["generationConfig"] = {"responseMimeType": "application/json"}

        url = self._url(self._text_model)
        logger.debug("gemini complete model=%s prompt_len=%d turns=%d",
                     self._text_model, len(prompt), len(history))
        data = await self._post(url, body)
        text = "".join(p.get("text", "") for p in self._parts(data) if isinstance(p, dict))
        logger.debug("gemini response len=%d", len(text))
        return text

    async def image(self, prompt: str, aspect_ratio: str = "3:4") -> str:
        body = {
            "contents": [{"role": "user", "parts": [{"text": prompt}]}],
            "generationConfig": {"imageConfig": {"aspectRatio": aspect_ratio}},
        }
        logger.debug("gemini image model=%s aspect=%s", self._image_model, aspect_ratio)
        data = await self._post(self._url(self._image_model), body)
        uri = None
        for part in self._parts(data):
            inline = part.get("inlineData") if isinstance(part, dict) else None
            if inline and inline.get("data"):
                uri = data_uri(inline["data"], inline.get("mimeType", "image/png"))
        if uri is None:
            raise GenerationFailedError("gemini provider returned no image")
        return uri


# ---------------------------------------------------------------------------
# OpenAIProvider
# ---------------------------------------------------------------------------

class OpenAIProvider(_HttpProvider):
    """OpenAI REST API.

      text   — POST /v1/chat/completions   {"model", "messages", "response_format"?}
               Response: {"choices": [{"message": {"content": "..."}}]}
      image  — POST /v1/images/generations {"model", "prompt", "size"}
               Response: {"data": [{"b64_json": "..."}]}
    """

    name = "openai"

    def __init__(
        self,
        api_key: str,
        text_model: str = "gpt-4o-mini",
        image_model: str = "gpt-image-1",
        base_url: str = "https://api.openai.com",
        **kwargs: Any,
    ) -> None:
        super().__init__(api_key, base_url, text_model, image_model, **kwargs)

    def _headers(self) -> dict[str, str]:
        headers = super()._headers()
        headers["Authorization"] = f"Bearer {self._api_key}"
        return headers

    async def complete(
        self,
        prompt: str,
        *,
        system: str | None = None,
        history: Sequence[ChatTurn] = (),
        json_output: bool = False,
    ) -> str:
        messages: list[dict[str, str]] = []
        if system:
            messages.append({"role": "system", "content": system})
        for turn in history:
            role = "user" if turn.role == "user" else "assistant"
            messages.append({"role": role, "content": turn.content})
        messages.append({"role": "user", "content": prompt})

        body: dict[str, Any] = {"model": self._text_model, "messages": messages}
        if json_output:
            body["response_format"] = {"type": "json_object"}

        url = f"{self._base_url}/v1/chat/completions"
        logger.debug("openai complete url=%s prompt_len=%d turns=%d", url, len(prompt), len(history))
        data = await self._post(url, body)
        choices = data.get("choices")
        if not choices or not isinstance(choices[0], dict):
            raise GenerationFailedError("Unexpected response format from openai provider")
        content = (choices[0].get("message") or {}).get("content")
        if not isinstance(content, str):
            raise GenerationFailedError("Unexpected response format from openai provider")
        logger.debug("openai response len=%d", len(content))
        return content

    async def image(self, prompt: str, aspect_ratio: str = "3:4") -> str:
        size = IMAGE_SIZES.get(aspect_ratio, IMAGE_SIZES["1:1"])
        body = {"model": self._image_model, "prompt": prompt, "size": size, "n": 1}
        url = f"{self._base_url}/v1/images/generations"
        logger.debug("openai image url=%s size=%s", url, size)
        data = await self._post(url, body)
        items = data.get("data")
        if not items or not isinstance(items[0], dict) or not items[0].get("b64_json"):
            raise GenerationFailedError("openai provider returned no image")
        return data_uri(items[0]["b64_json"])


# ---------------------------------------------------------------------------
# EchoProvider (no network calls)
# ---------------------------------------------------------------------------

_BLANK_PNG = (
    "iVBORw0KGgoAAAANSUhEUgAAAAEAAAABCAYAAAAfFcSJAAAADUlEQVR42mNkYPhfDwAChwGA60e6kgAAAABJRU5ErkJggg=="
)


class EchoProvider:
    """Echoes the prompt and returns a blank 1x1 PNG for images.

    Lets you verify the request wiring (validation, dispatch, prompt
    composition, normalisation) end-to-end without a key. When JSON output is
    requested the prompt comes back as a chat reply with no tool calls, so
    codex actions still fail normalisation.
    """

    name = "echo"

    async def complete(
        self,
        prompt: str,
        *,
        system: str | None = None,
        history: Sequence[ChatTurn] = (),
        json_output: bool = False,
    ) -> str:
        logger.debug("EchoProvider prompt_len=%d", len(prompt))
        if json_output:
            return json.dumps({"text": prompt, "toolCalls": []})
        return prompt

    async def image(self, prompt: str, aspect_ratio: str = "3:4") -> str:
        return data_uri(_BLANK_PNG)


def create_provider(
    name: str,
    *,
    gemini_api_key: str = "",
    openai_api_key: str = "",
    text_model: str = "",
    image_model: str = "",
    timeout: float = 120.0,
    retries: int = 0,
    retry_backoff: float = 1.0,
) -> Provider:
    """Build the configured provider. Raises MisconfiguredError when its key is missing."""
    options: dict[str, Any] = {"timeout": timeout, "retries": retries, "retry_backoff": retry_backoff}
    if text_model:
        options["text_model"] = text_model
    if image_model:
        options["image_model"] = image_model

    if name == "gemini":
        if not gemini_api_key:
            raise MisconfiguredError("gemini provider is not configured")
        return GeminiProvider(gemini_api_key, **options)
    if name == "openai":
        if not openai_api_key:
            raise MisconfiguredError("openai provider is not configured")
        return OpenAIProvider(openai_api_key, **options)
    if name == "echo":
        return EchoProvider()
    raise MisconfiguredError(f"Unknown provider {name!r}")
