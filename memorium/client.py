"""HTTP client for the /api/generate endpoint.

    client = GenerateClient("http://localhost:13013")
    reply = await client.chat(history, "Hello", context)

Every method posts {"action", "payload"} and returns the decoded JSON body.
Non-2xx responses and transport failures raise GenerateClientError carrying
the server's error text (and details, for validation failures).
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import Any

import httpx

from memorium.models import ChatTurn, ContextData, GameCodex, ProjectBrief

logger = logging.getLogger(__name__)


class GenerateClientError(RuntimeError):
    """Raised when the generation service fails or cannot be reached."""

    def __init__(self, message: str, status: int | None = None, details: str | None = None) -> None:
        super().__init__(message)
        self.status = status
        self.details = details


class GenerateClient:
    """Async client for the generation service.

    Args:
        base_url: Root of the service, e.g. "http://localhost:13013".
        timeout:  HTTP timeout in seconds. Defaults to 180 (image calls are slow).
    """

    def __init__(self, base_url: str, timeout: float = 180.0) -> None:
        self._url = f"{base_url.rstrip('/')}/api/generate"
        self._timeout = timeout

    async def _call(self, action: str, payload: dict[str, Any]) -> dict[str, Any]:
        logger.debug("generate action=%s", action)
        try:
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                resp = await client.post(self._url, json={"action": action, "payload": payload})
        except httpx.ConnectError as e:
            raise GenerateClientError(f"Cannot connect to generation service at {self._url}") from e
        except httpx.TimeoutException as e:
            raise GenerateClientError(f"Generation service timed out after {self._timeout}s") from e
        except httpx.HTTPError as e:
            raise GenerateClientError(f"Generation service request failed: {type(e).__name__}") from e

        try:
            body = resp.json()
        except ValueError:
            body = None
        if resp.status_code >= 400:
            error = body if isinstance(body, dict) else {}
            raise GenerateClientError(
                error.get("error") or f"Generation service returned HTTP {resp.status_code}",
                status=resp.status_code,
                details=error.get("details"),
            )
        if not isinstance(body, dict):
            raise GenerateClientError("Generation service returned an unexpected body", status=resp.status_code)
        return body

    async def chat(
        self,
        history: Sequence[ChatTurn],
        message: str,
        context: ContextData,
    ) -> dict[str, Any]:
        return await self._call("chat", {
            "history": [t.to_wire() for t in history],
            "message": message,
            "contextData": context.to_wire(),
        })

    async def compile_bones(self, brief: ProjectBrief) -> list[dict[str, Any]]:
        body = await self._call("compile_bones", {"brief": brief.model_dump(by_alias=True)})
        return body.get("elements", [])

    async def apply_iteration(self, codex: GameCodex, change_request: str) -> list[dict[str, Any]]:
        body = await self._call("apply_iteration", {
            "codex": codex.to_wire(),
            "changeRequest": change_request,
        })
        return body.get("elements", [])

    async def generate_image(self, prompt: str, aspect_ratio: str = "3:4") -> str | None:
        body = await self._call("generate_image", {"prompt": prompt, "aspectRatio": aspect_ratio})
        return body.get("imageUri")
