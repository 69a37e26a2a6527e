"""POST /api/generate — the single generation endpoint."""

import json

from fastapi import APIRouter, Request

from backend.dispatcher import dispatch
from backend.validation import ValidationError
from memorium.llm import MisconfiguredError

router = APIRouter()


@router.post("/generate")
async def generate(request: Request):
    """Run one action: chat, compile_bones, apply_iteration or generate_image."""
    provider = request.app.state.provider
    if provider is None:
        raise MisconfiguredError("No generation provider configured")
    try:
        body = await request.json()
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise ValidationError("Invalid JSON body") from e
    return await dispatch(body, provider, request.app.state.settings)
