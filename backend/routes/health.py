"""Health check endpoint."""

from fastapi import APIRouter, Request

router = APIRouter()


@router.get("/health")
async def health(request: Request):
    """Health check. Reports which provider is configured, never its key."""
    provider = request.app.state.provider
    return {"status": "ok", "provider": provider.name if provider else None}
