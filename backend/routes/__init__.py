"""FastAPI API endpoints under /api.

Endpoint groups: health, generate (the action-dispatched generation
contract shared by chat, codex synthesis, iterations and image generation).
"""

from fastapi import APIRouter

from .generate import router as generate_router
from .health import router as health_router

router = APIRouter()
router.include_router(health_router)
router.include_router(generate_router)
