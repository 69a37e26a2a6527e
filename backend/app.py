import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from backend.config import Settings
from backend.dispatcher import UnsupportedActionError
from backend.prompts import PromptError
from backend.routes import router
from backend.validation import ValidationError
from memorium.llm import GenerationFailedError, MisconfiguredError, Provider

logger = logging.getLogger(__name__)

GENERIC_ERROR = "Request could not be processed."


def create_app(settings: Settings | None = None, provider: Provider | None = None) -> FastAPI:
    """Build the service. The provider is created from settings unless injected."""
    settings = settings or Settings.from_env()
    if provider is None:
        try:
            provider = settings.build_provider()
        except MisconfiguredError as e:
            # Keep serving so every request gets a clean 503
            logger.error("Server error: %s", e)
            provider = None

    app = FastAPI(title="Memorium")
    app.state.settings = settings
    app.state.provider = provider
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Content-Type"],
    )
    app.include_router(router, prefix="/api")

    @app.exception_handler(ValidationError)
    @app.exception_handler(UnsupportedActionError)
    async def caller_error(request: Request, exc: Exception):
        logger.info("Rejected request: %s", exc)
        return JSONResponse(status_code=400, content={"error": GENERIC_ERROR, "details": str(exc)})

    @app.exception_handler(GenerationFailedError)
    @app.exception_handler(PromptError)
    async def generation_error(request: Request, exc: Exception):
        logger.error("API Error: %s", exc)
        return JSONResponse(status_code=500, content={"error": GENERIC_ERROR})

    @app.exception_handler(MisconfiguredError)
    async def misconfigured(request: Request, exc: MisconfiguredError):
        logger.error("Server error: %s", exc)
        return JSONResponse(status_code=503, content={"error": "Service unavailable"})

    @app.exception_handler(Exception)
    async def unexpected_error(request: Request, exc: Exception):
        logger.exception("Unhandled error in %s", request.url.path)
        return JSONResponse(status_code=500, content={"error": GENERIC_ERROR})

    return app


# Default app instance for uvicorn (configured from the environment)
app = create_app()
