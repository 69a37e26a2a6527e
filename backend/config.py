"""Service configuration, read once from the environment at startup.

Variables (a .env file at the repo root is loaded first):

    MEMORIUM_PROVIDER        gemini | openai | echo          (default gemini)
    GEMINI_API_KEY           key for the gemini provider
    OPENAI_API_KEY           key for the openai provider
    MEMORIUM_TEXT_MODEL      override the provider's text model
    MEMORIUM_IMAGE_MODEL     override the provider's image model
    MEMORIUM_TIMEOUT         provider HTTP timeout, seconds   (default 120)
    MEMORIUM_RETRIES         extra attempts on transient errors (default 0)
    MEMORIUM_RETRY_BACKOFF   first retry delay, seconds       (default 1.0)
    MEMORIUM_CONTEXT_BUDGET  max chars of serialized context  (default 12000)
    MEMORIUM_HISTORY_WINDOW  chat turns sent to the provider  (default 10)
"""

import os
from dataclasses import dataclass, field
from pathlib import Path

from dotenv import load_dotenv

from memorium.llm import Provider, create_provider

from .prompts import min_chat_budget

load_dotenv(Path(__file__).parent.parent / ".env")

# Maximum lengths of free-text fields; longer input is rejected, except
# history entries, which are truncated
_FIELD_LIMITS: dict[str, int] = {
    "prompt": 2000,
    "message": 4000,
    "brief": 2000,
    "change_request": 4000,
    "history": 6000,
}


@dataclass
class Settings:
    provider: str = "gemini"
    gemini_api_key: str = ""
    openai_api_key: str = ""
    text_model: str = ""
    image_model: str = ""
    timeout: float = 120.0
    retries: int = 0
    retry_backoff: float = 1.0
    context_budget: int = 12000
    history_window: int = 10
    field_limits: dict[str, int] = field(default_factory=lambda: dict(_FIELD_LIMITS))

    @classmethod
    def from_env(cls) -> "Settings":
        """Raises ValueError when MEMORIUM_CONTEXT_BUDGET cannot hold the chat instruction."""
        settings = cls(
            provider=os.getenv("MEMORIUM_PROVIDER", "gemini").strip().lower(),
            gemini_api_key=os.getenv("GEMINI_API_KEY", ""),
            openai_api_key=os.getenv("OPENAI_API_KEY", ""),
            text_model=os.getenv("MEMORIUM_TEXT_MODEL", ""),
            image_model=os.getenv("MEMORIUM_IMAGE_MODEL", ""),
            timeout=float(os.getenv("MEMORIUM_TIMEOUT", "120")),
            retries=int(os.getenv("MEMORIUM_RETRIES", "0")),
            retry_backoff=float(os.getenv("MEMORIUM_RETRY_BACKOFF", "1.0")),
            context_budget=int(os.getenv("MEMORIUM_CONTEXT_BUDGET", "12000")),
            history_window=int(os.getenv("MEMORIUM_HISTORY_WINDOW", "10")),
        )
        minimum = min_chat_budget()
        if settings.context_budget < minimum:
            raise ValueError(
                f"MEMORIUM_CONTEXT_BUDGET={settings.context_budget} is below the {minimum} "
                "characters the chat instruction needs"
            )
        return settings

    def limit(self, name: str) -> int:
        return self.field_limits.get(name, _FIELD_LIMITS["prompt"])

    def build_provider(self) -> Provider:
        """Raises MisconfiguredError when the selected provider has no key."""
        return create_provider(
            self.provider,
            gemini_api_key=self.gemini_api_key,
            openai_api_key=self.openai_api_key,
            text_model=self.text_model,
            image_model=self.image_model,
            timeout=self.timeout,
            retries=self.retries,
            retry_backoff=self.retry_backoff,
        )
