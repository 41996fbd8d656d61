"""
Configuration for gamepulse.

Module-level values are read from the environment once. The process default
provider configuration is built only at the outermost entry points (the API
app and the Prefect flow) and passed down explicitly from there.
"""

import os
from enum import Enum
from typing import Optional

from pydantic import BaseModel


class LLMProvider(str, Enum):
    OLLAMA = "ollama"
    OPENAI = "openai"
    ANTHROPIC = "anthropic"
    AZURE = "azure"


# Storage
DATABASE_URL = os.getenv("GAMEPULSE_DATABASE_URL", "sqlite:///game_reviews.db")

# Steam
STEAM_STORE_URL = "https://store.steampowered.com"
STEAM_CDN_URL = "https://cdn.akamai.steamstatic.com/steam/apps"
STEAM_USER_AGENT = "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36"
REVIEW_BATCH_SIZE = 100
MAX_REVIEW_REQUESTS = 20  # hard cap on pages per fetch
REVIEW_PAGE_DELAY_SECONDS = 0.25
STEAM_TIMEOUT_SECONDS = 10.0

# Summarization
MIN_REVIEW_LENGTH = 10
MAX_PROMPT_REVIEWS = 500
MAX_REVIEW_CHARS = 500
MAX_POSITIVE_ASPECTS = 5
MAX_NEGATIVE_ASPECTS = 3
MAX_THEMES = 6
LLM_TEMPERATURE = 0.3
LLM_MAX_TOKENS = 2000
LOCAL_LLM_TIMEOUT_SECONDS = 300.0
HOSTED_LLM_TIMEOUT_SECONDS = 60.0
CONNECTION_CHECK_TIMEOUT_SECONDS = 5.0

DEFAULT_ENDPOINTS = {
    LLMProvider.OLLAMA: "http://localhost:11434",
    LLMProvider.OPENAI: "https://api.openai.com",
    LLMProvider.ANTHROPIC: "https://api.anthropic.com",
}

DEFAULT_MODELS = {
    LLMProvider.OLLAMA: ["llama2", "llama2:13b", "codellama", "mistral"],
    LLMProvider.OPENAI: ["gpt-4", "gpt-3.5-turbo", "gpt-4-turbo-preview"],
    LLMProvider.ANTHROPIC: [
        "claude-3-opus-20240229",
        "claude-3-sonnet-20240229",
        "claude-3-haiku-20240307",
    ],
    LLMProvider.AZURE: ["gpt-4", "gpt-35-turbo"],
}

API_KEY_ENV_VARS = {
    LLMProvider.OPENAI: "OPENAI_API_KEY",
    LLMProvider.ANTHROPIC: "ANTHROPIC_API_KEY",
    LLMProvider.AZURE: "AZURE_OPENAI_API_KEY",
}

# Pipeline
PROGRESS_CHANNEL_SIZE = 100


class ProviderConfig(BaseModel):
    """Which summarization backend to call. API keys never live here."""

    provider: LLMProvider = LLMProvider.OLLAMA
    endpoint: Optional[str] = None
    model: Optional[str] = None
    temperature: float = LLM_TEMPERATURE
    max_tokens: int = LLM_MAX_TOKENS
    timeout: Optional[float] = None

    @property
    def resolved_endpoint(self) -> Optional[str]:
        endpoint = self.endpoint or DEFAULT_ENDPOINTS.get(self.provider)
        return endpoint.rstrip("/") if endpoint else None

    @property
    def resolved_model(self) -> str:
        return self.model or DEFAULT_MODELS[self.provider][0]

    @property
    def resolved_timeout(self) -> float:
        if self.timeout is not None:
            return self.timeout
        if self.provider == LLMProvider.OLLAMA:
            return LOCAL_LLM_TIMEOUT_SECONDS
        return HOSTED_LLM_TIMEOUT_SECONDS


def load_provider_config() -> ProviderConfig:
    return ProviderConfig(
        provider=LLMProvider(os.getenv("GAMEPULSE_LLM_PROVIDER", LLMProvider.OLLAMA.value)),
        endpoint=os.getenv("GAMEPULSE_LLM_ENDPOINT") or None,
        model=os.getenv("GAMEPULSE_LLM_MODEL") or None,
    )
