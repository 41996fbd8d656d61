from typing import Any, Dict, List, Optional

import httpx

from gamepulse import config
from gamepulse.config import LLMProvider, ProviderConfig
from gamepulse.data_models import ConnectionTestResult, Game, Review, Summary
from gamepulse.errors import ErrorKind, GamePulseError, LLMError, SummarizationError
from gamepulse.logging import get_logger
from .backends import BACKENDS, LLMBackend, get_backend
from .credentials import CredentialProvider, EnvironmentCredentials
from .parsing import parse_summary_response
from .prompt import build_summarization_prompt

logger = get_logger(__name__)

CONNECTION_FAILURE_MESSAGES = {
    LLMProvider.OLLAMA: "Failed to connect to Ollama. Make sure Ollama is running on the specified endpoint.",
    LLMProvider.OPENAI: "Failed to connect to OpenAI. Check your API key and internet connection.",
    LLMProvider.ANTHROPIC: "Failed to connect to Anthropic. Check your API key and internet connection.",
    LLMProvider.AZURE: "Failed to connect to Azure OpenAI. Check your endpoint, API key, and deployment.",
}


class SummarizationClient:
    """
    Turns a batch of reviews into a validated Summary using one configured backend.

    The backend is chosen from the ProviderConfig passed in; API keys come from
    the injected CredentialProvider.
    """

    def __init__(
        self,
        provider_config: Optional[ProviderConfig] = None,
        credentials: Optional[CredentialProvider] = None,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        self.config = provider_config or ProviderConfig()
        self.credentials = credentials or EnvironmentCredentials()
        self.http_client = http_client
        self.backend: LLMBackend = get_backend(self.config, self.credentials, http_client)
        logger.info(f"Initialized SummarizationClient with provider={self.config.provider.value}, model={self.config.resolved_model}")

    async def aclose(self):
        await self.backend.aclose()

    async def generate_summary(self, reviews: List[Review], game: Optional[Game] = None) -> Summary:
        if not reviews:
            raise SummarizationError("No reviews provided for summarization", ErrorKind.NOT_FOUND)

        prompt = build_summarization_prompt(reviews, game, self.config.provider)
        try:
            response = await self.backend.complete(prompt)
        except LLMError as e:
            logger.error(f"LLM summarization failed: {e}")
            raise LLMError(f"Failed to generate summary using {self.config.provider.value}: {e.message}", e.kind) from e

        summary = parse_summary_response(response, len(reviews))
        if game is not None:
            summary = summary.model_copy(update={"app_id": game.app_id})
        return summary

    async def check_connection(self) -> bool:
        """Pre-flight probe of the configured backend. Never raises."""
        try:
            return await self.backend.check_connection()
        except (GamePulseError, httpx.HTTPError) as e:
            logger.info(f"Connection check for {self.config.provider.value} failed: {e}")
            return False

    async def list_models(self) -> List[Dict[str, Any]]:
        try:
            return await self.backend.list_models()
        except GamePulseError as e:
            logger.error(f"Failed to get available models: {e}")
            return []

    @classmethod
    async def test_connection(
        cls,
        provider_config: ProviderConfig,
        credentials: Optional[CredentialProvider] = None,
        http_client: Optional[httpx.AsyncClient] = None,
    ) -> ConnectionTestResult:
        client = cls(provider_config, credentials, http_client)
        try:
            try:
                connected = await client.backend.check_connection()
            except GamePulseError as e:
                logger.info(f"Connection test for {provider_config.provider.value} failed: {e}")
                return ConnectionTestResult(success=False, message=e.message)

            if connected:
                return ConnectionTestResult(
                    success=True,
                    message=f"Successfully connected to {provider_config.provider.value}",
                )
            return ConnectionTestResult(
                success=False,
                message=CONNECTION_FAILURE_MESSAGES[provider_config.provider],
            )
        finally:
            await client.aclose()


def get_providers() -> List[Dict[str, Any]]:
    return [
        {
            "id": provider.value,
            "name": backend.display_name + (" (Local)" if not backend.requires_api_key else ""),
            "requires_api_key": backend.requires_api_key,
            "default_models": default_models(provider),
        }
        for provider, backend in BACKENDS.items()
    ]


def default_models(provider: LLMProvider) -> List[str]:
    return list(config.DEFAULT_MODELS[LLMProvider(provider)])
