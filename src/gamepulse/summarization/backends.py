"""
Summarization backends.

One adapter per provider. Each adapter builds the provider request envelope,
attaches the provider's auth, pulls the completion text out of the provider
response and turns HTTP failures into LLMError with a shared ErrorKind.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional, Type

import httpx

from gamepulse import config
from gamepulse.config import LLMProvider, ProviderConfig
from gamepulse.errors import ErrorKind, LLMError, classify_http_error
from gamepulse.logging import get_logger
from .credentials import CredentialProvider, EnvironmentCredentials
from .prompt import SYSTEM_PROMPT

logger = get_logger(__name__)

AZURE_API_VERSION = "2023-12-01-preview"
ANTHROPIC_VERSION = "2023-06-01"


class LLMBackend(ABC):
    provider: LLMProvider
    display_name: str
    requires_api_key: bool = True

    def __init__(
        self,
        provider_config: ProviderConfig,
        credentials: Optional[CredentialProvider] = None,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.config = provider_config
        self.credentials = credentials or EnvironmentCredentials()
        self._owns_client = client is None
        self.client = client or httpx.AsyncClient()

    async def aclose(self):
        if self._owns_client:
            await self.client.aclose()

    @property
    def endpoint(self) -> Optional[str]:
        return self.config.resolved_endpoint

    @property
    def model(self) -> str:
        return self.config.resolved_model

    def api_key(self) -> Optional[str]:
        return self.credentials.get_api_key(self.provider)

    def require_api_key(self) -> str:
        key = self.api_key()
        if not key:
            env_var = config.API_KEY_ENV_VARS.get(self.provider, "")
            raise LLMError(
                f"{self.display_name} API key not found. Set {env_var} environment variable.",
                ErrorKind.AUTH_INVALID,
            )
        return key

    @abstractmethod
    async def complete(self, prompt: str) -> str:
        """Send prompt and return the raw completion text."""

    @abstractmethod
    async def check_connection(self) -> bool:
        pass

    async def list_models(self) -> List[Dict[str, Any]]:
        return [{"name": name, "size": None} for name in config.DEFAULT_MODELS[self.provider]]

    async def _request(self, method: str, url: str, timeout: float, **kwargs) -> Any:
        try:
            response = await self.client.request(method, url, timeout=timeout, **kwargs)
            response.raise_for_status()
            return response.json()
        except httpx.HTTPStatusError as e:
            raise self._status_error(e) from e
        except httpx.HTTPError as e:
            raise self._transport_error(e) from e
        except ValueError as e:
            raise LLMError(f"{self.display_name} returned a non-JSON response", ErrorKind.MALFORMED_RESPONSE) from e

    def _status_error(self, exc: httpx.HTTPStatusError) -> LLMError:
        status = exc.response.status_code
        if status in (401, 403):
            return LLMError(f"Invalid {self.display_name} API key", ErrorKind.AUTH_INVALID)
        if status == 429:
            return LLMError(f"{self.display_name} API rate limit exceeded", ErrorKind.RATE_LIMITED)
        kind = classify_http_error(exc)
        return LLMError(f"{self.display_name} API error: {self._upstream_message(exc.response)}", kind)

    def _transport_error(self, exc: httpx.HTTPError) -> LLMError:
        kind = classify_http_error(exc)
        if kind == ErrorKind.TIMEOUT:
            return LLMError(f"{self.display_name} request timed out", kind)
        if kind == ErrorKind.NETWORK_UNREACHABLE:
            return LLMError(f"Cannot connect to {self.display_name} at {self.endpoint}", kind)
        return LLMError(f"{self.display_name} API error: {exc}", kind)

    @staticmethod
    def _upstream_message(response: httpx.Response) -> str:
        try:
            error = response.json().get("error")
        except (ValueError, AttributeError):
            error = None
        if isinstance(error, dict) and error.get("message"):
            return error["message"]
        if isinstance(error, str):
            return error
        return f"HTTP {response.status_code}"

    def _malformed(self, data: Any) -> LLMError:
        logger.error(f"Unexpected {self.display_name} response envelope: {str(data)[:200]}")
        return LLMError(f"Unexpected response format from {self.display_name}", ErrorKind.MALFORMED_RESPONSE)


class OllamaBackend(LLMBackend):
    provider = LLMProvider.OLLAMA
    display_name = "Ollama"
    requires_api_key = False

    def _transport_error(self, exc: httpx.HTTPError) -> LLMError:
        if classify_http_error(exc) == ErrorKind.NETWORK_UNREACHABLE:
            return LLMError(
                f"Cannot connect to Ollama. Make sure Ollama is running on {self.endpoint}",
                ErrorKind.NETWORK_UNREACHABLE,
            )
        return super()._transport_error(exc)

    async def complete(self, prompt: str) -> str:
        data = await self._request(
            "POST",
            f"{self.endpoint}/api/generate",
            timeout=self.config.resolved_timeout,
            json={
                "model": self.model,
                "prompt": prompt,
                "stream": False,
                "options": {"temperature": self.config.temperature, "top_p": 0.9, "top_k": 40},
            },
        )
        if not isinstance(data, dict) or not isinstance(data.get("response"), str):
            raise self._malformed(data)
        return data["response"]

    async def _tags(self) -> Dict[str, Any]:
        return await self._request("GET", f"{self.endpoint}/api/tags", timeout=config.CONNECTION_CHECK_TIMEOUT_SECONDS)

    async def check_connection(self) -> bool:
        await self._tags()
        return True

    async def list_models(self) -> List[Dict[str, Any]]:
        data = await self._tags()
        return [{"name": m.get("name"), "size": m.get("size")} for m in data.get("models") or []]


class OpenAIBackend(LLMBackend):
    provider = LLMProvider.OPENAI
    display_name = "OpenAI"

    def _headers(self) -> Dict[str, str]:
        return {"Authorization": f"Bearer {self.require_api_key()}", "Content-Type": "application/json"}

    def _chat_payload(self, prompt: str) -> Dict[str, Any]:
        return {
            "messages": [
                {"role": "system", "content": SYSTEM_PROMPT},
                {"role": "user", "content": prompt},
            ],
            "temperature": self.config.temperature,
            "max_tokens": self.config.max_tokens,
        }

    @staticmethod
    def _chat_content(data: Any) -> Optional[str]:
        try:
            content = data["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError):
            return None
        return content if isinstance(content, str) else None

    async def complete(self, prompt: str) -> str:
        headers = self._headers()
        data = await self._request(
            "POST",
            f"{self.endpoint}/v1/chat/completions",
            timeout=self.config.resolved_timeout,
            headers=headers,
            json={"model": self.model, **self._chat_payload(prompt)},
        )
        content = self._chat_content(data)
        if content is None:
            raise self._malformed(data)
        return content

    async def _models(self) -> Dict[str, Any]:
        return await self._request(
            "GET",
            f"{self.endpoint}/v1/models",
            timeout=config.CONNECTION_CHECK_TIMEOUT_SECONDS,
            headers=self._headers(),
        )

    async def check_connection(self) -> bool:
        await self._models()
        return True

    async def list_models(self) -> List[Dict[str, Any]]:
        data = await self._models()
        return [
            {"name": m["id"], "size": None}
            for m in data.get("data") or []
            if "gpt" in m.get("id", "")
        ]


class AnthropicBackend(LLMBackend):
    provider = LLMProvider.ANTHROPIC
    display_name = "Anthropic"

    def _headers(self) -> Dict[str, str]:
        return {
            "x-api-key": self.require_api_key(),
            "anthropic-version": ANTHROPIC_VERSION,
            "Content-Type": "application/json",
        }

    async def complete(self, prompt: str) -> str:
        headers = self._headers()
        data = await self._request(
            "POST",
            f"{self.endpoint}/v1/messages",
            timeout=self.config.resolved_timeout,
            headers=headers,
            json={
                "model": self.model,
                "max_tokens": self.config.max_tokens,
                "system": SYSTEM_PROMPT,
                "messages": [{"role": "user", "content": prompt}],
                "temperature": self.config.temperature,
            },
        )
        blocks = data.get("content") if isinstance(data, dict) else None
        texts = [b.get("text") for b in blocks or [] if isinstance(b, dict) and b.get("type", "text") == "text"]
        texts = [t for t in texts if isinstance(t, str)]
        if not texts:
            raise self._malformed(data)
        return "".join(texts)

    async def check_connection(self) -> bool:
        await self._request(
            "GET",
            f"{self.endpoint}/v1/models",
            timeout=config.CONNECTION_CHECK_TIMEOUT_SECONDS,
            headers=self._headers(),
        )
        return True


class AzureOpenAIBackend(OpenAIBackend):
    provider = LLMProvider.AZURE
    display_name = "Azure OpenAI"

    def _headers(self) -> Dict[str, str]:
        return {"api-key": self.require_api_key(), "Content-Type": "application/json"}

    def _require_endpoint(self) -> str:
        if not self.endpoint:
            raise LLMError("Azure OpenAI endpoint not configured.", ErrorKind.UNKNOWN)
        return self.endpoint

    async def complete(self, prompt: str) -> str:
        headers = self._headers()
        endpoint = self._require_endpoint()
        data = await self._request(
            "POST",
            f"{endpoint}/openai/deployments/{self.model}/chat/completions",
            timeout=self.config.resolved_timeout,
            headers=headers,
            params={"api-version": AZURE_API_VERSION},
            json=self._chat_payload(prompt),
        )
        content = self._chat_content(data)
        if content is None:
            raise self._malformed(data)
        return content

    async def check_connection(self) -> bool:
        # Deployments are per-resource; having both a key and an endpoint is all we can verify cheaply
        self.require_api_key()
        self._require_endpoint()
        return True

    async def list_models(self) -> List[Dict[str, Any]]:
        return []


BACKENDS: Dict[LLMProvider, Type[LLMBackend]] = {
    LLMProvider.OLLAMA: OllamaBackend,
    LLMProvider.OPENAI: OpenAIBackend,
    LLMProvider.ANTHROPIC: AnthropicBackend,
    LLMProvider.AZURE: AzureOpenAIBackend,
}


def get_backend(
    provider_config: ProviderConfig,
    credentials: Optional[CredentialProvider] = None,
    client: Optional[httpx.AsyncClient] = None,
) -> LLMBackend:
    try:
        backend_cls = BACKENDS[provider_config.provider]
    except KeyError:
        raise ValueError(f"Unknown LLM provider: {provider_config.provider}")
    return backend_cls(provider_config, credentials=credentials, client=client)
