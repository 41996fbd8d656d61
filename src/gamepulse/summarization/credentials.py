import os
from abc import ABC, abstractmethod
from typing import Dict, Mapping, Optional

from gamepulse.config import API_KEY_ENV_VARS, LLMProvider


class CredentialProvider(ABC):
    @abstractmethod
    def get_api_key(self, provider: LLMProvider) -> Optional[str]:
        pass


class EnvironmentCredentials(CredentialProvider):
    """Reads provider API keys from the process environment at call time."""

    def __init__(self, environ: Optional[Mapping[str, str]] = None, env_vars: Dict[LLMProvider, str] = API_KEY_ENV_VARS):
        self.environ = environ if environ is not None else os.environ
        self.env_vars = env_vars

    def get_api_key(self, provider: LLMProvider) -> Optional[str]:
        name = self.env_vars.get(provider)
        if not name:
            return None
        return self.environ.get(name) or None


class StaticCredentials(CredentialProvider):
    def __init__(self, keys: Dict[LLMProvider, str]):
        self.keys = dict(keys)

    def get_api_key(self, provider: LLMProvider) -> Optional[str]:
        return self.keys.get(provider)
