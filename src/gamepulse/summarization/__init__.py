"""
Review summarization.

- prompt: review filtering and prompt construction
- backends: one adapter per LLM provider
- parsing: JSON extraction, field validation and the fallback summary
- client: SummarizationClient tying the three together
"""

from .client import SummarizationClient, default_models, get_providers
from .credentials import CredentialProvider, EnvironmentCredentials, StaticCredentials

__all__ = [
    "SummarizationClient",
    "CredentialProvider",
    "EnvironmentCredentials",
    "StaticCredentials",
    "default_models",
    "get_providers",
]
