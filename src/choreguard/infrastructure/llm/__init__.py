"""
LLM provider adapters.
"""

from choreguard.infrastructure.llm.anthropic import (
    AnthropicProvider,
    AnthropicProviderConfig,
)
from choreguard.infrastructure.llm.mock import MockProvider
from choreguard.infrastructure.llm.ollama import OllamaProvider, OllamaProviderConfig
from choreguard.infrastructure.llm.openai import OpenAIProvider, OpenAIProviderConfig
from choreguard.infrastructure.llm.retry import RetryingProvider, is_retryable_error

__all__ = [
    "AnthropicProvider",
    "AnthropicProviderConfig",
    "MockProvider",
    "OllamaProvider",
    "OllamaProviderConfig",
    "OpenAIProvider",
    "OpenAIProviderConfig",
    "RetryingProvider",
    "is_retryable_error",
]
