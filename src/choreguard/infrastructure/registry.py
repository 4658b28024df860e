"""
Provider Registry with Entry Points Discovery.

Built-in providers are registered by name. External packages can add
providers in their pyproject.toml:

    [project.entry-points."choreguard.providers"]
    my-provider = "mypackage.providers:MyProvider"
"""

import warnings
from importlib.metadata import entry_points
from typing import Any

from choreguard.domain.interfaces import LLMProviderInterface
from choreguard.infrastructure.llm import (
    AnthropicProvider,
    MockProvider,
    OllamaProvider,
    OpenAIProvider,
)

ENTRY_POINT_GROUP = "choreguard.providers"

BUILTIN_PROVIDERS: dict[str, type[LLMProviderInterface]] = {
    "mock": MockProvider,
    "openai": OpenAIProvider,
    "ollama": OllamaProvider,
    "anthropic": AnthropicProvider,
}


class ProviderRegistry:
    """
    Registry for LLMProviderInterface implementations.

    Uses lazy loading: entry points are only loaded on first access.

    Example usage:
        provider = ProviderRegistry.create("ollama", model="qwen2.5-coder:14b")
    """

    _providers: dict[str, type[LLMProviderInterface]] = dict(BUILTIN_PROVIDERS)
    _loaded: bool = False

    @classmethod
    def _load_entry_points(cls) -> None:
        """Load providers from entry points (lazy, called once)."""
        if cls._loaded:
            return

        for ep in entry_points(group=ENTRY_POINT_GROUP):
            try:
                cls._providers[ep.name] = ep.load()
            except Exception as e:
                warnings.warn(
                    f"Failed to load provider '{ep.name}' from entry point: {e}",
                    stacklevel=2,
                )

        cls._loaded = True

    @classmethod
    def register(cls, name: str, provider_class: type[LLMProviderInterface]) -> None:
        """
        Manually register a provider class.

        Args:
            name: Provider identifier (e.g., "openai")
            provider_class: Class implementing LLMProviderInterface
        """
        cls._providers[name] = provider_class

    @classmethod
    def get(cls, name: str) -> type[LLMProviderInterface]:
        """
        Get a provider class by name.

        Raises:
            KeyError: If provider not found
        """
        cls._load_entry_points()
        if name not in cls._providers:
            available = ", ".join(sorted(cls._providers)) or "(none)"
            raise KeyError(f"Provider '{name}' not found. Available providers: {available}")
        return cls._providers[name]

    @classmethod
    def create(cls, name: str, **config: Any) -> LLMProviderInterface:
        """
        Create a provider instance by name.

        Args:
            name: Provider identifier
            **config: Configuration passed to the provider constructor

        Raises:
            KeyError: If provider not found
            TypeError: If config doesn't match the provider's config fields
        """
        return cls.get(name)(**config)

    @classmethod
    def available(cls) -> list[str]:
        cls._load_entry_points()
        return sorted(cls._providers)

    @classmethod
    def reset(cls) -> None:
        """Restore the built-in providers and allow entry points to reload."""
        cls._providers = dict(BUILTIN_PROVIDERS)
        cls._loaded = False
