"""Tests for ProviderRegistry - built-ins plus entry points discovery."""

from collections.abc import Iterator

import pytest
from support import final_response

from choreguard.domain.interfaces import LLMProviderInterface
from choreguard.infrastructure.llm import AnthropicProvider, MockProvider, OllamaProvider
from choreguard.infrastructure.registry import BUILTIN_PROVIDERS, ProviderRegistry


@pytest.fixture(autouse=True)
def clean_registry() -> Iterator[None]:
    ProviderRegistry.reset()
    yield
    ProviderRegistry.reset()


class ScriptedProvider(MockProvider):
    def __init__(self, **config: object) -> None:
        super().__init__([final_response("scripted")], model=str(config.get("model", "x")))


class TestRegistryOperations:
    def test_available_includes_builtins(self) -> None:
        available = ProviderRegistry.available()

        assert set(BUILTIN_PROVIDERS) <= set(available)
        assert available == sorted(available)

    def test_get_builtin(self) -> None:
        assert ProviderRegistry.get("ollama") is OllamaProvider
        assert ProviderRegistry.get("anthropic") is AnthropicProvider

    def test_get_unknown_raises_keyerror(self) -> None:
        """The error names the missing provider and lists what is available."""
        with pytest.raises(KeyError) as exc_info:
            ProviderRegistry.get("nonexistent")

        message = str(exc_info.value)
        assert "nonexistent" in message
        assert "Available providers" in message
        assert "mock" in message

    def test_create_passes_config(self) -> None:
        provider = ProviderRegistry.create("mock", responses=[final_response()], model="m1")

        assert isinstance(provider, LLMProviderInterface)
        assert provider.model == "m1"

    def test_create_rejects_unknown_config(self) -> None:
        with pytest.raises(TypeError):
            ProviderRegistry.create("mock", responses=[], temperature=0.1)


class TestManualRegistration:
    def test_register_and_create(self) -> None:
        ProviderRegistry.register("scripted", ScriptedProvider)

        provider = ProviderRegistry.create("scripted", model="s1")

        assert provider.model == "s1"
        assert provider.chat([], []).content == "scripted"

    def test_reset_drops_manual_registrations(self) -> None:
        ProviderRegistry.register("scripted", ScriptedProvider)

        ProviderRegistry.reset()

        assert "scripted" not in ProviderRegistry.available()

    def test_entry_points_load_once(self) -> None:
        ProviderRegistry.available()
        count = len(ProviderRegistry._providers)

        ProviderRegistry._load_entry_points()

        assert ProviderRegistry._loaded is True
        assert len(ProviderRegistry._providers) == count
