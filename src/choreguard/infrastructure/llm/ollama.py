"""
Ollama provider.

Connects to Ollama instances via the OpenAI-compatible API.
"""

from dataclasses import dataclass
from typing import Any

from choreguard.domain.models import StopReason, ToolCall
from choreguard.infrastructure.llm.openai import OpenAIProvider

DEFAULT_OLLAMA_URL = "http://localhost:11434/v1"


@dataclass
class OllamaProviderConfig:
    """Configuration for OllamaProvider.

    This typed config ensures unknown fields are rejected at construction time.
    """

    model: str = "qwen2.5-coder:7b"
    base_url: str = DEFAULT_OLLAMA_URL
    timeout: float = 120.0
    temperature: float | None = None


class OllamaProvider(OpenAIProvider):
    """OpenAIProvider pointed at a local Ollama server."""

    config_class = OllamaProviderConfig

    def _build_client(self, config: Any) -> Any:
        try:
            from openai import OpenAI
        except ImportError as err:
            raise ImportError("openai library required: pip install openai") from err
        return OpenAI(
            base_url=config.base_url,
            api_key="ollama",  # required but unused
            timeout=config.timeout,
        )

    def _stop_reason(self, finish_reason: str | None, calls: tuple[ToolCall, ...]) -> StopReason:
        # Ollama may report "stop" on a turn that requests tools.
        if calls:
            return StopReason.TOOL_USE
        return super()._stop_reason(finish_reason, calls)
