"""
Anthropic Messages API provider.

The system prompt travels separately from the conversation and tool results
are sent back as ``tool_result`` blocks inside a user turn.
"""

from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import Any

from choreguard.domain.interfaces import LLMProviderInterface
from choreguard.domain.models import (
    ChatResponse,
    ChatRole,
    Message,
    StopReason,
    ToolCall,
    ToolSpec,
    Usage,
)
from choreguard.infrastructure.llm.wire import (
    decode_tool_name,
    encode_tool_name,
    name_table,
)

DEFAULT_ANTHROPIC_MODEL = "claude-sonnet-4-20250514"
DEFAULT_MAX_TOKENS = 4096

STOP_REASONS: Mapping[str, StopReason] = {
    "tool_use": StopReason.TOOL_USE,
    "max_tokens": StopReason.MAX_TOKENS,
}


@dataclass
class AnthropicProviderConfig:
    """Configuration for AnthropicProvider.

    This typed config ensures unknown fields are rejected at construction time.
    """

    model: str = DEFAULT_ANTHROPIC_MODEL
    api_key: str | None = None
    max_tokens: int = DEFAULT_MAX_TOKENS
    timeout: float = 120.0


class AnthropicProvider(LLMProviderInterface):
    """Chat with tool use through the ``anthropic`` SDK."""

    config_class = AnthropicProviderConfig

    def __init__(
        self,
        config: AnthropicProviderConfig | None = None,
        client: Any = None,
        **kwargs: Any,
    ):
        if config is None:
            config = AnthropicProviderConfig(**kwargs)
        self._config = config
        if client is None:
            try:
                from anthropic import Anthropic
            except ImportError as err:
                raise ImportError(
                    "anthropic library required: pip install anthropic"
                ) from err
            client = Anthropic(api_key=config.api_key, timeout=config.timeout)
        self._client = client

    @property
    def model(self) -> str:
        return self._config.model

    def chat(self, messages: Sequence[Message], tools: Sequence[ToolSpec]) -> ChatResponse:
        table = name_table(tools)
        system = "\n\n".join(m.content for m in messages if m.role is ChatRole.SYSTEM)
        request: dict[str, Any] = {
            "model": self._config.model,
            "max_tokens": self._config.max_tokens,
            "messages": _to_anthropic(messages),
        }
        if system:
            request["system"] = system
        if tools:
            request["tools"] = [
                {
                    "name": encode_tool_name(t.name),
                    "description": t.description,
                    "input_schema": dict(t.parameters) or {"type": "object", "properties": {}},
                }
                for t in tools
            ]

        response = self._client.messages.create(**request)
        text = "".join(b.text for b in response.content if b.type == "text")
        calls = tuple(
            ToolCall(id=b.id, name=decode_tool_name(b.name, table), arguments=dict(b.input))
            for b in response.content
            if b.type == "tool_use"
        )
        return ChatResponse(
            content=text,
            stop_reason=STOP_REASONS.get(response.stop_reason, StopReason.END_TURN),
            tool_calls=calls,
            usage=Usage(response.usage.input_tokens, response.usage.output_tokens),
        )


def _to_anthropic(messages: Sequence[Message]) -> list[dict[str, Any]]:
    """Convert the neutral history, folding consecutive tool results into one user turn."""
    converted: list[dict[str, Any]] = []
    for message in messages:
        if message.role is ChatRole.SYSTEM:
            continue
        if message.role is ChatRole.TOOL:
            block = {
                "type": "tool_result",
                "tool_use_id": message.tool_call_id,
                "content": message.content,
            }
            last = converted[-1] if converted else None
            if last and last["role"] == "user" and isinstance(last["content"], list):
                last["content"].append(block)
            else:
                converted.append({"role": "user", "content": [block]})
        elif message.role is ChatRole.ASSISTANT:
            blocks: list[dict[str, Any]] = []
            if message.content:
                blocks.append({"type": "text", "text": message.content})
            blocks.extend(
                {
                    "type": "tool_use",
                    "id": call.id,
                    "name": encode_tool_name(call.name),
                    "input": dict(call.arguments),
                }
                for call in message.tool_calls
            )
            converted.append({"role": "assistant", "content": blocks or message.content})
        else:
            converted.append({"role": "user", "content": message.content})
    return converted
