"""
OpenAI chat-completions provider.

Also the base for any OpenAI-compatible endpoint (see ``ollama.py``).
"""

import json
import logging
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

logger = logging.getLogger("choreguard.llm")

DEFAULT_OPENAI_MODEL = "gpt-4o"

FINISH_REASONS: Mapping[str, StopReason] = {
    "tool_calls": StopReason.TOOL_USE,
    "function_call": StopReason.TOOL_USE,
    "length": StopReason.MAX_TOKENS,
}


@dataclass
class OpenAIProviderConfig:
    """Configuration for OpenAIProvider.

    This typed config ensures unknown fields are rejected at construction time.
    """

    model: str = DEFAULT_OPENAI_MODEL
    api_key: str | None = None
    base_url: str | None = None
    timeout: float = 120.0
    temperature: float | None = None


class OpenAIProvider(LLMProviderInterface):
    """Chat with tool calling through the ``openai`` SDK."""

    config_class: type = OpenAIProviderConfig

    def __init__(
        self,
        config: OpenAIProviderConfig | None = None,
        client: Any = None,
        **kwargs: Any,
    ):
        """
        Args:
            config: Typed configuration object (preferred)
            client: Pre-built SDK client (tests inject a mock here)
            **kwargs: Fields of the config class when ``config`` is omitted
        """
        if config is None:
            config = self.config_class(**kwargs)
        self._config = config
        self._client = client if client is not None else self._build_client(config)

    def _build_client(self, config: OpenAIProviderConfig) -> Any:
        try:
            from openai import OpenAI
        except ImportError as err:
            raise ImportError("openai library required: pip install openai") from err
        return OpenAI(api_key=config.api_key, base_url=config.base_url, timeout=config.timeout)

    @property
    def model(self) -> str:
        return self._config.model

    def chat(self, messages: Sequence[Message], tools: Sequence[ToolSpec]) -> ChatResponse:
        table = name_table(tools)
        request: dict[str, Any] = {
            "model": self._config.model,
            "messages": [self._to_openai(m) for m in messages],
        }
        if tools:
            request["tools"] = [self._tool_to_openai(t) for t in tools]
        if self._config.temperature is not None:
            request["temperature"] = self._config.temperature

        response = self._client.chat.completions.create(**request)
        choice = response.choices[0]
        calls = tuple(
            ToolCall(
                id=call.id,
                name=decode_tool_name(call.function.name, table),
                arguments=_parse_arguments(call.function.arguments),
            )
            for call in choice.message.tool_calls or ()
        )
        usage = (
            Usage(response.usage.prompt_tokens, response.usage.completion_tokens)
            if response.usage
            else Usage()
        )
        return ChatResponse(
            content=choice.message.content or "",
            stop_reason=self._stop_reason(choice.finish_reason, calls),
            tool_calls=calls,
            usage=usage,
        )

    def _stop_reason(self, finish_reason: str | None, calls: tuple[ToolCall, ...]) -> StopReason:
        return FINISH_REASONS.get(finish_reason or "", StopReason.END_TURN)

    @staticmethod
    def _to_openai(message: Message) -> dict[str, Any]:
        if message.role is ChatRole.TOOL:
            return {
                "role": "tool",
                "tool_call_id": message.tool_call_id,
                "content": message.content,
            }
        if message.role is ChatRole.ASSISTANT and message.tool_calls:
            return {
                "role": "assistant",
                "content": message.content or None,
                "tool_calls": [
                    {
                        "id": call.id,
                        "type": "function",
                        "function": {
                            "name": encode_tool_name(call.name),
                            "arguments": json.dumps(dict(call.arguments)),
                        },
                    }
                    for call in message.tool_calls
                ],
            }
        return {"role": message.role.value, "content": message.content}

    @staticmethod
    def _tool_to_openai(tool: ToolSpec) -> dict[str, Any]:
        return {
            "type": "function",
            "function": {
                "name": encode_tool_name(tool.name),
                "description": tool.description,
                "parameters": dict(tool.parameters) or {"type": "object", "properties": {}},
            },
        }


def _parse_arguments(raw: str | None) -> dict[str, Any]:
    if not raw:
        return {}
    try:
        parsed = json.loads(raw)
    except json.JSONDecodeError:
        logger.warning("Model returned malformed tool arguments: %.200s", raw)
        return {"_raw": raw}
    return parsed if isinstance(parsed, dict) else {"_raw": parsed}
