"""
Conversation models exchanged with LLM providers.

These are the provider-neutral shapes of the ``chat(messages, tools)``
contract. Adapters in ``infrastructure.llm`` translate them to each SDK.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class ChatRole(Enum):
    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"
    TOOL = "tool"


class StopReason(Enum):
    END_TURN = "end_turn"
    TOOL_USE = "tool_use"
    MAX_TOKENS = "max_tokens"


@dataclass(frozen=True)
class ToolCall:
    """A tool invocation requested by the model."""

    id: str
    name: str
    arguments: Mapping[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class Message:
    """One conversation entry.

    Assistant messages carry the tool calls they requested so providers that
    pair tool results with calls (OpenAI, Anthropic) accept the follow-up
    ``tool`` messages.
    """

    role: ChatRole
    content: str
    tool_call_id: str | None = None
    tool_name: str | None = None
    tool_calls: tuple[ToolCall, ...] = ()


@dataclass(frozen=True)
class ToolSpec:
    """Tool description in provider-neutral form."""

    name: str
    description: str
    parameters: Mapping[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class Usage:
    input_tokens: int = 0
    output_tokens: int = 0


@dataclass(frozen=True)
class ChatResponse:
    content: str
    stop_reason: StopReason
    tool_calls: tuple[ToolCall, ...] = ()
    usage: Usage = field(default_factory=Usage)


# =============================================================================
# COLLABORATOR RESULTS
# =============================================================================


@dataclass(frozen=True)
class TaskInfo:
    """A task as reported by the external task lifecycle collaborator."""

    id: str
    chain_id: str
    status: str
    title: str = ""


@dataclass(frozen=True)
class CommandResult:
    exit_code: int
    stdout: str = ""
    stderr: str = ""

    @property
    def success(self) -> bool:
        return self.exit_code == 0
