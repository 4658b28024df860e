"""
Agent session state and context.

SessionContext is an immutable value passed down the call chain (including
into nested sessions). SessionState is the append-only audit record of one
run; it is persisted but never re-read by the loop during that run.
"""

from __future__ import annotations

import secrets
from collections.abc import Mapping
from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any

from choreguard.domain.models import ChatRole, Message, Usage
from choreguard.domain.workflow import StageType

DEFAULT_MAX_ITERATIONS = 50
DEFAULT_MAX_NESTING_DEPTH = 2


class SessionOutcome(Enum):
    SUCCESS = "success"
    FAILURE = "failure"
    INTERRUPTED = "interrupted"


class LoopStopReason(Enum):
    END_TURN = "end_turn"
    MAX_ITERATIONS = "max_iterations"
    MAX_DEPTH = "max_depth"
    WORKFLOW_INACTIVE = "workflow_inactive"
    INTERRUPTED = "interrupted"
    ERROR = "error"


@dataclass(frozen=True)
class TokenUsage:
    input: int = 0
    output: int = 0

    @property
    def total(self) -> int:
        return self.input + self.output

    def add(self, usage: Usage) -> TokenUsage:
        return TokenUsage(
            input=self.input + usage.input_tokens,
            output=self.output + usage.output_tokens,
        )


@dataclass(frozen=True)
class GovernanceResult:
    allowed: bool
    reason: str | None = None


@dataclass(frozen=True)
class ToolCallRecord:
    timestamp: datetime
    name: str
    params: Mapping[str, Any]
    governance_result: GovernanceResult
    result: Any = None
    tool_call_id: str | None = None


@dataclass(frozen=True)
class SessionContext:
    """Everything a session needs to know about where and as whom it runs.

    ``nesting_depth`` and ``max_nesting_depth`` travel by value: a child gets
    a copy with the depth incremented, so concurrent sessions never share a
    counter.
    """

    project_root: Path
    role: str
    role_id: str | None = None
    stage_type: StageType | None = None
    chain_id: str | None = None
    task_id: str | None = None
    workflow_id: str | None = None
    model: str | None = None
    nesting_depth: int = 0
    max_nesting_depth: int = DEFAULT_MAX_NESTING_DEPTH
    max_iterations: int = DEFAULT_MAX_ITERATIONS
    dry_run: bool = False
    parent_session_id: str | None = None
    parent_context: str | None = None

    @property
    def can_nest(self) -> bool:
        return self.nesting_depth < self.max_nesting_depth

    def child(
        self,
        role: str,
        parent_session_id: str,
        parent_context: str | None = None,
        stage_type: StageType | None = None,
        chain_id: str | None = None,
        task_id: str | None = None,
    ) -> SessionContext:
        """Context for a nested session one level deeper."""
        return replace(
            self,
            role=role,
            role_id=None,
            stage_type=stage_type if stage_type is not None else self.stage_type,
            chain_id=chain_id if chain_id is not None else self.chain_id,
            task_id=task_id,
            nesting_depth=self.nesting_depth + 1,
            parent_session_id=parent_session_id,
            parent_context=parent_context,
        )


@dataclass
class SessionState:
    """Audit record of one loop run (mutable, append-only by convention)."""

    id: str
    role: str
    started_at: datetime
    model: str | None = None
    stage_type: StageType | None = None
    chain_id: str | None = None
    task_id: str | None = None
    workflow_id: str | None = None
    nesting_depth: int = 0
    parent_session_id: str | None = None
    child_session_ids: list[str] = field(default_factory=list)
    messages: list[Message] = field(default_factory=list)
    tool_calls: list[ToolCallRecord] = field(default_factory=list)
    token_usage: TokenUsage = field(default_factory=TokenUsage)
    outcome: SessionOutcome | None = None
    stop_reason: LoopStopReason | None = None
    error: str | None = None
    ended_at: datetime | None = None

    @classmethod
    def start(cls, context: SessionContext, now: datetime) -> SessionState:
        return cls(
            id=new_session_id(now),
            role=context.role,
            started_at=now,
            model=context.model,
            stage_type=context.stage_type,
            chain_id=context.chain_id,
            task_id=context.task_id,
            workflow_id=context.workflow_id,
            nesting_depth=context.nesting_depth,
            parent_session_id=context.parent_session_id,
        )

    def end(
        self,
        outcome: SessionOutcome,
        stop_reason: LoopStopReason,
        now: datetime,
        error: str | None = None,
    ) -> None:
        self.outcome = outcome
        self.stop_reason = stop_reason
        self.error = error
        self.ended_at = now


def new_session_id(now: datetime) -> str:
    """``session-YYYYMMDD-HHMMSS-xxxxxx`` with a random hex suffix."""
    return f"session-{now:%Y%m%d-%H%M%S}-{secrets.token_hex(3)}"


@dataclass(frozen=True)
class LoopResult:
    """What ``AgentLoop.run`` returns; ``session`` is the persisted record."""

    success: bool
    stop_reason: LoopStopReason
    iterations: int
    session: SessionState
    error: str | None = None

    @property
    def summary(self) -> str:
        """Content of the last assistant message, if any."""
        for message in reversed(self.session.messages):
            if message.role is ChatRole.ASSISTANT and message.content:
                return message.content
        return ""
