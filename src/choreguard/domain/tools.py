"""
Tool definitions and the stage visibility matrix.

The catalog and both visibility tables are plain data: adding a stage or a
role is a table edit, not a new branch.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

from choreguard.domain.roles import (
    AGENT_ROLES,
    COMMIT,
    CONTROL,
    DESIGN,
    IDEATION,
    IMPL,
    ORCHESTRATION,
    REVIEW,
)
from choreguard.domain.workflow import StageType


@dataclass(frozen=True)
class ToolDefinition:
    """Static catalog entry. ``parameters`` is a JSON Schema object."""

    name: str
    description: str
    parameters: Mapping[str, Any] = field(default_factory=dict)
    allowed_roles: frozenset[str] = AGENT_ROLES
    category: str = "general"


@dataclass(frozen=True)
class ToolResult:
    success: bool
    data: Any = None
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {"success": self.success, "data": self.data, "error": self.error}


def _schema(required: tuple[str, ...], **properties: Mapping[str, Any]) -> dict:
    return {
        "type": "object",
        "properties": dict(properties),
        "required": list(required),
    }


_STR = {"type": "string"}
_CHAIN_TASK = {"chain_id": _STR, "task_id": _STR}

# File mutation tools; their ``path`` argument goes through governance.
MUTATING_TOOLS: Mapping[str, str] = {"write_file": "path"}

BUILTIN_TOOLS: tuple[ToolDefinition, ...] = (
    ToolDefinition(
        name="read_file",
        description="Read a file relative to the project root.",
        parameters=_schema(("path",), path=_STR),
        category="filesystem",
    ),
    ToolDefinition(
        name="write_file",
        description="Create or overwrite a file relative to the project root.",
        parameters=_schema(("path", "content"), path=_STR, content=_STR),
        allowed_roles=frozenset({IMPL, DESIGN, IDEATION, CONTROL}),
        category="filesystem",
    ),
    ToolDefinition(
        name="list_files",
        description="List files under a directory, optionally filtered by a glob.",
        parameters=_schema((), path=_STR, pattern=_STR),
        category="filesystem",
    ),
    ToolDefinition(
        name="search_files",
        description="Search file contents for a regular expression.",
        parameters=_schema(("query",), query=_STR, path=_STR, pattern=_STR),
        category="filesystem",
    ),
    ToolDefinition(
        name="chain:status",
        description="Get the status and task summary of a chain.",
        parameters=_schema(("chain_id",), chain_id=_STR),
        category="chain",
    ),
    ToolDefinition(
        name="task:status",
        description="Get the status of a task in a chain.",
        parameters=_schema(("chain_id", "task_id"), **_CHAIN_TASK),
        category="task",
    ),
    ToolDefinition(
        name="task:list",
        description="List the tasks of a chain.",
        parameters=_schema(("chain_id",), chain_id=_STR),
        category="task",
    ),
    ToolDefinition(
        name="task:start",
        description="Move a task from backlog/todo to in-progress.",
        parameters=_schema(("chain_id", "task_id"), **_CHAIN_TASK),
        allowed_roles=frozenset({CONTROL, ORCHESTRATION}),
        category="task",
    ),
    ToolDefinition(
        name="task:complete",
        description="Submit an in-progress task for review.",
        parameters=_schema(("chain_id", "task_id"), notes=_STR, **_CHAIN_TASK),
        allowed_roles=frozenset({IMPL}),
        category="task",
    ),
    ToolDefinition(
        name="task:approve",
        description="Approve a task that is in review.",
        parameters=_schema(("chain_id", "task_id"), **_CHAIN_TASK),
        allowed_roles=frozenset({CONTROL, REVIEW, ORCHESTRATION}),
        category="task",
    ),
    ToolDefinition(
        name="task:rework",
        description="Send a task in review back for changes.",
        parameters=_schema(("chain_id", "task_id", "reason"), reason=_STR, **_CHAIN_TASK),
        allowed_roles=frozenset({CONTROL, REVIEW, ORCHESTRATION}),
        category="task",
    ),
    ToolDefinition(
        name="workflow:request_approval",
        description=(
            "Ask a human to approve the current workflow stage. Use when the "
            "stage's work is ready for sign-off."
        ),
        parameters=_schema((), workflow_id=_STR, summary=_STR),
        allowed_roles=AGENT_ROLES - {COMMIT},
        category="workflow",
    ),
    ToolDefinition(
        name="spawn_agent",
        description=(
            "Run a child agent session with its own role and task context and "
            "wait for it to finish."
        ),
        parameters=_schema(
            ("role", "task"),
            role={"type": "string", "enum": sorted(AGENT_ROLES)},
            task=_STR,
            chain_id=_STR,
            task_id=_STR,
            stage_type={"type": "string", "enum": [s.value for s in StageType]},
        ),
        category="session",
    ),
)

_READ_ONLY = frozenset(
    {"read_file", "list_files", "search_files", "chain:status", "task:status", "task:list"}
)

STAGE_TOOL_MATRIX: Mapping[StageType, frozenset[str]] = {
    StageType.REQUEST: _READ_ONLY | {"workflow:request_approval", "spawn_agent"},
    StageType.IDEATION: _READ_ONLY | {"write_file", "workflow:request_approval"},
    StageType.DESIGN: _READ_ONLY
    | {"write_file", "workflow:request_approval", "spawn_agent"},
    StageType.IMPLEMENTATION: _READ_ONLY
    | {"write_file", "task:start", "task:complete", "spawn_agent"},
    StageType.VERIFICATION: _READ_ONLY | {"task:rework", "workflow:request_approval"},
    StageType.REVIEW: _READ_ONLY
    | {"task:approve", "task:rework", "workflow:request_approval"},
    StageType.REFLECTION: _READ_ONLY | {"write_file"},
}


def is_tool_allowed_for_stage(stage_type: StageType, tool_name: str) -> bool:
    return tool_name in STAGE_TOOL_MATRIX.get(stage_type, frozenset())
