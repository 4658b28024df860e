"""
Agent roles and spawn privileges.

Two notions of role exist:

- An *agent role* (``control``, ``impl`` ...) is the identity a session runs
  as. It drives tool permissions, governance scoping and spawn privileges.
- A configurable :class:`Role` entity (``implementer``, ``reviewer`` ...)
  lists explicit tool ids and is used for stage-scoped tool resolution.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from datetime import datetime

CONTROL = "control"
IMPL = "impl"
DESIGN = "design"
REVIEW = "review"
IDEATION = "ideation"
COMMIT = "commit"
ORCHESTRATION = "orchestration"

AGENT_ROLES = frozenset({CONTROL, IMPL, DESIGN, REVIEW, IDEATION, COMMIT, ORCHESTRATION})

# Which child roles each parent role may spawn. Roles absent from this table
# cannot spawn anything, not even their own role.
SPAWN_PERMISSIONS: Mapping[str, frozenset[str]] = {
    CONTROL: AGENT_ROLES,
    ORCHESTRATION: AGENT_ROLES,
}


def can_spawn_role(parent_role: str, child_role: str) -> bool:
    return child_role in SPAWN_PERMISSIONS.get(parent_role, frozenset())


@dataclass(frozen=True)
class Role:
    """Configurable role with an explicit tool id list."""

    id: str
    name: str
    tool_ids: tuple[str, ...]
    description: str = ""
    system_prompt: str | None = None
    model: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


_READ_TOOLS = (
    "read_file",
    "list_files",
    "search_files",
    "chain:status",
    "task:status",
    "task:list",
)

DEFAULT_ROLES: tuple[Role, ...] = (
    Role(
        id="researcher",
        name="Researcher",
        description="Read-only access for exploration and analysis",
        tool_ids=_READ_TOOLS,
    ),
    Role(
        id="implementer",
        name="Implementer",
        description="Full implementation capabilities",
        tool_ids=(*_READ_TOOLS, "write_file", "task:start", "task:complete"),
    ),
    Role(
        id="reviewer",
        name="Reviewer",
        description="Review and approval capabilities",
        tool_ids=(*_READ_TOOLS, "task:approve", "task:rework"),
    ),
    Role(
        id="controller",
        name="Controller",
        description="Orchestration and coordination",
        tool_ids=(
            *_READ_TOOLS,
            "task:start",
            "workflow:request_approval",
            "spawn_agent",
        ),
    ),
)
