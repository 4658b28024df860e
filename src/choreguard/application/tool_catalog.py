"""
Tool Catalog and visibility filter.

The visible tool set for a session is the intersection of what its role may
use and what its workflow stage exposes. An empty intersection is a valid
answer: the session simply has no legal moves in that combination.
"""

from collections.abc import Iterable

from choreguard.domain.interfaces import RoleStoreInterface
from choreguard.domain.models import ToolSpec
from choreguard.domain.tools import (
    BUILTIN_TOOLS,
    ToolDefinition,
    is_tool_allowed_for_stage,
)
from choreguard.domain.workflow import StageType


class ToolCatalog:
    """Registry of tool definitions with role and stage filtering."""

    def __init__(self, tools: Iterable[ToolDefinition] = BUILTIN_TOOLS):
        self._tools: dict[str, ToolDefinition] = {t.name: t for t in tools}

    def get(self, name: str) -> ToolDefinition | None:
        return self._tools.get(name)

    def names(self) -> list[str]:
        return list(self._tools)

    def all(self) -> list[ToolDefinition]:
        return list(self._tools.values())

    def can_role_use_tool(self, role: str, name: str) -> bool:
        tool = self._tools.get(name)
        return tool is not None and role in tool.allowed_roles

    def tools_for_role(self, role: str) -> list[ToolDefinition]:
        return [t for t in self._tools.values() if role in t.allowed_roles]

    def tools_for_stage(
        self, role: str, stage_type: StageType | None = None
    ) -> list[ToolDefinition]:
        """
        Tools visible to ``role`` in ``stage_type``.

        Args:
            role: Agent role of the session
            stage_type: Current workflow stage, or None for role filtering only

        Returns:
            Role-permitted tools that the stage matrix also exposes
        """
        role_tools = self.tools_for_role(role)
        if stage_type is None:
            return role_tools
        return [t for t in role_tools if is_tool_allowed_for_stage(stage_type, t.name)]

    def tools_for_stage_with_role_id(
        self,
        role_id: str,
        role_store: RoleStoreInterface,
        stage_type: StageType | None = None,
    ) -> list[ToolDefinition]:
        """
        Tools visible to a configured role entity in ``stage_type``.

        The role's explicit ``tool_ids`` replace the agent-role filter. An
        unknown role id resolves to no tools.
        """
        role = role_store.get(role_id)
        if role is None:
            return []
        allowed = set(role.tool_ids)
        tools = [t for t in self._tools.values() if t.name in allowed]
        if stage_type is None:
            return tools
        return [t for t in tools if is_tool_allowed_for_stage(stage_type, t.name)]

    @staticmethod
    def to_specs(tools: Iterable[ToolDefinition]) -> list[ToolSpec]:
        """Convert definitions to the provider-neutral spec shape."""
        return [ToolSpec(t.name, t.description, t.parameters) for t in tools]
