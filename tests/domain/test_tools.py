"""Tests for the builtin tool catalog data and role/spawn tables."""

import pytest

from choreguard.domain.roles import (
    AGENT_ROLES,
    CONTROL,
    DEFAULT_ROLES,
    IMPL,
    ORCHESTRATION,
    REVIEW,
    SPAWN_PERMISSIONS,
    can_spawn_role,
)
from choreguard.domain.tools import (
    BUILTIN_TOOLS,
    MUTATING_TOOLS,
    STAGE_TOOL_MATRIX,
    ToolResult,
    is_tool_allowed_for_stage,
)
from choreguard.domain.workflow import StageType

TOOL_NAMES = {t.name for t in BUILTIN_TOOLS}


class TestBuiltinTools:
    def test_tool_names_are_unique(self) -> None:
        assert len(TOOL_NAMES) == len(BUILTIN_TOOLS)

    def test_parameters_are_object_schemas(self) -> None:
        for tool in BUILTIN_TOOLS:
            assert tool.parameters["type"] == "object", tool.name

    def test_mutating_tools_are_in_catalog(self) -> None:
        assert set(MUTATING_TOOLS) <= TOOL_NAMES

    def test_allowed_roles_are_known_roles(self) -> None:
        for tool in BUILTIN_TOOLS:
            assert tool.allowed_roles <= AGENT_ROLES, tool.name

    def test_tool_result_to_dict(self) -> None:
        assert ToolResult(False, error="nope").to_dict() == {
            "success": False,
            "data": None,
            "error": "nope",
        }


class TestStageToolMatrix:
    """The stage matrix is a lookup table covering every stage type."""

    def test_every_stage_has_an_entry(self) -> None:
        assert set(STAGE_TOOL_MATRIX) == set(StageType)

    def test_matrix_only_names_catalog_tools(self) -> None:
        for stage, tools in STAGE_TOOL_MATRIX.items():
            assert tools <= TOOL_NAMES, stage

    def test_request_stage_is_read_only(self) -> None:
        assert not is_tool_allowed_for_stage(StageType.REQUEST, "write_file")
        assert is_tool_allowed_for_stage(StageType.REQUEST, "read_file")

    def test_implementation_stage_exposes_writes_and_completion(self) -> None:
        assert is_tool_allowed_for_stage(StageType.IMPLEMENTATION, "write_file")
        assert is_tool_allowed_for_stage(StageType.IMPLEMENTATION, "task:complete")

    def test_review_stage_exposes_approval(self) -> None:
        assert is_tool_allowed_for_stage(StageType.REVIEW, "task:approve")
        assert not is_tool_allowed_for_stage(StageType.REVIEW, "write_file")


class TestSpawnPermissions:
    @pytest.mark.parametrize("child", sorted(AGENT_ROLES))
    def test_control_may_spawn_any_role(self, child: str) -> None:
        assert can_spawn_role(CONTROL, child)
        assert can_spawn_role(ORCHESTRATION, child)

    @pytest.mark.parametrize("parent", sorted(AGENT_ROLES - set(SPAWN_PERMISSIONS)))
    def test_unprivileged_roles_cannot_spawn_even_themselves(self, parent: str) -> None:
        assert not can_spawn_role(parent, parent)
        assert not can_spawn_role(parent, CONTROL)

    def test_impl_cannot_spawn_control(self) -> None:
        assert not can_spawn_role(IMPL, CONTROL)

    def test_unknown_child_role(self) -> None:
        assert not can_spawn_role(CONTROL, "superuser")


class TestDefaultRoles:
    def test_default_role_ids(self) -> None:
        assert [r.id for r in DEFAULT_ROLES] == [
            "researcher",
            "implementer",
            "reviewer",
            "controller",
        ]

    def test_default_roles_reference_catalog_tools(self) -> None:
        for role in DEFAULT_ROLES:
            assert set(role.tool_ids) <= TOOL_NAMES, role.id

    def test_reviewer_can_approve(self) -> None:
        reviewer = next(r for r in DEFAULT_ROLES if r.id == "reviewer")

        assert "task:approve" in reviewer.tool_ids
        assert REVIEW in AGENT_ROLES
