"""
Tool-call gate.

Validates every tool call the model requests before it executes. A denial
is a normal outcome: the reason is fed back to the model and the loop keeps
going. Checks run in a fixed order and the first failing check wins.
"""

import logging
from collections.abc import Callable

from jsonschema import Draft202012Validator
from jsonschema.exceptions import best_match

from choreguard.application.lock_coordinator import LockCoordinator
from choreguard.application.tool_catalog import ToolCatalog
from choreguard.domain.governance import (
    GovernanceSchema,
    MutationAction,
    Policy,
    check_mutation_for_role,
)
from choreguard.domain.interfaces import RoleStoreInterface
from choreguard.domain.models import ToolCall
from choreguard.domain.paths import project_relative, resolve_in_project
from choreguard.domain.roles import can_spawn_role
from choreguard.domain.session import GovernanceResult, SessionContext
from choreguard.domain.tools import MUTATING_TOOLS, ToolDefinition

logger = logging.getLogger("choreguard.governance")

PATH_ARGUMENTS = ("path",)


class ToolCallGate:
    """
    Decide whether a tool call may execute for a session.

    Order: unknown tool, role permission, stage visibility, argument schema,
    path confinement, spawn privilege, mutation governance, file locks.
    """

    def __init__(
        self,
        catalog: ToolCatalog,
        governance: GovernanceSchema | None = None,
        locks: LockCoordinator | None = None,
        role_store: RoleStoreInterface | None = None,
    ):
        """
        Args:
            catalog: Tool definitions and visibility tables
            governance: Loaded mutation rules; None denies every mutation
            locks: Lock coordinator; None skips lock checks
            role_store: Configured roles, used when a session has a role id
        """
        self._catalog = catalog
        self._governance = governance or GovernanceSchema()
        self._locks = locks
        self._role_store = role_store
        self._checks: tuple[
            Callable[[ToolDefinition, ToolCall, SessionContext], str | None], ...
        ] = (
            self._check_visibility,
            self._check_arguments,
            self._check_paths,
            self._check_spawn,
            self._check_mutation,
            self._check_lock,
        )

    @property
    def catalog(self) -> ToolCatalog:
        return self._catalog

    def visible_tools(self, context: SessionContext) -> list[ToolDefinition]:
        """Tool set the model is offered for this session and stage."""
        if context.role_id and self._role_store is not None:
            return self._catalog.tools_for_stage_with_role_id(
                context.role_id, self._role_store, context.stage_type
            )
        return self._catalog.tools_for_stage(context.role, context.stage_type)

    def validate(self, call: ToolCall, context: SessionContext) -> GovernanceResult:
        """
        Validate one tool call.

        Args:
            call: The tool call requested by the model
            context: Session the call belongs to

        Returns:
            GovernanceResult with the first denial reason, if any
        """
        tool = self._catalog.get(call.name)
        if tool is None:
            return self._deny(call, f"Unknown tool: {call.name}")

        for check in self._checks:
            reason = check(tool, call, context)
            if reason is not None:
                return self._deny(call, reason)
        return GovernanceResult(allowed=True)

    # =========================================================================
    # CHECKS
    # =========================================================================

    def _check_visibility(
        self, tool: ToolDefinition, call: ToolCall, context: SessionContext
    ) -> str | None:
        if context.role_id and self._role_store is not None:
            role = self._role_store.get(context.role_id)
            if role is None or tool.name not in role.tool_ids:
                return f"Tool {tool.name} is not available to role {context.role_id}"
        elif context.role not in tool.allowed_roles:
            return f"Tool {tool.name} is not available to {context.role} role"

        if tool.name not in {t.name for t in self.visible_tools(context)}:
            stage = context.stage_type.value if context.stage_type else "current"
            return f"Tool {tool.name} is not available in the {stage} stage"
        return None

    def _check_arguments(
        self, tool: ToolDefinition, call: ToolCall, context: SessionContext
    ) -> str | None:
        if not tool.parameters:
            return None
        validator = Draft202012Validator(dict(tool.parameters))
        error = best_match(validator.iter_errors(dict(call.arguments)))
        if error is not None:
            return f"Invalid arguments for {tool.name}: {error.message}"
        return None

    def _check_paths(
        self, tool: ToolDefinition, call: ToolCall, context: SessionContext
    ) -> str | None:
        for name in PATH_ARGUMENTS:
            raw = call.arguments.get(name)
            if isinstance(raw, str) and resolve_in_project(context.project_root, raw) is None:
                return f"Path {raw} is outside the project root"
        return None

    def _check_spawn(
        self, tool: ToolDefinition, call: ToolCall, context: SessionContext
    ) -> str | None:
        if tool.name != "spawn_agent":
            return None
        child_role = str(call.arguments.get("role", ""))
        if not can_spawn_role(context.role, child_role):
            return f"Role '{context.role}' cannot spawn '{child_role}'"
        if not context.can_nest:
            return (
                f"Maximum nesting depth reached ({context.nesting_depth}/"
                f"{context.max_nesting_depth})"
            )
        return None

    def _check_mutation(
        self, tool: ToolDefinition, call: ToolCall, context: SessionContext
    ) -> str | None:
        if tool.name not in MUTATING_TOOLS:
            return None
        raw = call.arguments[MUTATING_TOOLS[tool.name]]
        target = resolve_in_project(context.project_root, raw)
        if target is None:
            return f"Path {raw} is outside the project root"
        action = MutationAction.MODIFY if target.exists() else MutationAction.CREATE
        relative = project_relative(context.project_root, target)

        check = check_mutation_for_role(relative, action, context.role, self._governance)
        if check.policy is Policy.DENY:
            return f"Governance denies {action.value} {relative}: {check.reason}"
        if check.policy is Policy.APPROVE:
            suffix = f" ({check.reason})" if check.reason else ""
            return f"{action.value} {relative} requires human approval{suffix}"
        return None

    def _check_lock(
        self, tool: ToolDefinition, call: ToolCall, context: SessionContext
    ) -> str | None:
        if self._locks is None or tool.name not in MUTATING_TOOLS:
            return None
        raw = call.arguments[MUTATING_TOOLS[tool.name]]
        target = resolve_in_project(context.project_root, raw)
        if target is None:
            return f"Path {raw} is outside the project root"
        relative = project_relative(context.project_root, target)
        status = self._locks.is_file_locked(relative)
        if status.locked and status.chain_id != context.chain_id:
            return f"File {relative} is locked by chain {status.chain_id}"
        return None

    def _deny(self, call: ToolCall, reason: str) -> GovernanceResult:
        logger.info("Denied %s: %s", call.name, reason)
        return GovernanceResult(allowed=False, reason=reason)
