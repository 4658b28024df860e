"""
Prompt structures for agent sessions.

This module provides:
- RolePrompt: structured system prompt for an agent role
- DEFAULT_ROLE_PROMPTS: built-in prompts keyed by agent role
- build_initial_message: the first user turn of a session
"""

from collections.abc import Mapping
from dataclasses import dataclass
from typing import TYPE_CHECKING

from choreguard.domain.roles import (
    COMMIT,
    CONTROL,
    DESIGN,
    IDEATION,
    IMPL,
    ORCHESTRATION,
    REVIEW,
)

if TYPE_CHECKING:
    from choreguard.domain.session import SessionContext


# =============================================================================
# ROLE PROMPT
# =============================================================================


@dataclass(frozen=True)
class RolePrompt:
    """Structured system prompt for one agent role."""

    role: str
    constraints: str
    task: str = "Use the available tools to complete the assigned work, then stop."

    def render(self, context: "SessionContext") -> str:
        """Render the system prompt for a session."""
        parts = [
            f"# ROLE\n{self.role}",
            f"# CONSTRAINTS\n{self.constraints}",
        ]
        if context.stage_type is not None:
            parts.append(f"# STAGE\nCurrent workflow stage: {context.stage_type.value}")
        if context.nesting_depth:
            parts.append(
                f"# NESTING\nYou are a nested session at depth {context.nesting_depth}."
            )
        parts.append(f"# TASK\n{self.task}")
        return "\n\n".join(parts)


_GOVERNANCE_NOTE = (
    "Every tool call is checked against project governance. A denied call "
    "returns an error starting with DENIED; adapt instead of retrying it."
)

DEFAULT_ROLE_PROMPTS: Mapping[str, RolePrompt] = {
    CONTROL: RolePrompt(
        role="You are the control agent. You plan work, review results and "
        "coordinate implementation agents.",
        constraints=f"Do not write source code yourself. {_GOVERNANCE_NOTE}",
    ),
    ORCHESTRATION: RolePrompt(
        role="You are the orchestration agent. You break work into chains and "
        "delegate to child sessions.",
        constraints=_GOVERNANCE_NOTE,
    ),
    IMPL: RolePrompt(
        role="You are an implementation agent working on one task.",
        constraints=(
            "Stay within the task scope. Mark the task complete when done. "
            f"{_GOVERNANCE_NOTE}"
        ),
    ),
    DESIGN: RolePrompt(
        role="You are a design agent producing design documents.",
        constraints=_GOVERNANCE_NOTE,
    ),
    REVIEW: RolePrompt(
        role="You are a review agent. Approve work that meets the task "
        "acceptance criteria and send the rest back with reasons.",
        constraints=_GOVERNANCE_NOTE,
    ),
    IDEATION: RolePrompt(
        role="You are an ideation agent exploring a proposal with a human.",
        constraints=(
            "Request approval only when the idea is ready to become a request. "
            f"{_GOVERNANCE_NOTE}"
        ),
    ),
    COMMIT: RolePrompt(
        role="You are a commit agent preparing completed work for integration.",
        constraints=_GOVERNANCE_NOTE,
    ),
}


def system_prompt_for(
    context: "SessionContext", override: str | None = None
) -> str:
    """System prompt for ``context.role``; ``override`` replaces the role text."""
    prompt = DEFAULT_ROLE_PROMPTS.get(context.role)
    if override:
        prompt = RolePrompt(
            role=override,
            constraints=prompt.constraints if prompt else _GOVERNANCE_NOTE,
        )
    if prompt is None:
        prompt = RolePrompt(role=f"You are a {context.role} agent.", constraints=_GOVERNANCE_NOTE)
    return prompt.render(context)


def build_initial_message(context: "SessionContext", instruction: str | None) -> str:
    """First user message: what the session is and what it should do."""
    lines = [f"Role: {context.role}"]
    if context.chain_id:
        lines.append(f"Chain: {context.chain_id}")
    if context.task_id:
        lines.append(f"Task: {context.task_id}")
    if context.workflow_id:
        lines.append(f"Workflow: {context.workflow_id}")
    if context.parent_context:
        lines.append(f"\nContext from parent session:\n{context.parent_context}")
    if instruction:
        lines.append(f"\n{instruction}")
    else:
        lines.append("\nBegin work.")
    return "\n".join(lines)
