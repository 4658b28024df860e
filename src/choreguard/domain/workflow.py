"""
Workflow domain model.

A Workflow is instantiated from a WorkflowTemplate and walks its stages in
order. Each stage has a gate that must be satisfied before the workflow may
advance, plus optional onEnter/onExit transition hooks.

Workflow, WorkflowStage and StageGate are mutable records owned by the
WorkflowManager, which mutates a copy and persists it only when a transition
succeeds. Everything else here is frozen.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any


# =============================================================================
# ENUMS
# =============================================================================


class StageType(Enum):
    REQUEST = "request"
    DESIGN = "design"
    REVIEW = "review"
    IMPLEMENTATION = "implementation"
    VERIFICATION = "verification"
    IDEATION = "ideation"
    REFLECTION = "reflection"


class StageStatus(Enum):
    PENDING = "pending"
    ACTIVE = "active"
    AWAITING_GATE = "awaiting_gate"
    COMPLETED = "completed"
    SKIPPED = "skipped"


class GateType(Enum):
    AUTO = "auto"
    HUMAN_APPROVAL = "human_approval"
    CHAIN_COMPLETE = "chain_complete"
    VERIFICATION_PASS = "verification_pass"


class WorkflowStatus(Enum):
    ACTIVE = "active"
    PAUSED = "paused"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


TERMINAL_WORKFLOW_STATUSES = frozenset(
    {WorkflowStatus.COMPLETED, WorkflowStatus.FAILED, WorkflowStatus.CANCELLED}
)


class MessageRole(Enum):
    HUMAN = "human"
    CONTROL = "control"
    IMPL = "impl"
    SYSTEM = "system"


class TransitionActionType(Enum):
    COMMAND = "command"
    TASK_TRANSITION = "task_transition"
    FILE_MOVE = "file_move"
    CUSTOM = "custom"


class TaskTransition(Enum):
    START = "start"
    COMPLETE = "complete"
    APPROVE = "approve"
    REWORK = "rework"


# =============================================================================
# HOOKS AND GATES
# =============================================================================


@dataclass(frozen=True)
class TransitionAction:
    """One hook action run on stage entry or exit."""

    type: TransitionActionType
    blocking: bool = True
    # command
    command: str | None = None
    # task_transition
    task_transition: TaskTransition | None = None
    task_id: str | None = None
    chain_id: str | None = None
    # file_move
    from_path: str | None = None
    to_path: str | None = None
    # custom
    handler: str | None = None
    params: Mapping[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class StageHooks:
    on_enter: tuple[TransitionAction, ...] = ()
    on_exit: tuple[TransitionAction, ...] = ()


@dataclass
class StageGate:
    """Condition guarding the exit of a stage.

    ``agent_triggered`` only modifies ``human_approval`` gates: the approval
    prompt is surfaced when the running agent asks for it instead of on
    stage entry.
    """

    type: GateType
    prompt: str | None = None
    chain_id: str | None = None
    commands: list[str] = field(default_factory=list)
    agent_triggered: bool = False
    satisfied: bool = False
    satisfied_by: str | None = None
    satisfied_at: datetime | None = None

    def satisfy(self, by: str, at: datetime) -> None:
        self.satisfied = True
        self.satisfied_by = by
        self.satisfied_at = at


# =============================================================================
# WORKFLOW
# =============================================================================


@dataclass
class WorkflowStage:
    name: str
    type: StageType
    gate: StageGate
    status: StageStatus = StageStatus.PENDING
    role_id: str | None = None
    hooks: StageHooks = field(default_factory=StageHooks)
    chain_id: str | None = None
    session_id: str | None = None
    started_at: datetime | None = None
    completed_at: datetime | None = None


@dataclass(frozen=True)
class WorkflowMessage:
    id: str
    role: MessageRole
    content: str
    stage_index: int
    timestamp: datetime
    metadata: Mapping[str, Any] = field(default_factory=dict)


@dataclass
class Workflow:
    """A running instance of a template (mutable, see module docstring)."""

    id: str
    request_id: str
    template_name: str
    stages: list[WorkflowStage]
    created_at: datetime
    updated_at: datetime
    current_stage: int = 0
    status: WorkflowStatus = WorkflowStatus.ACTIVE
    messages: list[WorkflowMessage] = field(default_factory=list)
    version: int = 0

    @property
    def stage(self) -> WorkflowStage | None:
        """The current stage, or None once every stage has completed."""
        if 0 <= self.current_stage < len(self.stages):
            return self.stages[self.current_stage]
        return None

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_WORKFLOW_STATUSES


# =============================================================================
# TEMPLATES
# =============================================================================


@dataclass(frozen=True)
class WorkflowTemplateStage:
    name: str
    type: StageType
    gate_type: GateType
    gate_prompt: str | None = None
    gate_chain_id: str | None = None
    gate_commands: tuple[str, ...] = ()
    agent_triggered: bool = False
    role_id: str | None = None
    hooks: StageHooks = field(default_factory=StageHooks)

    def instantiate(self) -> WorkflowStage:
        """Create a fresh, pending WorkflowStage from this definition."""
        return WorkflowStage(
            name=self.name,
            type=self.type,
            gate=StageGate(
                type=self.gate_type,
                prompt=self.gate_prompt,
                chain_id=self.gate_chain_id,
                commands=list(self.gate_commands),
                agent_triggered=self.agent_triggered,
            ),
            role_id=self.role_id,
            hooks=self.hooks,
            chain_id=self.gate_chain_id,
        )


@dataclass(frozen=True)
class WorkflowTemplate:
    """Versioned template. Published versions are never mutated."""

    name: str
    stages: tuple[WorkflowTemplateStage, ...]
    version: int = 1
    builtin: bool = False
    description: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


def validate_template(template: WorkflowTemplate) -> list[str]:
    """Return a list of problems with ``template`` (empty when valid)."""
    errors: list[str] = []
    if not template.name:
        errors.append("Template must have a name")
    if not template.stages:
        errors.append(f"Template {template.name} must have at least one stage")

    for idx, stage in enumerate(template.stages):
        label = stage.name or f"#{idx}"
        if not stage.name:
            errors.append(f"Stage {idx} in template {template.name} is missing a name")
        if stage.gate_type is GateType.VERIFICATION_PASS and not stage.gate_commands:
            errors.append(f"Stage {label} verification_pass gate requires commands")
        if stage.agent_triggered and stage.gate_type is not GateType.HUMAN_APPROVAL:
            errors.append(
                f"Stage {label}: agent_triggered is only valid on human_approval gates"
            )
        for action in (*stage.hooks.on_enter, *stage.hooks.on_exit):
            problem = _validate_action(action)
            if problem:
                errors.append(f"Stage {label}: {problem}")
    return errors


_REQUIRED_ACTION_FIELDS: Mapping[TransitionActionType, tuple[str, ...]] = {
    TransitionActionType.COMMAND: ("command",),
    TransitionActionType.TASK_TRANSITION: ("task_transition",),
    TransitionActionType.FILE_MOVE: ("from_path", "to_path"),
    TransitionActionType.CUSTOM: ("handler",),
}


def _validate_action(action: TransitionAction) -> str | None:
    missing = [
        name
        for name in _REQUIRED_ACTION_FIELDS[action.type]
        if getattr(action, name) is None
    ]
    if missing:
        return f"{action.type.value} action requires {', '.join(missing)}"
    return None


# =============================================================================
# HOOK RESULTS
# =============================================================================


@dataclass(frozen=True)
class HookActionResult:
    action: TransitionAction
    success: bool
    output: str | None = None
    error: str | None = None

    @property
    def blocking(self) -> bool:
        return self.action.blocking


@dataclass(frozen=True)
class HookRunResult:
    """Results of one hook list (onEnter or onExit) for one stage."""

    hook: str
    stage_name: str
    stage_type: StageType
    stage_index: int
    results: tuple[HookActionResult, ...] = ()

    @property
    def success(self) -> bool:
        return all(r.success or not r.blocking for r in self.results)

    @property
    def warnings(self) -> tuple[HookActionResult, ...]:
        """Non-blocking failures, reported alongside a successful transition."""
        return tuple(r for r in self.results if not r.success and not r.blocking)
