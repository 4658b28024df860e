"""Built-in workflow templates."""

from __future__ import annotations

from collections.abc import Mapping

from choreguard.domain.workflow import (
    GateType,
    StageType,
    WorkflowTemplate,
    WorkflowTemplateStage,
)

STANDARD = WorkflowTemplate(
    name="standard",
    description="Request, design, implementation, verification and sign-off",
    builtin=True,
    stages=(
        WorkflowTemplateStage(
            name="request",
            type=StageType.REQUEST,
            gate_type=GateType.HUMAN_APPROVAL,
            gate_prompt="CR created. Proceed to design?",
        ),
        WorkflowTemplateStage(
            name="design",
            type=StageType.DESIGN,
            gate_type=GateType.HUMAN_APPROVAL,
            gate_prompt="Design complete. Proceed to implementation?",
        ),
        WorkflowTemplateStage(
            name="implementation",
            type=StageType.IMPLEMENTATION,
            gate_type=GateType.CHAIN_COMPLETE,
        ),
        WorkflowTemplateStage(
            name="verification",
            type=StageType.VERIFICATION,
            gate_type=GateType.VERIFICATION_PASS,
            gate_commands=("pytest", "ruff check ."),
        ),
        WorkflowTemplateStage(
            name="completion",
            type=StageType.REVIEW,
            gate_type=GateType.HUMAN_APPROVAL,
            gate_prompt="All checks pass. Approve and merge?",
        ),
    ),
)

HOTFIX = WorkflowTemplate(
    name="hotfix",
    description="Skip design and go straight to implementation",
    builtin=True,
    stages=(
        WorkflowTemplateStage(
            name="request",
            type=StageType.REQUEST,
            gate_type=GateType.HUMAN_APPROVAL,
            gate_prompt="FR created. Proceed directly to implementation?",
        ),
        WorkflowTemplateStage(
            name="implementation",
            type=StageType.IMPLEMENTATION,
            gate_type=GateType.CHAIN_COMPLETE,
        ),
        WorkflowTemplateStage(
            name="verification",
            type=StageType.VERIFICATION,
            gate_type=GateType.VERIFICATION_PASS,
            gate_commands=("pytest",),
        ),
        WorkflowTemplateStage(
            name="completion",
            type=StageType.REVIEW,
            gate_type=GateType.HUMAN_APPROVAL,
            gate_prompt="Hotfix ready. Approve and merge?",
        ),
    ),
)

DOCUMENTATION = WorkflowTemplate(
    name="documentation",
    builtin=True,
    stages=(
        WorkflowTemplateStage(
            name="request",
            type=StageType.REQUEST,
            gate_type=GateType.AUTO,
        ),
        WorkflowTemplateStage(
            name="implementation",
            type=StageType.IMPLEMENTATION,
            gate_type=GateType.CHAIN_COMPLETE,
        ),
        WorkflowTemplateStage(
            name="completion",
            type=StageType.REVIEW,
            gate_type=GateType.HUMAN_APPROVAL,
            gate_prompt="Documentation updated. Approve?",
        ),
    ),
)

# The agent decides when the idea is ready and asks for approval itself.
IDEATION = WorkflowTemplate(
    name="ideation",
    builtin=True,
    stages=(
        WorkflowTemplateStage(
            name="ideation",
            type=StageType.IDEATION,
            gate_type=GateType.HUMAN_APPROVAL,
            gate_prompt="Idea explored. Promote to a request?",
            agent_triggered=True,
        ),
        WorkflowTemplateStage(
            name="request",
            type=StageType.REQUEST,
            gate_type=GateType.HUMAN_APPROVAL,
            gate_prompt="Request drafted. Accept?",
        ),
    ),
)

BUILTIN_TEMPLATES: Mapping[str, WorkflowTemplate] = {
    t.name: t for t in (STANDARD, HOTFIX, DOCUMENTATION, IDEATION)
}
