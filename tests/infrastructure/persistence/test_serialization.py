"""Tests for workflow and template dict conversion."""

from support import START, three_stage_template

from choreguard.domain.workflow import (
    GateType,
    MessageRole,
    StageHooks,
    StageStatus,
    StageType,
    TaskTransition,
    TransitionAction,
    TransitionActionType,
    Workflow,
    WorkflowMessage,
    WorkflowTemplateStage,
)
from choreguard.infrastructure.persistence.serialization import (
    action_to_dict,
    dict_to_template,
    dict_to_workflow,
    template_to_dict,
    workflow_to_dict,
)
from choreguard.schemas import validate_workflow_template

HOOKS = StageHooks(
    on_enter=(
        TransitionAction(
            TransitionActionType.TASK_TRANSITION,
            task_transition=TaskTransition.START,
            chain_id="CH-1",
            task_id="T-1",
        ),
    ),
    on_exit=(
        TransitionAction(TransitionActionType.COMMAND, command="make test"),
        TransitionAction(
            TransitionActionType.FILE_MOVE,
            blocking=False,
            from_path="docs/draft.md",
            to_path="docs/final.md",
        ),
    ),
)


class TestActions:
    def test_file_move_uses_from_and_to_keys(self) -> None:
        data = action_to_dict(HOOKS.on_exit[1])

        assert data == {
            "type": "file_move",
            "blocking": False,
            "from": "docs/draft.md",
            "to": "docs/final.md",
        }


class TestTemplates:
    def test_round_trip_with_hooks(self) -> None:
        template = three_stage_template(
            implementation=WorkflowTemplateStage(
                "impl",
                StageType.IMPLEMENTATION,
                GateType.CHAIN_COMPLETE,
                gate_chain_id="CH-1",
                role_id="implementer",
                hooks=HOOKS,
            )
        )

        data = template_to_dict(template)

        validate_workflow_template(data)
        assert dict_to_template(data) == template

    def test_unset_fields_are_omitted(self) -> None:
        data = template_to_dict(three_stage_template())

        assert set(data) == {"name", "version", "stages"}
        assert "hooks" not in data["stages"][0]


class TestWorkflows:
    def test_round_trip_in_progress(self) -> None:
        stages = [s.instantiate() for s in three_stage_template().stages]
        stages[0].status = StageStatus.COMPLETED
        stages[0].gate.satisfy("human", START)
        stages[0].completed_at = START
        stages[1].status = StageStatus.ACTIVE
        stages[1].started_at = START
        workflow = Workflow(
            id="WF-20250115-001",
            request_id="REQ-1",
            template_name="three-stage",
            stages=stages,
            created_at=START,
            updated_at=START,
            current_stage=1,
            messages=[
                WorkflowMessage(
                    id="m1",
                    role=MessageRole.SYSTEM,
                    content="Approval Required: Ship it?",
                    stage_index=0,
                    timestamp=START,
                    metadata={"type": "gate_prompt"},
                )
            ],
            version=3,
        )

        data = workflow_to_dict(workflow)

        assert data["stages"][0]["gate"]["satisfied_at"] == "2025-01-15T09:30:00"
        assert dict_to_workflow(data) == workflow
