"""
Workflow state machine.

Drives a Workflow through its stages. Every transition works on a deep copy
of the stored record and is persisted only when it completes, so a failing
blocking hook or an unsatisfied gate leaves the stored workflow untouched.
Writes are version-checked against the record that was read.
"""

from __future__ import annotations

import copy
import logging
import uuid
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any

from choreguard.application.hook_runner import ON_ENTER, ON_EXIT, TransitionHookRunner
from choreguard.domain.exceptions import (
    GateNotSatisfiedError,
    TemplateValidationError,
    WorkflowError,
    WorkflowNotFoundError,
    WorkflowStateError,
)
from choreguard.domain.interfaces import (
    CommandRunnerInterface,
    TaskLifecycleInterface,
    WorkflowStoreInterface,
)
from choreguard.domain.workflow import (
    GateType,
    HookActionResult,
    HookRunResult,
    MessageRole,
    StageStatus,
    Workflow,
    WorkflowMessage,
    WorkflowStage,
    WorkflowStatus,
    WorkflowTemplate,
    validate_template,
)

logger = logging.getLogger("choreguard.workflow")

DEFAULT_GATE_PROMPT = "Approval required to proceed."
CHAIN_DONE = "done"


@dataclass(frozen=True)
class AdvanceResult:
    """Outcome of a successful transition."""

    workflow: Workflow
    warnings: tuple[HookActionResult, ...] = ()

    @property
    def completed(self) -> bool:
        return self.workflow.status is WorkflowStatus.COMPLETED


@dataclass(frozen=True)
class ChainCompletionResult:
    """Workflows advanced by a chain completing, and those that could not be."""

    advanced: tuple[Workflow, ...] = ()
    failures: Mapping[str, str] = field(default_factory=dict)


class WorkflowManager:
    """
    Create and advance workflows.

    All state is reached through the injected store; the manager holds no
    per-workflow state of its own.
    """

    def __init__(
        self,
        project_root: Path,
        store: WorkflowStoreInterface,
        hook_runner: TransitionHookRunner,
        command_runner: CommandRunnerInterface,
        task_lifecycle: TaskLifecycleInterface | None = None,
        clock: Callable[[], datetime] | None = None,
    ):
        """
        Args:
            project_root: Root that verification commands run in
            store: Workflow persistence
            hook_runner: Executes onEnter/onExit actions
            command_runner: Runs verification_pass gate commands
            task_lifecycle: Answers chain status for chain_complete gates
            clock: Source of "now" (defaults to datetime.now)
        """
        self._project_root = project_root
        self._store = store
        self._hooks = hook_runner
        self._commands = command_runner
        self._tasks = task_lifecycle
        self._clock = clock or datetime.now
        self._gate_checks: dict[GateType, Callable[[Workflow, WorkflowStage, datetime], None]] = {
            GateType.AUTO: self._check_auto_gate,
            GateType.HUMAN_APPROVAL: self._check_human_gate,
            GateType.CHAIN_COMPLETE: self._check_chain_gate,
            GateType.VERIFICATION_PASS: self._check_verification_gate,
        }

    # =========================================================================
    # QUERIES
    # =========================================================================

    def get(self, workflow_id: str) -> Workflow:
        workflow = self._store.load(workflow_id)
        if workflow is None:
            raise WorkflowNotFoundError(workflow_id)
        return workflow

    def list(
        self, status: WorkflowStatus | None = None, request_id: str | None = None
    ) -> list[Workflow]:
        return [
            w
            for w in self._store.list()
            if (status is None or w.status is status)
            and (request_id is None or w.request_id == request_id)
        ]

    def is_active(self, workflow_id: str) -> bool:
        return self.get(workflow_id).status is WorkflowStatus.ACTIVE

    # =========================================================================
    # TRANSITIONS
    # =========================================================================

    def create(
        self,
        request_id: str,
        template: WorkflowTemplate,
        initial_message: str | None = None,
    ) -> Workflow:
        """
        Instantiate a workflow from ``template`` and activate its first stage.

        Args:
            request_id: Change or feature request driving the workflow
            template: Template to instantiate
            initial_message: Optional human message recorded on stage 0

        Returns:
            The persisted workflow

        Raises:
            TemplateValidationError: If the template is invalid
            HookExecutionError: If a blocking onEnter action of stage 0 fails
        """
        errors = validate_template(template)
        if errors:
            raise TemplateValidationError(template.name, errors)

        now = self._clock()
        workflow = Workflow(
            id=self._store.next_id(now.strftime("%Y%m%d")),
            request_id=request_id,
            template_name=template.name,
            stages=[stage.instantiate() for stage in template.stages],
            created_at=now,
            updated_at=now,
        )
        if initial_message:
            self._append(workflow, MessageRole.HUMAN, initial_message, now)

        self._activate_stage(workflow, 0, now)
        self._store.save(workflow)
        logger.info("Created workflow %s from template %s", workflow.id, template.name)
        return workflow

    def advance(self, workflow_id: str) -> AdvanceResult:
        """
        Complete the current stage and activate the next one.

        Raises:
            WorkflowStateError: If the workflow is paused or terminal
            GateNotSatisfiedError: If the current gate is not satisfied
            HookExecutionError: If a blocking onExit/onEnter action fails
        """
        stored = self.get(workflow_id)
        return self._advance(copy.deepcopy(stored), stored.version)

    def satisfy_gate(
        self, workflow_id: str, stage_index: int, satisfied_by: str
    ) -> AdvanceResult:
        """
        Satisfy the current stage's gate and advance.

        For ``human_approval`` the approval is recorded (and persisted) before
        advancing, so a failing exit hook does not lose the approval. Other
        gate types are evaluated by the advance itself.

        Raises:
            WorkflowStateError: If ``stage_index`` is not the current stage
        """
        stored = self.get(workflow_id)
        self._require_runnable(stored)
        if stage_index != stored.current_stage:
            raise WorkflowStateError(
                f"Stage {stage_index} is not the current stage of {workflow_id} "
                f"(current: {stored.current_stage})"
            )

        workflow = copy.deepcopy(stored)
        stage = workflow.stages[stage_index]
        if stage.gate.type is GateType.HUMAN_APPROVAL and not stage.gate.satisfied:
            now = self._clock()
            stage.gate.satisfy(satisfied_by, now)
            stage.status = StageStatus.AWAITING_GATE
            workflow.updated_at = now
            self._store.save(workflow, expected_version=stored.version)
            logger.info(
                "Gate of %s stage %d approved by %s", workflow_id, stage_index, satisfied_by
            )
            return self._advance(copy.deepcopy(workflow), workflow.version)

        return self._advance(workflow, stored.version)

    def on_chain_complete(self, chain_id: str) -> ChainCompletionResult:
        """
        Advance every active workflow waiting on ``chain_id`` to complete.

        A workflow that fails to advance is logged and reported in
        ``failures``; the remaining workflows are still advanced.
        """
        advanced: list[Workflow] = []
        failures: dict[str, str] = {}
        for stored in self._store.list():
            stage = stored.stage
            if (
                stored.status is not WorkflowStatus.ACTIVE
                or stage is None
                or stage.gate.type is not GateType.CHAIN_COMPLETE
                or stage.gate.satisfied
                or (stage.gate.chain_id or stage.chain_id) != chain_id
            ):
                continue
            workflow = copy.deepcopy(stored)
            current = workflow.stages[workflow.current_stage]
            current.gate.satisfy(f"chain:{chain_id}", self._clock())
            current.status = StageStatus.AWAITING_GATE
            try:
                advanced.append(self._advance(workflow, stored.version).workflow)
            except WorkflowError as e:
                logger.error("Chain %s could not advance %s: %s", chain_id, stored.id, e)
                failures[stored.id] = str(e)
        return ChainCompletionResult(tuple(advanced), failures)

    def request_gate_prompt(self, workflow_id: str) -> WorkflowMessage:
        """
        Surface the approval prompt of an agent-triggered gate.

        This is the only way such a prompt is emitted. Repeated requests for
        the same stage return the existing prompt.

        Raises:
            WorkflowStateError: If the current gate is not an unsatisfied,
                agent-triggered human_approval gate
        """
        stored = self.get(workflow_id)
        self._require_runnable(stored)
        stage = stored.stage
        if (
            stage is None
            or stage.gate.type is not GateType.HUMAN_APPROVAL
            or not stage.gate.agent_triggered
        ):
            raise WorkflowStateError(
                f"Current gate of {workflow_id} is not an agent-triggered human_approval gate"
            )
        if stage.gate.satisfied:
            raise WorkflowStateError(f"Gate of {workflow_id} is already satisfied")

        existing = self._gate_prompt_for(stored, stored.current_stage)
        if existing is not None:
            return existing

        workflow = copy.deepcopy(stored)
        now = self._clock()
        message = self._append_gate_prompt(workflow, workflow.current_stage, now)
        workflow.updated_at = now
        self._store.save(workflow, expected_version=stored.version)
        return message

    def add_message(
        self,
        workflow_id: str,
        role: MessageRole,
        content: str,
        metadata: Mapping[str, Any] | None = None,
    ) -> WorkflowMessage:
        stored = self.get(workflow_id)
        workflow = copy.deepcopy(stored)
        now = self._clock()
        message = self._append(workflow, role, content, now, metadata)
        workflow.updated_at = now
        self._store.save(workflow, expected_version=stored.version)
        return message

    def pause(self, workflow_id: str) -> Workflow:
        return self._set_status(workflow_id, WorkflowStatus.PAUSED, {WorkflowStatus.ACTIVE})

    def resume(self, workflow_id: str) -> Workflow:
        return self._set_status(workflow_id, WorkflowStatus.ACTIVE, {WorkflowStatus.PAUSED})

    def cancel(self, workflow_id: str) -> Workflow:
        return self._set_status(
            workflow_id,
            WorkflowStatus.CANCELLED,
            {WorkflowStatus.ACTIVE, WorkflowStatus.PAUSED},
        )

    # =========================================================================
    # INTERNALS
    # =========================================================================

    def _advance(self, workflow: Workflow, expected_version: int) -> AdvanceResult:
        self._require_runnable(workflow)
        stage = workflow.stage
        if stage is None:
            raise WorkflowStateError(f"Workflow {workflow.id} has no current stage")

        now = self._clock()
        index = workflow.current_stage
        self._gate_checks[stage.gate.type](workflow, stage, now)

        exit_result = self._hooks.run(ON_EXIT, stage, index, workflow.id)
        self._record_hook_results(workflow, exit_result, now)
        warnings = list(exit_result.warnings)

        stage.status = StageStatus.COMPLETED
        stage.completed_at = now
        workflow.current_stage += 1

        if workflow.current_stage >= len(workflow.stages):
            workflow.status = WorkflowStatus.COMPLETED
            logger.info("Workflow %s completed", workflow.id)
        else:
            enter_result = self._activate_stage(workflow, workflow.current_stage, now)
            warnings.extend(enter_result.warnings)
            logger.info(
                "Workflow %s advanced to stage %d (%s)",
                workflow.id,
                workflow.current_stage,
                workflow.stages[workflow.current_stage].name,
            )

        workflow.updated_at = now
        self._store.save(workflow, expected_version=expected_version)
        return AdvanceResult(workflow=workflow, warnings=tuple(warnings))

    def _activate_stage(self, workflow: Workflow, index: int, now: datetime) -> HookRunResult:
        stage = workflow.stages[index]
        stage.status = StageStatus.ACTIVE
        stage.started_at = now
        if stage.gate.type is GateType.AUTO:
            stage.gate.satisfy("system", now)
            stage.status = StageStatus.AWAITING_GATE

        result = self._hooks.run(ON_ENTER, stage, index, workflow.id)
        self._record_hook_results(workflow, result, now)
        self._add_gate_prompt(workflow, index, now)
        return result

    def _require_runnable(self, workflow: Workflow) -> None:
        if workflow.status is not WorkflowStatus.ACTIVE:
            raise WorkflowStateError(
                f"Workflow {workflow.id} is {workflow.status.value}"
            )

    def _set_status(
        self,
        workflow_id: str,
        status: WorkflowStatus,
        allowed_from: set[WorkflowStatus],
    ) -> Workflow:
        stored = self.get(workflow_id)
        if stored.status not in allowed_from:
            raise WorkflowStateError(
                f"Cannot change workflow {workflow_id} from {stored.status.value} "
                f"to {status.value}"
            )
        workflow = copy.deepcopy(stored)
        workflow.status = status
        workflow.updated_at = self._clock()
        self._store.save(workflow, expected_version=stored.version)
        logger.info("Workflow %s is now %s", workflow_id, status.value)
        return workflow

    # -- gates ----------------------------------------------------------------

    def _check_auto_gate(self, workflow: Workflow, stage: WorkflowStage, now: datetime) -> None:
        if not stage.gate.satisfied:
            stage.gate.satisfy("system", now)

    def _check_human_gate(self, workflow: Workflow, stage: WorkflowStage, now: datetime) -> None:
        if not stage.gate.satisfied:
            raise GateNotSatisfiedError(
                workflow.id, workflow.current_stage, "awaiting human approval"
            )

    def _check_chain_gate(self, workflow: Workflow, stage: WorkflowStage, now: datetime) -> None:
        if stage.gate.satisfied:
            return
        chain_id = stage.gate.chain_id or stage.chain_id
        if not chain_id:
            raise GateNotSatisfiedError(
                workflow.id, workflow.current_stage, "no chain assigned to stage"
            )
        if self._tasks is None:
            raise GateNotSatisfiedError(
                workflow.id, workflow.current_stage, "chain status is unavailable"
            )
        status = self._tasks.get_chain_status(chain_id)
        if status != CHAIN_DONE:
            raise GateNotSatisfiedError(
                workflow.id, workflow.current_stage, f"chain {chain_id} is {status}"
            )
        stage.gate.satisfy(f"chain:{chain_id}", now)

    def _check_verification_gate(
        self, workflow: Workflow, stage: WorkflowStage, now: datetime
    ) -> None:
        if stage.gate.satisfied:
            return
        if not stage.gate.commands:
            raise GateNotSatisfiedError(
                workflow.id, workflow.current_stage, "no verification commands configured"
            )
        for command in stage.gate.commands:
            result = self._commands.run(command, self._project_root)
            if not result.success:
                raise GateNotSatisfiedError(
                    workflow.id,
                    workflow.current_stage,
                    f"verification command '{command}' exited with {result.exit_code}",
                )
        stage.gate.satisfy("verification", now)

    # -- messages -------------------------------------------------------------

    def _append(
        self,
        workflow: Workflow,
        role: MessageRole,
        content: str,
        now: datetime,
        metadata: Mapping[str, Any] | None = None,
    ) -> WorkflowMessage:
        stage_index = min(workflow.current_stage, len(workflow.stages) - 1)
        message = WorkflowMessage(
            id=f"msg-{uuid.uuid4().hex[:12]}",
            role=role,
            content=content,
            stage_index=stage_index,
            timestamp=now,
            metadata=dict(metadata or {}),
        )
        workflow.messages.append(message)
        return message

    def _add_gate_prompt(self, workflow: Workflow, index: int, now: datetime) -> None:
        gate = workflow.stages[index].gate
        if gate.type is GateType.HUMAN_APPROVAL and not gate.satisfied and not gate.agent_triggered:
            self._append_gate_prompt(workflow, index, now)

    def _append_gate_prompt(
        self, workflow: Workflow, index: int, now: datetime
    ) -> WorkflowMessage:
        gate = workflow.stages[index].gate
        return self._append(
            workflow,
            MessageRole.SYSTEM,
            f"Approval Required: {gate.prompt or DEFAULT_GATE_PROMPT}",
            now,
            {"type": "gate_prompt", "gate_type": gate.type.value},
        )

    @staticmethod
    def _gate_prompt_for(workflow: Workflow, index: int) -> WorkflowMessage | None:
        for message in workflow.messages:
            if message.stage_index == index and message.metadata.get("type") == "gate_prompt":
                return message
        return None

    def _record_hook_results(
        self, workflow: Workflow, result: HookRunResult, now: datetime
    ) -> None:
        if not result.results:
            return
        failed = sum(1 for r in result.results if not r.success)
        self._append(
            workflow,
            MessageRole.SYSTEM,
            f"{result.hook} hooks for stage {result.stage_name}: "
            f"{len(result.results) - failed} succeeded, {failed} failed",
            now,
            {
                "type": "hook_results",
                "hook": result.hook,
                "results": [
                    {
                        "type": r.action.type.value,
                        "success": r.success,
                        "blocking": r.blocking,
                        "error": r.error,
                    }
                    for r in result.results
                ],
            },
        )
