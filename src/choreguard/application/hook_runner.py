"""
Transition hook runner.

Runs a stage's onEnter/onExit actions in order. Each action type dispatches
through a handler table. A failing blocking action raises
HookExecutionError; a failing non-blocking action is recorded and the run
continues.
"""

from __future__ import annotations

import logging
import shutil
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from pathlib import Path

from choreguard.domain.exceptions import HookExecutionError
from choreguard.domain.interfaces import CommandRunnerInterface, TaskLifecycleInterface
from choreguard.domain.paths import resolve_in_project
from choreguard.domain.workflow import (
    HookActionResult,
    HookRunResult,
    TaskTransition,
    TransitionAction,
    TransitionActionType,
    WorkflowStage,
)

logger = logging.getLogger("choreguard.hooks")

ON_ENTER = "on_enter"
ON_EXIT = "on_exit"


@dataclass(frozen=True)
class HookContext:
    """Where a hook runs and for which stage."""

    project_root: Path
    workflow_id: str
    stage: WorkflowStage
    stage_index: int


# A custom handler returns optional output text and raises on failure.
CustomHandler = Callable[[TransitionAction, HookContext], str | None]

_ActionHandler = Callable[[TransitionAction, HookContext], HookActionResult]


class TransitionHookRunner:
    """Execute TransitionActions for stage entry and exit."""

    def __init__(
        self,
        project_root: Path,
        command_runner: CommandRunnerInterface,
        task_lifecycle: TaskLifecycleInterface | None = None,
        custom_handlers: Mapping[str, CustomHandler] | None = None,
    ):
        """
        Args:
            project_root: Root that commands run in and file moves are confined to
            command_runner: Shell command adapter
            task_lifecycle: External task collaborator for task_transition actions
            custom_handlers: Named handlers for custom actions
        """
        self._project_root = project_root
        self._commands = command_runner
        self._tasks = task_lifecycle
        self._custom: dict[str, CustomHandler] = dict(custom_handlers or {})
        self._handlers: dict[TransitionActionType, _ActionHandler] = {
            TransitionActionType.COMMAND: self._run_command,
            TransitionActionType.TASK_TRANSITION: self._run_task_transition,
            TransitionActionType.FILE_MOVE: self._run_file_move,
            TransitionActionType.CUSTOM: self._run_custom,
        }

    def register_custom(self, name: str, handler: CustomHandler) -> None:
        self._custom[name] = handler

    def run(
        self, hook: str, stage: WorkflowStage, stage_index: int, workflow_id: str
    ) -> HookRunResult:
        """
        Run the ``hook`` action list (``on_enter`` or ``on_exit``) of ``stage``.

        Args:
            hook: ON_ENTER or ON_EXIT
            stage: Stage whose hooks to run
            stage_index: Index of the stage in its workflow
            workflow_id: Owning workflow

        Returns:
            HookRunResult with one entry per action that ran

        Raises:
            HookExecutionError: On the first failing blocking action
        """
        actions: tuple[TransitionAction, ...] = getattr(stage.hooks, hook)
        context = HookContext(self._project_root, workflow_id, stage, stage_index)
        results: list[HookActionResult] = []

        for action in actions:
            try:
                result = self._handlers[action.type](action, context)
            except Exception as e:
                result = HookActionResult(action=action, success=False, error=str(e))
            results.append(result)

            if result.success:
                continue
            run_result = HookRunResult(
                hook, stage.name, stage.type, stage_index, tuple(results)
            )
            if action.blocking:
                logger.warning(
                    "Blocking %s hook failed for stage %s: %s",
                    hook,
                    stage.name,
                    result.error,
                )
                raise HookExecutionError(
                    f"Hook {hook} failed for stage {stage.name}: {result.error}",
                    run_result,
                )
            logger.warning(
                "Non-blocking %s hook failed for stage %s: %s",
                hook,
                stage.name,
                result.error,
            )

        return HookRunResult(hook, stage.name, stage.type, stage_index, tuple(results))

    # =========================================================================
    # HANDLERS
    # =========================================================================

    def _run_command(self, action: TransitionAction, context: HookContext) -> HookActionResult:
        if not action.command:
            return HookActionResult(
                action, success=False, error="command action requires a command"
            )
        outcome = self._commands.run(action.command, context.project_root)
        if outcome.success:
            return HookActionResult(action, success=True, output=outcome.stdout)
        detail = (outcome.stderr or outcome.stdout).strip()
        return HookActionResult(
            action,
            success=False,
            output=outcome.stdout,
            error=f"Command '{action.command}' exited with {outcome.exit_code}"
            + (f": {detail}" if detail else ""),
        )

    def _run_task_transition(
        self, action: TransitionAction, context: HookContext
    ) -> HookActionResult:
        if action.task_transition is None:
            return HookActionResult(
                action, success=False, error="task_transition requires a transition"
            )
        transition = action.task_transition
        chain_id = action.chain_id or context.stage.chain_id
        task_id = action.task_id
        if not chain_id or not task_id:
            return HookActionResult(
                action, success=False, error="task_transition requires chain_id and task_id"
            )
        tasks = self._tasks
        if tasks is None:
            return HookActionResult(
                action, success=False, error="No task lifecycle collaborator configured"
            )

        reason = str(action.params.get("reason", "Rework requested by workflow hook"))
        transitions: dict[TaskTransition, Callable[[], None]] = {
            TaskTransition.START: lambda: tasks.start_task(chain_id, task_id),
            TaskTransition.COMPLETE: lambda: tasks.complete_task(chain_id, task_id),
            TaskTransition.APPROVE: lambda: tasks.approve_task(chain_id, task_id),
            TaskTransition.REWORK: lambda: tasks.rework_task(chain_id, task_id, reason),
        }
        transitions[transition]()
        return HookActionResult(
            action,
            success=True,
            output=f"{transition.value} {chain_id}/{task_id}",
        )

    def _run_file_move(self, action: TransitionAction, context: HookContext) -> HookActionResult:
        source = resolve_in_project(context.project_root, action.from_path or "")
        target = resolve_in_project(context.project_root, action.to_path or "")
        if source is None or target is None:
            return HookActionResult(
                action, success=False, error="file_move paths must stay inside the project root"
            )
        if not source.exists():
            return HookActionResult(
                action, success=False, error=f"Source not found: {action.from_path}"
            )
        target.parent.mkdir(parents=True, exist_ok=True)
        shutil.move(str(source), str(target))
        return HookActionResult(
            action, success=True, output=f"{action.from_path} -> {action.to_path}"
        )

    def _run_custom(self, action: TransitionAction, context: HookContext) -> HookActionResult:
        handler = self._custom.get(action.handler or "")
        if handler is None:
            return HookActionResult(
                action, success=False, error=f"Unknown custom handler: {action.handler}"
            )
        return HookActionResult(action, success=True, output=handler(action, context))
