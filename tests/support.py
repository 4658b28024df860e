"""Test doubles and builders shared across the test suite."""

from datetime import datetime, timedelta
from pathlib import Path

from choreguard.domain.interfaces import CommandRunnerInterface, TaskLifecycleInterface
from choreguard.domain.models import (
    ChatResponse,
    CommandResult,
    StopReason,
    TaskInfo,
    ToolCall,
    Usage,
)
from choreguard.domain.workflow import (
    GateType,
    StageType,
    WorkflowTemplate,
    WorkflowTemplateStage,
)

START = datetime(2025, 1, 15, 9, 30, 0)


class FakeClock:
    """Deterministic clock that only moves when told to."""

    def __init__(self, now: datetime = START):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        self.now += timedelta(**kwargs)


class FakeCommandRunner(CommandRunnerInterface):
    """Records commands; exit codes are looked up by command text (default 0)."""

    def __init__(self, exit_codes: dict[str, int] | None = None):
        self.exit_codes = dict(exit_codes or {})
        self.commands: list[str] = []

    def run(self, command: str, cwd: Path) -> CommandResult:
        self.commands.append(command)
        code = self.exit_codes.get(command, 0)
        return CommandResult(
            exit_code=code,
            stdout=f"ran {command}",
            stderr="boom" if code else "",
        )


class FakeTaskLifecycle(TaskLifecycleInterface):
    """In-memory task board keyed by (chain_id, task_id)."""

    def __init__(self) -> None:
        self.tasks: dict[tuple[str, str], TaskInfo] = {}
        self.chain_status: dict[str, str] = {}
        self.calls: list[tuple[str, ...]] = []

    def add(self, chain_id: str, task_id: str, status: str = "todo") -> None:
        self.tasks[(chain_id, task_id)] = TaskInfo(task_id, chain_id, status, f"Task {task_id}")

    def _move(self, chain_id: str, task_id: str, status: str) -> None:
        key = (chain_id, task_id)
        if key not in self.tasks:
            raise KeyError(f"Unknown task {chain_id}/{task_id}")
        self.tasks[key] = TaskInfo(task_id, chain_id, status, self.tasks[key].title)

    def start_task(self, chain_id: str, task_id: str) -> None:
        self.calls.append(("start", chain_id, task_id))
        self._move(chain_id, task_id, "in_progress")

    def complete_task(self, chain_id: str, task_id: str, notes: str | None = None) -> None:
        self.calls.append(("complete", chain_id, task_id))
        self._move(chain_id, task_id, "review")

    def approve_task(self, chain_id: str, task_id: str) -> None:
        self.calls.append(("approve", chain_id, task_id))
        self._move(chain_id, task_id, "done")

    def rework_task(self, chain_id: str, task_id: str, reason: str) -> None:
        self.calls.append(("rework", chain_id, task_id, reason))
        self._move(chain_id, task_id, "in_progress")

    def get_tasks_for_chain(self, chain_id: str) -> list[TaskInfo]:
        return [t for (chain, _), t in sorted(self.tasks.items()) if chain == chain_id]

    def get_chain_status(self, chain_id: str) -> str:
        return self.chain_status.get(chain_id, "in_progress")


def tool_response(*calls: ToolCall, content: str = "") -> ChatResponse:
    """A model turn requesting ``calls``."""
    return ChatResponse(
        content=content,
        stop_reason=StopReason.TOOL_USE,
        tool_calls=calls,
        usage=Usage(10, 5),
    )


def final_response(content: str = "Done.") -> ChatResponse:
    """A model turn that ends the session."""
    return ChatResponse(content=content, stop_reason=StopReason.END_TURN, usage=Usage(8, 4))


def three_stage_template(
    request: WorkflowTemplateStage | None = None,
    implementation: WorkflowTemplateStage | None = None,
    review: WorkflowTemplateStage | None = None,
) -> WorkflowTemplate:
    """request -> implementation -> review, every gate human_approval by default."""
    return WorkflowTemplate(
        name="three-stage",
        stages=(
            request
            or WorkflowTemplateStage("request", StageType.REQUEST, GateType.HUMAN_APPROVAL),
            implementation
            or WorkflowTemplateStage(
                "implementation", StageType.IMPLEMENTATION, GateType.HUMAN_APPROVAL
            ),
            review or WorkflowTemplateStage("review", StageType.REVIEW, GateType.HUMAN_APPROVAL),
        ),
    )
