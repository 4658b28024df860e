"""
Tool executor.

Runs tool calls that the ToolCallGate has already allowed. Handlers are looked
up in a name-to-handler table. A failure becomes a ToolResult with an error,
which goes back to the model like any other result.
"""

import logging
import re
from collections.abc import Callable, Iterator, Mapping
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any

from choreguard.application.workflow_manager import WorkflowManager
from choreguard.domain.exceptions import SpawnRejectedError, WorkflowError
from choreguard.domain.glob import match_glob
from choreguard.domain.interfaces import TaskLifecycleInterface
from choreguard.domain.models import ToolCall
from choreguard.domain.paths import project_relative, resolve_in_project
from choreguard.domain.roles import can_spawn_role
from choreguard.domain.session import LoopResult, SessionContext, SessionState
from choreguard.domain.tools import ToolResult
from choreguard.domain.workflow import StageType

logger = logging.getLogger("choreguard.tools")

MAX_LISTED_FILES = 500
MAX_SEARCH_MATCHES = 100
SKIPPED_DIRS = frozenset({".git", ".choreguard", "__pycache__", "node_modules", ".venv"})

SpawnFn = Callable[[SessionContext, str], LoopResult]


@dataclass(frozen=True)
class ToolInvocation:
    """Session-side inputs a handler may need besides the call arguments."""

    context: SessionContext
    session: SessionState
    spawn: SpawnFn | None = None


_Handler = Callable[[Mapping[str, Any], ToolInvocation], ToolResult]


class ToolExecutor:
    """Execute allowed tool calls against the project and its collaborators."""

    def __init__(
        self,
        task_lifecycle: TaskLifecycleInterface | None = None,
        workflows: WorkflowManager | None = None,
    ):
        """
        Args:
            task_lifecycle: External task/chain collaborator for task tools
            workflows: Workflow manager for approval requests
        """
        self._tasks = task_lifecycle
        self._workflows = workflows
        self._handlers: dict[str, _Handler] = {
            "read_file": self._read_file,
            "write_file": self._write_file,
            "list_files": self._list_files,
            "search_files": self._search_files,
            "chain:status": self._chain_status,
            "task:status": self._task_status,
            "task:list": self._task_list,
            "task:start": self._task_start,
            "task:complete": self._task_complete,
            "task:approve": self._task_approve,
            "task:rework": self._task_rework,
            "workflow:request_approval": self._request_approval,
            "spawn_agent": self._spawn_agent,
        }

    def handles(self, name: str) -> bool:
        return name in self._handlers

    def execute(
        self,
        call: ToolCall,
        context: SessionContext,
        session: SessionState,
        spawn: SpawnFn | None = None,
    ) -> ToolResult:
        """
        Execute one tool call.

        Args:
            call: Tool call allowed by the gate
            context: Session context the call runs in
            session: Calling session (receives child session ids)
            spawn: Runs a child session; required for ``spawn_agent``

        Returns:
            ToolResult; handler errors are reported in-band
        """
        handler = self._handlers.get(call.name)
        if handler is None:
            return ToolResult(success=False, error=f"No handler for tool: {call.name}")
        try:
            return handler(call.arguments, ToolInvocation(context, session, spawn))
        except Exception as e:
            logger.warning("Tool %s failed: %s", call.name, e, exc_info=True)
            return ToolResult(success=False, error=f"{call.name} failed: {e}")

    # =========================================================================
    # FILESYSTEM
    # =========================================================================

    def _read_file(self, args: Mapping[str, Any], inv: ToolInvocation) -> ToolResult:
        path = resolve_in_project(inv.context.project_root, args["path"])
        if path is None:
            return ToolResult(
                success=False, error=f"Path {args['path']} is outside the project root"
            )
        if not path.is_file():
            return ToolResult(success=False, error=f"File not found: {args['path']}")
        return ToolResult(
            success=True, data={"path": args["path"], "content": path.read_text()}
        )

    def _write_file(self, args: Mapping[str, Any], inv: ToolInvocation) -> ToolResult:
        path = resolve_in_project(inv.context.project_root, args["path"])
        if path is None:
            return ToolResult(
                success=False, error=f"Path {args['path']} is outside the project root"
            )
        path.parent.mkdir(parents=True, exist_ok=True)
        content = str(args["content"])
        path.write_text(content)
        logger.info("Wrote %s (%d bytes)", args["path"], len(content))
        return ToolResult(success=True, data={"path": args["path"], "bytes": len(content)})

    def _list_files(self, args: Mapping[str, Any], inv: ToolInvocation) -> ToolResult:
        root = inv.context.project_root
        base = resolve_in_project(root, args.get("path", "."))
        if base is None or not base.is_dir():
            return ToolResult(success=False, error=f"Directory not found: {args.get('path')}")
        pattern = args.get("pattern")
        files: list[str] = []
        for path in _walk(base):
            relative = project_relative(root, path)
            if pattern and not match_glob(pattern, relative):
                continue
            files.append(relative)
            if len(files) >= MAX_LISTED_FILES:
                break
        return ToolResult(success=True, data={"files": sorted(files)})

    def _search_files(self, args: Mapping[str, Any], inv: ToolInvocation) -> ToolResult:
        root = inv.context.project_root
        try:
            regex = re.compile(args["query"])
        except re.error as e:
            return ToolResult(success=False, error=f"Invalid search pattern: {e}")
        base = resolve_in_project(root, args.get("path", "."))
        if base is None or not base.is_dir():
            return ToolResult(success=False, error=f"Directory not found: {args.get('path')}")
        pattern = args.get("pattern")

        matches: list[dict[str, Any]] = []
        for path in _walk(base):
            relative = project_relative(root, path)
            if pattern and not match_glob(pattern, relative):
                continue
            try:
                lines = path.read_text().splitlines()
            except (UnicodeDecodeError, OSError):
                continue
            for number, line in enumerate(lines, start=1):
                if regex.search(line):
                    matches.append({"path": relative, "line": number, "text": line.strip()})
                    if len(matches) >= MAX_SEARCH_MATCHES:
                        return ToolResult(
                            success=True, data={"matches": matches, "truncated": True}
                        )
        return ToolResult(success=True, data={"matches": matches, "truncated": False})

    # =========================================================================
    # TASKS AND CHAINS
    # =========================================================================

    def _require_tasks(self) -> TaskLifecycleInterface:
        if self._tasks is None:
            raise RuntimeError("No task lifecycle collaborator configured")
        return self._tasks

    def _chain_status(self, args: Mapping[str, Any], inv: ToolInvocation) -> ToolResult:
        tasks = self._require_tasks()
        chain_id = args["chain_id"]
        return ToolResult(
            success=True,
            data={
                "chain_id": chain_id,
                "status": tasks.get_chain_status(chain_id),
                "tasks": [asdict(t) for t in tasks.get_tasks_for_chain(chain_id)],
            },
        )

    def _task_status(self, args: Mapping[str, Any], inv: ToolInvocation) -> ToolResult:
        tasks = self._require_tasks()
        for task in tasks.get_tasks_for_chain(args["chain_id"]):
            if task.id == args["task_id"]:
                return ToolResult(success=True, data=asdict(task))
        return ToolResult(
            success=False, error=f"Task not found: {args['chain_id']}/{args['task_id']}"
        )

    def _task_list(self, args: Mapping[str, Any], inv: ToolInvocation) -> ToolResult:
        tasks = self._require_tasks().get_tasks_for_chain(args["chain_id"])
        return ToolResult(success=True, data={"tasks": [asdict(t) for t in tasks]})

    def _task_start(self, args: Mapping[str, Any], inv: ToolInvocation) -> ToolResult:
        self._require_tasks().start_task(args["chain_id"], args["task_id"])
        return _task_moved(args, "in_progress")

    def _task_complete(self, args: Mapping[str, Any], inv: ToolInvocation) -> ToolResult:
        self._require_tasks().complete_task(args["chain_id"], args["task_id"], args.get("notes"))
        return _task_moved(args, "review")

    def _task_approve(self, args: Mapping[str, Any], inv: ToolInvocation) -> ToolResult:
        self._require_tasks().approve_task(args["chain_id"], args["task_id"])
        return _task_moved(args, "done")

    def _task_rework(self, args: Mapping[str, Any], inv: ToolInvocation) -> ToolResult:
        self._require_tasks().rework_task(args["chain_id"], args["task_id"], args["reason"])
        return _task_moved(args, "in_progress")

    # =========================================================================
    # WORKFLOW AND SESSIONS
    # =========================================================================

    def _request_approval(self, args: Mapping[str, Any], inv: ToolInvocation) -> ToolResult:
        workflow_id = args.get("workflow_id") or inv.context.workflow_id
        if not workflow_id:
            return ToolResult(success=False, error="Session is not attached to a workflow")
        if self._workflows is None:
            return ToolResult(success=False, error="Workflow manager is not configured")
        try:
            message = self._workflows.request_gate_prompt(workflow_id)
        except WorkflowError as e:
            return ToolResult(success=False, error=str(e))
        return ToolResult(
            success=True,
            data={
                "workflow_id": workflow_id,
                "message_id": message.id,
                "prompt": message.content,
                "summary": args.get("summary"),
            },
        )

    def _spawn_agent(self, args: Mapping[str, Any], inv: ToolInvocation) -> ToolResult:
        if inv.spawn is None:
            return ToolResult(success=False, error="Nested sessions are not available here")
        try:
            child_context = self._child_context(args, inv)
        except SpawnRejectedError as e:
            logger.warning("Spawn rejected in session %s: %s", inv.session.id, e)
            return ToolResult(success=False, error=str(e))

        logger.info(
            "Session %s spawning %s child at depth %d",
            inv.session.id,
            child_context.role,
            child_context.nesting_depth,
        )
        result = inv.spawn(child_context, args["task"])
        inv.session.child_session_ids.append(result.session.id)
        return ToolResult(
            success=result.success,
            data={
                "success": result.success,
                "session_id": result.session.id,
                "iterations": result.iterations,
                "tokens_used": result.session.token_usage.total,
                "error": result.error,
                "summary": result.summary,
            },
            error=result.error,
        )

    def _child_context(self, args: Mapping[str, Any], inv: ToolInvocation) -> SessionContext:
        context = inv.context
        role = args["role"]
        if not can_spawn_role(context.role, role):
            raise SpawnRejectedError(f"Role '{context.role}' cannot spawn '{role}'")
        if not context.can_nest:
            raise SpawnRejectedError(
                f"Maximum nesting depth reached ({context.nesting_depth}/"
                f"{context.max_nesting_depth})"
            )
        stage = args.get("stage_type")
        return context.child(
            role=role,
            parent_session_id=inv.session.id,
            parent_context=args["task"],
            stage_type=StageType(stage) if stage else None,
            chain_id=args.get("chain_id"),
            task_id=args.get("task_id"),
        )


def _task_moved(args: Mapping[str, Any], status: str) -> ToolResult:
    return ToolResult(
        success=True,
        data={"chain_id": args["chain_id"], "task_id": args["task_id"], "status": status},
    )


def _walk(base: Path) -> Iterator[Path]:
    for path in sorted(base.rglob("*")):
        if any(part in SKIPPED_DIRS for part in path.relative_to(base).parts):
            continue
        if path.is_file():
            yield path
