"""
Command line front end.

Usage:
    choreguard session start --role impl --chain CH-1 "Implement the parser"
    choreguard lock acquire CH-1 "src/parser/**" --owner alice
    choreguard governance check src/app.py --action modify --role impl
    choreguard workflow create REQ-12 --template standard
    choreguard workflow approve WF-20250101-001 --by alice
"""

from __future__ import annotations

import logging
import signal
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import timedelta
from pathlib import Path
from typing import NoReturn

import click

from choreguard.console import (
    console,
    print_error,
    print_failure,
    print_locks,
    print_session_result,
    print_success,
    print_template,
    print_workflow,
    print_workflows,
)
from choreguard.domain.exceptions import (
    ConfigurationError,
    TemplateError,
    WorkflowError,
)
from choreguard.domain.governance import MutationAction, check_mutation_for_role
from choreguard.domain.roles import AGENT_ROLES, CONTROL
from choreguard.domain.session import LoopStopReason, SessionContext
from choreguard.domain.workflow import StageType, WorkflowStatus
from choreguard.infrastructure import ProviderRegistry
from choreguard.logging_setup import setup_logging
from choreguard.runtime import Runtime

logger = logging.getLogger("choreguard.cli")

# Stop reasons that fail the command, by strictness.
FAILING_STOP_REASONS = {
    False: frozenset({LoopStopReason.ERROR}),
    True: frozenset({LoopStopReason.ERROR, LoopStopReason.MAX_ITERATIONS}),
}


def _runtime(ctx: click.Context) -> Runtime:
    return ctx.obj


def _fail(message: str, hint: str | None = None) -> NoReturn:
    print_error(message, hint)
    raise SystemExit(1)


def _interrupt(signum: int, _frame: object) -> None:
    logger.warning("Caught %s", signal.Signals(signum).name)
    raise KeyboardInterrupt


@contextmanager
def _sigterm_interrupts() -> Iterator[None]:
    """Deliver SIGTERM as KeyboardInterrupt so running sessions are saved."""
    previous = signal.signal(signal.SIGTERM, _interrupt)
    try:
        yield
    finally:
        signal.signal(signal.SIGTERM, previous)


@click.group()
@click.option(
    "--project-root",
    default=".",
    type=click.Path(file_okay=False, path_type=Path),
    help="Project directory (default: current directory)",
)
@click.option(
    "-v",
    "--verbose",
    is_flag=True,
    help="Enable verbose (DEBUG) logging to console",
)
@click.option(
    "--log-file",
    default=None,
    type=click.Path(),
    help="Path to log file",
)
@click.pass_context
def cli(ctx: click.Context, project_root: Path, verbose: bool, log_file: str | None) -> None:
    """Governed agent orchestration for a shared codebase."""
    setup_logging(verbose=verbose, log_file=log_file)
    try:
        ctx.obj = Runtime.from_project(project_root)
    except ConfigurationError as e:
        _fail(str(e), hint="Check .choreguard/config.yaml")


# =============================================================================
# SESSION
# =============================================================================


@cli.group()
def session() -> None:
    """Run agent sessions."""


@session.command("start")
@click.argument("prompt")
@click.option(
    "--role",
    type=click.Choice(sorted(AGENT_ROLES)),
    default=CONTROL,
    show_default=True,
    help="Agent role the session runs as",
)
@click.option("--role-id", default=None, help="Configurable role id for tool selection")
@click.option("--provider", default=None, help="Provider name (default from config)")
@click.option("--model", default=None, help="Model override")
@click.option("--chain", "chain_id", default=None, help="Chain the session works on")
@click.option("--task", "task_id", default=None, help="Task the session works on")
@click.option(
    "--stage",
    type=click.Choice([s.value for s in StageType]),
    default=None,
    help="Workflow stage type for tool filtering",
)
@click.option("--workflow", "workflow_id", default=None, help="Workflow to attach to")
@click.option("--dry-run", is_flag=True, help="Validate tool calls without executing them")
@click.option("--max-iterations", type=int, default=None, help="Iteration limit")
@click.option("--strict", is_flag=True, help="Fail when the iteration limit is hit")
@click.pass_context
def session_start(
    ctx: click.Context,
    prompt: str,
    role: str,
    role_id: str | None,
    provider: str | None,
    model: str | None,
    chain_id: str | None,
    task_id: str | None,
    stage: str | None,
    workflow_id: str | None,
    dry_run: bool,
    max_iterations: int | None,
    strict: bool,
) -> None:
    """Start an agent session with PROMPT as the first instruction."""
    runtime = _runtime(ctx)
    settings = runtime.settings

    stage_type = StageType(stage) if stage else None
    if workflow_id:
        try:
            workflow = runtime.workflows.get(workflow_id)
        except WorkflowError as e:
            _fail(str(e))
        current = workflow.stage
        if current is not None:
            stage_type = stage_type or current.type
            role_id = role_id or current.role_id
            chain_id = chain_id or current.chain_id

    provider_name = provider or settings.provider
    model_name = model or settings.model
    provider_config = {"model": model_name} if model_name else {}
    try:
        llm = ProviderRegistry.create(provider_name, **provider_config)
    except (KeyError, TypeError, ImportError) as e:
        _fail(str(e), hint=f"Available providers: {', '.join(ProviderRegistry.available())}")

    context = SessionContext(
        project_root=runtime.project_root,
        role=role,
        role_id=role_id,
        stage_type=stage_type,
        chain_id=chain_id,
        task_id=task_id,
        workflow_id=workflow_id,
        model=model_name,
        max_nesting_depth=settings.max_nesting_depth,
        max_iterations=max_iterations or settings.max_iterations,
        dry_run=dry_run,
    )
    logger.debug("Starting %s session with provider %s", role, provider_name)
    try:
        with _sigterm_interrupts():
            result = runtime.agent_loop(llm).run(context, prompt)
    except KeyboardInterrupt:
        print_error("Session interrupted", hint="The session was saved as interrupted")
        raise SystemExit(130) from None
    print_session_result(result)

    if result.stop_reason in FAILING_STOP_REASONS[strict or settings.strict]:
        raise SystemExit(1)


# =============================================================================
# LOCKS
# =============================================================================


@cli.group()
def lock() -> None:
    """Manage chain file-scope locks."""


@lock.command("acquire")
@click.argument("chain_id")
@click.argument("patterns", nargs=-1, required=True)
@click.option("--owner", required=True, help="Agent or user holding the lock")
@click.pass_context
def lock_acquire(ctx: click.Context, chain_id: str, patterns: tuple[str, ...], owner: str) -> None:
    result = _runtime(ctx).locks.acquire(chain_id, patterns, owner)
    if not result.success:
        print_failure("Lock not acquired", result.error)
        raise SystemExit(1)
    print_success(f"Locked {len(patterns)} pattern(s) for {chain_id}")


@lock.command("release")
@click.argument("chain_id")
@click.pass_context
def lock_release(ctx: click.Context, chain_id: str) -> None:
    if not _runtime(ctx).locks.release(chain_id):
        _fail(f"Chain {chain_id} holds no lock")
    print_success(f"Released lock of {chain_id}")


@lock.command("extend")
@click.argument("chain_id")
@click.option("--hours", type=float, default=None, help="New lifetime from now")
@click.pass_context
def lock_extend(ctx: click.Context, chain_id: str, hours: float | None) -> None:
    duration = timedelta(hours=hours) if hours is not None else None
    if not _runtime(ctx).locks.extend(chain_id, duration):
        _fail(f"Chain {chain_id} holds no lock")
    print_success(f"Extended lock of {chain_id}")


@lock.command("status")
@click.pass_context
def lock_status(ctx: click.Context) -> None:
    print_locks(_runtime(ctx).locks.get_all_locks())


# =============================================================================
# GOVERNANCE
# =============================================================================


@cli.group()
def governance() -> None:
    """Inspect governance rules."""


@governance.command("check")
@click.argument("path")
@click.option(
    "--action",
    type=click.Choice([a.value for a in MutationAction]),
    default=MutationAction.MODIFY.value,
    show_default=True,
)
@click.option("--role", default=CONTROL, show_default=True)
@click.pass_context
def governance_check(ctx: click.Context, path: str, action: str, role: str) -> None:
    """Show the policy governing a mutation of PATH. Exits 1 unless allowed."""
    runtime = _runtime(ctx)
    governance_file = runtime.settings.governance_path(runtime.project_root)
    if not governance_file.exists():
        console.print(f"No governance file at {governance_file}; every mutation is denied")
    schema = runtime.governance

    check = check_mutation_for_role(path, MutationAction(action), role, schema)
    line = f"{check.policy.value}: {action} {path} as {role}"
    if check.reason:
        line += f" ({check.reason})"
    if check.allowed:
        print_success(line)
        return
    print_failure(line)
    raise SystemExit(1)


# =============================================================================
# WORKFLOWS
# =============================================================================


@cli.group()
def workflow() -> None:
    """Create and drive workflows."""


@workflow.command("create")
@click.argument("request_id")
@click.option("--template", "template_name", default="standard", show_default=True)
@click.option("--version", type=int, default=None, help="Template version")
@click.option("--message", default=None, help="Initial human message")
@click.pass_context
def workflow_create(
    ctx: click.Context,
    request_id: str,
    template_name: str,
    version: int | None,
    message: str | None,
) -> None:
    runtime = _runtime(ctx)
    try:
        template = runtime.templates.get(template_name, version)
        created = runtime.workflows.create(request_id, template, message)
    except (TemplateError, WorkflowError) as e:
        _fail(str(e))
    print_workflow(created)


@workflow.command("advance")
@click.argument("workflow_id")
@click.pass_context
def workflow_advance(ctx: click.Context, workflow_id: str) -> None:
    try:
        result = _runtime(ctx).workflows.advance(workflow_id)
    except WorkflowError as e:
        _fail(str(e))
    for warning in result.warnings:
        console.print(f"[yellow]warning:[/yellow] {warning.error}")
    print_workflow(result.workflow)


@workflow.command("approve")
@click.argument("workflow_id")
@click.option("--by", "approved_by", required=True, help="Who approves the gate")
@click.pass_context
def workflow_approve(ctx: click.Context, workflow_id: str, approved_by: str) -> None:
    workflows = _runtime(ctx).workflows
    try:
        current = workflows.get(workflow_id)
        result = workflows.satisfy_gate(workflow_id, current.current_stage, approved_by)
    except WorkflowError as e:
        _fail(str(e))
    print_workflow(result.workflow)


@workflow.command("status")
@click.argument("workflow_id")
@click.pass_context
def workflow_status(ctx: click.Context, workflow_id: str) -> None:
    try:
        print_workflow(_runtime(ctx).workflows.get(workflow_id))
    except WorkflowError as e:
        _fail(str(e))


@workflow.command("list")
@click.option(
    "--status",
    type=click.Choice([s.value for s in WorkflowStatus]),
    default=None,
)
@click.pass_context
def workflow_list(ctx: click.Context, status: str | None) -> None:
    wanted = WorkflowStatus(status) if status else None
    print_workflows(_runtime(ctx).workflows.list(status=wanted))


def _status_command(name: str, help_text: str) -> None:
    @workflow.command(name, help=help_text)
    @click.argument("workflow_id")
    @click.pass_context
    def command(ctx: click.Context, workflow_id: str) -> None:
        try:
            updated = getattr(_runtime(ctx).workflows, name)(workflow_id)
        except WorkflowError as e:
            _fail(str(e))
        print_workflow(updated)


_status_command("pause", "Pause an active workflow.")
_status_command("resume", "Resume a paused workflow.")
_status_command("cancel", "Cancel a workflow.")


# =============================================================================
# TEMPLATES
# =============================================================================


@cli.group()
def template() -> None:
    """Inspect workflow templates."""


@template.command("list")
@click.pass_context
def template_list(ctx: click.Context) -> None:
    for item in _runtime(ctx).templates.list():
        suffix = " (built-in)" if item.builtin else f" v{item.version}"
        console.print(f"{item.name}{suffix}  [dim]{item.description or ''}[/dim]")


@template.command("show")
@click.argument("name")
@click.option("--version", type=int, default=None)
@click.pass_context
def template_show(ctx: click.Context, name: str, version: int | None) -> None:
    try:
        print_template(_runtime(ctx).templates.get(name, version))
    except TemplateError as e:
        _fail(str(e))


def main() -> None:
    cli()


if __name__ == "__main__":
    main()
