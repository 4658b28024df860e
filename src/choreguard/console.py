"""Rich console utilities for the choreguard CLI."""

from __future__ import annotations

from collections.abc import Mapping, Sequence

from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from choreguard.domain.locks import FileLock
from choreguard.domain.session import LoopResult
from choreguard.domain.workflow import Workflow, WorkflowTemplate

# Shared console instances
console = Console()
error_console = Console(stderr=True)


def print_error(message: str, hint: str | None = None) -> None:
    """Print formatted error message to stderr."""
    content = Text(f"ERROR: {message}", style="bold red")
    if hint:
        content.append(f"\n\nHint: {hint}", style="yellow")
    error_console.print(Panel(content, title="Error", border_style="red"))


def print_success(message: str) -> None:
    console.print(Panel(message, title="Success", border_style="green"))


def print_failure(message: str, details: str | None = None) -> None:
    content = Text(message, style="bold red")
    if details:
        content.append(f"\n{details}", style="dim")
    console.print(Panel(content, title="Failed", border_style="red"))


def print_session_result(result: LoopResult) -> None:
    """Print the outcome of an agent session."""
    session = result.session
    table = Table(show_header=False, box=None)
    table.add_column("Key", style="cyan")
    table.add_column("Value")

    table.add_row("Session", session.id)
    table.add_row("Outcome", session.outcome.value if session.outcome else "-")
    table.add_row("Stop reason", result.stop_reason.value)
    table.add_row("Iterations", str(result.iterations))
    table.add_row("Tool calls", str(len(session.tool_calls)))
    denied = sum(1 for r in session.tool_calls if not r.governance_result.allowed)
    if denied:
        table.add_row("Denied", str(denied))
    table.add_row("Tokens", str(session.token_usage.total))
    if session.child_session_ids:
        table.add_row("Child sessions", ", ".join(session.child_session_ids))
    if result.error:
        table.add_row("Error", Text(result.error, style="red"))
    console.print(table)

    if result.summary:
        console.print(Panel(result.summary, title="Summary", border_style="blue"))


def print_locks(locks: Mapping[str, FileLock]) -> None:
    if not locks:
        console.print("No active locks")
        return
    table = Table(title="Active locks")
    table.add_column("Chain", style="cyan")
    table.add_column("Owner")
    table.add_column("Patterns")
    table.add_column("Expires", style="dim")
    for chain_id, lock in sorted(locks.items()):
        table.add_row(
            chain_id, lock.owner, "\n".join(lock.files), lock.expires_at.isoformat()
        )
    console.print(table)


def print_workflow(workflow: Workflow) -> None:
    """Print one workflow with its stages and recent messages."""
    console.print(
        f"[bold]{workflow.id}[/bold] ({workflow.template_name}) "
        f"request={workflow.request_id} status={workflow.status.value}"
    )
    table = Table(show_header=True, box=None)
    table.add_column("#", style="cyan", width=3)
    table.add_column("Stage")
    table.add_column("Type", style="magenta")
    table.add_column("Status")
    table.add_column("Gate", style="yellow")
    for index, stage in enumerate(workflow.stages):
        marker = "*" if index == workflow.current_stage else str(index)
        gate = stage.gate.type.value + (" (satisfied)" if stage.gate.satisfied else "")
        table.add_row(marker, stage.name, stage.type.value, stage.status.value, gate)
    console.print(table)

    for message in workflow.messages[-5:]:
        console.print(f"  [dim]{message.role.value}[/dim] {message.content}")


def print_workflows(workflows: Sequence[Workflow]) -> None:
    if not workflows:
        console.print("No workflows")
        return
    table = Table()
    table.add_column("ID", style="cyan")
    table.add_column("Request")
    table.add_column("Template")
    table.add_column("Stage")
    table.add_column("Status")
    for workflow in workflows:
        stage = workflow.stage
        table.add_row(
            workflow.id,
            workflow.request_id,
            workflow.template_name,
            stage.name if stage else "-",
            workflow.status.value,
        )
    console.print(table)


def print_template(template: WorkflowTemplate) -> None:
    title = f"{template.name} v{template.version}" + (" (built-in)" if template.builtin else "")
    table = Table(title=title)
    table.add_column("Stage")
    table.add_column("Type", style="magenta")
    table.add_column("Gate", style="yellow")
    table.add_column("Hooks", style="dim")
    for stage in template.stages:
        gate = stage.gate_type.value + (" (agent-triggered)" if stage.agent_triggered else "")
        hooks = f"{len(stage.hooks.on_enter)} enter / {len(stage.hooks.on_exit)} exit"
        table.add_row(stage.name, stage.type.value, gate, hooks)
    console.print(table)
    if template.description:
        console.print(template.description, style="dim")
