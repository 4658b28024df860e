"""
Application layer for choreguard.

Orchestrates domain rules against the ports: lock coordination, tool
visibility and gating, workflow transitions and the agentic loop.
"""

from choreguard.application.agent_loop import AgentLoop
from choreguard.application.governance_gate import ToolCallGate
from choreguard.application.hook_runner import ON_ENTER, ON_EXIT, TransitionHookRunner
from choreguard.application.lock_coordinator import LockCoordinator
from choreguard.application.template_manager import TemplateManager
from choreguard.application.tool_catalog import ToolCatalog
from choreguard.application.tool_executor import ToolExecutor
from choreguard.application.workflow_manager import (
    AdvanceResult,
    ChainCompletionResult,
    WorkflowManager,
)

__all__ = [
    "AdvanceResult",
    "ChainCompletionResult",
    "AgentLoop",
    "LockCoordinator",
    "ON_ENTER",
    "ON_EXIT",
    "TemplateManager",
    "ToolCallGate",
    "ToolCatalog",
    "ToolExecutor",
    "TransitionHookRunner",
    "WorkflowManager",
]
