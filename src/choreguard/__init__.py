"""
ChoreGuard: governed agent orchestration for a shared codebase.

Coordinates several LLM agents working on one project: file-scope locks keep
concurrent chains apart, governance rules decide who may mutate what, a
stage-aware tool catalog limits what each agent sees, and workflows walk a
request through gated stages.

Example:
    from pathlib import Path
    from choreguard import Runtime, SessionContext
    from choreguard.infrastructure import ProviderRegistry

    runtime = Runtime.from_project(Path("."))
    provider = ProviderRegistry.create("ollama", model="qwen2.5-coder:7b")
    loop = runtime.agent_loop(provider)
    result = loop.run(SessionContext(project_root=runtime.project_root, role="control"),
                      "Summarise the open tasks")
"""

# Application layer (orchestration)
from choreguard.application import (
    AgentLoop,
    LockCoordinator,
    TemplateManager,
    ToolCallGate,
    ToolCatalog,
    ToolExecutor,
    TransitionHookRunner,
    WorkflowManager,
)

# Domain models and rules
from choreguard.domain import (
    GateType,
    GovernanceSchema,
    LoopResult,
    LoopStopReason,
    MutationAction,
    Policy,
    SessionContext,
    SessionOutcome,
    SessionState,
    StageType,
    Workflow,
    WorkflowStatus,
    WorkflowTemplate,
)

# Domain exceptions
from choreguard.domain.exceptions import (
    ConcurrentModificationError,
    ConfigurationError,
    GateNotSatisfiedError,
    HookExecutionError,
    WorkflowError,
)
from choreguard.runtime import Runtime

__version__ = "0.1.0"

__all__ = [
    "__version__",
    # Application
    "AgentLoop",
    "LockCoordinator",
    "TemplateManager",
    "ToolCallGate",
    "ToolCatalog",
    "ToolExecutor",
    "TransitionHookRunner",
    "WorkflowManager",
    "Runtime",
    # Domain
    "GateType",
    "GovernanceSchema",
    "LoopResult",
    "LoopStopReason",
    "MutationAction",
    "Policy",
    "SessionContext",
    "SessionOutcome",
    "SessionState",
    "StageType",
    "Workflow",
    "WorkflowStatus",
    "WorkflowTemplate",
    # Exceptions
    "ConcurrentModificationError",
    "ConfigurationError",
    "GateNotSatisfiedError",
    "HookExecutionError",
    "WorkflowError",
]
