"""
Domain layer for choreguard.

Contains the policy rules, lookup tables and state models with no
dependencies on adapters or orchestration.
"""

from choreguard.domain.exceptions import (
    ConcurrentModificationError,
    ConfigurationError,
    GateNotSatisfiedError,
    HookExecutionError,
    SpawnRejectedError,
    TemplateError,
    TemplateValidationError,
    WorkflowError,
    WorkflowNotFoundError,
    WorkflowStateError,
)
from choreguard.domain.glob import (
    compile_glob,
    match_glob,
    materialize_pattern,
    patterns_overlap,
)
from choreguard.domain.governance import (
    GovernanceChecker,
    GovernanceSchema,
    MutationAction,
    MutationCheck,
    MutationRule,
    Policy,
    RoleRules,
    check_mutation,
    check_mutation_for_role,
    check_mutations,
)
from choreguard.domain.interfaces import (
    CommandRunnerInterface,
    LLMProviderInterface,
    LockStoreInterface,
    RoleStoreInterface,
    SessionStoreInterface,
    TaskLifecycleInterface,
    TemplateStoreInterface,
    WorkflowStoreInterface,
)
from choreguard.domain.locks import FileLock, LockResult, LockTable, ScopeConflict
from choreguard.domain.models import (
    ChatResponse,
    ChatRole,
    Message,
    StopReason,
    ToolCall,
    ToolSpec,
    Usage,
)
from choreguard.domain.roles import Role, can_spawn_role
from choreguard.domain.session import (
    LoopResult,
    LoopStopReason,
    SessionContext,
    SessionOutcome,
    SessionState,
)
from choreguard.domain.tools import (
    BUILTIN_TOOLS,
    STAGE_TOOL_MATRIX,
    ToolDefinition,
    ToolResult,
)
from choreguard.domain.workflow import (
    GateType,
    StageGate,
    StageStatus,
    StageType,
    TransitionAction,
    TransitionActionType,
    Workflow,
    WorkflowStage,
    WorkflowStatus,
    WorkflowTemplate,
    WorkflowTemplateStage,
)

__all__ = [
    # Exceptions
    "ConcurrentModificationError",
    "ConfigurationError",
    "GateNotSatisfiedError",
    "HookExecutionError",
    "SpawnRejectedError",
    "TemplateError",
    "TemplateValidationError",
    "WorkflowError",
    "WorkflowNotFoundError",
    "WorkflowStateError",
    # Glob
    "compile_glob",
    "match_glob",
    "materialize_pattern",
    "patterns_overlap",
    # Governance
    "GovernanceChecker",
    "GovernanceSchema",
    "MutationAction",
    "MutationCheck",
    "MutationRule",
    "Policy",
    "RoleRules",
    "check_mutation",
    "check_mutation_for_role",
    "check_mutations",
    # Interfaces
    "CommandRunnerInterface",
    "LLMProviderInterface",
    "LockStoreInterface",
    "RoleStoreInterface",
    "SessionStoreInterface",
    "TaskLifecycleInterface",
    "TemplateStoreInterface",
    "WorkflowStoreInterface",
    # Locks
    "FileLock",
    "LockResult",
    "LockTable",
    "ScopeConflict",
    # Conversation
    "ChatResponse",
    "ChatRole",
    "Message",
    "StopReason",
    "ToolCall",
    "ToolSpec",
    "Usage",
    # Roles and sessions
    "Role",
    "can_spawn_role",
    "LoopResult",
    "LoopStopReason",
    "SessionContext",
    "SessionOutcome",
    "SessionState",
    # Tools
    "BUILTIN_TOOLS",
    "STAGE_TOOL_MATRIX",
    "ToolDefinition",
    "ToolResult",
    # Workflow
    "GateType",
    "StageGate",
    "StageStatus",
    "StageType",
    "TransitionAction",
    "TransitionActionType",
    "Workflow",
    "WorkflowStage",
    "WorkflowStatus",
    "WorkflowTemplate",
    "WorkflowTemplateStage",
]
