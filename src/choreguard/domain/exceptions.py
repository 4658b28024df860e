"""
Domain exceptions.

Governance denials and lock conflicts are ordinary results and are NOT
raised; the exceptions here cover rule violations that abort an operation.
"""

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from choreguard.domain.workflow import HookRunResult


class ConfigurationError(Exception):
    """Raised when a configuration or policy file is invalid."""


class WorkflowError(Exception):
    """Base class for workflow state machine failures."""


class WorkflowNotFoundError(WorkflowError):
    def __init__(self, workflow_id: str):
        super().__init__(f"Workflow not found: {workflow_id}")
        self.workflow_id = workflow_id


class WorkflowStateError(WorkflowError):
    """Raised when an operation is not valid in the workflow's current state."""


class GateNotSatisfiedError(WorkflowError):
    """
    Raised when Advance is attempted before the current gate is satisfied.

    The workflow is left untouched.
    """

    def __init__(self, workflow_id: str, stage_index: int, reason: str):
        """
        Args:
            workflow_id: Workflow that could not advance
            stage_index: Index of the stage whose gate blocked
            reason: Human-readable explanation
        """
        super().__init__(f"Gate not satisfied for {workflow_id} stage {stage_index}: {reason}")
        self.workflow_id = workflow_id
        self.stage_index = stage_index
        self.reason = reason


class HookExecutionError(WorkflowError):
    """
    Raised when a blocking transition hook action fails.

    The enclosing Create/Advance aborts before any stage status is committed.
    """

    def __init__(self, message: str, result: "HookRunResult"):
        """
        Args:
            message: Human-readable error message
            result: Results of every action run up to and including the failure
        """
        super().__init__(message)
        self.result = result


class ConcurrentModificationError(WorkflowError):
    """Raised when a version-checked workflow write finds a newer record."""

    def __init__(self, workflow_id: str, expected: int, actual: int):
        super().__init__(
            f"Workflow {workflow_id} was modified concurrently "
            f"(expected version {expected}, found {actual})"
        )
        self.workflow_id = workflow_id
        self.expected = expected
        self.actual = actual


class TemplateError(Exception):
    """Raised for unknown templates or attempts to modify built-ins."""


class TemplateValidationError(TemplateError):
    def __init__(self, name: str, errors: list[str]):
        super().__init__(f"Invalid template {name}: " + "; ".join(errors))
        self.name = name
        self.errors = errors


class SpawnRejectedError(Exception):
    """Raised when a nested session would escalate privilege or nest too deep."""
