"""
Domain interfaces (Ports).

These abstract base classes define the contracts the orchestration core
consumes. Adapters live in ``choreguard.infrastructure``; tests supply
in-memory versions.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from pathlib import Path
from typing import TYPE_CHECKING, TypeVar

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence

    from choreguard.domain.locks import LockTable
    from choreguard.domain.models import (
        ChatResponse,
        CommandResult,
        Message,
        TaskInfo,
        ToolSpec,
    )
    from choreguard.domain.roles import Role
    from choreguard.domain.session import SessionState
    from choreguard.domain.workflow import Workflow, WorkflowTemplate

T = TypeVar("T")


class LLMProviderInterface(ABC):
    """
    Port for a chat-completion backend.

    Implementations translate the neutral message/tool shapes to one SDK.
    Any exception raised by ``chat`` is fatal to the calling session; retry
    policies wrap the provider, not the loop.
    """

    @property
    @abstractmethod
    def model(self) -> str:
        """Model identifier used for requests."""

    @abstractmethod
    def chat(
        self, messages: Sequence["Message"], tools: Sequence["ToolSpec"]
    ) -> "ChatResponse":
        """
        Send the conversation and the visible tool set to the model.

        Args:
            messages: Full conversation history, system message first
            tools: Tools the model may call this turn (may be empty)

        Returns:
            The model's reply, requested tool calls, stop reason and usage
        """


class TaskLifecycleInterface(ABC):
    """
    Port for the external task/chain collaborator.

    The runtime invokes these transitions; it never owns task persistence.
    """

    @abstractmethod
    def start_task(self, chain_id: str, task_id: str) -> None:
        pass

    @abstractmethod
    def complete_task(
        self, chain_id: str, task_id: str, notes: str | None = None
    ) -> None:
        pass

    @abstractmethod
    def approve_task(self, chain_id: str, task_id: str) -> None:
        pass

    @abstractmethod
    def rework_task(self, chain_id: str, task_id: str, reason: str) -> None:
        pass

    @abstractmethod
    def get_tasks_for_chain(self, chain_id: str) -> list["TaskInfo"]:
        pass

    @abstractmethod
    def get_chain_status(self, chain_id: str) -> str:
        """Return the chain status; ``"done"`` once every task is approved."""


class CommandRunnerInterface(ABC):
    """Port for running shell commands (hooks and verification gates)."""

    @abstractmethod
    def run(self, command: str, cwd: Path) -> "CommandResult":
        pass


class LockStoreInterface(ABC):
    """
    Port for the persisted lock table.

    ``update`` must hold an exclusive lock for the whole read-modify-write so
    concurrent top-level sessions cannot interleave.
    """

    @abstractmethod
    def load(self) -> "LockTable":
        pass

    @abstractmethod
    def update(self, mutate: Callable[["LockTable"], tuple["LockTable", T]]) -> T:
        """
        Atomically read, mutate and write back the lock table.

        Args:
            mutate: Receives the current table, returns (new table, value)

        Returns:
            The value returned by ``mutate``
        """


class WorkflowStoreInterface(ABC):
    """Port for workflow records."""

    @abstractmethod
    def next_id(self, day: str) -> str:
        """Allocate the next ``WF-YYYYMMDD-NNN`` id for ``day`` (YYYYMMDD)."""

    @abstractmethod
    def load(self, workflow_id: str) -> "Workflow | None":
        pass

    @abstractmethod
    def save(self, workflow: "Workflow", expected_version: int | None = None) -> None:
        """
        Persist a workflow, bumping its version.

        Args:
            workflow: Record to write (its ``version`` is incremented)
            expected_version: When given, the stored version must match

        Raises:
            ConcurrentModificationError: If the stored version differs
        """

    @abstractmethod
    def list(self) -> list["Workflow"]:
        pass


class SessionStoreInterface(ABC):
    """Port for session audit records."""

    @abstractmethod
    def save(self, session: "SessionState") -> None:
        pass

    @abstractmethod
    def load(self, session_id: str) -> "SessionState | None":
        pass


class RoleStoreInterface(ABC):
    """Port for configurable roles (role id -> tool ids)."""

    @abstractmethod
    def get(self, role_id: str) -> "Role | None":
        pass

    @abstractmethod
    def list(self) -> list["Role"]:
        pass


class TemplateStoreInterface(ABC):
    """Port for user-defined, versioned workflow templates."""

    @abstractmethod
    def names(self) -> list[str]:
        pass

    @abstractmethod
    def load(self, name: str, version: int | None = None) -> "WorkflowTemplate | None":
        """Load the latest version, or a specific historical version."""

    @abstractmethod
    def save(self, template: "WorkflowTemplate") -> None:
        """Publish ``template`` as its version, keeping earlier versions."""

    @abstractmethod
    def versions(self, name: str) -> list[int]:
        pass

    @abstractmethod
    def delete(self, name: str) -> bool:
        pass
