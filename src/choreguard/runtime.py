"""
Composition root.

Builds the coordinators and managers for one project from explicit
dependencies. Every CLI invocation creates its own Runtime; nothing here is
module-level state.
"""

from __future__ import annotations

import logging
from datetime import timedelta
from functools import cached_property
from pathlib import Path

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
from choreguard.config import Settings, load_settings
from choreguard.domain.governance import GovernanceSchema
from choreguard.domain.interfaces import (
    CommandRunnerInterface,
    LLMProviderInterface,
    TaskLifecycleInterface,
)
from choreguard.infrastructure import (
    FilesystemLockStore,
    FilesystemRoleStore,
    FilesystemSessionStore,
    FilesystemTemplateStore,
    FilesystemWorkflowStore,
    RetryingProvider,
    SubprocessCommandRunner,
    load_governance_schema,
)

logger = logging.getLogger("choreguard.runtime")


class Runtime:
    """Filesystem-backed services for one project root."""

    def __init__(
        self,
        project_root: Path,
        settings: Settings,
        task_lifecycle: TaskLifecycleInterface | None = None,
        command_runner: CommandRunnerInterface | None = None,
    ):
        self.project_root = project_root.resolve()
        self.settings = settings
        self.task_lifecycle = task_lifecycle
        self.command_runner = command_runner or SubprocessCommandRunner()
        self.lock_store = FilesystemLockStore.for_project(self.project_root)
        self.workflow_store = FilesystemWorkflowStore.for_project(self.project_root)
        self.session_store = FilesystemSessionStore.for_project(self.project_root)
        self.template_store = FilesystemTemplateStore.for_project(self.project_root)
        self.role_store = FilesystemRoleStore.for_project(self.project_root)

    @classmethod
    def from_project(cls, project_root: Path, **kwargs) -> Runtime:
        return cls(project_root, load_settings(project_root), **kwargs)

    @cached_property
    def locks(self) -> LockCoordinator:
        return LockCoordinator(
            self.lock_store, ttl=timedelta(hours=self.settings.lock_ttl_hours)
        )

    @cached_property
    def governance(self) -> GovernanceSchema:
        """Loaded governance rules. Without a governance file every mutation is denied."""
        path = self.settings.governance_path(self.project_root)
        if not path.exists():
            logger.warning("No governance file at %s; every mutation is denied", path)
        return load_governance_schema(path)

    @cached_property
    def hook_runner(self) -> TransitionHookRunner:
        return TransitionHookRunner(
            self.project_root, self.command_runner, self.task_lifecycle
        )

    @cached_property
    def workflows(self) -> WorkflowManager:
        return WorkflowManager(
            self.project_root,
            self.workflow_store,
            self.hook_runner,
            self.command_runner,
            task_lifecycle=self.task_lifecycle,
        )

    @cached_property
    def templates(self) -> TemplateManager:
        return TemplateManager(self.template_store)

    @cached_property
    def catalog(self) -> ToolCatalog:
        return ToolCatalog()

    def gate(self) -> ToolCallGate:
        return ToolCallGate(
            self.catalog,
            governance=self.governance,
            locks=self.locks,
            role_store=self.role_store,
        )

    def agent_loop(
        self, provider: LLMProviderInterface, system_prompt: str | None = None
    ) -> AgentLoop:
        """Agent loop for one session; transient provider errors are retried."""
        if self.settings.max_retries:
            provider = RetryingProvider(provider, max_retries=self.settings.max_retries)
        executor = ToolExecutor(task_lifecycle=self.task_lifecycle, workflows=self.workflows)
        return AgentLoop(
            provider,
            self.gate(),
            executor,
            self.session_store,
            workflows=self.workflows,
            system_prompt=system_prompt,
        )
