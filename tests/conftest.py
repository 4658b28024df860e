"""Shared pytest fixtures for choreguard tests."""

import logging
from collections.abc import Callable, Iterator
from pathlib import Path

import pytest
from support import FakeClock, FakeCommandRunner, FakeTaskLifecycle

from choreguard.application import (
    LockCoordinator,
    ToolCallGate,
    ToolCatalog,
    TransitionHookRunner,
    WorkflowManager,
)
from choreguard.domain.governance import GovernanceSchema, MutationRule, RoleRules
from choreguard.domain.session import SessionContext
from choreguard.infrastructure.persistence import (
    InMemoryLockStore,
    InMemoryRoleStore,
    InMemorySessionStore,
    InMemoryTemplateStore,
    InMemoryWorkflowStore,
)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def command_runner() -> FakeCommandRunner:
    return FakeCommandRunner()


@pytest.fixture
def task_lifecycle() -> FakeTaskLifecycle:
    tasks = FakeTaskLifecycle()
    tasks.add("CH-1", "T-1")
    tasks.add("CH-1", "T-2", status="review")
    return tasks


@pytest.fixture
def lock_store() -> InMemoryLockStore:
    return InMemoryLockStore()


@pytest.fixture
def locks(lock_store: InMemoryLockStore, clock: FakeClock) -> LockCoordinator:
    return LockCoordinator(lock_store, clock=clock)


@pytest.fixture
def workflow_store() -> InMemoryWorkflowStore:
    return InMemoryWorkflowStore()


@pytest.fixture
def session_store() -> InMemorySessionStore:
    return InMemorySessionStore()


@pytest.fixture
def template_store() -> InMemoryTemplateStore:
    return InMemoryTemplateStore()


@pytest.fixture
def role_store() -> InMemoryRoleStore:
    return InMemoryRoleStore()


@pytest.fixture
def hook_runner(
    tmp_path: Path, command_runner: FakeCommandRunner, task_lifecycle: FakeTaskLifecycle
) -> TransitionHookRunner:
    return TransitionHookRunner(tmp_path, command_runner, task_lifecycle)


@pytest.fixture
def workflows(
    tmp_path: Path,
    workflow_store: InMemoryWorkflowStore,
    hook_runner: TransitionHookRunner,
    command_runner: FakeCommandRunner,
    task_lifecycle: FakeTaskLifecycle,
    clock: FakeClock,
) -> WorkflowManager:
    return WorkflowManager(
        tmp_path,
        workflow_store,
        hook_runner,
        command_runner,
        task_lifecycle=task_lifecycle,
        clock=clock,
    )


@pytest.fixture
def governance() -> GovernanceSchema:
    """src/ is writable, secrets are denied, migrations need approval."""
    return GovernanceSchema(
        allow=(MutationRule("src/**"), MutationRule("docs/**")),
        approve=(MutationRule("src/migrations/**", reason="Schema change"),),
        deny=(MutationRule("**/*.key", reason="Secrets are never written"),),
    )


@pytest.fixture
def role_governance(governance: GovernanceSchema) -> GovernanceSchema:
    """Role-scoped rules: impl may write src/, design may write docs/."""
    return GovernanceSchema(
        allow=governance.allow,
        approve=governance.approve,
        deny=governance.deny,
        roles={
            "impl": RoleRules(allow=(MutationRule("src/**"),)),
            "design": RoleRules(
                allow=(MutationRule("docs/**"),),
                deny=(MutationRule("docs/private/**", reason="Private notes"),),
            ),
        },
    )


@pytest.fixture
def gate(
    governance: GovernanceSchema, locks: LockCoordinator, role_store: InMemoryRoleStore
) -> ToolCallGate:
    return ToolCallGate(ToolCatalog(), governance=governance, locks=locks, role_store=role_store)


@pytest.fixture
def make_context(tmp_path: Path) -> Callable[..., SessionContext]:
    """Build a SessionContext rooted in tmp_path."""

    def _make(role: str = "control", **kwargs: object) -> SessionContext:
        return SessionContext(project_root=tmp_path, role=role, **kwargs)  # type: ignore[arg-type]

    return _make


@pytest.fixture
def restore_logging() -> Iterator[None]:
    """Undo handlers that setup_logging attaches to the package logger."""
    logger = logging.getLogger("choreguard")
    handlers, level = list(logger.handlers), logger.level
    yield
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        if handler not in handlers:
            handler.close()
    for handler in handlers:
        logger.addHandler(handler)
    logger.setLevel(level)
