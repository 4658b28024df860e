"""
Persistence adapters for locks, workflows, sessions, templates and roles.
"""

from choreguard.infrastructure.persistence.governance import (
    load_governance_schema,
    parse_governance,
)
from choreguard.infrastructure.persistence.locks import (
    FilesystemLockStore,
    InMemoryLockStore,
)
from choreguard.infrastructure.persistence.roles import (
    FilesystemRoleStore,
    InMemoryRoleStore,
)
from choreguard.infrastructure.persistence.sessions import (
    FilesystemSessionStore,
    InMemorySessionStore,
)
from choreguard.infrastructure.persistence.templates import (
    FilesystemTemplateStore,
    InMemoryTemplateStore,
)
from choreguard.infrastructure.persistence.workflows import (
    FilesystemWorkflowStore,
    InMemoryWorkflowStore,
)

__all__ = [
    "FilesystemLockStore",
    "FilesystemRoleStore",
    "FilesystemSessionStore",
    "FilesystemTemplateStore",
    "FilesystemWorkflowStore",
    "InMemoryLockStore",
    "InMemoryRoleStore",
    "InMemorySessionStore",
    "InMemoryTemplateStore",
    "InMemoryWorkflowStore",
    "load_governance_schema",
    "parse_governance",
]
