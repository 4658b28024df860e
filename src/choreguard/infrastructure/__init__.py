"""
Infrastructure layer for choreguard.

Contains adapters for external concerns (persistence, LLMs, shell, registry).
"""

from choreguard.infrastructure.commands import SubprocessCommandRunner
from choreguard.infrastructure.llm import (
    AnthropicProvider,
    MockProvider,
    OllamaProvider,
    OpenAIProvider,
    RetryingProvider,
)
from choreguard.infrastructure.persistence import (
    FilesystemLockStore,
    FilesystemRoleStore,
    FilesystemSessionStore,
    FilesystemTemplateStore,
    FilesystemWorkflowStore,
    InMemoryLockStore,
    InMemoryRoleStore,
    InMemorySessionStore,
    InMemoryTemplateStore,
    InMemoryWorkflowStore,
    load_governance_schema,
)
from choreguard.infrastructure.registry import ProviderRegistry

__all__ = [
    # Persistence
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
    # LLM
    "AnthropicProvider",
    "MockProvider",
    "OllamaProvider",
    "OpenAIProvider",
    "RetryingProvider",
    # Shell
    "SubprocessCommandRunner",
    # Registry
    "ProviderRegistry",
]
