"""
Workflow template management.

Built-in templates are read-only. User templates are versioned: every
update publishes a new version and earlier versions stay in history, so a
running workflow's template is never mutated underneath it.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from dataclasses import replace
from datetime import datetime
from typing import Any

from choreguard.domain.exceptions import TemplateError, TemplateValidationError
from choreguard.domain.interfaces import TemplateStoreInterface
from choreguard.domain.templates import BUILTIN_TEMPLATES
from choreguard.domain.workflow import WorkflowTemplate, validate_template

logger = logging.getLogger("choreguard.templates")

# Fields an update may change; name, version and timestamps are managed here.
UPDATABLE_FIELDS = frozenset({"stages", "description"})


class TemplateManager:
    """Look up built-in and user templates; publish new versions."""

    def __init__(
        self,
        store: TemplateStoreInterface,
        builtins: Mapping[str, WorkflowTemplate] = BUILTIN_TEMPLATES,
        clock: Callable[[], datetime] | None = None,
    ):
        self._store = store
        self._builtins = dict(builtins)
        self._clock = clock or datetime.now

    def list(self) -> list[WorkflowTemplate]:
        """Built-ins first, then user templates (latest versions) by name."""
        user = [self._store.load(name) for name in sorted(self._store.names())]
        return [*self._builtins.values(), *(t for t in user if t is not None)]

    def get(self, name: str, version: int | None = None) -> WorkflowTemplate:
        """
        Resolve a template by name.

        Args:
            name: Template name
            version: Historical version of a user template (latest if None)

        Raises:
            TemplateError: If the template or version does not exist
        """
        if name in self._builtins:
            template = self._builtins[name]
            if version is not None and version != template.version:
                raise TemplateError(f"Built-in template {name} has no version {version}")
            return template
        template = self._store.load(name, version)
        if template is None:
            suffix = f" version {version}" if version is not None else ""
            raise TemplateError(f"Template not found: {name}{suffix}")
        return template

    def create(self, template: WorkflowTemplate) -> WorkflowTemplate:
        if template.name in self._builtins or template.name in self._store.names():
            raise TemplateError(f"Template already exists: {template.name}")
        now = self._clock()
        created = replace(
            template, version=1, builtin=False, created_at=now, updated_at=now
        )
        self._publish(created)
        logger.info("Created template %s", created.name)
        return created

    def update(self, name: str, changes: Mapping[str, Any]) -> WorkflowTemplate:
        """Publish ``changes`` as the next version of ``name``."""
        current = self._require_user_template(name)
        unknown = set(changes) - UPDATABLE_FIELDS
        if unknown:
            raise TemplateError(f"Cannot update fields: {', '.join(sorted(unknown))}")
        updated = replace(
            current,
            **dict(changes),
            version=max(self._store.versions(name), default=0) + 1,
            updated_at=self._clock(),
        )
        self._publish(updated)
        logger.info("Published %s version %d", name, updated.version)
        return updated

    def list_versions(self, name: str) -> list[int]:
        if name in self._builtins:
            return [self._builtins[name].version]
        versions = self._store.versions(name)
        if not versions:
            raise TemplateError(f"Template not found: {name}")
        return versions

    def restore_version(self, name: str, version: int) -> WorkflowTemplate:
        """Publish a copy of historical ``version`` as the newest version."""
        self._require_user_template(name)
        old = self.get(name, version)
        return self.update(name, {"stages": old.stages, "description": old.description})

    def duplicate(self, name: str, new_name: str) -> WorkflowTemplate:
        source = self.get(name)
        return self.create(replace(source, name=new_name))

    def delete(self, name: str) -> bool:
        if name in self._builtins:
            raise TemplateError(f"Built-in template {name} cannot be deleted")
        deleted = self._store.delete(name)
        if deleted:
            logger.info("Deleted template %s", name)
        return deleted

    # -------------------------------------------------------------------------

    def _require_user_template(self, name: str) -> WorkflowTemplate:
        if name in self._builtins:
            raise TemplateError(f"Built-in template {name} is read-only")
        return self.get(name)

    def _publish(self, template: WorkflowTemplate) -> None:
        errors = validate_template(template)
        if errors:
            raise TemplateValidationError(template.name, errors)
        self._store.save(template)
