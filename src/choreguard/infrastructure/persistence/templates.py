"""
Versioned YAML template store.

    .choreguard/templates/<name>.yaml                 latest version
    .choreguard/templates/.history/<name>/v<n>.yaml   every published version
"""

import re
import shutil
from pathlib import Path

from jsonschema import ValidationError

from choreguard.domain.exceptions import ConfigurationError
from choreguard.domain.interfaces import TemplateStoreInterface
from choreguard.domain.workflow import WorkflowTemplate
from choreguard.infrastructure.persistence.atomic import (
    lock_for,
    read_yaml,
    write_yaml_atomic,
)
from choreguard.infrastructure.persistence.serialization import (
    dict_to_template,
    template_to_dict,
)
from choreguard.schemas import validate_workflow_template

_VERSION_FILE = re.compile(r"^v(\d+)\.yaml$")


class FilesystemTemplateStore(TemplateStoreInterface):
    """User templates as YAML files, history kept per version."""

    def __init__(self, templates_dir: Path):
        self._dir = templates_dir
        self._history_dir = templates_dir / ".history"

    @classmethod
    def for_project(cls, project_root: Path) -> "FilesystemTemplateStore":
        return cls(project_root / ".choreguard" / "templates")

    def _latest_path(self, name: str) -> Path:
        return self._dir / f"{name}.yaml"

    def _version_path(self, name: str, version: int) -> Path:
        return self._history_dir / name / f"v{version}.yaml"

    def names(self) -> list[str]:
        if not self._dir.exists():
            return []
        return sorted(p.stem for p in self._dir.glob("*.yaml"))

    def load(self, name: str, version: int | None = None) -> WorkflowTemplate | None:
        path = self._latest_path(name) if version is None else self._version_path(name, version)
        if not path.exists():
            return None
        return self._read(path)

    def save(self, template: WorkflowTemplate) -> None:
        data = template_to_dict(template)
        with lock_for(self._latest_path(template.name)):
            write_yaml_atomic(self._version_path(template.name, template.version), data)
            write_yaml_atomic(self._latest_path(template.name), data)

    def versions(self, name: str) -> list[int]:
        history = self._history_dir / name
        if not history.exists():
            return []
        found = (_VERSION_FILE.match(p.name) for p in history.iterdir())
        return sorted(int(m.group(1)) for m in found if m)

    def delete(self, name: str) -> bool:
        latest = self._latest_path(name)
        if not latest.exists():
            return False
        with lock_for(latest):
            latest.unlink()
            shutil.rmtree(self._history_dir / name, ignore_errors=True)
        return True

    def _read(self, path: Path) -> WorkflowTemplate:
        data = read_yaml(path)
        try:
            validate_workflow_template(data)
        except ValidationError as e:
            raise ConfigurationError(f"Invalid template file {path}: {e.message}") from e
        return dict_to_template(data)


class InMemoryTemplateStore(TemplateStoreInterface):
    def __init__(self) -> None:
        self._versions: dict[str, dict[int, WorkflowTemplate]] = {}

    def names(self) -> list[str]:
        return sorted(self._versions)

    def load(self, name: str, version: int | None = None) -> WorkflowTemplate | None:
        versions = self._versions.get(name)
        if not versions:
            return None
        return versions.get(version if version is not None else max(versions))

    def save(self, template: WorkflowTemplate) -> None:
        self._versions.setdefault(template.name, {})[template.version] = template

    def versions(self, name: str) -> list[int]:
        return sorted(self._versions.get(name, {}))

    def delete(self, name: str) -> bool:
        return self._versions.pop(name, None) is not None
