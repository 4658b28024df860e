"""
Workflow record stores.

Filesystem layout under ``.choreguard/``:

    workflows/<id>.json      one record per workflow
    workflow-index.json      {"last_date": "YYYYMMDD", "last_sequence": N}

Every write is version-checked and atomic (temp file + rename) under a
``filelock.FileLock`` held for the whole read-compare-write.
"""

import copy
from pathlib import Path

from choreguard.domain.exceptions import ConcurrentModificationError
from choreguard.domain.interfaces import WorkflowStoreInterface
from choreguard.domain.workflow import Workflow
from choreguard.infrastructure.persistence.atomic import (
    lock_for,
    read_json,
    write_json_atomic,
)
from choreguard.infrastructure.persistence.serialization import (
    dict_to_workflow,
    workflow_to_dict,
)


def format_workflow_id(day: str, sequence: int) -> str:
    return f"WF-{day}-{sequence:03d}"


class FilesystemWorkflowStore(WorkflowStoreInterface):
    """JSON workflow records with a per-day id sequence."""

    def __init__(self, base_dir: Path):
        self._base_dir = base_dir
        self._workflows_dir = base_dir / "workflows"
        self._index_path = base_dir / "workflow-index.json"

    @classmethod
    def for_project(cls, project_root: Path) -> "FilesystemWorkflowStore":
        return cls(project_root / ".choreguard")

    def _path(self, workflow_id: str) -> Path:
        return self._workflows_dir / f"{workflow_id}.json"

    def next_id(self, day: str) -> str:
        with lock_for(self._index_path):
            index = read_json(self._index_path) if self._index_path.exists() else {}
            sequence = index.get("last_sequence", 0) + 1 if index.get("last_date") == day else 1
            write_json_atomic(
                self._index_path, {"last_date": day, "last_sequence": sequence}
            )
        return format_workflow_id(day, sequence)

    def load(self, workflow_id: str) -> Workflow | None:
        path = self._path(workflow_id)
        if not path.exists():
            return None
        return dict_to_workflow(read_json(path))

    def save(self, workflow: Workflow, expected_version: int | None = None) -> None:
        path = self._path(workflow.id)
        with lock_for(path):
            if expected_version is not None:
                actual = read_json(path).get("version", 0) if path.exists() else 0
                if actual != expected_version:
                    raise ConcurrentModificationError(workflow.id, expected_version, actual)
            workflow.version += 1
            write_json_atomic(path, workflow_to_dict(workflow))

    def list(self) -> list[Workflow]:
        if not self._workflows_dir.exists():
            return []
        return [
            dict_to_workflow(read_json(path))
            for path in sorted(self._workflows_dir.glob("WF-*.json"))
        ]


class InMemoryWorkflowStore(WorkflowStoreInterface):
    """Workflow records kept in memory; stored copies are isolated from callers."""

    def __init__(self) -> None:
        self._workflows: dict[str, Workflow] = {}
        self._sequences: dict[str, int] = {}

    def next_id(self, day: str) -> str:
        self._sequences[day] = self._sequences.get(day, 0) + 1
        return format_workflow_id(day, self._sequences[day])

    def load(self, workflow_id: str) -> Workflow | None:
        stored = self._workflows.get(workflow_id)
        return copy.deepcopy(stored) if stored is not None else None

    def save(self, workflow: Workflow, expected_version: int | None = None) -> None:
        if expected_version is not None:
            stored = self._workflows.get(workflow.id)
            actual = stored.version if stored is not None else 0
            if actual != expected_version:
                raise ConcurrentModificationError(workflow.id, expected_version, actual)
        workflow.version += 1
        self._workflows[workflow.id] = copy.deepcopy(workflow)

    def list(self) -> list[Workflow]:
        return [copy.deepcopy(self._workflows[k]) for k in sorted(self._workflows)]
