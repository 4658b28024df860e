"""
Lock table stores.

The filesystem store keeps the whole table in ``.choreguard/locks.json``:

    {"version": 1, "chains": {"<chain>": {"files": [...], "acquired": iso,
                                          "agent": owner, "expiresAt": iso}}}
"""

from collections.abc import Callable
from datetime import datetime
from pathlib import Path
from typing import Any, TypeVar

from choreguard.domain.interfaces import LockStoreInterface
from choreguard.domain.locks import LOCK_FILE_VERSION, FileLock, LockTable
from choreguard.infrastructure.persistence.atomic import (
    lock_for,
    read_json,
    write_json_atomic,
)

T = TypeVar("T")


def _lock_to_dict(lock: FileLock) -> dict[str, Any]:
    return {
        "files": list(lock.files),
        "acquired": lock.acquired_at.isoformat(),
        "agent": lock.owner,
        "expiresAt": lock.expires_at.isoformat(),
    }


def _dict_to_lock(data: dict[str, Any]) -> FileLock:
    return FileLock(
        files=tuple(data["files"]),
        acquired_at=datetime.fromisoformat(data["acquired"]),
        owner=data.get("agent", "unknown"),
        expires_at=datetime.fromisoformat(data["expiresAt"]),
    )


def table_to_dict(table: LockTable) -> dict[str, Any]:
    return {
        "version": table.version,
        "chains": {chain: _lock_to_dict(lock) for chain, lock in table.chains.items()},
    }


def dict_to_table(data: dict[str, Any]) -> LockTable:
    return LockTable(
        chains={
            chain: _dict_to_lock(lock) for chain, lock in data.get("chains", {}).items()
        },
        version=data.get("version", LOCK_FILE_VERSION),
    )


class FilesystemLockStore(LockStoreInterface):
    """Lock table persisted as one JSON document under an inter-process lock."""

    def __init__(self, path: Path):
        self._path = path

    @classmethod
    def for_project(cls, project_root: Path) -> "FilesystemLockStore":
        return cls(project_root / ".choreguard" / "locks.json")

    def load(self) -> LockTable:
        if not self._path.exists():
            return LockTable()
        return dict_to_table(read_json(self._path))

    def update(self, mutate: Callable[[LockTable], tuple[LockTable, T]]) -> T:
        with lock_for(self._path):
            current = self.load()
            new_table, value = mutate(current)
            if new_table is not current:
                write_json_atomic(self._path, table_to_dict(new_table))
        return value


class InMemoryLockStore(LockStoreInterface):
    """Lock table kept in memory, for tests and ephemeral sessions."""

    def __init__(self, table: LockTable | None = None) -> None:
        self._table = table or LockTable()

    def load(self) -> LockTable:
        return self._table

    def update(self, mutate: Callable[[LockTable], tuple[LockTable, T]]) -> T:
        self._table, value = mutate(self._table)
        return value
