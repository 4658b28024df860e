"""
Configurable role store (``.choreguard/roles/index.yaml``).

Until the file exists the built-in DEFAULT_ROLES are served.
"""

from __future__ import annotations

import re
from dataclasses import replace
from datetime import datetime
from pathlib import Path
from typing import Any

from choreguard.domain.interfaces import RoleStoreInterface
from choreguard.domain.roles import DEFAULT_ROLES, Role
from choreguard.infrastructure.persistence.atomic import (
    isoformat,
    lock_for,
    read_yaml,
    write_yaml_atomic,
)


def slugify(name: str) -> str:
    return re.sub(r"[^a-z0-9]+", "-", name.lower()).strip("-")


def _role_to_dict(role: Role) -> dict[str, Any]:
    data = {
        "id": role.id,
        "name": role.name,
        "description": role.description,
        "tool_ids": list(role.tool_ids),
        "system_prompt": role.system_prompt,
        "model": role.model,
        "created_at": isoformat(role.created_at),
        "updated_at": isoformat(role.updated_at),
    }
    return {k: v for k, v in data.items() if v is not None}


def _dict_to_role(data: dict[str, Any]) -> Role:
    return Role(
        id=data["id"],
        name=data.get("name", data["id"]),
        tool_ids=tuple(data.get("tool_ids") or ()),
        description=data.get("description", ""),
        system_prompt=data.get("system_prompt"),
        model=data.get("model"),
        created_at=datetime.fromisoformat(data["created_at"]) if data.get("created_at") else None,
        updated_at=datetime.fromisoformat(data["updated_at"]) if data.get("updated_at") else None,
    )


class FilesystemRoleStore(RoleStoreInterface):
    """Roles persisted as a YAML list."""

    def __init__(self, path: Path):
        self._path = path

    @classmethod
    def for_project(cls, project_root: Path) -> "FilesystemRoleStore":
        return cls(project_root / ".choreguard" / "roles" / "index.yaml")

    def get(self, role_id: str) -> Role | None:
        for role in self.list():
            if role.id == role_id:
                return role
        return None

    def list(self) -> list[Role]:
        if not self._path.exists():
            return list(DEFAULT_ROLES)
        data = read_yaml(self._path) or {}
        return [_dict_to_role(r) for r in data.get("roles") or []]

    def ensure_defaults(self) -> None:
        """Write DEFAULT_ROLES to disk if no role file exists yet."""
        with lock_for(self._path):
            if not self._path.exists():
                self._write(list(DEFAULT_ROLES))

    def create(
        self,
        name: str,
        tool_ids: tuple[str, ...],
        description: str = "",
        system_prompt: str | None = None,
        model: str | None = None,
    ) -> Role:
        now = datetime.now()
        role = Role(
            id=slugify(name),
            name=name,
            tool_ids=tool_ids,
            description=description,
            system_prompt=system_prompt,
            model=model,
            created_at=now,
            updated_at=now,
        )
        with lock_for(self._path):
            roles = self.list()
            if any(r.id == role.id for r in roles):
                raise ValueError(f"Role already exists: {role.id}")
            self._write([*roles, role])
        return role

    def update(self, role_id: str, **changes: Any) -> Role:
        with lock_for(self._path):
            roles = self.list()
            for i, role in enumerate(roles):
                if role.id == role_id:
                    roles[i] = replace(role, **changes, updated_at=datetime.now())
                    self._write(roles)
                    return roles[i]
        raise KeyError(f"Role not found: {role_id}")

    def delete(self, role_id: str) -> bool:
        with lock_for(self._path):
            roles = self.list()
            remaining = [r for r in roles if r.id != role_id]
            if len(remaining) == len(roles):
                return False
            self._write(remaining)
        return True

    def _write(self, roles: list[Role]) -> None:
        write_yaml_atomic(self._path, {"roles": [_role_to_dict(r) for r in roles]})


class InMemoryRoleStore(RoleStoreInterface):
    def __init__(self, roles: tuple[Role, ...] = DEFAULT_ROLES) -> None:
        self._roles = {r.id: r for r in roles}

    def get(self, role_id: str) -> Role | None:
        return self._roles.get(role_id)

    def list(self) -> list[Role]:
        return list(self._roles.values())
