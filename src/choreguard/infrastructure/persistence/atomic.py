"""
Atomic file helpers shared by the filesystem stores.

Writes go to a temp file in the same directory and are renamed into place,
so readers never see a half-written document. Read-modify-write sequences
hold a ``filelock.FileLock`` on a sibling ``.lock`` file.
"""

import json
import os
from pathlib import Path
from typing import Any

import yaml
from filelock import FileLock

LOCK_TIMEOUT_SECONDS = 10.0


def lock_for(path: Path) -> FileLock:
    """Inter-process lock guarding ``path``."""
    path.parent.mkdir(parents=True, exist_ok=True)
    return FileLock(str(path.with_name(path.name + ".lock")), timeout=LOCK_TIMEOUT_SECONDS)


def write_text_atomic(path: Path, text: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    temp_path = path.with_name(f".{path.name}.{os.getpid()}.tmp")
    with open(temp_path, "w") as f:
        f.write(text)
    temp_path.replace(path)  # Atomic on POSIX


def write_json_atomic(path: Path, data: Any) -> None:
    write_text_atomic(path, json.dumps(data, indent=2))


def read_json(path: Path) -> Any:
    with open(path) as f:
        return json.load(f)


def write_yaml_atomic(path: Path, data: Any) -> None:
    write_text_atomic(path, yaml.safe_dump(data, sort_keys=False))


def read_yaml(path: Path) -> Any:
    with open(path) as f:
        return yaml.safe_load(f)


def isoformat(value: Any) -> str | None:
    return value.isoformat() if value is not None else None
