"""Project-root path confinement."""

from pathlib import Path


def resolve_in_project(project_root: Path, raw: str) -> Path | None:
    """Resolve ``raw`` under ``project_root``; None if it escapes the root.

    Leading slashes are treated as project-relative.
    """
    root = project_root.resolve()
    candidate = (root / raw.lstrip("/")).resolve()
    if candidate != root and root not in candidate.parents:
        return None
    return candidate


def project_relative(project_root: Path, path: Path) -> str:
    """POSIX path of ``path`` relative to the project root."""
    return path.relative_to(project_root.resolve()).as_posix()
