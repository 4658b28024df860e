"""Project configuration (``.choreguard/config.yaml``).

Environment variables override the file:

    CHOREGUARD_PROVIDER   provider name (see ProviderRegistry)
    CHOREGUARD_MODEL      model identifier
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from pathlib import Path

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from choreguard.domain.exceptions import ConfigurationError
from choreguard.domain.session import DEFAULT_MAX_ITERATIONS, DEFAULT_MAX_NESTING_DEPTH

CONFIG_DIR = ".choreguard"
CONFIG_FILE = "config.yaml"

ENV_OVERRIDES: Mapping[str, str] = {
    "CHOREGUARD_PROVIDER": "provider",
    "CHOREGUARD_MODEL": "model",
}


class Settings(BaseModel):
    """Validated runtime settings. Unknown keys are rejected."""

    model_config = ConfigDict(extra="forbid")

    provider: str = "ollama"
    model: str | None = None
    max_iterations: int = Field(default=DEFAULT_MAX_ITERATIONS, ge=1)
    max_nesting_depth: int = Field(default=DEFAULT_MAX_NESTING_DEPTH, ge=0)
    lock_ttl_hours: float = Field(default=24.0, gt=0)
    max_retries: int = Field(default=3, ge=0)
    governance_file: str = "governance.yaml"
    strict: bool = False

    def governance_path(self, project_root: Path) -> Path:
        return project_root / self.governance_file


def config_path(project_root: Path) -> Path:
    return project_root / CONFIG_DIR / CONFIG_FILE


def load_settings(
    project_root: Path, environ: Mapping[str, str] | None = None
) -> Settings:
    """
    Load settings for a project.

    Args:
        project_root: Project whose ``.choreguard/config.yaml`` to read
        environ: Environment to read overrides from (defaults to os.environ)

    Returns:
        Settings with file values, then environment overrides applied

    Raises:
        ConfigurationError: If the file cannot be parsed or fails validation
    """
    environ = os.environ if environ is None else environ
    path = config_path(project_root)

    data: dict = {}
    if path.exists():
        try:
            with open(path) as f:
                data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Cannot parse {path}: {e}") from e
        if not isinstance(data, dict):
            raise ConfigurationError(f"{path} must contain a mapping")

    for env_var, field_name in ENV_OVERRIDES.items():
        if environ.get(env_var):
            data[field_name] = environ[env_var]

    try:
        return Settings.model_validate(data)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid configuration in {path}: {e}") from e
