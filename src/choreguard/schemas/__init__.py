"""choreguard JSON Schema definitions and validation utilities.

Schemas:
    - governance.schema.json: file mutation rules (governance.yaml)
    - workflow_template.schema.json: user workflow templates

Usage:
    from choreguard.schemas import validate_governance

    with open("governance.yaml") as f:
        data = yaml.safe_load(f)
    validate_governance(data)  # Raises jsonschema.ValidationError if invalid
"""

from __future__ import annotations

import json
from functools import cache
from importlib.resources import files
from typing import Any

import jsonschema


@cache
def _load_schema(name: str) -> dict[str, Any]:
    """Load a JSON schema from the schemas package.

    Args:
        name: Schema filename (e.g., 'governance.schema.json')

    Returns:
        Parsed JSON schema as a dictionary
    """
    schema_text = files("choreguard.schemas").joinpath(name).read_text()
    result: dict[str, Any] = json.loads(schema_text)
    return result


def get_governance_schema() -> dict[str, Any]:
    return _load_schema("governance.schema.json")


def get_workflow_template_schema() -> dict[str, Any]:
    return _load_schema("workflow_template.schema.json")


def validate_governance(data: Any) -> None:
    """Validate a governance document.

    Raises:
        jsonschema.ValidationError: If validation fails
    """
    jsonschema.validate(data, get_governance_schema())


def validate_workflow_template(data: Any) -> None:
    """Validate a workflow template document.

    Raises:
        jsonschema.ValidationError: If validation fails
    """
    jsonschema.validate(data, get_workflow_template_schema())


__all__ = [
    "get_governance_schema",
    "get_workflow_template_schema",
    "validate_governance",
    "validate_workflow_template",
]
