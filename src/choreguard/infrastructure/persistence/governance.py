"""
Governance file loader.

Reads ``governance.yaml`` with PyYAML, validates it against
``governance.schema.json`` and normalizes it into an immutable
GovernanceSchema. Unknown mutation actions are dropped from a rule.
"""

import logging
from pathlib import Path
from typing import Any

import yaml
from jsonschema import ValidationError

from choreguard.domain.exceptions import ConfigurationError
from choreguard.domain.governance import (
    ALL_ACTIONS,
    CollisionAction,
    CollisionDetection,
    CollisionStrategy,
    GovernanceSchema,
    MutationAction,
    MutationRule,
    RoleRules,
)
from choreguard.schemas import validate_governance

logger = logging.getLogger("choreguard.governance")

_ACTIONS_BY_NAME = {a.value: a for a in MutationAction}


def _parse_rule(data: dict[str, Any]) -> MutationRule:
    raw_actions = data.get("actions")
    if raw_actions is None:
        actions = ALL_ACTIONS
    else:
        unknown = [a for a in raw_actions if a not in _ACTIONS_BY_NAME]
        if unknown:
            logger.warning(
                "Ignoring unknown actions %s in rule %s", unknown, data["pattern"]
            )
        actions = frozenset(_ACTIONS_BY_NAME[a] for a in raw_actions if a in _ACTIONS_BY_NAME)
    return MutationRule(pattern=data["pattern"], actions=actions, reason=data.get("reason"))


def _parse_rules(items: list[dict[str, Any]] | None) -> tuple[MutationRule, ...]:
    return tuple(_parse_rule(item) for item in items or ())


def parse_governance(data: dict[str, Any] | None) -> GovernanceSchema:
    """
    Build a GovernanceSchema from an already-parsed document.

    Args:
        data: Parsed YAML/JSON document (None or empty for no rules)

    Returns:
        Normalized schema; ``roles`` is None when the document has no roles key

    Raises:
        ConfigurationError: If the document does not match the schema
    """
    data = data or {}
    try:
        validate_governance(data)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid governance document: {e.message}") from e

    mutations = data.get("mutations") or {}
    roles = None
    if "roles" in data:
        roles = {
            name: RoleRules(
                allow=_parse_rules(rules.get("allow")),
                deny=_parse_rules(rules.get("deny")),
            )
            for name, rules in (data["roles"] or {}).items()
        }
    collision = data.get("collision_detection") or {}
    return GovernanceSchema(
        allow=_parse_rules(mutations.get("allow")),
        approve=_parse_rules(mutations.get("approve")),
        deny=_parse_rules(mutations.get("deny")),
        roles=roles,
        collision_detection=CollisionDetection(
            strategy=CollisionStrategy(collision.get("strategy", "file-lock")),
            on_collision=CollisionAction(collision.get("on_collision", "block")),
        ),
    )


def load_governance_schema(path: Path) -> GovernanceSchema:
    """
    Load governance rules from a YAML file.

    A missing file yields an empty schema, which denies every mutation.

    Raises:
        ConfigurationError: If the file is not valid YAML or fails validation
    """
    if not path.exists():
        logger.info("No governance file at %s; all mutations default to deny", path)
        return GovernanceSchema()
    try:
        with open(path) as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Cannot parse governance file {path}: {e}") from e
    return parse_governance(data)
