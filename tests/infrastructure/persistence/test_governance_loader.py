"""Tests for loading governance.yaml into a GovernanceSchema."""

import logging
from pathlib import Path

import pytest

from choreguard.domain.exceptions import ConfigurationError
from choreguard.domain.governance import (
    ALL_ACTIONS,
    CollisionAction,
    CollisionStrategy,
    GovernanceSchema,
    MutationAction,
)
from choreguard.infrastructure.persistence import load_governance_schema, parse_governance

GOVERNANCE_YAML = """\
mutations:
  allow:
    - pattern: "src/**"
      actions: [create, modify]
  approve:
    - pattern: "src/migrations/**"
      reason: Schema change
  deny:
    - pattern: "**/*.key"
      reason: Secrets are never written
roles:
  impl:
    deny:
      - pattern: "docs/**"
collision_detection:
  strategy: directory-lock
  on_collision: warn
"""


class TestParseGovernance:
    def test_buckets_and_actions(self) -> None:
        schema = parse_governance(
            {
                "mutations": {
                    "allow": [{"pattern": "src/**", "actions": ["create", "modify"]}],
                    "deny": [{"pattern": "**/*.key", "reason": "Secrets"}],
                }
            }
        )

        [allow] = schema.allow
        [deny] = schema.deny
        assert allow.actions == frozenset({MutationAction.CREATE, MutationAction.MODIFY})
        assert deny.actions == ALL_ACTIONS
        assert deny.reason == "Secrets"
        assert schema.approve == ()

    def test_roles_absent_is_none(self) -> None:
        """No roles key means role-scoped checks fall back to the global buckets."""
        assert parse_governance({"mutations": {}}).roles is None

    def test_empty_roles_section_is_kept(self) -> None:
        assert parse_governance({"roles": {}}).roles == {}

    def test_empty_document(self) -> None:
        assert parse_governance(None) == GovernanceSchema()

    def test_unknown_actions_are_dropped(self, caplog: pytest.LogCaptureFixture) -> None:
        with caplog.at_level(logging.WARNING, logger="choreguard.governance"):
            schema = parse_governance(
                {"mutations": {"allow": [{"pattern": "a/**", "actions": ["create", "chmod"]}]}}
            )

        assert schema.allow[0].actions == frozenset({MutationAction.CREATE})
        assert "chmod" in caplog.text

    def test_invalid_document(self) -> None:
        with pytest.raises(ConfigurationError, match="Invalid governance document"):
            parse_governance({"mutations": {"allow": [{"actions": ["create"]}]}})

    def test_unknown_top_level_bucket_is_rejected(self) -> None:
        with pytest.raises(ConfigurationError):
            parse_governance({"mutations": {"review": []}})


class TestLoadGovernanceSchema:
    def test_loads_yaml_file(self, tmp_path: Path) -> None:
        path = tmp_path / "governance.yaml"
        path.write_text(GOVERNANCE_YAML)

        schema = load_governance_schema(path)

        assert [r.pattern for r in schema.approve] == ["src/migrations/**"]
        assert schema.roles is not None
        assert [r.pattern for r in schema.roles["impl"].deny] == ["docs/**"]
        assert schema.collision_detection.strategy is CollisionStrategy.DIRECTORY_LOCK
        assert schema.collision_detection.on_collision is CollisionAction.WARN

    def test_missing_file_is_empty_schema(self, tmp_path: Path) -> None:
        assert load_governance_schema(tmp_path / "absent.yaml") == GovernanceSchema()

    def test_bad_yaml(self, tmp_path: Path) -> None:
        path = tmp_path / "governance.yaml"
        path.write_text("mutations: [unclosed\n")

        with pytest.raises(ConfigurationError, match="Cannot parse governance file"):
            load_governance_schema(path)
