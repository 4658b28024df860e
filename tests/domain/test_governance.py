"""Tests for governance rule evaluation."""

import pytest

from choreguard.domain.governance import (
    NO_MATCHING_RULE,
    GovernanceChecker,
    GovernanceSchema,
    MutationAction,
    MutationRule,
    Policy,
    RoleRules,
    check_mutation,
    check_mutation_for_role,
    check_mutations,
    format_check_summary,
)


class TestRulePriority:
    """deny > approve > allow > default deny."""

    def test_deny_beats_allow(self) -> None:
        """A path matched by both deny and allow is denied."""
        schema = GovernanceSchema(
            allow=(MutationRule("**/*"),),
            deny=(MutationRule("*.key"),),
        )

        result = check_mutation("secrets.key", MutationAction.MODIFY, schema)

        assert result.policy is Policy.DENY
        assert result.denied

    @pytest.mark.parametrize("action", list(MutationAction))
    def test_deny_beats_allow_for_every_action(self, action: MutationAction) -> None:
        schema = GovernanceSchema(
            allow=(MutationRule("src/**"),),
            approve=(MutationRule("src/**"),),
            deny=(MutationRule("src/**"),),
        )

        assert check_mutation("src/a.py", action, schema).policy is Policy.DENY

    def test_approve_beats_allow(self, governance: GovernanceSchema) -> None:
        result = check_mutation("src/migrations/001.sql", MutationAction.CREATE, governance)

        assert result.needs_approval
        assert result.reason == "Schema change"

    def test_allow(self, governance: GovernanceSchema) -> None:
        result = check_mutation("src/app.py", MutationAction.MODIFY, governance)

        assert result.allowed
        assert result.rule is not None
        assert result.rule.pattern == "src/**"

    def test_default_is_deny(self, governance: GovernanceSchema) -> None:
        """Nothing matches: closed world, not fail-open."""
        result = check_mutation("README.md", MutationAction.MODIFY, governance)

        assert result.policy is Policy.DENY
        assert result.reason == NO_MATCHING_RULE

    def test_empty_schema_denies_everything(self) -> None:
        result = check_mutation("anything.txt", MutationAction.CREATE, GovernanceSchema())

        assert result.denied

    def test_rule_actions_restrict_matching(self) -> None:
        """A rule only governs the actions it lists."""
        schema = GovernanceSchema(
            allow=(MutationRule("src/**"),),
            deny=(MutationRule("src/**", actions=frozenset({MutationAction.DELETE})),),
        )

        assert check_mutation("src/a.py", MutationAction.MODIFY, schema).allowed
        assert check_mutation("src/a.py", MutationAction.DELETE, schema).denied

    def test_leading_slash_is_ignored(self, governance: GovernanceSchema) -> None:
        assert check_mutation("/src/app.py", MutationAction.MODIFY, governance).allowed


class TestRoleScopedRules:
    """Tests for check_mutation_for_role."""

    def test_no_roles_section_falls_back_to_global(self, governance: GovernanceSchema) -> None:
        result = check_mutation_for_role("src/app.py", MutationAction.MODIFY, "impl", governance)

        assert result.allowed

    def test_role_allow(self, role_governance: GovernanceSchema) -> None:
        result = check_mutation_for_role(
            "src/app.py", MutationAction.MODIFY, "impl", role_governance
        )

        assert result.allowed

    def test_role_without_entry_is_denied(self, role_governance: GovernanceSchema) -> None:
        """Once roles exist, an unknown role does not escalate to global rules."""
        result = check_mutation_for_role(
            "src/app.py", MutationAction.MODIFY, "review", role_governance
        )

        assert result.denied
        assert "review" in (result.reason or "")

    def test_role_deny_beats_role_allow(self, role_governance: GovernanceSchema) -> None:
        result = check_mutation_for_role(
            "docs/private/notes.md", MutationAction.CREATE, "design", role_governance
        )

        assert result.denied
        assert result.reason == "Private notes"

    def test_role_default_deny(self, role_governance: GovernanceSchema) -> None:
        result = check_mutation_for_role(
            "docs/guide.md", MutationAction.CREATE, "impl", role_governance
        )

        assert result.denied
        assert result.reason == NO_MATCHING_RULE

    def test_empty_roles_section_denies_every_role(self) -> None:
        schema = GovernanceSchema(allow=(MutationRule("**"),), roles={})

        result = check_mutation_for_role("a.txt", MutationAction.CREATE, "control", schema)

        assert result.denied


class TestBatchChecks:
    def test_check_mutations_groups_by_policy(self, governance: GovernanceSchema) -> None:
        summary = check_mutations(
            [
                ("src/app.py", MutationAction.MODIFY),
                ("src/migrations/002.sql", MutationAction.CREATE),
                ("prod.key", MutationAction.CREATE),
            ],
            governance,
        )

        assert [c.path for c in summary.allowed] == ["src/app.py"]
        assert [c.path for c in summary.needs_approval] == ["src/migrations/002.sql"]
        assert [c.path for c in summary.denied] == ["prod.key"]
        assert not summary.all_allowed
        assert summary.has_denied
        assert summary.has_approval_required

    def test_format_summary(self, governance: GovernanceSchema) -> None:
        summary = check_mutations([("prod.key", MutationAction.CREATE)], governance)

        text = format_check_summary(summary)

        assert "Denied:" in text
        assert "prod.key" in text
        assert "Secrets are never written" in text

    def test_format_empty_summary(self, governance: GovernanceSchema) -> None:
        assert format_check_summary(check_mutations([], governance)) == "No mutations to check"


class TestGovernanceChecker:
    def test_convenience_methods(self, governance: GovernanceSchema) -> None:
        checker = GovernanceChecker(governance)

        assert checker.can_create("docs/new.md")
        assert checker.can_modify("src/app.py")
        assert not checker.can_delete("server.key")

    def test_matching_rules_in_priority_order(self, governance: GovernanceSchema) -> None:
        checker = GovernanceChecker(governance)

        policies = [policy for policy, _ in checker.matching_rules("src/migrations/1.sql")]

        assert policies == [Policy.APPROVE, Policy.ALLOW]

    def test_check_for_role(self, role_governance: GovernanceSchema) -> None:
        checker = GovernanceChecker(role_governance)

        assert checker.check_for_role("src/x.py", MutationAction.MODIFY, "impl").allowed
        assert checker.schema is role_governance


def test_role_rules_default_empty() -> None:
    rules = RoleRules()

    assert rules.allow == ()
    assert rules.deny == ()
