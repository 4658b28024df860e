"""
Governance evaluator for file mutations.

Rules live in three ordered buckets and are evaluated with a fixed priority:
deny, then approve, then allow, then default deny. The schema is loaded
once per invocation and never mutated.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from enum import Enum

from choreguard.domain.glob import match_glob

NO_MATCHING_RULE = "No matching governance rule"


class MutationAction(Enum):
    CREATE = "create"
    MODIFY = "modify"
    DELETE = "delete"


ALL_ACTIONS = frozenset(MutationAction)


class Policy(Enum):
    ALLOW = "allow"
    APPROVE = "approve"
    DENY = "deny"


class CollisionStrategy(Enum):
    FILE_LOCK = "file-lock"
    DIRECTORY_LOCK = "directory-lock"


class CollisionAction(Enum):
    BLOCK = "block"
    WARN = "warn"


@dataclass(frozen=True)
class MutationRule:
    """A glob pattern and the actions it governs."""

    pattern: str
    actions: frozenset[MutationAction] = ALL_ACTIONS
    reason: str | None = None

    def matches(self, path: str, action: MutationAction) -> bool:
        return action in self.actions and match_glob(self.pattern, path)


@dataclass(frozen=True)
class RoleRules:
    allow: tuple[MutationRule, ...] = ()
    deny: tuple[MutationRule, ...] = ()


@dataclass(frozen=True)
class CollisionDetection:
    strategy: CollisionStrategy = CollisionStrategy.FILE_LOCK
    on_collision: CollisionAction = CollisionAction.BLOCK


@dataclass(frozen=True)
class GovernanceSchema:
    """Loaded governance rules.

    ``roles`` is None when the source document has no ``roles`` section at
    all; role-scoped checks then fall back to the global buckets.
    """

    allow: tuple[MutationRule, ...] = ()
    approve: tuple[MutationRule, ...] = ()
    deny: tuple[MutationRule, ...] = ()
    roles: Mapping[str, RoleRules] | None = None
    collision_detection: CollisionDetection = field(
        default_factory=CollisionDetection
    )


@dataclass(frozen=True)
class MutationCheck:
    """Decision for one (path, action) pair."""

    path: str
    action: MutationAction
    policy: Policy
    reason: str | None = None
    rule: MutationRule | None = None

    @property
    def allowed(self) -> bool:
        return self.policy is Policy.ALLOW

    @property
    def needs_approval(self) -> bool:
        return self.policy is Policy.APPROVE

    @property
    def denied(self) -> bool:
        return self.policy is Policy.DENY


@dataclass(frozen=True)
class MutationSummary:
    allowed: tuple[MutationCheck, ...]
    needs_approval: tuple[MutationCheck, ...]
    denied: tuple[MutationCheck, ...]

    @property
    def all_allowed(self) -> bool:
        return not self.needs_approval and not self.denied

    @property
    def has_denied(self) -> bool:
        return bool(self.denied)

    @property
    def has_approval_required(self) -> bool:
        return bool(self.needs_approval)


def _first_match(
    rules: Iterable[MutationRule], path: str, action: MutationAction
) -> MutationRule | None:
    for rule in rules:
        if rule.matches(path, action):
            return rule
    return None


def _normalize(path: str) -> str:
    return path.lstrip("/")


# Evaluation order. Must not be reordered.
_PRIORITY: tuple[Policy, ...] = (Policy.DENY, Policy.APPROVE, Policy.ALLOW)


def check_mutation(
    path: str, action: MutationAction, schema: GovernanceSchema
) -> MutationCheck:
    """Evaluate a mutation against the global rule buckets."""
    normalized = _normalize(path)
    buckets = {
        Policy.DENY: schema.deny,
        Policy.APPROVE: schema.approve,
        Policy.ALLOW: schema.allow,
    }
    for policy in _PRIORITY:
        rule = _first_match(buckets[policy], normalized, action)
        if rule is not None:
            return MutationCheck(path, action, policy, rule.reason, rule)
    return MutationCheck(path, action, Policy.DENY, NO_MATCHING_RULE)


def check_mutation_for_role(
    path: str, action: MutationAction, role: str, schema: GovernanceSchema
) -> MutationCheck:
    """Evaluate a mutation against the rules scoped to ``role``.

    A schema without any ``roles`` section degrades to the global buckets.
    Once a ``roles`` section exists, a role without an entry is denied.
    """
    if schema.roles is None:
        return check_mutation(path, action, schema)

    role_rules = schema.roles.get(role)
    if role_rules is None:
        return MutationCheck(
            path, action, Policy.DENY, f"Role '{role}' has no governance rules"
        )

    normalized = _normalize(path)
    rule = _first_match(role_rules.deny, normalized, action)
    if rule is not None:
        reason = rule.reason or f"Role '{role}' is denied {rule.pattern}"
        return MutationCheck(path, action, Policy.DENY, reason, rule)

    rule = _first_match(role_rules.allow, normalized, action)
    if rule is not None:
        return MutationCheck(path, action, Policy.ALLOW, rule.reason, rule)

    return MutationCheck(path, action, Policy.DENY, NO_MATCHING_RULE)


def check_mutations(
    mutations: Iterable[tuple[str, MutationAction]], schema: GovernanceSchema
) -> MutationSummary:
    """Evaluate a batch of mutations and group the decisions by policy."""
    grouped: dict[Policy, list[MutationCheck]] = {p: [] for p in Policy}
    for path, action in mutations:
        result = check_mutation(path, action, schema)
        grouped[result.policy].append(result)
    return MutationSummary(
        allowed=tuple(grouped[Policy.ALLOW]),
        needs_approval=tuple(grouped[Policy.APPROVE]),
        denied=tuple(grouped[Policy.DENY]),
    )


def format_check_summary(summary: MutationSummary) -> str:
    """Render a MutationSummary for terminal output."""
    lines: list[str] = []
    if summary.allowed:
        lines.append("Allowed:")
        lines.extend(f"  + {c.path} ({c.action.value})" for c in summary.allowed)
    if summary.needs_approval:
        lines.append("Requires approval:")
        lines.extend(
            f"  ? {c.path} ({c.action.value}){f' - {c.reason}' if c.reason else ''}"
            for c in summary.needs_approval
        )
    if summary.denied:
        lines.append("Denied:")
        lines.extend(
            f"  x {c.path} ({c.action.value}){f' - {c.reason}' if c.reason else ''}"
            for c in summary.denied
        )
    if not lines:
        return "No mutations to check"
    return "\n".join(lines)


class GovernanceChecker:
    """Convenience wrapper binding a loaded schema."""

    def __init__(self, schema: GovernanceSchema):
        self._schema = schema

    @property
    def schema(self) -> GovernanceSchema:
        return self._schema

    def check(self, path: str, action: MutationAction) -> MutationCheck:
        return check_mutation(path, action, self._schema)

    def check_for_role(
        self, path: str, action: MutationAction, role: str
    ) -> MutationCheck:
        return check_mutation_for_role(path, action, role, self._schema)

    def can_create(self, path: str) -> bool:
        return self.check(path, MutationAction.CREATE).allowed

    def can_modify(self, path: str) -> bool:
        return self.check(path, MutationAction.MODIFY).allowed

    def can_delete(self, path: str) -> bool:
        return self.check(path, MutationAction.DELETE).allowed

    def matching_rules(self, path: str) -> list[tuple[Policy, MutationRule]]:
        """Every rule whose pattern matches ``path``, in priority order."""
        normalized = _normalize(path)
        buckets = {
            Policy.DENY: self._schema.deny,
            Policy.APPROVE: self._schema.approve,
            Policy.ALLOW: self._schema.allow,
        }
        return [
            (policy, rule)
            for policy in _PRIORITY
            for rule in buckets[policy]
            if match_glob(rule.pattern, normalized)
        ]
