"""
File-scope lock models.

Locks are advisory: a chain declares the glob patterns it intends to mutate
and no other chain may hold an overlapping pattern at the same time.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field, replace
from datetime import datetime, timedelta

from choreguard.domain.glob import match_glob, patterns_overlap

DEFAULT_LOCK_TTL = timedelta(hours=24)
LOCK_FILE_VERSION = 1


@dataclass(frozen=True)
class FileLock:
    """Set of patterns held by one chain."""

    files: tuple[str, ...]
    acquired_at: datetime
    owner: str
    expires_at: datetime

    def is_expired(self, now: datetime) -> bool:
        return now >= self.expires_at


@dataclass(frozen=True)
class LockTable:
    """All locks, keyed by chain id. Persisted as one JSON document."""

    chains: dict[str, FileLock] = field(default_factory=dict)
    version: int = LOCK_FILE_VERSION

    def with_lock(self, chain_id: str, lock: FileLock) -> LockTable:
        return replace(self, chains={**self.chains, chain_id: lock})

    def without(self, chain_id: str) -> LockTable:
        chains = {k: v for k, v in self.chains.items() if k != chain_id}
        return replace(self, chains=chains)


@dataclass(frozen=True)
class LockResult:
    """Outcome of a lock acquisition. Conflicts are values, not exceptions."""

    success: bool
    conflicting_chain: str | None = None
    conflicting_patterns: tuple[str, str] | None = None  # (held, requested)
    error: str | None = None


@dataclass(frozen=True)
class ScopeConflict:
    """Patterns of one chain that overlap a requested scope."""

    chain_id: str
    patterns: tuple[str, ...]


@dataclass(frozen=True)
class FileLockStatus:
    locked: bool
    chain_id: str | None = None


def purge_expired(table: LockTable, now: datetime) -> LockTable:
    """Drop every lock whose expiry has passed."""
    live = {k: v for k, v in table.chains.items() if not v.is_expired(now)}
    if len(live) == len(table.chains):
        return table
    return replace(table, chains=live)


def find_first_conflict(
    table: LockTable, chain_id: str, patterns: Iterable[str]
) -> LockResult | None:
    """Return a failed LockResult for the first overlap with another chain.

    Args:
        table: Current (already purged) lock table
        chain_id: Chain requesting the lock; its own lock never conflicts
        patterns: Requested glob patterns

    Returns:
        A failed LockResult, or None if nothing overlaps
    """
    requested = tuple(patterns)
    for other_chain, lock in table.chains.items():
        if other_chain == chain_id:
            continue
        for held in lock.files:
            for wanted in requested:
                if patterns_overlap(held, wanted):
                    return LockResult(
                        success=False,
                        conflicting_chain=other_chain,
                        conflicting_patterns=(held, wanted),
                        error=(
                            f"Lock conflict: {wanted} overlaps with {held} "
                            f"(held by {other_chain})"
                        ),
                    )
    return None


def collect_scope_conflicts(
    table: LockTable, patterns: Iterable[str], exclude_chain: str | None = None
) -> list[ScopeConflict]:
    """Collect, per chain, every held pattern overlapping the requested scope."""
    requested = tuple(patterns)
    conflicts: list[ScopeConflict] = []
    for other_chain, lock in table.chains.items():
        if other_chain == exclude_chain:
            continue
        overlapping = tuple(
            held
            for held in lock.files
            if any(patterns_overlap(held, wanted) for wanted in requested)
        )
        if overlapping:
            conflicts.append(ScopeConflict(chain_id=other_chain, patterns=overlapping))
    return conflicts


def find_lock_holder(table: LockTable, path: str) -> str | None:
    """Return the chain holding a pattern that matches ``path``."""
    for chain_id, lock in table.chains.items():
        if any(match_glob(pattern, path) for pattern in lock.files):
            return chain_id
    return None
