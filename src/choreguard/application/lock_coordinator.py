"""
Lock Coordinator: advisory mutual exclusion over glob file scopes.

Chains declare the patterns they intend to touch before starting work. No
two chains may hold overlapping patterns. Expired locks are purged lazily on
the next mutating call; there is no background sweeper.
"""

import logging
from collections.abc import Callable, Iterable
from datetime import datetime, timedelta

from choreguard.domain.glob import patterns_overlap
from choreguard.domain.interfaces import LockStoreInterface
from choreguard.domain.locks import (
    DEFAULT_LOCK_TTL,
    FileLock,
    FileLockStatus,
    LockResult,
    LockTable,
    ScopeConflict,
    collect_scope_conflicts,
    find_first_conflict,
    find_lock_holder,
    purge_expired,
)

logger = logging.getLogger("choreguard.locks")


class LockCoordinator:
    """
    Acquire, release and inspect chain file-scope locks.

    Every mutating call runs inside ``LockStoreInterface.update`` so the
    whole table is read, changed and written back as one unit.
    """

    def __init__(
        self,
        store: LockStoreInterface,
        ttl: timedelta = DEFAULT_LOCK_TTL,
        clock: Callable[[], datetime] | None = None,
    ):
        """
        Args:
            store: Persistence for the lock table
            ttl: Lifetime of a newly acquired or extended lock
            clock: Source of "now" (defaults to datetime.now)
        """
        self._store = store
        self._ttl = ttl
        self._clock = clock or datetime.now

    def acquire(self, chain_id: str, patterns: Iterable[str], owner: str) -> LockResult:
        """
        Lock ``patterns`` for ``chain_id``.

        Fails on the first overlap with another chain's lock. Re-acquiring
        for the same chain replaces its previous lock.

        Args:
            chain_id: Chain requesting the lock
            patterns: Glob patterns to lock
            owner: Agent or user acting for the chain

        Returns:
            LockResult; on conflict it names the holder and the pattern pair
        """
        requested = tuple(patterns)
        now = self._clock()

        def mutate(table: LockTable) -> tuple[LockTable, LockResult]:
            table = purge_expired(table, now)
            conflict = find_first_conflict(table, chain_id, requested)
            if conflict is not None:
                return table, conflict
            return table.with_lock(chain_id, self._new_lock(requested, owner, now)), (
                LockResult(success=True)
            )

        result = self._store.update(mutate)
        self._log_result(chain_id, result)
        return result

    def acquire_for_scope(
        self, chain_id: str, patterns: Iterable[str], owner: str
    ) -> LockResult:
        """Like ``acquire`` but reports every conflicting chain in the error."""
        requested = tuple(patterns)
        now = self._clock()

        def mutate(table: LockTable) -> tuple[LockTable, LockResult]:
            table = purge_expired(table, now)
            conflicts = collect_scope_conflicts(table, requested, exclude_chain=chain_id)
            if conflicts:
                first = conflicts[0]
                held = first.patterns[0]
                wanted = next(p for p in requested if patterns_overlap(held, p))
                summary = ", ".join(
                    f"{c.chain_id} ({', '.join(c.patterns)})" for c in conflicts
                )
                return table, LockResult(
                    success=False,
                    conflicting_chain=first.chain_id,
                    conflicting_patterns=(held, wanted),
                    error=f"Scope conflicts with: {summary}",
                )
            return table.with_lock(chain_id, self._new_lock(requested, owner, now)), (
                LockResult(success=True)
            )

        result = self._store.update(mutate)
        self._log_result(chain_id, result)
        return result

    def release(self, chain_id: str) -> bool:
        """Release the chain's lock. Returns False if it held none."""

        def mutate(table: LockTable) -> tuple[LockTable, bool]:
            if chain_id not in table.chains:
                return table, False
            return table.without(chain_id), True

        released = self._store.update(mutate)
        if released:
            logger.info("Released lock for chain %s", chain_id)
        return released

    def extend(self, chain_id: str, duration: timedelta | None = None) -> bool:
        """
        Push the chain's expiry to ``now + duration``.

        Args:
            chain_id: Chain whose lock to refresh
            duration: New lifetime (defaults to the coordinator TTL)

        Returns:
            False if the chain holds no live lock
        """
        now = self._clock()
        lifetime = duration if duration is not None else self._ttl

        def mutate(table: LockTable) -> tuple[LockTable, bool]:
            table = purge_expired(table, now)
            lock = table.chains.get(chain_id)
            if lock is None:
                return table, False
            refreshed = FileLock(
                files=lock.files,
                acquired_at=lock.acquired_at,
                owner=lock.owner,
                expires_at=now + lifetime,
            )
            return table.with_lock(chain_id, refreshed), True

        return self._store.update(mutate)

    def is_file_locked(self, path: str) -> FileLockStatus:
        """Report whether a concrete path falls under any live lock."""
        holder = find_lock_holder(self._live_table(), path)
        return FileLockStatus(locked=holder is not None, chain_id=holder)

    def check_scope_conflicts(
        self, patterns: Iterable[str], exclude_chain: str | None = None
    ) -> list[ScopeConflict]:
        return collect_scope_conflicts(self._live_table(), patterns, exclude_chain)

    def get_lock(self, chain_id: str) -> FileLock | None:
        return self._live_table().chains.get(chain_id)

    def get_all_locks(self) -> dict[str, FileLock]:
        return dict(self._live_table().chains)

    def format_status(self) -> str:
        """Human-readable summary of live locks."""
        locks = self.get_all_locks()
        if not locks:
            return "No active locks"
        lines = ["Active locks:"]
        for chain_id, lock in sorted(locks.items()):
            lines.append(f"  {chain_id} (owner: {lock.owner})")
            lines.extend(f"    - {pattern}" for pattern in lock.files)
            lines.append(f"    expires: {lock.expires_at.isoformat()}")
        return "\n".join(lines)

    # -------------------------------------------------------------------------

    def _live_table(self) -> LockTable:
        return purge_expired(self._store.load(), self._clock())

    def _new_lock(self, patterns: tuple[str, ...], owner: str, now: datetime) -> FileLock:
        return FileLock(
            files=patterns, acquired_at=now, owner=owner, expires_at=now + self._ttl
        )

    def _log_result(self, chain_id: str, result: LockResult) -> None:
        if result.success:
            logger.info("Acquired lock for chain %s", chain_id)
        else:
            logger.warning("Lock refused for chain %s: %s", chain_id, result.error)
