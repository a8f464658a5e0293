"""
Concurrency Infrastructure.

Per-parent-group mutual exclusion for the tree engine.

Every operation that reads and then rewrites a sibling group holds the
lock for that group. Groups are keyed by parent id, with None standing for
the root group. Operations on disjoint groups run concurrently.

Locks are acquired in a fixed order to avoid lock-order inversion between
two operations that need overlapping groups. Waits are bounded by
tree.lock_timeout_seconds; a timeout raises LockTimeoutError.

Usage:
    from outliner.backend.core.concurrency import get_group_locks

    locks = get_group_locks()
    async with locks.hold(old_parent_id, new_parent_id):
        ...
"""

import asyncio
from collections.abc import AsyncIterator, Hashable
from contextlib import asynccontextmanager

from outliner.backend.core.exceptions import LockTimeoutError
from outliner.backend.core.logging import get_logger

logger = get_logger(__name__)

ROOT_GROUP = None

_group_locks: "ParentGroupLocks | None" = None


def _order_key(key: Hashable) -> tuple[int, str]:
    # Root group first, then ids in lexical order.
    return (0, "") if key is ROOT_GROUP else (1, str(key))


class ParentGroupLocks:
    """
    Registry of asyncio locks keyed by parent id.

    Entries are reference counted and removed once no task holds or waits
    on them, so the registry stays proportional to in-flight operations.
    """

    def __init__(self, timeout: float) -> None:
        self._timeout = timeout
        self._locks: dict[Hashable, asyncio.Lock] = {}
        self._refs: dict[Hashable, int] = {}

    @property
    def timeout(self) -> float:
        return self._timeout

    def __len__(self) -> int:
        return len(self._locks)

    def is_locked(self, key: Hashable) -> bool:
        lock = self._locks.get(key)
        return lock is not None and lock.locked()

    def _checkout(self, key: Hashable) -> asyncio.Lock:
        lock = self._locks.get(key)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[key] = lock
        self._refs[key] = self._refs.get(key, 0) + 1
        return lock

    def _checkin(self, key: Hashable) -> None:
        remaining = self._refs[key] - 1
        if remaining:
            self._refs[key] = remaining
        else:
            del self._refs[key]
            del self._locks[key]

    @asynccontextmanager
    async def hold(self, *keys: Hashable) -> AsyncIterator[None]:
        """
        Hold the locks for every given group until the block exits.

        Duplicate keys are collapsed. Raises LockTimeoutError if any lock
        cannot be acquired in time; locks already taken are released.
        """
        ordered = sorted(set(keys), key=_order_key)
        held: list[Hashable] = []
        try:
            for key in ordered:
                lock = self._checkout(key)
                try:
                    await asyncio.wait_for(lock.acquire(), timeout=self._timeout)
                except TimeoutError:
                    self._checkin(key)
                    logger.warning(
                        "Tree lock timeout",
                        extra={"group": key, "timeout": self._timeout},
                    )
                    raise LockTimeoutError(
                        f"Timed out after {self._timeout}s waiting for group {key!r}"
                    ) from None
                held.append(key)
            yield
        finally:
            for key in reversed(held):
                self._locks[key].release()
                self._checkin(key)


def get_group_locks() -> ParentGroupLocks:
    """Get the process-wide lock registry, created lazily from tree.yaml."""
    global _group_locks
    if _group_locks is None:
        from outliner.backend.core.config import get_app_config

        timeout = get_app_config().tree.lock_timeout_seconds
        _group_locks = ParentGroupLocks(timeout=timeout)
        logger.debug("Group lock registry created", extra={"timeout": timeout})
    return _group_locks
