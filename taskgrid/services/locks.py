"""Per-resource locks acquired ancestor-first."""

import logging
import threading
from collections import Counter
from collections.abc import Iterable, Iterator
from contextlib import contextmanager

from taskgrid.config import get_settings
from taskgrid.services.errors import ConflictError
from taskgrid.services.graph import ResourceRef

logger = logging.getLogger(__name__)


def lock_order(ref: ResourceRef) -> tuple[int, int]:
    """Global acquisition order: lists, then categories, then tasks, by id."""
    return (ref.type.depth, ref.id)


class ResourceLockManager:
    """Hands out one re-entrant lock per resource.

    ``hold`` takes every requested lock in ``lock_order`` so two callers
    locking overlapping subtrees can never deadlock. If any lock cannot be
    taken within the timeout, the locks already held are released and
    ``ConflictError`` is raised; nothing has been changed at that point.
    """

    def __init__(self) -> None:
        self._locks: dict[ResourceRef, threading.RLock] = {}
        # Callers holding or waiting on each lock
        self._users: Counter[ResourceRef] = Counter()
        self._forgotten: set[ResourceRef] = set()
        self._guard = threading.Lock()

    def _checkout(self, ref: ResourceRef) -> threading.RLock:
        with self._guard:
            lock = self._locks.get(ref)
            if lock is None:
                lock = self._locks[ref] = threading.RLock()
            self._users[ref] += 1
            return lock

    def _checkin(self, ref: ResourceRef) -> None:
        with self._guard:
            self._users[ref] -= 1
            if self._users[ref] == 0:
                del self._users[ref]
                if ref in self._forgotten:
                    self._forgotten.discard(ref)
                    self._locks.pop(ref, None)

    @contextmanager
    def hold(self, refs: Iterable[ResourceRef], timeout: float | None = None) -> Iterator[None]:
        if timeout is None:
            timeout = get_settings().share_lock_timeout_seconds
        checked_out: list[ResourceRef] = []
        acquired: list[threading.RLock] = []
        try:
            for ref in sorted(set(refs), key=lock_order):
                lock = self._checkout(ref)
                checked_out.append(ref)
                if not lock.acquire(timeout=timeout):
                    logger.warning(f"Timed out after {timeout}s waiting for lock on {ref}")
                    raise ConflictError(f"{ref.type.value} {ref.id} is busy, try again")
                acquired.append(lock)
            yield
        finally:
            for lock in reversed(acquired):
                lock.release()
            for ref in reversed(checked_out):
                self._checkin(ref)

    def forget(self, refs: Iterable[ResourceRef]) -> None:
        """Drop locks of deleted resources once nobody holds or waits on them."""
        with self._guard:
            for ref in refs:
                if self._users[ref]:
                    self._forgotten.add(ref)
                else:
                    self._users.pop(ref, None)
                    self._locks.pop(ref, None)


# Shared by every request handled in this process
resource_locks = ResourceLockManager()
