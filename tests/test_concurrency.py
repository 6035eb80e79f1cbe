"""Tests for per-resource locking and conflict handling."""

import threading
from concurrent.futures import ThreadPoolExecutor

import pytest
from conftest import ALICE, BOB, CATEGORY, LIST, TASK, RecordingEmitter

from taskgrid.models.enums import Permission
from taskgrid.services.errors import ConflictError, DuplicateShareError
from taskgrid.services.locks import ResourceLockManager, lock_order
from taskgrid.services.sharing import SharingService


class FlakyStore:
    """Delegates to a real store but rejects the first ``failures`` share writes."""

    def __init__(self, store, failures=1):
        self._store = store
        self.failures = failures
        self.attempts = 0

    def __getattr__(self, name):
        return getattr(self._store, name)

    def apply_share_mutation(self, mutation):
        self.attempts += 1
        if self.attempts <= self.failures:
            raise ConflictError("concurrent write")
        return self._store.apply_share_mutation(mutation)


def hold_in_background(locks, refs):
    """Hold ``refs`` from another thread until the returned event is set."""
    held = threading.Event()
    release = threading.Event()

    def worker():
        with locks.hold(refs, timeout=1):
            held.set()
            release.wait(5)

    thread = threading.Thread(target=worker)
    thread.start()
    held.wait(5)
    return release, thread


class TestLockOrder:
    """Tests for lock ordering."""

    def test_ancestors_first(self):
        refs = sorted([TASK, LIST, CATEGORY], key=lock_order)
        assert refs == [LIST, CATEGORY, TASK]

    def test_hold_is_reentrant(self):
        locks = ResourceLockManager()
        with locks.hold([LIST], timeout=0.1), locks.hold([LIST, TASK], timeout=0.1):
            pass

    def test_forget_keeps_lock_while_held(self):
        locks = ResourceLockManager()
        release, thread = hold_in_background(locks, [TASK])

        locks.forget([TASK])
        # Later callers still queue on the lock the holder has
        with pytest.raises(ConflictError), locks.hold([TASK], timeout=0.1):
            pass

        release.set()
        thread.join(5)
        assert TASK not in locks._locks
        with locks.hold([TASK], timeout=0.1):
            pass


class TestConcurrentGrants:
    """Concurrent grants for the same pair."""

    def test_exactly_one_share(self, graph):
        emitter = RecordingEmitter()
        service = SharingService(graph, emitter, locks=ResourceLockManager(), lock_timeout=5)

        def attempt(_):
            try:
                service.grant_share(ALICE, TASK, BOB, Permission.VIEW)
                return "granted"
            except DuplicateShareError:
                return "duplicate"

        with ThreadPoolExecutor(max_workers=8) as pool:
            outcomes = list(pool.map(attempt, range(16)))

        assert outcomes.count("granted") == 1
        assert outcomes.count("duplicate") == 15
        assert len(graph.get_shares(TASK)) == 1
        assert len(emitter.events) == 1


class TestConflicts:
    """Lock timeouts and write conflicts."""

    def test_lock_timeout_has_no_effect(self, graph):
        locks = ResourceLockManager()
        emitter = RecordingEmitter()
        service = SharingService(graph, emitter, locks=locks, lock_timeout=0.05)

        release, thread = hold_in_background(locks, [LIST])
        try:
            with pytest.raises(ConflictError) as exc_info:
                service.grant_share(ALICE, TASK, BOB, Permission.EDIT)
        finally:
            release.set()
            thread.join()

        assert exc_info.value.retryable
        assert graph.get_shares(TASK) == []
        assert emitter.events == []

    def test_released_after_timeout(self, graph):
        """Locks taken before the timeout are given back."""
        locks = ResourceLockManager()
        release, thread = hold_in_background(locks, [TASK])
        try:
            with pytest.raises(ConflictError), locks.hold([LIST, TASK], timeout=0.05):
                pass
        finally:
            release.set()
            thread.join()

        free = []

        def take_list():
            with locks.hold([LIST], timeout=0.05):
                free.append(LIST)

        other = threading.Thread(target=take_list)
        other.start()
        other.join()
        assert free == [LIST]

    def test_conflict_is_retried_once(self, graph):
        store = FlakyStore(graph, failures=1)
        emitter = RecordingEmitter()
        service = SharingService(store, emitter, locks=ResourceLockManager())

        record = service.grant_share(ALICE, TASK, BOB, Permission.EDIT)

        assert store.attempts == 2
        assert graph.get_share(record.ref) == record
        assert len(emitter.events) == 1

    def test_second_conflict_reaches_caller(self, graph):
        store = FlakyStore(graph, failures=2)
        emitter = RecordingEmitter()
        service = SharingService(store, emitter, locks=ResourceLockManager())

        with pytest.raises(ConflictError):
            service.grant_share(ALICE, TASK, BOB, Permission.EDIT)

        assert store.attempts == 2
        assert graph.get_shares(TASK) == []
        assert emitter.events == []

    def test_events_emitted_after_release(self, graph):
        locks = ResourceLockManager()
        observed = []

        class ProbingEmitter(RecordingEmitter):
            def emit_many(self, events):
                # Another thread must be able to take the lock path right away
                result = []
                thread = threading.Thread(target=lambda: result.append(try_lock()))
                thread.start()
                thread.join()
                observed.extend(result)
                super().emit_many(events)

        def try_lock():
            try:
                with locks.hold([LIST, TASK], timeout=0.01):
                    return True
            except ConflictError:
                return False

        service = SharingService(graph, ProbingEmitter(), locks=locks)
        service.grant_share(ALICE, TASK, BOB, Permission.VIEW)

        assert observed == [True]
