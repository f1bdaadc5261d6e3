"""
Tests for the session store: sliding expiry, timers and the background sweep.
"""

from datetime import timedelta

import pytest
from pydantic import ValidationError

from conftest import LeakyScheduler
from datamerge.core.exceptions import SessionNotFoundError
from datamerge.core.session_store import SessionStore
from datamerge.core import session_utils


class TestCreateAndGet:
    def test_create_returns_empty_session(self, store, clock):
        session = store.create()
        assert session.dataset_a is None and session.dataset_b is None
        assert session.result is None
        assert session.created_at == clock()
        assert session.id in store

    def test_session_ids_are_unique(self, store):
        ids = {store.create().id for _ in range(50)}
        assert len(ids) == 50

    def test_get_unknown_session(self, store):
        assert store.get("does-not-exist") is None

    def test_require_raises_for_unknown_session(self, store):
        with pytest.raises(SessionNotFoundError):
            store.require("does-not-exist")

    def test_sessions_are_frozen(self, store):
        session = store.create()
        with pytest.raises(ValidationError):
            session.result = None


class TestSlidingExpiry:
    def test_session_fetched_at_minute_14_survives(self, store, scheduler):
        session_id = store.create().id
        scheduler.advance(minutes=14)
        assert store.get(session_id) is not None

    def test_every_get_extends_the_session(self, store, scheduler, clock):
        session_id = store.create().id
        for _ in range(3):
            scheduler.advance(minutes=14)
            session = store.get(session_id)
            assert session is not None
            assert session.last_activity == clock()

    def test_untouched_session_is_not_fetchable_after_timeout(self, store, clock):
        session_id = store.create().id
        # The timer never gets a chance to run; get() must notice on its own
        clock.advance(minutes=15, seconds=1)
        assert store.get(session_id) is None
        assert session_id not in store

    def test_timer_deletes_idle_session(self, store, scheduler):
        session_id = store.create().id
        scheduler.advance(minutes=15, seconds=1)
        assert session_id not in store

    def test_timer_keeps_session_idle_exactly_the_timeout(self, store, scheduler):
        session_id = store.create().id
        scheduler.advance(minutes=15)
        # Idle time equal to the timeout has not exceeded it yet
        assert session_id in store
        assert store.peek(session_id) is not None
        assert len(scheduler.pending) == 1
        scheduler.advance(seconds=1)
        assert session_id not in store

    def test_peek_does_not_extend(self, store, scheduler):
        session_id = store.create().id
        scheduler.advance(minutes=10)
        assert store.peek(session_id) is not None
        scheduler.advance(minutes=5, seconds=1)
        assert session_id not in store

    def test_one_timer_per_session(self, store, scheduler):
        session_id = store.create().id
        for _ in range(5):
            store.get(session_id)
            store.update(session_id, {})
        assert len(scheduler.pending) == 1


class TestRecheckBeforeDelete:
    def test_update_after_timer_armed_keeps_session(self, store, scheduler):
        session_id = store.create().id
        scheduler.advance(minutes=10)
        assert store.update(session_id, {}) is True
        # The original deadline passes without deleting the refreshed session
        scheduler.advance(minutes=5)
        assert session_id in store
        scheduler.advance(minutes=10, seconds=1)
        assert session_id not in store

    def test_early_timer_rearms_instead_of_deleting(self, store, scheduler, clock):
        session_id = store.create().id
        clock.advance(minutes=1)
        scheduler.fire_all()
        assert session_id in store
        assert len(scheduler.pending) == 1
        assert scheduler.pending[0].due == clock() + timedelta(minutes=14)

    def test_stale_timer_firing_late_does_not_delete(self, clock):
        scheduler = LeakyScheduler(clock)
        store = SessionStore(clock=clock, scheduler=scheduler)
        session_id = store.create().id

        scheduler.advance(minutes=10)
        store.update(session_id, {})
        # The first timer was cancelled too late and still fires at minute 15
        scheduler.advance(minutes=5)
        assert session_id in store

        scheduler.advance(minutes=10, seconds=1)
        assert session_id not in store

    def test_timer_uses_caller_supplied_activity(self, store, scheduler, clock):
        session_id = store.create().id
        later = clock() + timedelta(minutes=5)
        store.update(session_id, {}, last_activity=later)
        scheduler.advance(minutes=15)
        # Only 10 minutes idle relative to the recorded activity
        assert session_id in store
        scheduler.advance(minutes=5, seconds=1)
        assert session_id not in store


class TestUpdateAndDelete:
    def test_update_merges_changes(self, store, dataset_a):
        session_id = store.create().id
        assert store.update(session_id, {"dataset_a": dataset_a}) is True
        session = store.get(session_id)
        assert session.dataset_a == dataset_a
        assert session.dataset_b is None

    def test_update_cannot_change_id(self, store):
        session_id = store.create().id
        store.update(session_id, {"id": "other"})
        assert store.get(session_id).id == session_id
        assert store.get("other") is None

    def test_update_sets_supplied_activity(self, store, clock):
        session_id = store.create().id
        stamp = clock() + timedelta(seconds=30)
        store.update(session_id, {}, last_activity=stamp)
        assert store.peek(session_id).last_activity == stamp

    def test_update_rejects_unknown_fields(self, store):
        session_id = store.create().id
        with pytest.raises(ValueError):
            store.update(session_id, {"colour": "blue"})

    def test_update_unknown_or_expired_session(self, store, clock):
        assert store.update("missing", {}) is False
        session_id = store.create().id
        clock.advance(minutes=16)
        assert store.update(session_id, {}) is False

    def test_delete_is_idempotent(self, store, scheduler):
        session_id = store.create().id
        assert store.delete(session_id) is True
        assert store.delete(session_id) is False
        assert scheduler.pending == []


class TestSweep:
    def test_cleanup_expired_only_removes_idle_sessions(self, store, clock):
        old_id = store.create().id
        clock.advance(minutes=16)
        new_id = store.create().id
        assert store.cleanup_expired() == 1
        assert old_id not in store
        assert new_id in store

    def test_sweeper_runs_periodically(self, store, scheduler):
        store.start_sweeper()
        scheduler.advance(minutes=5)
        scheduler.advance(minutes=5)
        # One sweep timer stays armed after each run
        assert len(scheduler.pending) == 1
        store.stop_sweeper()
        assert scheduler.pending == []

    def test_shutdown_cancels_everything(self, store, scheduler):
        store.create()
        store.create()
        store.start_sweeper()
        store.shutdown()
        assert scheduler.pending == []

    def test_stats(self, store, dataset_a):
        session_id = store.create().id
        store.update(session_id, {"dataset_a": dataset_a})
        stats = store.stats()
        assert stats["total_sessions"] == 1
        entry = stats["sessions"][0]
        assert entry["has_dataset_a"] is True
        assert entry["has_dataset_b"] is False
        assert entry["has_result"] is False


class TestSessionUtils:
    def test_attach_both_datasets(self, store, dataset_a, dataset_b):
        session_id = store.create().id
        assert session_utils.attach_dataset(store, session_id, "file1", dataset_a)
        assert session_utils.session_status(store.peek(session_id))["has_both_files"] is False
        assert session_utils.attach_dataset(store, session_id, "file2", dataset_b)
        status = session_utils.session_status(store.peek(session_id))
        assert status["has_both_files"] is True
        assert status["files"]["file2"].row_count == 3

    def test_attach_to_missing_session(self, store, dataset_a):
        assert session_utils.attach_dataset(store, "missing", "file1", dataset_a) is False

    def test_remaining_time_and_warning(self, store, clock):
        session_id = store.create().id
        assert session_utils.remaining_minutes(store, session_id) == 15
        assert not session_utils.needs_expiration_warning(store, session_id)
        clock.advance(minutes=11)
        assert session_utils.remaining_minutes(store, session_id) == 4
        assert session_utils.needs_expiration_warning(store, session_id)

