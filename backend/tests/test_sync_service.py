"""Tests for replaying the outbox into the remote store."""
from __future__ import annotations

from datetime import timedelta

from fakes import NOW, WEEK_START, FakeClock, Stores, make_plan
from fitplan.domain.completion import DailyCompletion
from fitplan.services.completion_tracker import CompletionTracker
from fitplan.services.sync_service import SyncService
from fitplan.storage.outbox import OutboxOperation


def test_empty_outbox_is_complete() -> None:
    stores = Stores()

    result = SyncService(stores.outbox, stores.remote_store).sync_pending_changes()

    assert result.is_complete
    assert result.success_count == 0


def test_queued_writes_replay_after_reconnect() -> None:
    stores = Stores()
    tracker = CompletionTracker(stores.local_cache, stores.remote_store, stores.outbox, clock=FakeClock())
    plan = make_plan()
    stores.outbox.enqueue("user-1", OutboxOperation.SAVE_PLAN, {"plan": plan.to_document()})
    stores.go_offline()
    tracker.toggle_meal("user-1", WEEK_START, "plan_1_d0_meal0")
    stores.go_online()

    result = SyncService(stores.outbox, stores.remote_store).sync_pending_changes()

    assert result.success_count == 2
    assert result.is_complete
    assert stores.outbox.is_empty()
    assert stores.remote_store.get_active_plan("user-1") == plan
    assert stores.remote_store.get_completion("user-1", WEEK_START).completed_meal_ids == frozenset({"plan_1_d0_meal0"})


def test_offline_failure_holds_back_later_entries_of_that_user() -> None:
    stores = Stores()
    stores.outbox.enqueue("user-1", OutboxOperation.SAVE_PLAN, {"plan": make_plan().to_document()})
    stores.outbox.enqueue("user-1", OutboxOperation.SAVE_PLAN, {"plan": make_plan(plan_id="plan_2").to_document()})
    stores.go_offline()

    result = SyncService(stores.outbox, stores.remote_store).sync_pending_changes()

    assert result.failure_count == 1
    assert not result.is_complete
    assert stores.outbox.size() == 2
    [first_id] = result.errors
    assert result.errors[first_id].startswith("noConnection")
    assert stores.outbox.pending()[0].attempts == 1
    assert stores.outbox.pending()[1].attempts == 0


def test_entry_is_dropped_after_max_attempts() -> None:
    stores = Stores(max_attempts=2)
    stores.outbox.enqueue("user-1", OutboxOperation.SAVE_PLAN, {"plan": make_plan().to_document()})
    service = SyncService(stores.outbox, stores.remote_store)
    stores.go_offline()

    first = service.sync_pending_changes()
    second = service.sync_pending_changes()

    assert first.dropped_count == 0
    assert second.dropped_count == 1
    assert stores.outbox.is_empty()


def test_missing_plan_entry_is_dropped_without_blocking_other_users() -> None:
    stores = Stores()
    tracker = CompletionTracker(stores.local_cache, stores.remote_store, stores.outbox, clock=FakeClock())
    stores.outbox.enqueue(
        "user-1",
        OutboxOperation.UPDATE_PLAN_FIELDS,
        {"planId": "gone", "updates": {"days.0.meals.0.isComplete": True}},
    )
    stores.go_offline()
    tracker.toggle_meal("user-2", WEEK_START, "meal_a")
    stores.go_online()

    result = SyncService(stores.outbox, stores.remote_store).sync_pending_changes()

    assert result.failure_count == 1
    assert result.dropped_count == 1
    assert result.success_count == 1
    assert result.is_complete
    assert stores.outbox.is_empty()
    assert stores.remote_store.get_completion("user-2", WEEK_START) is not None


def test_retryable_failure_holds_back_only_that_user() -> None:
    stores = Stores()
    stores.remote_store.save_plan(make_plan())
    stores.outbox.enqueue(
        "user-1",
        OutboxOperation.UPDATE_PLAN_FIELDS,
        {"planId": "plan_1", "updates": {"days.9.meals.0.isComplete": True}},
    )
    stores.outbox.enqueue("user-1", OutboxOperation.SAVE_STREAK, {
        "streak": {"currentStreak": 1, "longestStreak": 1},
        "writtenAt": NOW.isoformat(),
    })
    stores.outbox.enqueue("user-2", OutboxOperation.SAVE_STREAK, {
        "streak": {"currentStreak": 2, "longestStreak": 2},
        "writtenAt": NOW.isoformat(),
    })

    result = SyncService(stores.outbox, stores.remote_store).sync_pending_changes()

    assert result.failure_count == 1
    assert result.success_count == 1
    assert not result.is_complete
    pending = stores.outbox.pending()
    assert [(entry.user_id, entry.attempts) for entry in pending] == [("user-1", 1), ("user-1", 0)]
    assert stores.remote_store.get_streak("user-1").current_streak == 0
    assert stores.remote_store.get_streak("user-2").current_streak == 2


def test_malformed_entry_counts_as_failure() -> None:
    stores = Stores()
    stores.outbox.enqueue("user-1", OutboxOperation.SAVE_COMPLETION, {"wrong": "shape"})

    result = SyncService(stores.outbox, stores.remote_store).sync_pending_changes()

    assert result.failure_count == 1
    assert "Malformed" in next(iter(result.errors.values()))
    assert result.dropped_count == 1
    assert stores.outbox.is_empty()


def test_stale_completion_is_skipped() -> None:
    stores = Stores()
    newer = DailyCompletion(date_key=WEEK_START, completed_meal_ids=frozenset({"a", "b"}), updated_at=NOW)
    stale = DailyCompletion(date_key=WEEK_START, completed_meal_ids=frozenset({"a"}), updated_at=NOW - timedelta(hours=2))
    stores.remote_store.save_completion("user-1", newer)
    stores.outbox.enqueue("user-1", OutboxOperation.SAVE_COMPLETION, {"completion": stale.to_document()})

    result = SyncService(stores.outbox, stores.remote_store).sync_pending_changes()

    assert result.skipped_count == 1
    assert result.success_count == 0
    assert stores.outbox.is_empty()
    assert stores.remote_store.get_completion("user-1", WEEK_START).completed_meal_ids == frozenset({"a", "b"})


def test_queued_plan_does_not_replace_newer_active_plan() -> None:
    stores = Stores()
    older = make_plan(plan_id="plan_old", created_at=NOW - timedelta(days=1))
    stores.remote_store.save_plan(make_plan(plan_id="plan_new"))
    stores.outbox.enqueue("user-1", OutboxOperation.SAVE_PLAN, {"plan": older.to_document()})

    result = SyncService(stores.outbox, stores.remote_store).sync_pending_changes()

    assert result.skipped_count == 1
    assert stores.remote_store.get_active_plan("user-1").id == "plan_new"


def test_concurrent_flush_returns_incomplete() -> None:
    stores = Stores()
    service = SyncService(stores.outbox, stores.remote_store)
    service._lock.acquire()
    try:
        result = service.sync_pending_changes()
    finally:
        service._lock.release()

    assert not result.is_complete
    assert result.success_count == 0


def test_limit_bounds_one_flush() -> None:
    stores = Stores()
    for n in range(3):
        stores.outbox.enqueue("user-1", OutboxOperation.SAVE_STREAK, {
            "streak": {"currentStreak": n, "longestStreak": n},
            "writtenAt": (NOW + timedelta(minutes=n)).isoformat(),
        })

    result = SyncService(stores.outbox, stores.remote_store).sync_pending_changes(limit=2)

    assert result.success_count == 2
    assert not result.is_complete
    assert stores.remote_store.get_streak("user-1").current_streak == 1
