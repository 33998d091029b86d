"""Tests for streak persistence on top of the calculator."""
from __future__ import annotations

from datetime import timedelta

from fakes import NOW, WEEK_START, FakeClock, Stores
from fitplan.domain.streak import StreakData
from fitplan.services.streak_service import StreakService
from fitplan.storage.outbox import OutboxOperation


def _service(stores: Stores) -> StreakService:
    return StreakService(stores.local_cache, stores.remote_store, stores.outbox, clock=FakeClock())


def test_completing_same_day_twice_counts_once() -> None:
    stores = Stores()
    service = _service(stores)

    service.record_day_completed("user-1", WEEK_START)
    streak = service.record_day_completed("user-1", WEEK_START)

    assert streak.current_streak == 1
    assert stores.remote_store.get_streak("user-1").current_streak == 1


def test_consecutive_days_extend_streak() -> None:
    stores = Stores()
    service = _service(stores)

    service.record_day_completed("user-1", WEEK_START)
    streak = service.record_day_completed("user-1", WEEK_START + timedelta(days=1))

    assert streak.current_streak == 2
    assert streak.longest_streak == 2
    assert streak.streak_start_date == WEEK_START
    assert stores.local_cache.get_streak("user-1") == streak


def test_check_and_reset_after_missed_day() -> None:
    stores = Stores()
    service = _service(stores)
    service.record_day_completed("user-1", WEEK_START)
    service.record_day_completed("user-1", WEEK_START + timedelta(days=1))

    streak = service.check_and_reset("user-1", today=WEEK_START + timedelta(days=4))

    assert streak.current_streak == 0
    assert streak.longest_streak == 2
    assert stores.remote_store.get_streak("user-1").current_streak == 0


def test_check_and_reset_keeps_streak_that_can_continue() -> None:
    stores = Stores()
    service = _service(stores)
    service.record_day_completed("user-1", WEEK_START)

    streak = service.check_and_reset("user-1", today=WEEK_START + timedelta(days=1))

    assert streak.current_streak == 1


def test_get_streak_reads_remote_when_cache_is_cold() -> None:
    stores = Stores()
    remote = StreakData(current_streak=3, longest_streak=5, last_completed_date=WEEK_START)
    stores.remote_store.save_streak("user-1", remote, written_at=NOW)

    assert _service(stores).get_streak("user-1") == remote
    assert stores.local_cache.get_streak("user-1") == remote


def test_get_streak_offline_defaults_to_zero() -> None:
    stores = Stores()
    stores.go_offline()

    assert _service(stores).get_streak("user-1") == StreakData()


def test_rebuild_keeps_higher_longest_streak() -> None:
    stores = Stores()
    service = _service(stores)
    stores.local_cache.save_streak("user-1", StreakData(current_streak=0, longest_streak=9))

    rebuilt = service.rebuild_from_history(
        "user-1",
        [WEEK_START, WEEK_START + timedelta(days=1)],
        today=WEEK_START + timedelta(days=2),
    )

    assert rebuilt.current_streak == 2
    assert rebuilt.longest_streak == 9


def test_offline_streak_write_is_queued_with_timestamp() -> None:
    stores = Stores()
    service = _service(stores)
    stores.go_offline()

    service.record_day_completed("user-1", WEEK_START)

    [entry] = stores.outbox.pending()
    assert entry.operation == OutboxOperation.SAVE_STREAK
    assert entry.payload["streak"]["currentStreak"] == 1
    assert entry.payload["writtenAt"] == NOW.isoformat()
