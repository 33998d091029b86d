"""Tests for the durable sync outbox."""
from __future__ import annotations

import pytest

from fitplan.core.errors import NetworkError, NetworkErrorKind, SyncError, SyncErrorKind
from fitplan.storage.local_models import open_local_store
from fitplan.storage.outbox import OutboxOperation, SyncOutbox


def _outbox(**kwargs) -> SyncOutbox:
    return SyncOutbox(open_local_store("sqlite://"), **kwargs)


def test_entries_are_fifo() -> None:
    outbox = _outbox()
    first = outbox.enqueue("u1", OutboxOperation.SAVE_PLAN, {"n": 1})
    outbox.enqueue("u2", OutboxOperation.SAVE_STREAK, {"n": 2})

    pending = outbox.pending()

    assert [entry.payload["n"] for entry in pending] == [1, 2]
    assert outbox.peek().id == first
    assert outbox.size() == 2
    assert outbox.size("u1") == 1


def test_mark_completed_removes_entry() -> None:
    outbox = _outbox()
    entry_id = outbox.enqueue("u1", OutboxOperation.SAVE_PLAN, {})

    assert outbox.mark_completed(entry_id)
    assert outbox.is_empty()
    assert not outbox.mark_completed(entry_id)


def test_entry_dropped_after_max_attempts() -> None:
    outbox = _outbox(max_attempts=2)
    entry_id = outbox.enqueue("u1", OutboxOperation.SAVE_PLAN, {})

    assert outbox.mark_attempt_failed(entry_id, "offline")
    assert outbox.pending()[0].attempts == 1
    assert not outbox.mark_attempt_failed(entry_id, "offline again")
    assert outbox.is_empty()


def test_queue_full_raises() -> None:
    outbox = _outbox(max_size=1)
    outbox.enqueue("u1", OutboxOperation.SAVE_PLAN, {})

    with pytest.raises(SyncError) as excinfo:
        outbox.enqueue("u1", OutboxOperation.SAVE_PLAN, {})

    assert excinfo.value.kind is SyncErrorKind.QUEUE_FULL


def test_write_or_enqueue_runs_remote_write_when_queue_empty() -> None:
    outbox = _outbox()
    calls: list[str] = []

    assert outbox.write_or_enqueue("u1", OutboxOperation.SAVE_PLAN, {}, lambda: calls.append("sent"))
    assert calls == ["sent"]
    assert outbox.is_empty()


def test_write_or_enqueue_queues_on_remote_failure() -> None:
    outbox = _outbox()

    def offline() -> None:
        raise NetworkError(NetworkErrorKind.NO_CONNECTION, "down")

    assert not outbox.write_or_enqueue("u1", OutboxOperation.SAVE_STREAK, {"x": 1}, offline)
    assert outbox.pending()[0].operation == OutboxOperation.SAVE_STREAK


def test_write_or_enqueue_keeps_order_behind_pending_writes() -> None:
    outbox = _outbox()
    outbox.enqueue("u1", OutboxOperation.SAVE_PLAN, {"n": 1})
    calls: list[str] = []

    assert not outbox.write_or_enqueue("u1", OutboxOperation.SAVE_STREAK, {"n": 2}, lambda: calls.append("sent"))

    assert calls == []
    assert [entry.payload["n"] for entry in outbox.pending()] == [1, 2]


def test_write_or_enqueue_survives_full_queue() -> None:
    outbox = _outbox(max_size=1)
    outbox.enqueue("u2", OutboxOperation.SAVE_PLAN, {})

    def offline() -> None:
        raise NetworkError(NetworkErrorKind.TIMEOUT, "slow")

    assert not outbox.write_or_enqueue("u1", OutboxOperation.SAVE_PLAN, {}, offline)
    assert outbox.size() == 1


def test_purge_user() -> None:
    outbox = _outbox()
    outbox.enqueue("u1", OutboxOperation.SAVE_PLAN, {})
    outbox.enqueue("u1", OutboxOperation.SAVE_STREAK, {})
    outbox.enqueue("u2", OutboxOperation.SAVE_PLAN, {})

    assert outbox.purge_user("u1") == 2
    assert outbox.size() == 1
