"""Time-boxed undo envelopes."""

import pytest

from quiz_shelf.core.errors import StorageFailure
from quiz_shelf.core.services.undo_coordinator import UndoCoordinator


@pytest.fixture
def coordinator(scheduler, clock):
    return UndoCoordinator(scheduler, clock=clock, window_seconds=5)


def test_commit_within_window_restores(coordinator, scheduler):
    restored = []
    envelope_id = coordinator.stage({"id": "q"}, restored.append)
    scheduler.advance(4.9)

    assert coordinator.commit(envelope_id) is True
    assert restored == [{"id": "q"}]
    assert coordinator.has_pending(envelope_id) is False
    assert scheduler.get_pending_count() == 0


def test_commit_after_expiry_does_nothing(coordinator, scheduler):
    restored = []
    envelope_id = coordinator.stage("snapshot", restored.append)

    assert scheduler.advance(5) == 1
    assert coordinator.commit(envelope_id) is False
    assert restored == []


def test_commit_twice_restores_once(coordinator):
    restored = []
    envelope_id = coordinator.stage("snapshot", restored.append)

    coordinator.commit(envelope_id)
    coordinator.commit(envelope_id)

    assert restored == ["snapshot"]


def test_envelopes_are_independent(coordinator, scheduler):
    """Each envelope has its own timer and expiry"""
    restored = []
    first = coordinator.stage("first", restored.append)
    scheduler.advance(3)
    second = coordinator.stage("second", restored.append)
    scheduler.advance(3)

    assert coordinator.get_pending_ids() == [second]
    assert coordinator.commit(first) is False
    assert coordinator.commit(second) is True
    assert restored == ["second"]


def test_snapshot_is_copied(coordinator):
    """Later changes to the caller's object do not leak into the restore"""
    original = {"questions": ["a", "b"]}
    restored = []
    envelope_id = coordinator.stage(original, restored.append)
    original["questions"].append("c")

    coordinator.commit(envelope_id)

    assert restored == [{"questions": ["a", "b"]}]


def test_dismiss_closes_window(coordinator, scheduler):
    restored = []
    envelope_id = coordinator.stage("snapshot", restored.append)

    assert coordinator.dismiss(envelope_id) is True
    assert coordinator.commit(envelope_id) is False
    assert scheduler.advance(10) == 0


def test_expiry_time_uses_window(coordinator, clock):
    envelope_id = coordinator.stage("snapshot", lambda snapshot: None, window_seconds=2)

    assert (coordinator.get_expiry(envelope_id) - clock.now).total_seconds() == 2
    assert coordinator.get_expiry("undo-missing") is None


def test_failed_restore_can_be_retried(coordinator, scheduler):
    """An undo whose restore raises stays pending for another try"""
    attempts = []

    def flaky_restore(snapshot):
        attempts.append(snapshot)
        if len(attempts) == 1:
            raise StorageFailure("disk full")

    envelope_id = coordinator.stage("snapshot", flaky_restore)

    with pytest.raises(StorageFailure):
        coordinator.commit(envelope_id)
    assert coordinator.has_pending(envelope_id) is True
    assert scheduler.get_pending_count() == 1

    assert coordinator.commit(envelope_id) is True
    assert attempts == ["snapshot", "snapshot"]
    assert coordinator.has_pending(envelope_id) is False
    assert scheduler.get_pending_count() == 0


def test_failed_restore_after_window_is_dropped(coordinator, scheduler, clock):
    def failing_restore(snapshot):
        clock.advance(10)
        raise StorageFailure("disk full")

    envelope_id = coordinator.stage("snapshot", failing_restore)

    with pytest.raises(StorageFailure):
        coordinator.commit(envelope_id)
    assert coordinator.has_pending(envelope_id) is False
    assert scheduler.get_pending_count() == 0
