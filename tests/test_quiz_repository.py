"""Persistence of quizzes, the recency list and result histories."""

import json

import pytest

from quiz_shelf.constants.storage_constants import QUIZZES_KEY, RECENT_KEY, RESULTS_KEY_PREFIX, SCHEMA_VERSION
from quiz_shelf.core.errors import StorageFailure, StorageQuotaExceeded
from quiz_shelf.core.models import DeletedQuizSnapshot, QuizResult
from quiz_shelf.core.quiz_validator import decode_quiz
from quiz_shelf.core.services.key_value_store import InMemoryStore
from quiz_shelf.core.services.quiz_repository import QuizRepository


def make_result(correct=2, total=3):
    return QuizResult(
        correct=correct,
        total=total,
        percentage=round(100 * correct / total),
        score=f"{correct}/{total}",
        time_spent_ms=1500,
    )


def test_save_assigns_internal_fields(repository, quiz_document, clock):
    """Saved records get an id, timestamp, schema version and fingerprint"""
    outcome = repository.save(quiz_document)

    assert outcome.success is True
    assert outcome.quiz_id == f"world-capitals-{int(clock.now.timestamp() * 1000)}"

    record = repository.get(outcome.quiz_id)
    assert record.created_at == clock.now
    assert record.schema_version == SCHEMA_VERSION
    assert record.content_hash
    assert record.to_document() == quiz_document


def test_id_slug_is_truncated_and_unique(repository, quiz_payload):
    """Long titles are cut to twenty characters and collisions get a suffix"""
    first = repository.force_save(decode_quiz(quiz_payload(title="A Very Long Quiz Title Indeed!")))
    second = repository.force_save(decode_quiz(quiz_payload(title="A Very Long Quiz Title Indeed!")))

    assert first.quiz_id.startswith("a-very-long-quiz-tit-")
    assert second.quiz_id == f"{first.quiz_id}-2"


def test_duplicate_is_not_saved(repository, quiz_document, quiz_payload):
    """Saving identical content reports the existing quiz instead"""
    first = repository.save(quiz_document)

    outcome = repository.save(decode_quiz(quiz_payload(source="elsewhere")))

    assert outcome.success is False
    assert outcome.duplicate is True
    assert outcome.existing_id == first.quiz_id
    assert outcome.existing_title == "World Capitals"
    assert len(repository.get_all()) == 1


def test_force_save_keeps_both_copies(repository, quiz_document, clock):
    """Forcing a duplicate stores a second record with its own id"""
    first = repository.save(quiz_document)
    clock.advance(1)

    second = repository.force_save(quiz_document)

    assert second.success is True
    assert second.quiz_id != first.quiz_id
    assert len(repository.get_all()) == 2


def test_force_save_reuses_stored_quiz_id(repository, stored_quiz):
    """A stored record keeps its identity when written back"""
    repository.delete(stored_quiz.id)

    outcome = repository.force_save(stored_quiz)

    assert outcome.quiz_id == stored_quiz.id
    assert repository.get(stored_quiz.id) is not None


def test_check_duplicate(repository, quiz_document, quiz_payload):
    assert repository.check_duplicate(quiz_document).is_duplicate is False
    outcome = repository.save(quiz_document)

    check = repository.check_duplicate(quiz_document)
    assert check.is_duplicate is True
    assert check.existing_id == outcome.quiz_id
    assert repository.check_duplicate(decode_quiz(quiz_payload(title="Other"))).is_duplicate is False


def test_list_recent_is_most_recent_first(repository, quiz_payload, clock):
    """Recency follows save order, newest first"""
    ids = []
    for number in range(3):
        clock.advance(1)
        ids.append(repository.save(decode_quiz(quiz_payload(title=f"Quiz {number}"))).quiz_id)

    summaries = repository.list_recent()

    assert [summary.id for summary in summaries] == list(reversed(ids))
    assert summaries[0].title == "Quiz 2"
    assert summaries[0].question_count == 3


def test_recent_list_is_capped(repository, quiz_payload, clock):
    """Only the twenty latest saves are remembered"""
    for number in range(25):
        clock.advance(1)
        repository.save(decode_quiz(quiz_payload(title=f"Quiz {number}")))

    summaries = repository.list_recent()

    assert len(summaries) == 20
    assert summaries[0].title == "Quiz 24"
    assert summaries[-1].title == "Quiz 5"
    assert len(repository.get_all()) == 25


def test_delete_cascades(repository, stored_quiz, store):
    """Deleting removes the record, its recency entry and its results"""
    repository.append_result(stored_quiz.id, make_result())

    assert repository.delete(stored_quiz.id) is True

    assert repository.get(stored_quiz.id) is None
    assert repository.list_recent() == []
    assert repository.list_results(stored_quiz.id) == []
    assert f"{RESULTS_KEY_PREFIX}-{stored_quiz.id}" not in store.keys()


def test_delete_unknown_quiz(repository):
    assert repository.delete("missing") is False


def test_delete_many_reports_each_id(repository, stored_quiz):
    outcome = repository.delete_many([stored_quiz.id, "missing"])

    assert outcome.succeeded == [stored_quiz.id]
    assert outcome.failed == ["missing"]


def test_append_result_stamps_id_and_date(repository, stored_quiz, clock):
    """The repository assigns the result id and date"""
    entry = repository.append_result(stored_quiz.id, make_result())

    assert entry.result_id.startswith(f"result-{int(clock.now.timestamp() * 1000)}-")
    assert entry.date == clock.now
    assert repository.list_results(stored_quiz.id) == [entry]


def test_append_result_for_missing_quiz_is_ignored(repository, store):
    assert repository.append_result("missing", make_result()) is None
    assert store.keys() == []


def test_history_evicts_oldest_append_first(repository, stored_quiz, clock):
    """The cap follows append order even when dates go backwards"""
    appended = []
    for number in range(22):
        clock.advance(-60)
        appended.append(repository.append_result(stored_quiz.id, make_result(correct=number % 4)))

    history = repository.list_results(stored_quiz.id)

    assert len(history) == 20
    assert [entry.result_id for entry in history] == [entry.result_id for entry in appended[2:]]


def test_corrupt_entries_read_as_empty(store, clock, stored_quiz):
    """Unparseable stored values do not raise"""
    store.set_item(RECENT_KEY, "{not json")
    store.set_item(f"{RESULTS_KEY_PREFIX}-{stored_quiz.id}", "[{]")
    repository = QuizRepository(store, clock=clock)

    assert repository.list_recent() == []
    assert repository.list_results(stored_quiz.id) == []
    assert repository.get(stored_quiz.id) is not None

    store.set_item(QUIZZES_KEY, "garbage")
    assert repository.get_all() == {}


def test_corrupt_record_is_skipped(repository, stored_quiz, store):
    """One bad record does not hide the others"""
    records = json.loads(store.get_item(QUIZZES_KEY))
    records["broken"] = {"metadata": "nope"}
    store.set_item(QUIZZES_KEY, json.dumps(records))

    assert list(repository.get_all()) == [stored_quiz.id]


def test_quota_failure_rolls_back(clock, quiz_payload):
    """A save that cannot fit leaves the library exactly as it was"""
    store = InMemoryStore(quota_bytes=4000)
    repository = QuizRepository(store, clock=clock)
    repository.save(decode_quiz(quiz_payload(title="Fits")))
    before = {key: store.get_item(key) for key in store.keys()}

    big = quiz_payload(title="Too big")
    big["questions"][0]["explanation"] = "x" * 5000
    with pytest.raises(StorageQuotaExceeded):
        repository.save(decode_quiz(big))

    assert {key: store.get_item(key) for key in store.keys()} == before


def test_export_subset_strips_internal_fields(repository, stored_quiz):
    """Exported quizzes carry only the importable shape"""
    export = repository.export_subset([stored_quiz.id, "missing"])
    payload = export.to_payload()

    assert payload["metadata"]["count"] == 1
    assert payload["metadata"]["version"] == SCHEMA_VERSION
    exported = payload["quizzes"][stored_quiz.id]
    assert set(exported) == {"metadata", "questions"}
    assert exported["metadata"]["questionCount"] == 3


def test_export_all_includes_results(repository, stored_quiz):
    repository.append_result(stored_quiz.id, make_result())

    backup = repository.export_all()

    assert list(backup.quizzes) == [stored_quiz.id]
    assert len(backup.results[stored_quiz.id]) == 1


def test_clear_all(repository, stored_quiz, store):
    """Clearing removes quizzes, recency and every results key"""
    repository.append_result(stored_quiz.id, make_result())
    store.set_item(f"{RESULTS_KEY_PREFIX}-orphan", "[]")
    store.set_item("unrelated", "keep")

    repository.clear_all()

    assert store.keys() == ["unrelated"]


def test_storage_footprint(repository, quiz_payload):
    assert repository.storage_footprint().record_count == 0

    repository.save(decode_quiz(quiz_payload()))
    footprint = repository.storage_footprint()

    assert footprint.record_count == 1
    assert footprint.estimated_bytes > 0


class RefuseKeyStore(InMemoryStore):
    """Store that refuses writes to one key."""

    def __init__(self, refused_key):
        super().__init__()
        self.refused_key = refused_key

    def set_item(self, key, value):
        if key == self.refused_key:
            raise StorageFailure(f"Could not write storage entry '{key}'")
        super().set_item(key, value)


def deleted_snapshots(repository, quiz_ids):
    return [
        DeletedQuizSnapshot(record=repository.get(quiz_id), results=repository.list_results(quiz_id))
        for quiz_id in quiz_ids
    ]


def test_restore_brings_back_records_and_history(repository, quiz_payload, clock):
    """Restored quizzes keep their ids and results, first one most recent"""
    first = repository.save(decode_quiz(quiz_payload(title="First"))).quiz_id
    second = repository.save(decode_quiz(quiz_payload(title="Second"))).quiz_id
    kept = repository.save(decode_quiz(quiz_payload(title="Kept"))).quiz_id
    entry = repository.append_result(first, make_result())
    snapshots = deleted_snapshots(repository, [first, second])
    repository.delete_many([first, second])

    repository.restore(snapshots)

    assert set(repository.get_all()) == {first, second, kept}
    assert repository.list_results(first) == [entry]
    assert repository.list_results(second) == []
    assert [summary.id for summary in repository.list_recent()] == [first, second, kept]


def test_failed_restore_writes_nothing(clock, quiz_payload):
    """When one key cannot be written the earlier writes are put back"""
    store = RefuseKeyStore(refused_key=None)
    repository = QuizRepository(store, clock=clock)
    quiz_id = repository.save(decode_quiz(quiz_payload())).quiz_id
    repository.append_result(quiz_id, make_result())
    snapshots = deleted_snapshots(repository, [quiz_id])
    repository.delete(quiz_id)
    before = {key: store.get_item(key) for key in store.keys()}

    store.refused_key = RECENT_KEY
    with pytest.raises(StorageFailure):
        repository.restore(snapshots)

    assert {key: store.get_item(key) for key in store.keys()} == before
    assert repository.get(quiz_id) is None
    assert repository.list_results(quiz_id) == []
