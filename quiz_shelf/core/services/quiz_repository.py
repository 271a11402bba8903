"""Service owning the persisted quiz library and result histories."""

from __future__ import annotations

from datetime import datetime
import json
import logging
import re
from typing import Any, Callable, Iterable
from uuid import uuid4

from pydantic import TypeAdapter, ValidationError

from quiz_shelf.constants.storage_constants import (
    QUIZ_ID_SLUG_LENGTH,
    QUIZZES_KEY,
    RECENT_KEY,
    RECENT_LIMIT,
    RESULTS_HISTORY_LIMIT,
    RESULTS_KEY_PREFIX,
    SCHEMA_VERSION,
)
from quiz_shelf.core.content_hasher import fingerprint
from quiz_shelf.core.errors import StorageFailure
from quiz_shelf.core.models import (
    BulkDeleteOutcome,
    BulkExport,
    BulkExportMetadata,
    DeletedQuizSnapshot,
    DuplicateCheck,
    LibraryBackup,
    QuizDocument,
    QuizResult,
    RecentQuizSummary,
    SaveOutcome,
    StorageFootprint,
    StoredQuiz,
    utc_now,
)
from quiz_shelf.core.services.key_value_store import KeyValueStore

logger = logging.getLogger(__name__)

_RESULT_HISTORY = TypeAdapter(list[QuizResult])
_RECENT_IDS = TypeAdapter(list[str])


class QuizRepository:
    """Manages stored quiz records, the recency list and per-quiz results.

    Every read goes to the store, so there is no cached state to drift. Reads
    of corrupt entries yield empty values; writes that fail raise
    ``StorageFailure`` after restoring whatever the call had already changed.
    """

    def __init__(self, store: KeyValueStore, clock: Callable[[], datetime] = utc_now) -> None:
        self._store = store
        self._clock = clock

    # --- Records ---

    def save(self, document: QuizDocument) -> SaveOutcome:
        """Persist ``document`` unless a quiz with the same content exists."""
        duplicate = self.check_duplicate(document)
        if duplicate.is_duplicate:
            logger.info(
                "Not saving '%s': same content as stored quiz %s",
                document.metadata.title,
                duplicate.existing_id,
            )
            return SaveOutcome(
                success=False,
                duplicate=True,
                existing_id=duplicate.existing_id,
                existing_title=duplicate.existing_title,
            )
        return self._persist(document, quiz_id=None)

    def force_save(self, document: QuizDocument) -> SaveOutcome:
        """Persist ``document`` even if it duplicates a stored quiz.

        A ``StoredQuiz`` keeps its id, which is how undo brings a deleted
        record back under its original identity.
        """
        quiz_id = document.id if isinstance(document, StoredQuiz) else None
        return self._persist(document, quiz_id=quiz_id)

    def get(self, quiz_id: str) -> StoredQuiz | None:
        return self.get_all().get(quiz_id)

    def get_all(self) -> dict[str, StoredQuiz]:
        raw = self._read_json(QUIZZES_KEY)
        if raw is None:
            return {}
        if not isinstance(raw, dict):
            logger.warning("Ignoring quiz library with unexpected shape %s", type(raw).__name__)
            return {}

        records: dict[str, StoredQuiz] = {}
        for quiz_id, payload in raw.items():
            try:
                records[quiz_id] = StoredQuiz.model_validate(payload)
            except ValidationError:
                logger.warning("Ignoring corrupt quiz record %s", quiz_id)
        return records

    def delete(self, quiz_id: str) -> bool:
        """Remove a quiz together with its recency entry and result history."""
        records = self.get_all()
        if quiz_id not in records:
            logger.warning("Cannot delete quiz %s: not found", quiz_id)
            return False

        del records[quiz_id]
        recent = [rid for rid in self._read_recent_ids() if rid != quiz_id]
        self._write_many(
            {
                QUIZZES_KEY: self._dump_records(records),
                RECENT_KEY: json.dumps(recent),
                self._results_key(quiz_id): None,
            }
        )
        logger.info("Deleted quiz %s", quiz_id)
        return True

    def delete_many(self, quiz_ids: Iterable[str]) -> BulkDeleteOutcome:
        outcome = BulkDeleteOutcome()
        for quiz_id in quiz_ids:
            if self.delete(quiz_id):
                outcome.succeeded.append(quiz_id)
            else:
                outcome.failed.append(quiz_id)
        return outcome

    def check_duplicate(self, document: QuizDocument) -> DuplicateCheck:
        content_hash = fingerprint(document)
        for quiz_id, record in self.get_all().items():
            if record.content_hash == content_hash:
                return DuplicateCheck(
                    is_duplicate=True,
                    existing_id=quiz_id,
                    existing_title=record.metadata.title,
                )
        return DuplicateCheck(is_duplicate=False)

    def list_recent(self) -> list[RecentQuizSummary]:
        """Return summaries for the recency list, most recent first."""
        records = self.get_all()
        summaries: list[RecentQuizSummary] = []
        for quiz_id in self._read_recent_ids():
            record = records.get(quiz_id)
            if record is None:
                continue
            summaries.append(
                RecentQuizSummary(
                    id=quiz_id,
                    title=record.metadata.title or "Untitled",
                    subject=record.metadata.subject or "General",
                    question_count=record.metadata.question_count,
                    created_at=record.created_at,
                    content_hash=record.content_hash,
                )
            )
        return summaries

    # --- Results ---

    def append_result(self, quiz_id: str, result: QuizResult) -> QuizResult | None:
        """Stamp ``result`` with an id and date and add it to the quiz's history.

        The history keeps the most recent appends; the oldest append is
        evicted first regardless of the ``date`` values.
        """
        if self.get(quiz_id) is None:
            logger.warning("Not recording result: quiz %s not found", quiz_id)
            return None

        now = self._clock()
        entry = result.model_copy(
            update={
                "result_id": f"result-{_epoch_ms(now)}-{uuid4().hex[:9]}",
                "date": now,
            }
        )
        history = self.list_results(quiz_id)
        history.append(entry)
        self._write_history(quiz_id, history)
        logger.info("Recorded result %s for quiz %s (%s%%)", entry.result_id, quiz_id, entry.percentage)
        return entry

    def list_results(self, quiz_id: str) -> list[QuizResult]:
        raw = self._store.get_item(self._results_key(quiz_id))
        if raw is None:
            return []
        try:
            return _RESULT_HISTORY.validate_json(raw)
        except ValidationError:
            logger.warning("Ignoring corrupt result history for quiz %s", quiz_id)
            return []

    def list_all_results(self) -> dict[str, list[QuizResult]]:
        results: dict[str, list[QuizResult]] = {}
        for quiz_id in self.get_all():
            history = self.list_results(quiz_id)
            if history:
                results[quiz_id] = history
        return results

    def restore(self, snapshots: Iterable[DeletedQuizSnapshot]) -> None:
        """Put deleted quizzes back under their ids together with their histories.

        Everything is written in one batch, so either all quizzes come back or
        none do. Snapshots are applied in reverse so the first one ends up most
        recent.
        """
        snapshots = list(snapshots)
        records = self.get_all()
        recent = self._read_recent_ids()
        now = self._clock()
        updates: dict[str, str | None] = {}
        for snapshot in reversed(snapshots):
            record = self._build_record(snapshot.record, snapshot.record.id, now)
            records[record.id] = record
            recent = [record.id] + [rid for rid in recent if rid != record.id]
            if snapshot.results:
                trimmed = snapshot.results[-RESULTS_HISTORY_LIMIT:]
                updates[self._results_key(record.id)] = json.dumps([entry.to_payload() for entry in trimmed])
        updates[QUIZZES_KEY] = self._dump_records(records)
        updates[RECENT_KEY] = json.dumps(recent[:RECENT_LIMIT])
        self._write_many(updates)
        logger.info("Restored %d quiz(zes)", len(snapshots))

    # --- Export & maintenance ---

    def export_all(self) -> LibraryBackup:
        return LibraryBackup(
            quizzes=self.get_all(),
            results=self.list_all_results(),
            exported_at=self._clock(),
        )

    def export_subset(self, quiz_ids: Iterable[str]) -> BulkExport:
        """Export selected quizzes without their repository-assigned fields."""
        records = self.get_all()
        quizzes = {
            quiz_id: records[quiz_id].to_document()
            for quiz_id in quiz_ids
            if quiz_id in records
        }
        return BulkExport(
            metadata=BulkExportMetadata(
                export_date=self._clock(),
                count=len(quizzes),
                version=SCHEMA_VERSION,
            ),
            quizzes=quizzes,
        )

    def clear_all(self) -> None:
        updates: dict[str, str | None] = {QUIZZES_KEY: None, RECENT_KEY: None}
        for key in self._store.keys():
            if key.startswith(f"{RESULTS_KEY_PREFIX}-"):
                updates[key] = None
        for quiz_id in self.get_all():
            updates[self._results_key(quiz_id)] = None
        self._write_many(updates)
        logger.info("Cleared quiz library")

    def storage_footprint(self) -> StorageFootprint:
        """Estimate stored size from the serialized records and histories."""
        records = self.get_all()
        estimated = len(self._dump_records(records).encode("utf-8"))
        for quiz_id in records:
            raw = self._store.get_item(self._results_key(quiz_id))
            if raw:
                estimated += len(raw.encode("utf-8"))
        return StorageFootprint(record_count=len(records), estimated_bytes=estimated)

    # --- Internals ---

    def _persist(self, document: QuizDocument, quiz_id: str | None) -> SaveOutcome:
        records = self.get_all()
        now = self._clock()
        if quiz_id is None:
            quiz_id = self._generate_id(document.metadata.title, now, records)

        records[quiz_id] = self._build_record(document, quiz_id, now)

        recent = [quiz_id] + [rid for rid in self._read_recent_ids() if rid != quiz_id]
        self._write_many(
            {
                QUIZZES_KEY: self._dump_records(records),
                RECENT_KEY: json.dumps(recent[:RECENT_LIMIT]),
            }
        )
        logger.info("Saved quiz '%s' as %s", document.metadata.title, quiz_id)
        return SaveOutcome(success=True, quiz_id=quiz_id)

    @staticmethod
    def _build_record(document: QuizDocument, quiz_id: str, created_at: datetime) -> StoredQuiz:
        return StoredQuiz(
            metadata=document.metadata.model_copy(deep=True),
            questions=[question.model_copy(deep=True) for question in document.questions],
            id=quiz_id,
            created_at=created_at,
            schema_version=SCHEMA_VERSION,
            content_hash=fingerprint(document),
        )

    @staticmethod
    def _generate_id(title: str, created_at: datetime, existing: dict[str, StoredQuiz]) -> str:
        slug = re.sub(r"[^a-z0-9]", "-", (title or "quiz").lower())[:QUIZ_ID_SLUG_LENGTH]
        base = f"{slug}-{_epoch_ms(created_at)}"
        candidate = base
        suffix = 2
        while candidate in existing:
            candidate = f"{base}-{suffix}"
            suffix += 1
        return candidate

    def _write_history(self, quiz_id: str, history: list[QuizResult]) -> None:
        trimmed = history[-RESULTS_HISTORY_LIMIT:]
        payload = json.dumps([entry.to_payload() for entry in trimmed])
        self._write_many({self._results_key(quiz_id): payload})

    def _read_recent_ids(self) -> list[str]:
        raw = self._store.get_item(RECENT_KEY)
        if raw is None:
            return []
        try:
            return _RECENT_IDS.validate_json(raw)
        except ValidationError:
            logger.warning("Ignoring corrupt recency list")
            return []

    def _read_json(self, key: str) -> Any:
        raw = self._store.get_item(key)
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except json.JSONDecodeError:
            logger.warning("Ignoring corrupt storage entry %s", key)
            return None

    def _write_many(self, updates: dict[str, str | None]) -> None:
        """Apply several writes; on failure put back the keys already written."""
        previous = {key: self._store.get_item(key) for key in updates}
        applied: list[str] = []
        try:
            for key, value in updates.items():
                if value is None:
                    self._store.remove_item(key)
                else:
                    self._store.set_item(key, value)
                applied.append(key)
        except StorageFailure:
            for key in reversed(applied):
                try:
                    if previous[key] is None:
                        self._store.remove_item(key)
                    else:
                        self._store.set_item(key, previous[key])
                except StorageFailure:
                    logger.exception("Could not roll back storage entry %s", key)
            raise

    @staticmethod
    def _dump_records(records: dict[str, StoredQuiz]) -> str:
        return json.dumps({quiz_id: record.to_payload() for quiz_id, record in records.items()})

    @staticmethod
    def _results_key(quiz_id: str) -> str:
        return f"{RESULTS_KEY_PREFIX}-{quiz_id}"


def _epoch_ms(moment: datetime) -> int:
    return int(moment.timestamp() * 1000)
