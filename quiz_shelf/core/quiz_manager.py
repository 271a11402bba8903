"""Business logic shared by every front end of the quiz library."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
import logging
from pathlib import Path
import random
from threading import Lock
from typing import Callable, Iterable

from quiz_shelf.core.errors import StaleSessionError
from quiz_shelf.core.models import (
    AnswerFeedback,
    AttemptExport,
    BulkExport,
    DeletedQuizSnapshot,
    DuplicateCheck,
    LibraryBackup,
    QuizDocument,
    QuizResult,
    RecentQuizSummary,
    SaveOutcome,
    SessionSnapshot,
    StorageFootprint,
    StoredQuiz,
    utc_now,
)
from quiz_shelf.core.quiz_exporter import build_attempt_export
from quiz_shelf.core.quiz_importer import load_library_export, load_quiz_from_file, parse_quiz_text
from quiz_shelf.core.services.key_value_store import InMemoryStore, KeyValueStore
from quiz_shelf.core.services.quiz_repository import QuizRepository
from quiz_shelf.core.services.quiz_session import QuizSession
from quiz_shelf.core.services.scheduling import Scheduler, ThreadingScheduler
from quiz_shelf.core.services.undo_coordinator import UndoCoordinator

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class UndoTicket:
    """What a delete removed and how to take it back."""

    envelope_id: str | None
    deleted_ids: list[str] = field(default_factory=list)
    failed_ids: list[str] = field(default_factory=list)


@dataclass(slots=True)
class SavedAttempt:
    """A resumable attempt found in the session store."""

    snapshot: SessionSnapshot
    record: StoredQuiz


class QuizManager:
    """Facade for the quiz services: Repository, Session and Undo."""

    def __init__(
        self,
        store: KeyValueStore,
        session_store: KeyValueStore | None = None,
        scheduler: Scheduler | None = None,
        clock: Callable[[], datetime] = utc_now,
        rng: random.Random | None = None,
    ) -> None:
        self._lock = Lock()
        self._clock = clock

        # Services
        self._repository = QuizRepository(store, clock=clock)
        self._session = QuizSession(
            self._repository,
            session_store if session_store is not None else InMemoryStore(),
            clock=clock,
            rng=rng,
        )
        self._undo = UndoCoordinator(scheduler or ThreadingScheduler(), clock=clock)

    # --- Import ---

    def import_quiz_text(self, text: str, force: bool = False) -> SaveOutcome:
        return self.import_document(parse_quiz_text(text), force=force)

    def import_quiz_file(self, file_path: Path, force: bool = False) -> SaveOutcome:
        return self.import_document(load_quiz_from_file(file_path).document, force=force)

    def import_library_file(self, file_path: Path) -> list[SaveOutcome]:
        """Save every quiz from an export, skipping ones already in the library."""
        documents = load_library_export(file_path)
        return [self.import_document(document) for document in documents]

    def import_document(self, document: QuizDocument, force: bool = False) -> SaveOutcome:
        with self._lock:
            if force:
                return self._repository.force_save(document)
            return self._repository.save(document)

    def check_duplicate(self, document: QuizDocument) -> DuplicateCheck:
        with self._lock:
            return self._repository.check_duplicate(document)

    # --- Library ---

    def get_quiz(self, quiz_id: str) -> StoredQuiz | None:
        with self._lock:
            record = self._repository.get(quiz_id)
        if record is None:
            logger.warning("Quiz %s not found", quiz_id)
        return record

    def list_recent_quizzes(self) -> list[RecentQuizSummary]:
        with self._lock:
            return self._repository.list_recent()

    def list_all_quizzes(self) -> list[StoredQuiz]:
        with self._lock:
            return list(self._repository.get_all().values())

    def list_results(self, quiz_id: str) -> list[QuizResult]:
        with self._lock:
            return self._repository.list_results(quiz_id)

    def delete_quiz(self, quiz_id: str) -> bool:
        with self._lock:
            deleted = self._repository.delete(quiz_id)
            if deleted:
                self._session.discard_if_referencing(quiz_id)
            return deleted

    def delete_quizzes_with_undo(
        self, quiz_ids: Iterable[str], window_seconds: float | None = None
    ) -> UndoTicket:
        """Delete quizzes and stage one undo envelope covering all of them."""
        with self._lock:
            unique_ids = list(dict.fromkeys(quiz_ids))
            snapshots: list[DeletedQuizSnapshot] = []
            for quiz_id in unique_ids:
                record = self._repository.get(quiz_id)
                if record is not None:
                    snapshots.append(
                        DeletedQuizSnapshot(record=record, results=self._repository.list_results(quiz_id))
                    )

            outcome = self._repository.delete_many(unique_ids)
            for quiz_id in outcome.succeeded:
                self._session.discard_if_referencing(quiz_id)

            deleted = [s for s in snapshots if s.record.id in outcome.succeeded]
            if not deleted:
                return UndoTicket(envelope_id=None, failed_ids=outcome.failed)

            envelope_id = self._undo.stage(deleted, self._restore_deleted, window_seconds=window_seconds)
            return UndoTicket(
                envelope_id=envelope_id,
                deleted_ids=outcome.succeeded,
                failed_ids=outcome.failed,
            )

    def undo(self, envelope_id: str) -> bool:
        with self._lock:
            return self._undo.commit(envelope_id)

    def dismiss_undo(self, envelope_id: str) -> bool:
        return self._undo.dismiss(envelope_id)

    def has_pending_undo(self, envelope_id: str) -> bool:
        return self._undo.has_pending(envelope_id)

    def clear_all_data(self) -> None:
        with self._lock:
            self._repository.clear_all()
            self._session.abandon()

    def get_storage_footprint(self) -> StorageFootprint:
        with self._lock:
            return self._repository.storage_footprint()

    # --- Export ---

    def export_all(self) -> LibraryBackup:
        with self._lock:
            return self._repository.export_all()

    def export_quizzes(self, quiz_ids: Iterable[str]) -> BulkExport:
        with self._lock:
            return self._repository.export_subset(quiz_ids)

    def export_last_attempt(self) -> AttemptExport | None:
        with self._lock:
            record = self._session.get_record()
            result = self._session.get_last_result()
            if record is None or result is None:
                return None
            return build_attempt_export(record, result, exported_at=self._clock())

    # --- Session ---

    def start_quiz(self, quiz_id: str, shuffle: bool = False, study: bool = False) -> StoredQuiz | None:
        with self._lock:
            record = self._repository.get(quiz_id)
            if record is None:
                logger.warning("Cannot start quiz %s: not found", quiz_id)
                return None
            if self._session.is_in_progress():
                self._session.abandon()
            self._session.start(record, shuffle=shuffle, study=study)
            return record

    def get_saved_attempt(self) -> SavedAttempt | None:
        """Return the resumable attempt, dropping it if its quiz is gone."""
        with self._lock:
            snapshot = self._session.load_saved_snapshot()
            if snapshot is None:
                return None
            record = self._repository.get(snapshot.quiz_id)
            if record is None:
                logger.warning("Dropping saved attempt for missing quiz %s", snapshot.quiz_id)
                self._session.discard_if_referencing(snapshot.quiz_id)
                return None
            return SavedAttempt(snapshot=snapshot, record=record)

    def resume_saved_attempt(self) -> StoredQuiz | None:
        saved = self.get_saved_attempt()
        if saved is None:
            return None
        with self._lock:
            try:
                self._session.resume(saved.snapshot, saved.record)
            except StaleSessionError as exc:
                logger.warning("%s", exc)
                return None
            return saved.record

    def select_answer(self, display_position: int, option_index: int) -> AnswerFeedback | None:
        with self._lock:
            return self._session.select_answer(display_position, option_index)

    def navigate(self, to_position: int) -> None:
        with self._lock:
            self._session.navigate(to_position)

    def first_unanswered_position(self) -> int | None:
        with self._lock:
            return self._session.first_unanswered_position()

    def submit_quiz(self) -> QuizResult:
        with self._lock:
            return self._session.submit()

    def restart_quiz(self) -> None:
        with self._lock:
            self._session.restart()

    def abandon_quiz(self) -> None:
        with self._lock:
            self._session.abandon()

    def get_session(self) -> QuizSession:
        """Read access for front ends rendering the current attempt."""
        return self._session

    def set_shuffle_seed(self, seed: int | None) -> None:
        with self._lock:
            self._session.set_shuffle_seed(seed)

    def now(self) -> datetime:
        return self._clock()

    # --- Internals ---

    def _restore_deleted(self, snapshots: list[DeletedQuizSnapshot]) -> None:
        self._repository.restore(snapshots)
