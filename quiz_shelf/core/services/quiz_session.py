"""Service for running one quiz attempt from start to scored result."""

from __future__ import annotations

from datetime import datetime
from enum import Enum, auto
import logging
import math
import random
from typing import Callable, NoReturn

from pydantic import ValidationError

from quiz_shelf.constants.storage_constants import SESSION_PROGRESS_KEY
from quiz_shelf.core.errors import SessionStateError, StaleSessionError, StorageFailure
from quiz_shelf.core.models import (
    AnswerFeedback,
    QuestionResult,
    QuizQuestion,
    QuizResult,
    SessionSnapshot,
    StoredQuiz,
    utc_now,
)
from quiz_shelf.core.services.key_value_store import KeyValueStore
from quiz_shelf.core.services.quiz_repository import QuizRepository

logger = logging.getLogger(__name__)


class SessionStatus(Enum):
    IDLE = auto()
    IN_PROGRESS = auto()
    COMPLETED = auto()


class QuizSession:
    """Manages the state of the active attempt.

    Answers are kept by original question index, so the display order can be
    shuffled without affecting scoring. Every change while in progress is
    mirrored to the session store so an interrupted attempt can be resumed.
    """

    def __init__(
        self,
        repository: QuizRepository,
        session_store: KeyValueStore,
        clock: Callable[[], datetime] = utc_now,
        rng: random.Random | None = None,
    ) -> None:
        self._repository = repository
        self._session_store = session_store
        self._clock = clock
        self._shuffle_rng = rng or random.Random()

        self._status = SessionStatus.IDLE
        self._record: StoredQuiz | None = None
        self._question_order: list[int] = []
        self._current_position: int = 0
        self._answers: list[int | None] = []
        self._started_at: datetime | None = None
        self._shuffle_enabled: bool = False
        self._study_mode: bool = False
        self._last_result: QuizResult | None = None

    # --- Lifecycle ---

    def start(self, record: StoredQuiz, shuffle: bool = False, study: bool = False) -> None:
        if self._status is SessionStatus.IN_PROGRESS:
            raise SessionStateError("Submit, restart or abandon the current attempt first.")
        if not record.questions:
            raise SessionStateError("Quiz must contain at least one question.")

        previous = self._capture_state()
        self._record = record
        self._shuffle_enabled = shuffle
        self._study_mode = study
        self._begin_attempt(previous)
        logger.info(
            "Started quiz %s (shuffle=%s, study=%s)", record.id, shuffle, study
        )

    def restart(self) -> None:
        """Begin a fresh attempt of the same quiz with the same modes."""
        if self._status is SessionStatus.IDLE or self._record is None:
            raise SessionStateError("No quiz to restart.")
        self._begin_attempt(self._capture_state())
        logger.info("Restarted quiz %s", self._record.id)

    def resume(self, snapshot: SessionSnapshot, record: StoredQuiz) -> None:
        """Continue an interrupted attempt exactly where it was left.

        The saved display order is reused as-is. A snapshot whose quiz content
        or shape no longer matches ``record`` is discarded.
        """
        if self._status is not SessionStatus.IDLE:
            raise SessionStateError("Only an idle session can resume a saved attempt.")
        if snapshot.quiz_id != record.id:
            raise ValueError(f"Saved attempt belongs to quiz {snapshot.quiz_id}, not {record.id}.")

        count = len(record.questions)
        if snapshot.content_hash is not None and snapshot.content_hash != record.content_hash:
            self._discard_stale(record.id, "quiz content changed since the attempt was saved")
        if sorted(snapshot.question_order) != list(range(count)) or len(snapshot.answers) != count:
            self._discard_stale(record.id, "question count changed since the attempt was saved")
        if not 0 <= snapshot.index < count:
            self._discard_stale(record.id, "saved position is out of range")
        for original_index, answer in enumerate(snapshot.answers):
            if answer is not None and not 0 <= answer < len(record.questions[original_index].options):
                self._discard_stale(record.id, "saved answers do not fit the quiz")

        previous = self._capture_state()
        self._record = record
        self._question_order = list(snapshot.question_order)
        self._answers = list(snapshot.answers)
        self._current_position = snapshot.index
        self._started_at = snapshot.start_time
        self._shuffle_enabled = snapshot.shuffle_enabled
        self._study_mode = snapshot.study_mode
        self._last_result = None
        self._status = SessionStatus.IN_PROGRESS
        self._save_snapshot_or_rollback(previous)
        logger.info(
            "Resumed quiz %s at position %d (%d answered)",
            record.id,
            self._current_position,
            snapshot.get_answered_count(),
        )

    def abandon(self) -> None:
        """Drop the current attempt and its saved snapshot."""
        if self._record is not None and self._status is SessionStatus.IN_PROGRESS:
            logger.info("Abandoned quiz %s", self._record.id)
        self._reset()
        self._session_store.remove_item(SESSION_PROGRESS_KEY)

    def submit(self) -> QuizResult:
        """Score the attempt and hand the result to the repository.

        Unanswered questions count as incorrect; callers that want to offer a
        second chance check ``first_unanswered_position`` beforehand.
        """
        record = self._require_in_progress()
        now = self._clock()

        question_results: list[QuestionResult] = []
        for original_index, question in enumerate(record.questions):
            user_answer = self._answers[original_index]
            question_results.append(
                QuestionResult(
                    question=question.question,
                    options=list(question.options),
                    correct_answer=question.answer,
                    user_answer=user_answer,
                    is_correct=user_answer == question.answer,
                    explanation=question.explanation,
                )
            )

        total = len(question_results)
        correct = sum(1 for item in question_results if item.is_correct)
        elapsed = now - self._started_at if self._started_at else None
        result = QuizResult(
            correct=correct,
            total=total,
            percentage=_round_half_up(100 * correct / total),
            score=f"{correct}/{total}",
            time_spent_ms=max(0, int(elapsed.total_seconds() * 1000)) if elapsed else 0,
            shuffle_enabled=self._shuffle_enabled,
            study_mode=self._study_mode,
            results=question_results,
        )

        stored = self._repository.append_result(record.id, result)
        self._session_store.remove_item(SESSION_PROGRESS_KEY)
        self._last_result = stored or result
        self._status = SessionStatus.COMPLETED
        logger.info("Submitted quiz %s: %s (%d%%)", record.id, result.score, result.percentage)
        return self._last_result

    # --- Answering & navigation ---

    def select_answer(self, display_position: int, option_index: int) -> AnswerFeedback | None:
        """Record a choice; in study mode return feedback for that question."""
        record = self._require_in_progress()
        original_index = self._original_index(display_position)
        question = record.questions[original_index]
        if not 0 <= option_index < len(question.options):
            raise ValueError(
                f"Option index {option_index} out of range for question with {len(question.options)} options"
            )

        previous = self._capture_state()
        self._answers[original_index] = option_index
        self._save_snapshot_or_rollback(previous)
        if self._study_mode:
            return self._feedback(original_index, question)
        return None

    def feedback_for(self, display_position: int) -> AnswerFeedback | None:
        """Feedback for an already answered question, shown only in study mode."""
        record = self._require_in_progress()
        original_index = self._original_index(display_position)
        if not self._study_mode or self._answers[original_index] is None:
            return None
        return self._feedback(original_index, record.questions[original_index])

    def navigate(self, to_position: int) -> None:
        self._require_in_progress()
        if not 0 <= to_position < len(self._question_order):
            raise IndexError(f"Question position {to_position} out of range")
        previous = self._capture_state()
        self._current_position = to_position
        self._save_snapshot_or_rollback(previous)

    def next(self) -> bool:
        self._require_in_progress()
        if self._current_position >= len(self._question_order) - 1:
            return False
        self.navigate(self._current_position + 1)
        return True

    def previous(self) -> bool:
        self._require_in_progress()
        if self._current_position == 0:
            return False
        self.navigate(self._current_position - 1)
        return True

    def first_unanswered_position(self) -> int | None:
        """Display position of the first unanswered question, in authored order."""
        for original_index, answer in enumerate(self._answers):
            if answer is None:
                return self._question_order.index(original_index)
        return None

    # --- Saved snapshot ---

    def load_saved_snapshot(self) -> SessionSnapshot | None:
        raw = self._session_store.get_item(SESSION_PROGRESS_KEY)
        if raw is None:
            return None
        try:
            return SessionSnapshot.model_validate_json(raw)
        except ValidationError:
            logger.warning("Discarding corrupt saved attempt")
            self._session_store.remove_item(SESSION_PROGRESS_KEY)
            return None

    def discard_if_referencing(self, quiz_id: str) -> bool:
        """Forget the live attempt and saved snapshot if they belong to ``quiz_id``."""
        discarded = False
        if self._record is not None and self._record.id == quiz_id:
            self._reset()
            discarded = True
        snapshot = self.load_saved_snapshot()
        if snapshot is not None and snapshot.quiz_id == quiz_id:
            self._session_store.remove_item(SESSION_PROGRESS_KEY)
            discarded = True
        if discarded:
            logger.info("Discarded attempt for deleted quiz %s", quiz_id)
        return discarded

    # --- Accessors ---

    def get_status(self) -> SessionStatus:
        return self._status

    def is_in_progress(self) -> bool:
        return self._status is SessionStatus.IN_PROGRESS

    def get_record(self) -> StoredQuiz | None:
        return self._record

    def get_question_order(self) -> list[int]:
        return list(self._question_order)

    def get_question_count(self) -> int:
        return len(self._question_order)

    def get_current_position(self) -> int:
        return self._current_position

    def get_question_at(self, display_position: int) -> QuizQuestion:
        if self._record is None:
            raise SessionStateError("No quiz loaded.")
        return self._record.questions[self._original_index(display_position)]

    def get_current_question(self) -> QuizQuestion | None:
        if self._record is None or not self._question_order:
            return None
        return self.get_question_at(self._current_position)

    def get_answer_at(self, display_position: int) -> int | None:
        return self._answers[self._original_index(display_position)]

    def get_answers(self) -> list[int | None]:
        """Answers in authored question order."""
        return list(self._answers)

    def get_answered_count(self) -> int:
        return sum(1 for answer in self._answers if answer is not None)

    def get_last_result(self) -> QuizResult | None:
        return self._last_result

    def is_shuffle_enabled(self) -> bool:
        return self._shuffle_enabled

    def is_study_mode(self) -> bool:
        return self._study_mode

    def set_shuffle_seed(self, seed: int | None) -> None:
        self._shuffle_rng.seed(seed)

    # --- Internals ---

    def _begin_attempt(self, previous: tuple) -> None:
        count = len(self._record.questions)
        if self._shuffle_enabled:
            self._question_order = self._shuffled_order(count)
        else:
            self._question_order = list(range(count))
        self._answers = [None] * count
        self._current_position = 0
        self._started_at = self._clock()
        self._last_result = None
        self._status = SessionStatus.IN_PROGRESS
        self._save_snapshot_or_rollback(previous)

    def _shuffled_order(self, count: int) -> list[int]:
        # Fisher-Yates
        order = list(range(count))
        for i in range(count - 1, 0, -1):
            j = self._shuffle_rng.randint(0, i)
            order[i], order[j] = order[j], order[i]
        return order

    def _original_index(self, display_position: int) -> int:
        if not 0 <= display_position < len(self._question_order):
            raise IndexError(f"Question position {display_position} out of range")
        return self._question_order[display_position]

    def _feedback(self, original_index: int, question: QuizQuestion) -> AnswerFeedback:
        selected = self._answers[original_index]
        return AnswerFeedback(
            question_index=original_index,
            selected_option_index=selected,
            correct_option_index=question.answer,
            is_correct=selected == question.answer,
            explanation=question.explanation,
        )

    def _require_in_progress(self) -> StoredQuiz:
        if self._status is not SessionStatus.IN_PROGRESS or self._record is None:
            raise SessionStateError("No quiz attempt in progress.")
        return self._record

    def _save_snapshot(self) -> None:
        snapshot = SessionSnapshot(
            quiz_id=self._record.id,
            question_order=list(self._question_order),
            index=self._current_position,
            answers=list(self._answers),
            start_time=self._started_at,
            shuffle_enabled=self._shuffle_enabled,
            study_mode=self._study_mode,
            content_hash=self._record.content_hash,
        )
        self._session_store.set_item(SESSION_PROGRESS_KEY, snapshot.model_dump_json(by_alias=True))
        logger.debug("Saved attempt snapshot for quiz %s", self._record.id)

    def _save_snapshot_or_rollback(self, previous: tuple) -> None:
        """Write the snapshot; if the store refuses, put back the state from ``previous``."""
        try:
            self._save_snapshot()
        except StorageFailure:
            self._restore_state(previous)
            raise

    def _capture_state(self) -> tuple:
        return (
            self._status,
            self._record,
            list(self._question_order),
            self._current_position,
            list(self._answers),
            self._started_at,
            self._shuffle_enabled,
            self._study_mode,
            self._last_result,
        )

    def _restore_state(self, state: tuple) -> None:
        (
            self._status,
            self._record,
            self._question_order,
            self._current_position,
            self._answers,
            self._started_at,
            self._shuffle_enabled,
            self._study_mode,
            self._last_result,
        ) = state

    def _discard_stale(self, quiz_id: str, reason: str) -> NoReturn:
        logger.warning("Discarding saved attempt for quiz %s: %s", quiz_id, reason)
        self._session_store.remove_item(SESSION_PROGRESS_KEY)
        raise StaleSessionError(f"Saved attempt can no longer be resumed: {reason}.")

    def _reset(self) -> None:
        self._status = SessionStatus.IDLE
        self._record = None
        self._question_order = []
        self._current_position = 0
        self._answers = []
        self._started_at = None
        self._shuffle_enabled = False
        self._study_mode = False
        self._last_result = None


def _round_half_up(value: float) -> int:
    return math.floor(value + 0.5)
