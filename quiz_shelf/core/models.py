"""Domain models for the quiz library.

Persisted and exported shapes are pydantic models serialized with camelCase
aliases so that stored JSON matches the import format. In-process value
objects returned by the services are plain dataclasses.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class CamelModel(BaseModel):
    """Base model that reads and writes camelCase keys."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_payload(self) -> dict[str, Any]:
        """Return a JSON-compatible dict using the external key names."""
        return self.model_dump(mode="json", by_alias=True)


class QuizMetadata(CamelModel):
    title: str
    subject: str
    source: str | None = None
    tags: list[str] = Field(default_factory=list)
    question_count: int

    @field_validator("tags", mode="before")
    @classmethod
    def _null_tags_as_empty(cls, value: Any) -> Any:
        return [] if value is None else value


class QuizQuestion(CamelModel):
    """Multiple-choice question with two to six options."""

    id: str | int
    question: str
    options: list[str]
    answer: int
    explanation: str


class QuizDocument(CamelModel):
    """A validated quiz as imported by the user."""

    metadata: QuizMetadata
    questions: list[QuizQuestion]

    def get_question_count(self) -> int:
        return len(self.questions)


class StoredQuiz(QuizDocument):
    """A quiz document plus the fields the repository assigns on save."""

    id: str
    created_at: datetime
    schema_version: int
    content_hash: str

    def to_document(self) -> QuizDocument:
        """Return a deep copy without the repository-assigned fields."""
        return QuizDocument(
            metadata=self.metadata.model_copy(deep=True),
            questions=[question.model_copy(deep=True) for question in self.questions],
        )


class QuestionResult(CamelModel):
    question: str
    options: list[str]
    correct_answer: int
    user_answer: int | None
    is_correct: bool
    explanation: str


class QuizResult(CamelModel):
    """Scored outcome of one completed attempt."""

    result_id: str = ""
    date: datetime | None = None
    correct: int
    total: int
    percentage: int
    score: str
    time_spent_ms: int
    shuffle_enabled: bool = False
    study_mode: bool = False
    results: list[QuestionResult] = Field(default_factory=list)


class SessionSnapshot(CamelModel):
    """Resumable state of an in-progress attempt.

    ``answers`` is indexed by original question position; ``index`` is the
    current display position.
    """

    quiz_id: str
    question_order: list[int]
    index: int = 0
    answers: list[int | None]
    start_time: datetime
    shuffle_enabled: bool = False
    study_mode: bool = False
    content_hash: str | None = None

    def get_answered_count(self) -> int:
        return sum(1 for answer in self.answers if answer is not None)


class BulkExportMetadata(CamelModel):
    export_date: datetime
    count: int
    version: int


class BulkExport(CamelModel):
    """Selected quizzes without repository fields, ready for re-import."""

    metadata: BulkExportMetadata
    quizzes: dict[str, QuizDocument]


class LibraryBackup(CamelModel):
    """Every stored record and result history."""

    quizzes: dict[str, StoredQuiz]
    results: dict[str, list[QuizResult]]
    exported_at: datetime


class AttemptQuizInfo(CamelModel):
    title: str
    subject: str
    source: str | None = None


class AttemptExport(CamelModel):
    """A single completed attempt, exported for sharing."""

    quiz: AttemptQuizInfo
    results: QuizResult
    exported_at: datetime


@dataclass(slots=True)
class SaveOutcome:
    """Result of a save; ``duplicate`` is set when nothing was persisted."""

    success: bool
    quiz_id: str | None = None
    duplicate: bool = False
    existing_id: str | None = None
    existing_title: str | None = None


@dataclass(slots=True)
class DuplicateCheck:
    is_duplicate: bool
    existing_id: str | None = None
    existing_title: str | None = None


@dataclass(slots=True)
class BulkDeleteOutcome:
    succeeded: list[str] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)


@dataclass(slots=True)
class RecentQuizSummary:
    """Metadata row shown in the library listing."""

    id: str
    title: str
    subject: str
    question_count: int
    created_at: datetime
    content_hash: str


@dataclass(slots=True)
class StorageFootprint:
    record_count: int
    estimated_bytes: int

    @property
    def estimated_mb(self) -> float:
        return round(self.estimated_bytes / 1024 / 1024, 2)


@dataclass(slots=True)
class AnswerFeedback:
    """Immediate correctness feedback shown in study mode."""

    question_index: int
    selected_option_index: int
    correct_option_index: int
    is_correct: bool
    explanation: str


@dataclass(slots=True)
class DeletedQuizSnapshot:
    """Everything needed to bring a deleted quiz back."""

    record: StoredQuiz
    results: list[QuizResult] = field(default_factory=list)
