"""Utilities for writing library exports and attempt results to disk."""

from __future__ import annotations

from datetime import datetime
from pathlib import Path
import re

from pydantic import BaseModel

from quiz_shelf.core.models import AttemptExport, AttemptQuizInfo, QuizResult, StoredQuiz


def save_export_to_file(file_path: Path, document: BaseModel) -> Path:
    """Write ``document`` as indented JSON and return the resolved path."""
    file_path = file_path.resolve()
    file_path.parent.mkdir(parents=True, exist_ok=True)
    text = document.model_dump_json(by_alias=True, indent=2)
    file_path.write_text(text + "\n", encoding="utf-8")
    return file_path


def build_attempt_export(record: StoredQuiz, result: QuizResult, exported_at: datetime) -> AttemptExport:
    return AttemptExport(
        quiz=AttemptQuizInfo(
            title=record.metadata.title,
            subject=record.metadata.subject,
            source=record.metadata.source,
        ),
        results=result.model_copy(deep=True),
        exported_at=exported_at,
    )


def default_library_export_name(count: int, exported_at: datetime) -> str:
    noun = "quiz" if count == 1 else "quizzes"
    return f"quiz-export-{count}-{noun}-{int(exported_at.timestamp() * 1000)}.json"


def default_attempt_export_name(title: str, exported_at: datetime) -> str:
    slug = re.sub(r"\s+", "-", title.strip().lower()) or "quiz"
    return f"results-{slug}-{int(exported_at.timestamp() * 1000)}.json"
