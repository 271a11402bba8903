"""Utilities for importing quizzes from JSON files.

Single quiz format:

    {
      "metadata": {"title": "Capitals", "subject": "Geography",
                   "source": "Atlas", "tags": ["europe"], "questionCount": 1},
      "questions": [
        {"id": "q1", "question": "Capital of France?",
         "options": ["Lyon", "Paris", "Nice"], "answer": 1,
         "explanation": "Paris has been the capital since 987."}
      ]
    }

Library exports (``{"metadata": ..., "quizzes": {...}}``) and full backups
(``{"quizzes": ..., "results": ..., "exportedAt": ...}``) can be read back
with ``load_library_export``; each contained quiz is validated on its own.
"""

from __future__ import annotations

from dataclasses import dataclass
import json
from pathlib import Path
from typing import Any

from quiz_shelf.core.errors import QuizImportError, QuizValidationError
from quiz_shelf.core.models import QuizDocument
from quiz_shelf.core.quiz_validator import decode_quiz

# Repository-assigned keys, in the current and the legacy spelling.
_INTERNAL_KEYS = frozenset(
    {"id", "createdAt", "schemaVersion", "contentHash", "_id", "_timestamp", "_schemaVersion", "_contentHash"}
)


@dataclass(slots=True)
class ImportedQuiz:
    """Container for an imported quiz and where it came from."""

    source_path: Path
    document: QuizDocument


def load_quiz_from_file(file_path: Path) -> ImportedQuiz:
    document = parse_quiz_text(_read_text(file_path))
    return ImportedQuiz(source_path=file_path, document=document)


def parse_quiz_text(text: str) -> QuizDocument:
    """Parse and validate one quiz; raises before anything is stored."""
    return decode_quiz(_parse_json(text))


def load_library_export(file_path: Path) -> list[QuizDocument]:
    return parse_library_export(_parse_json(_read_text(file_path)))


def parse_library_export(data: Any) -> list[QuizDocument]:
    """Decode every quiz in a bulk export or backup.

    Errors from all quizzes are collected and raised together, prefixed with
    the quiz key they belong to.
    """
    if not isinstance(data, dict) or not isinstance(data.get("quizzes"), dict):
        raise QuizValidationError(['Export must contain a "quizzes" object'])

    documents: list[QuizDocument] = []
    errors: list[str] = []
    for key, payload in data["quizzes"].items():
        if isinstance(payload, dict):
            payload = {k: v for k, v in payload.items() if k not in _INTERNAL_KEYS}
        try:
            documents.append(decode_quiz(payload))
        except QuizValidationError as exc:
            errors.extend(f"{key}: {message}" for message in exc.errors)
    if errors:
        raise QuizValidationError(errors)
    return documents


def _read_text(file_path: Path) -> str:
    try:
        return file_path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        raise QuizImportError(f"Could not read quiz file {file_path}: {exc}") from exc


def _parse_json(text: str) -> Any:
    try:
        return json.loads(text)
    except json.JSONDecodeError as exc:
        raise QuizImportError(f"Invalid JSON file: {exc}") from exc
