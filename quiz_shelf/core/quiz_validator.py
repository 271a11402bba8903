"""Schema checks for untrusted quiz documents.

``validate`` walks the whole document and collects every violation so the
caller can show a complete list; it never raises on malformed input.
``decode_quiz`` is the only way to turn raw JSON into a ``QuizDocument``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from pydantic import ValidationError

from quiz_shelf.constants.quiz_constants import MAX_OPTIONS, MIN_OPTIONS
from quiz_shelf.core.errors import QuizValidationError
from quiz_shelf.core.models import QuizDocument


@dataclass(slots=True)
class ValidationReport:
    valid: bool
    errors: list[str] = field(default_factory=list)


def validate(data: Any) -> ValidationReport:
    if not isinstance(data, dict):
        return ValidationReport(valid=False, errors=["Invalid data format"])

    errors: list[str] = []
    metadata = data.get("metadata")
    questions = data.get("questions")

    if metadata is None:
        errors.append('Missing "metadata"')
    elif not isinstance(metadata, dict):
        errors.append('"metadata" must be an object')
    if not isinstance(questions, list):
        errors.append('"questions" must be an array')

    # Detail checks below assume both top-level parts exist.
    if errors:
        return ValidationReport(valid=False, errors=errors)

    errors.extend(_check_metadata(metadata))

    seen_ids: set[str | int] = set()
    for position, question in enumerate(questions, start=1):
        errors.extend(_check_question(question, f"Q{position}", seen_ids))

    declared = metadata.get("questionCount")
    if declared != len(questions):
        declared_text = "missing" if declared is None else declared
        errors.append(f"questionCount ({declared_text}) != actual ({len(questions)})")

    return ValidationReport(valid=not errors, errors=errors)


def quick_validate(data: Any) -> bool:
    """Cheap structural gate used before previewing a document."""
    if not isinstance(data, dict):
        return False
    metadata = data.get("metadata")
    questions = data.get("questions")
    if not isinstance(metadata, dict) or not isinstance(questions, list):
        return False
    return bool(metadata.get("title")) and len(questions) > 0


def decode_quiz(data: Any) -> QuizDocument:
    """Validate ``data`` and return it as a typed document."""
    report = validate(data)
    if not report.valid:
        raise QuizValidationError(report.errors)
    try:
        return QuizDocument.model_validate(data)
    except ValidationError as exc:
        raise QuizValidationError(
            [f"{'.'.join(str(part) for part in error['loc'])}: {error['msg']}" for error in exc.errors()]
        ) from exc


def _check_metadata(metadata: dict[str, Any]) -> list[str]:
    errors: list[str] = []
    if not _is_filled_text(metadata.get("title")):
        errors.append("metadata.title required")
    if not _is_filled_text(metadata.get("subject")):
        errors.append("metadata.subject required")
    if not _is_number(metadata.get("questionCount")):
        errors.append("metadata.questionCount must be number")

    source = metadata.get("source")
    if source is not None and not isinstance(source, str):
        errors.append("metadata.source must be a string")
    tags = metadata.get("tags")
    if tags is not None and (not isinstance(tags, list) or not all(isinstance(tag, str) for tag in tags)):
        errors.append("metadata.tags must be an array of strings")
    return errors


def _check_question(question: Any, prefix: str, seen_ids: set[str | int]) -> list[str]:
    if not isinstance(question, dict):
        return [f"{prefix} must be an object"]

    errors: list[str] = []
    question_id = question.get("id")
    if question_id is None or question_id == "" or isinstance(question_id, bool):
        errors.append(f"{prefix} missing id")
    elif not isinstance(question_id, (str, int)):
        errors.append(f"{prefix} id must be a string or integer")
    elif question_id in seen_ids:
        errors.append(f'{prefix} duplicate id "{question_id}"')
    else:
        seen_ids.add(question_id)

    if not _is_filled_text(question.get("question")):
        errors.append(f"{prefix} empty question")

    options = question.get("options")
    options_ok = isinstance(options, list) and MIN_OPTIONS <= len(options) <= MAX_OPTIONS
    if not options_ok:
        errors.append(f"{prefix} must have {MIN_OPTIONS}-{MAX_OPTIONS} options")
    else:
        for position, option in enumerate(options, start=1):
            if not _is_filled_text(option):
                errors.append(f"{prefix} option {position} empty")

    answer = question.get("answer")
    answer_is_index = _is_whole_number(answer)
    if isinstance(options, list):
        if not answer_is_index or not 0 <= answer < len(options):
            errors.append(f"{prefix} answer must be valid option index (0-{len(options) - 1})")
    elif not answer_is_index or answer < 0:
        errors.append(f"{prefix} answer must be valid option index")

    if not _is_filled_text(question.get("explanation")):
        errors.append(f"{prefix} missing explanation")
    return errors


def _is_filled_text(value: Any) -> bool:
    return isinstance(value, str) and bool(value.strip())


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _is_whole_number(value: Any) -> bool:
    """Integers and floats without a fractional part, such as ``1.0``."""
    if isinstance(value, float):
        return value.is_integer()
    return isinstance(value, int) and not isinstance(value, bool)
