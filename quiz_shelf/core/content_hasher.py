"""Content fingerprints used to spot re-imports of the same quiz."""

from __future__ import annotations

import json

from quiz_shelf.core.models import QuizDocument

_MASK_32 = 0xFFFFFFFF
_SIGN_BIT_32 = 0x80000000


def fingerprint(document: QuizDocument) -> str:
    """Return a stable digest of the quiz's scoring-relevant content.

    Only title, subject and each question's text, options and correct answer
    take part; explanations, tags, source and question ids do not.
    """
    return _rolling_hash(canonical_content(document))


def canonical_content(document: QuizDocument) -> str:
    canonical = {
        "title": document.metadata.title,
        "subject": document.metadata.subject,
        "questions": [
            {
                "question": question.question,
                "options": list(question.options),
                "answer": question.answer,
            }
            for question in document.questions
        ],
    }
    return json.dumps(canonical, ensure_ascii=False, separators=(",", ":"))


def _rolling_hash(content: str) -> str:
    value = 0
    for char in content:
        value = (value * 31 + ord(char)) & _MASK_32
    if value & _SIGN_BIT_32:
        value -= _MASK_32 + 1
    return format(value, "x")
