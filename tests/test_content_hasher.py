"""Content fingerprints."""

import json

from quiz_shelf.core.content_hasher import _rolling_hash, canonical_content, fingerprint
from quiz_shelf.core.quiz_validator import decode_quiz


def test_fingerprint_is_stable(quiz_payload):
    """Decoding the same payload twice gives the same digest"""
    assert fingerprint(decode_quiz(quiz_payload())) == fingerprint(decode_quiz(quiz_payload()))


def test_non_scoring_fields_are_ignored(quiz_payload):
    """Explanations, ids, tags and source do not change the digest"""
    original = decode_quiz(quiz_payload())
    payload = quiz_payload(source="Another book", tags=["rewritten"])
    payload["questions"][0]["explanation"] = "Different wording."
    payload["questions"][0]["id"] = 99

    assert fingerprint(decode_quiz(payload)) == fingerprint(original)


def test_scoring_fields_change_the_digest(quiz_payload):
    """Title, option text and correct answer all take part"""
    original = fingerprint(decode_quiz(quiz_payload()))

    retitled = quiz_payload(title="Capitals II")
    new_option = quiz_payload()
    new_option["questions"][1]["options"][1] = "Kyoto"
    new_answer = quiz_payload()
    new_answer["questions"][0]["answer"] = 2

    for payload in (retitled, new_option, new_answer):
        assert fingerprint(decode_quiz(payload)) != original


def test_canonical_content_shape(quiz_document):
    """Canonical text is compact JSON of title, subject and questions"""
    canonical = canonical_content(quiz_document)

    assert canonical.startswith('{"title":"World Capitals","subject":"Geography","questions":[{"question"')
    assert json.loads(canonical) == {
        "title": "World Capitals",
        "subject": "Geography",
        "questions": [
            {"question": "What is the capital of France?", "options": ["Lyon", "Paris", "Nice"], "answer": 1},
            {"question": "What is the capital of Japan?", "options": ["Tokyo", "Osaka"], "answer": 0},
            {"question": "What is the capital of Italy?", "options": ["Milan", "Turin", "Rome", "Naples"], "answer": 2},
        ],
    }


def test_rolling_hash_values():
    """Signed 32-bit h * 31 + code, rendered in hex"""
    assert _rolling_hash("") == "0"
    assert _rolling_hash("a") == "61"
    assert _rolling_hash("ab") == format(97 * 31 + 98, "x")
    # Known string whose hash lands exactly on the signed 32-bit minimum.
    assert _rolling_hash("polygenelubricants") == "-80000000"
