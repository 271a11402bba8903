"""Shared fixtures for the quiz library tests."""

from __future__ import annotations

import copy
from datetime import datetime, timedelta, timezone
import random

import pytest

from quiz_shelf.core.quiz_manager import QuizManager
from quiz_shelf.core.quiz_validator import decode_quiz
from quiz_shelf.core.services.key_value_store import InMemoryStore
from quiz_shelf.core.services.quiz_repository import QuizRepository
from quiz_shelf.core.services.quiz_session import QuizSession
from quiz_shelf.core.services.scheduling import ManualScheduler

SAMPLE_QUIZ = {
    "metadata": {
        "title": "World Capitals",
        "subject": "Geography",
        "source": "Atlas",
        "tags": ["europe", "asia"],
        "questionCount": 3,
    },
    "questions": [
        {
            "id": "q1",
            "question": "What is the capital of France?",
            "options": ["Lyon", "Paris", "Nice"],
            "answer": 1,
            "explanation": "Paris has been the capital for centuries.",
        },
        {
            "id": "q2",
            "question": "What is the capital of Japan?",
            "options": ["Tokyo", "Osaka"],
            "answer": 0,
            "explanation": "Tokyo became the capital in 1868.",
        },
        {
            "id": "q3",
            "question": "What is the capital of Italy?",
            "options": ["Milan", "Turin", "Rome", "Naples"],
            "answer": 2,
            "explanation": "Rome is the capital of Italy.",
        },
    ],
}


class FakeClock:
    """Callable clock that only moves when told to."""

    def __init__(self, start: datetime | None = None) -> None:
        self.now = start or datetime(2024, 3, 1, 12, 0, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)


@pytest.fixture
def quiz_payload():
    """Factory returning a fresh copy of the sample quiz, optionally retitled."""

    def _make(title: str | None = None, **metadata):
        payload = copy.deepcopy(SAMPLE_QUIZ)
        if title is not None:
            payload["metadata"]["title"] = title
        payload["metadata"].update(metadata)
        return payload

    return _make


@pytest.fixture
def quiz_document(quiz_payload):
    return decode_quiz(quiz_payload())


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def store():
    return InMemoryStore()


@pytest.fixture
def session_store():
    return InMemoryStore()


@pytest.fixture
def scheduler():
    return ManualScheduler()


@pytest.fixture
def repository(store, clock):
    return QuizRepository(store, clock=clock)


@pytest.fixture
def session(repository, session_store, clock):
    return QuizSession(repository, session_store, clock=clock, rng=random.Random(7))


@pytest.fixture
def stored_quiz(repository, quiz_document):
    outcome = repository.save(quiz_document)
    return repository.get(outcome.quiz_id)


@pytest.fixture
def manager(store, session_store, scheduler, clock):
    return QuizManager(
        store,
        session_store=session_store,
        scheduler=scheduler,
        clock=clock,
        rng=random.Random(7),
    )
