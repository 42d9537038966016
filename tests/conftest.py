from datetime import datetime

import pytest

from quizwhiz import services
from quizwhiz.domain import AnswerOption, PerformanceRecord, Question
from quizwhiz.metrics import MetricsRegistry
from quizwhiz.services import InMemoryRepository


@pytest.fixture
def now() -> datetime:
    return datetime(2024, 3, 1, 9, 30, 0)


@pytest.fixture
def make_record(now):
    def factory(question_id="q1", user_id="alice", category_id="history", **overrides):
        values = dict(
            question_id=question_id,
            user_id=user_id,
            category_id=category_id,
            next_review_date=now,
            last_reviewed_at=now,
        )
        values.update(overrides)
        if "total_attempts" not in overrides:
            values["total_attempts"] = values.get("correct_attempts", 0) + values.get(
                "incorrect_attempts", 0
            )
        return PerformanceRecord(**values)

    return factory


def make_question(question_id: str, category_id: str = "history") -> Question:
    return Question(
        id=question_id,
        text=f"Question {question_id}?",
        category_id=category_id,
        options=[AnswerOption(id="a", text="Yes"), AnswerOption(id="b", text="No")],
        correct_answer_id="a",
    )


@pytest.fixture
def repository() -> InMemoryRepository:
    repo = InMemoryRepository()
    repo.add_category("history", "History")
    repo.add_category("science", "Science")
    repo.add_questions(
        [
            make_question("q1"),
            make_question("q2"),
            make_question("q3"),
            make_question("s1", "science"),
        ]
    )
    return repo


@pytest.fixture
def metrics(monkeypatch) -> MetricsRegistry:
    registry = MetricsRegistry()
    monkeypatch.setattr(services, "METRICS", registry)
    return registry


@pytest.fixture
def question_factory():
    return make_question
