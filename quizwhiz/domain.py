"""Domain models shared across the scheduler, analytics and repositories."""
from __future__ import annotations

from collections import deque
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import IntEnum
from typing import Deque, List, Optional


EPOCH = datetime(1970, 1, 1)
CONFIDENCE_HISTORY_SIZE = 5


def truncate_to_millis(moment: datetime) -> datetime:
    return moment.replace(microsecond=moment.microsecond - moment.microsecond % 1000)


def utc_now() -> datetime:
    """Current naive UTC moment truncated to millisecond resolution."""

    return truncate_to_millis(datetime.utcnow())


def to_epoch_millis(moment: datetime) -> int:
    return (moment - EPOCH) // timedelta(milliseconds=1)


def from_epoch_millis(millis: int) -> datetime:
    return EPOCH + timedelta(milliseconds=millis)


class ConfidenceLevel(IntEnum):
    """Self-reported confidence attached to an answer, ordered low to high."""

    GUESS = 1
    UNSURE = 2
    SURE = 3
    KNEW_IT = 4


def performance_id(question_id: str, user_id: str) -> str:
    return f"{question_id}-{user_id}"


def analytics_id(category_id: str, user_id: str) -> str:
    return f"{category_id}-{user_id}"


@dataclass
class PerformanceRecord:
    """Scheduling state for a single (question, user) pair."""

    question_id: str
    user_id: str
    category_id: str
    next_review_date: datetime
    last_reviewed_at: datetime
    ease_factor: float = 2.5
    interval: float = 0
    repetitions: int = 0
    total_attempts: int = 0
    correct_attempts: int = 0
    incorrect_attempts: int = 0
    confidence_history: Deque[ConfidenceLevel] = field(
        default_factory=lambda: deque(maxlen=CONFIDENCE_HISTORY_SIZE)
    )

    def __post_init__(self) -> None:
        self.confidence_history = deque(
            (ConfidenceLevel(level) for level in self.confidence_history),
            maxlen=CONFIDENCE_HISTORY_SIZE,
        )

    @property
    def id(self) -> str:
        return performance_id(self.question_id, self.user_id)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "question_id": self.question_id,
            "user_id": self.user_id,
            "category_id": self.category_id,
            "ease_factor": self.ease_factor,
            "interval": self.interval,
            "repetitions": self.repetitions,
            "next_review_date": to_epoch_millis(self.next_review_date),
            "last_reviewed_at": to_epoch_millis(self.last_reviewed_at),
            "total_attempts": self.total_attempts,
            "correct_attempts": self.correct_attempts,
            "incorrect_attempts": self.incorrect_attempts,
            "confidence_history": [int(level) for level in self.confidence_history],
        }

    @classmethod
    def from_dict(cls, payload: dict) -> "PerformanceRecord":
        return cls(
            question_id=payload["question_id"],
            user_id=payload["user_id"],
            category_id=payload["category_id"],
            ease_factor=float(payload.get("ease_factor", 2.5)),
            interval=payload.get("interval", 0),
            repetitions=int(payload.get("repetitions", 0)),
            next_review_date=from_epoch_millis(payload["next_review_date"]),
            last_reviewed_at=from_epoch_millis(payload["last_reviewed_at"]),
            total_attempts=int(payload.get("total_attempts", 0)),
            correct_attempts=int(payload.get("correct_attempts", 0)),
            incorrect_attempts=int(payload.get("incorrect_attempts", 0)),
            confidence_history=payload.get("confidence_history") or [],
        )


@dataclass
class CategoryAnalytics:
    """Snapshot of a learner's progress within one category."""

    category_id: str
    user_id: str
    total_questions: int
    mastered_questions: int
    struggling_questions: int
    average_accuracy: float
    last_updated: datetime

    @property
    def id(self) -> str:
        return analytics_id(self.category_id, self.user_id)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "category_id": self.category_id,
            "user_id": self.user_id,
            "total_questions": self.total_questions,
            "mastered_questions": self.mastered_questions,
            "struggling_questions": self.struggling_questions,
            "average_accuracy": self.average_accuracy,
            "last_updated": to_epoch_millis(self.last_updated),
        }

    @classmethod
    def from_dict(cls, payload: dict) -> "CategoryAnalytics":
        return cls(
            category_id=payload["category_id"],
            user_id=payload["user_id"],
            total_questions=int(payload["total_questions"]),
            mastered_questions=int(payload["mastered_questions"]),
            struggling_questions=int(payload["struggling_questions"]),
            average_accuracy=float(payload["average_accuracy"]),
            last_updated=from_epoch_millis(payload["last_updated"]),
        )


@dataclass
class OverallStats:
    total_questions: int = 0
    total_mastered: int = 0
    total_struggling: int = 0
    overall_accuracy: float = 0.0
    mastery_percentage: int = 0


@dataclass
class AnswerOption:
    id: str
    text: str


@dataclass
class Question:
    """Question content as supplied by the catalog."""

    id: str
    text: str
    category_id: str
    options: List[AnswerOption] = field(default_factory=list)
    correct_answer_id: str = ""
    explanation: Optional[str] = None


@dataclass
class WeakSpot:
    """Ranked view of a question the learner keeps getting wrong."""

    question_id: str
    question: Question
    accuracy: float
    attempts: int
    last_attempted: datetime
    category_name: str


@dataclass
class AnswerEvent:
    """A single graded answer submitted by the quiz flow."""

    question_id: str
    user_id: str
    category_id: str
    is_correct: bool
    confidence: ConfidenceLevel = ConfidenceLevel.SURE


__all__ = [
    "AnswerEvent",
    "AnswerOption",
    "CategoryAnalytics",
    "ConfidenceLevel",
    "OverallStats",
    "PerformanceRecord",
    "Question",
    "WeakSpot",
    "analytics_id",
    "from_epoch_millis",
    "performance_id",
    "to_epoch_millis",
    "truncate_to_millis",
    "utc_now",
]
