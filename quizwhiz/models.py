"""Pydantic models for the QuizWhiz review and analytics API."""
from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator

from .domain import (
    AnswerEvent,
    CategoryAnalytics,
    ConfidenceLevel,
    OverallStats,
    PerformanceRecord,
    Question,
    WeakSpot,
)
from .scheduler import calculate_accuracy, is_mastered, is_weak_spot


class AnswerSubmitRequest(BaseModel):
    """Input body for /v1/performance/answer."""

    question_id: str = Field(min_length=1)
    user_id: str = Field(min_length=1)
    category_id: str = Field(min_length=1)
    is_correct: bool
    confidence: ConfidenceLevel = ConfidenceLevel.SURE

    @field_validator("confidence", mode="before")
    @classmethod
    def parse_confidence_name(cls, value):
        if isinstance(value, str) and not value.isdigit():
            try:
                return ConfidenceLevel[value.strip().upper().replace("-", "_").replace(" ", "_")]
            except KeyError:
                raise ValueError(f"Unknown confidence level '{value}'") from None
        return value

    def to_event(self) -> AnswerEvent:
        return AnswerEvent(
            question_id=self.question_id,
            user_id=self.user_id,
            category_id=self.category_id,
            is_correct=self.is_correct,
            confidence=self.confidence,
        )


class PerformanceRecordResponse(BaseModel):
    """Scheduling state returned after an answer is graded."""

    id: str
    question_id: str
    user_id: str
    category_id: str
    quality: Optional[int] = None
    ease_factor: float
    interval: float
    repetitions: int
    next_review_date: datetime
    last_reviewed_at: datetime
    total_attempts: int
    correct_attempts: int
    incorrect_attempts: int
    confidence_history: List[ConfidenceLevel]
    accuracy: float
    is_mastered: bool
    is_weak_spot: bool

    @classmethod
    def from_record(
        cls, record: PerformanceRecord, quality: Optional[int] = None
    ) -> "PerformanceRecordResponse":
        return cls(
            id=record.id,
            question_id=record.question_id,
            user_id=record.user_id,
            category_id=record.category_id,
            quality=quality,
            ease_factor=record.ease_factor,
            interval=record.interval,
            repetitions=record.repetitions,
            next_review_date=record.next_review_date,
            last_reviewed_at=record.last_reviewed_at,
            total_attempts=record.total_attempts,
            correct_attempts=record.correct_attempts,
            incorrect_attempts=record.incorrect_attempts,
            confidence_history=list(record.confidence_history),
            accuracy=calculate_accuracy(record),
            is_mastered=is_mastered(record),
            is_weak_spot=is_weak_spot(record),
        )


class QuestionOption(BaseModel):
    id: str
    text: str


class QuestionPayload(BaseModel):
    """Question content as presented for review or drills."""

    id: str
    text: str
    category_id: str
    options: List[QuestionOption] = Field(default_factory=list)
    explanation: Optional[str] = None

    @classmethod
    def from_question(cls, question: Question) -> "QuestionPayload":
        return cls(
            id=question.id,
            text=question.text,
            category_id=question.category_id,
            options=[QuestionOption(id=opt.id, text=opt.text) for opt in question.options],
            explanation=question.explanation,
        )


class ReviewQueueItem(BaseModel):
    question: QuestionPayload
    next_review_date: datetime
    repetitions: int
    ease_factor: float


class ReviewQueueResponse(BaseModel):
    due: List[ReviewQueueItem]


class ReviewCountResponse(BaseModel):
    user_id: str
    due_count: int


class CategoryAnalyticsResponse(BaseModel):
    id: str
    category_id: str
    user_id: str
    total_questions: int
    mastered_questions: int
    struggling_questions: int
    average_accuracy: float
    mastery_percentage: int
    last_updated: datetime

    @classmethod
    def from_analytics(
        cls, analytics: CategoryAnalytics, mastery_percentage: int
    ) -> "CategoryAnalyticsResponse":
        return cls(
            id=analytics.id,
            category_id=analytics.category_id,
            user_id=analytics.user_id,
            total_questions=analytics.total_questions,
            mastered_questions=analytics.mastered_questions,
            struggling_questions=analytics.struggling_questions,
            average_accuracy=analytics.average_accuracy,
            mastery_percentage=mastery_percentage,
            last_updated=analytics.last_updated,
        )


class OverallStatsResponse(BaseModel):
    user_id: str
    total_questions: int
    total_mastered: int
    total_struggling: int
    overall_accuracy: float
    mastery_percentage: int

    @classmethod
    def from_stats(cls, user_id: str, stats: OverallStats) -> "OverallStatsResponse":
        return cls(
            user_id=user_id,
            total_questions=stats.total_questions,
            total_mastered=stats.total_mastered,
            total_struggling=stats.total_struggling,
            overall_accuracy=stats.overall_accuracy,
            mastery_percentage=stats.mastery_percentage,
        )


class WeakSpotItem(BaseModel):
    question_id: str
    question: QuestionPayload
    accuracy: float
    attempts: int
    last_attempted: datetime
    category_name: str

    @classmethod
    def from_weak_spot(cls, spot: WeakSpot) -> "WeakSpotItem":
        return cls(
            question_id=spot.question_id,
            question=QuestionPayload.from_question(spot.question),
            accuracy=spot.accuracy,
            attempts=spot.attempts,
            last_attempted=spot.last_attempted,
            category_name=spot.category_name,
        )


class WeakSpotsResponse(BaseModel):
    weak_spots: List[WeakSpotItem]


class WeakSpotQuizResponse(BaseModel):
    questions: List[QuestionPayload]


__all__ = [
    "AnswerSubmitRequest",
    "CategoryAnalyticsResponse",
    "OverallStatsResponse",
    "PerformanceRecordResponse",
    "QuestionPayload",
    "ReviewCountResponse",
    "ReviewQueueItem",
    "ReviewQueueResponse",
    "WeakSpotItem",
    "WeakSpotQuizResponse",
    "WeakSpotsResponse",
]
