"""Validation utilities for records and events crossing the storage boundary."""
from __future__ import annotations

from typing import Optional

from .domain import CONFIDENCE_HISTORY_SIZE, AnswerEvent, PerformanceRecord, Question
from .scheduler import MIN_EASE_FACTOR


class ValidationError(ValueError):
    """Raised when a record, event or question breaks a structural invariant."""


def _assert_identifier(value: str, context: str) -> None:
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f"{context} must be a non-empty string")


def _assert_non_negative(value: int, context: str) -> None:
    if value < 0:
        raise ValidationError(f"{context} must not be negative (got {value})")


def validate_performance_record(record: PerformanceRecord) -> None:
    """Validate a performance record before it is accepted from storage."""

    _assert_identifier(record.question_id, "question_id")
    _assert_identifier(record.user_id, "user_id")
    _assert_identifier(record.category_id, "category_id")

    if record.ease_factor < MIN_EASE_FACTOR:
        raise ValidationError(
            f"Record {record.id} has ease factor {record.ease_factor} below {MIN_EASE_FACTOR}"
        )
    _assert_non_negative(record.interval, f"Record {record.id} interval")
    _assert_non_negative(record.repetitions, f"Record {record.id} repetitions")
    _assert_non_negative(record.correct_attempts, f"Record {record.id} correct attempts")
    _assert_non_negative(record.incorrect_attempts, f"Record {record.id} incorrect attempts")

    if record.total_attempts != record.correct_attempts + record.incorrect_attempts:
        raise ValidationError(
            f"Record {record.id} attempt counters are inconsistent: "
            f"{record.total_attempts} != {record.correct_attempts} + {record.incorrect_attempts}"
        )
    if record.repetitions > record.correct_attempts:
        raise ValidationError(
            f"Record {record.id} streak {record.repetitions} exceeds its correct attempts"
        )
    if len(record.confidence_history) > CONFIDENCE_HISTORY_SIZE:
        raise ValidationError(f"Record {record.id} keeps too much confidence history")


def validate_answer_event(event: AnswerEvent, question: Optional[Question] = None) -> None:
    """Validate an answer event, optionally against the question it targets."""

    _assert_identifier(event.question_id, "question_id")
    _assert_identifier(event.user_id, "user_id")
    _assert_identifier(event.category_id, "category_id")

    if question is None:
        return
    if question.id != event.question_id:
        raise ValidationError(
            f"Answer for {event.question_id} was matched against question {question.id}"
        )
    if question.category_id != event.category_id:
        raise ValidationError(
            f"Question {question.id} belongs to category {question.category_id}, "
            f"not {event.category_id}"
        )


def validate_question(question: Question) -> None:
    """Validate question content before it is added to a catalog."""

    _assert_identifier(question.id, "question id")
    _assert_identifier(question.category_id, f"Question {question.id} category")
    if not question.text.strip():
        raise ValidationError(f"Question {question.id} text must be non-empty")

    if not question.options:
        return
    option_ids = [option.id for option in question.options]
    if len(set(option_ids)) != len(option_ids):
        raise ValidationError(f"Question {question.id} has duplicate option identifiers")
    for option in question.options:
        if not option.text.strip():
            raise ValidationError(f"Question {question.id} options must provide non-empty text")
    if question.correct_answer_id not in option_ids:
        raise ValidationError(
            f"Question {question.id} correct answer must match one of its options"
        )


__all__ = [
    "ValidationError",
    "validate_answer_event",
    "validate_performance_record",
    "validate_question",
]
