"""SM-2 style review scheduling and the classifiers built on its state."""
from __future__ import annotations

import logging
import math
from collections import deque
from dataclasses import replace
from datetime import datetime, timedelta
from typing import Dict, Iterable, List, Tuple

from .domain import (
    CONFIDENCE_HISTORY_SIZE,
    ConfidenceLevel,
    PerformanceRecord,
    truncate_to_millis,
)


logger = logging.getLogger(__name__)

DEFAULT_EASE_FACTOR = 2.5
MIN_EASE_FACTOR = 1.3
MIN_PASSING_QUALITY = 3
MASTERY_THRESHOLD = 3
WEAK_SPOT_ACCURACY = 50.0
WEAK_SPOT_MIN_ATTEMPTS = 2
DEFAULT_REVIEW_QUEUE_LIMIT = 20

FIRST_INTERVAL_DAYS = 1
SECOND_INTERVAL_DAYS = 6

# Short-term delays for failed answers, indexed by fail streak.
FAILURE_LADDER: Tuple[timedelta, ...] = (
    timedelta(minutes=1),
    timedelta(hours=1),
    timedelta(days=1),
)

QUALITY_TABLE: Dict[Tuple[bool, ConfidenceLevel], int] = {
    (False, ConfidenceLevel.KNEW_IT): 0,
    (False, ConfidenceLevel.SURE): 0,
    (False, ConfidenceLevel.UNSURE): 1,
    (False, ConfidenceLevel.GUESS): 2,
    (True, ConfidenceLevel.KNEW_IT): 5,
    (True, ConfidenceLevel.SURE): 4,
    (True, ConfidenceLevel.UNSURE): 3,
    (True, ConfidenceLevel.GUESS): 3,
}


def round_half_up(value: float, digits: int = 0) -> float:
    """Rounds halves away from zero for non-negative values."""

    factor = 10 ** digits
    return math.floor(value * factor + 0.5) / factor


def map_quality(is_correct: bool, confidence: ConfidenceLevel) -> int:
    """Converts correctness and confidence into an SM-2 quality score (0-5).

    Confidently wrong answers score lowest; a wrong answer flagged as a guess
    is the best possible failure. A lucky correct guess counts the same as a
    correct but unsure answer.
    """

    return QUALITY_TABLE[(bool(is_correct), ConfidenceLevel(confidence))]


def short_term_delay(fail_streak: int) -> timedelta:
    return FAILURE_LADDER[max(0, min(fail_streak, len(FAILURE_LADDER) - 1))]


def initialize_performance_record(
    question_id: str, user_id: str, category_id: str, now: datetime
) -> PerformanceRecord:
    """Returns a default-valued record that is due immediately."""

    now = truncate_to_millis(now)
    return PerformanceRecord(
        question_id=question_id,
        user_id=user_id,
        category_id=category_id,
        ease_factor=DEFAULT_EASE_FACTOR,
        interval=0,
        repetitions=0,
        next_review_date=now,
        last_reviewed_at=now,
    )


def update_performance_record(
    record: PerformanceRecord,
    is_correct: bool,
    confidence: ConfidenceLevel,
    now: datetime,
) -> PerformanceRecord:
    """Applies one answer event and returns the updated record.

    Failures (quality below 3) reset the streak and schedule a short-term
    retry from ``FAILURE_LADDER``; the ladder only escalates when the record
    had no streak at the time of the failure. Successes grow the interval with the ease factor.
    The input record is left untouched.
    """

    now = truncate_to_millis(now)
    quality = map_quality(is_correct, confidence)

    history = deque(record.confidence_history, maxlen=CONFIDENCE_HISTORY_SIZE)
    history.append(ConfidenceLevel(confidence))

    total_attempts = record.total_attempts + 1
    correct_attempts = record.correct_attempts + (1 if is_correct else 0)
    incorrect_attempts = record.incorrect_attempts + (0 if is_correct else 1)

    if quality < MIN_PASSING_QUALITY:
        repetitions = 0
        ease_factor = record.ease_factor
        if record.repetitions == 0:
            fail_streak = min(incorrect_attempts - 1, len(FAILURE_LADDER) - 1)
        else:
            fail_streak = 0
        delay = short_term_delay(fail_streak)
        next_review_date = now + delay
        interval = delay / timedelta(days=1)
        logger.debug(
            "Record %s failed with quality %s; retry in %s (streak %s)",
            record.id,
            quality,
            delay,
            fail_streak,
        )
    else:
        repetitions = record.repetitions + 1
        ef_modifier = 0.1 - (5 - quality) * (0.08 + (5 - quality) * 0.02)
        ease_factor = max(MIN_EASE_FACTOR, record.ease_factor + ef_modifier)
        if repetitions == 1:
            interval = FIRST_INTERVAL_DAYS
        elif repetitions == 2:
            interval = SECOND_INTERVAL_DAYS
        else:
            interval = int(round_half_up(record.interval * ease_factor))
        next_review_date = now + timedelta(days=interval)
        logger.debug(
            "Record %s passed with quality %s; ease %.2f, next review in %s days",
            record.id,
            quality,
            ease_factor,
            interval,
        )

    return replace(
        record,
        ease_factor=ease_factor,
        interval=interval,
        repetitions=repetitions,
        next_review_date=next_review_date,
        last_reviewed_at=now,
        total_attempts=total_attempts,
        correct_attempts=correct_attempts,
        incorrect_attempts=incorrect_attempts,
        confidence_history=history,
    )


def is_mastered(record: PerformanceRecord) -> bool:
    return record.repetitions >= MASTERY_THRESHOLD


def calculate_accuracy(record: PerformanceRecord) -> float:
    """Percentage of correct attempts, 0 when the question was never tried."""

    if record.total_attempts == 0:
        return 0.0
    return record.correct_attempts / record.total_attempts * 100


def is_weak_spot(record: PerformanceRecord) -> bool:
    return (
        calculate_accuracy(record) < WEAK_SPOT_ACCURACY
        and record.total_attempts >= WEAK_SPOT_MIN_ATTEMPTS
    )


def is_due(record: PerformanceRecord, now: datetime) -> bool:
    return record.next_review_date <= now


def select_review_queue(
    records: Iterable[PerformanceRecord],
    now: datetime,
    limit: int = DEFAULT_REVIEW_QUEUE_LIMIT,
) -> List[PerformanceRecord]:
    """Due records, oldest scheduled review first, capped at ``limit``."""

    due = [record for record in records if is_due(record, now)]
    due.sort(key=lambda record: record.next_review_date)
    return due[: max(limit, 0)]


__all__ = [
    "DEFAULT_EASE_FACTOR",
    "FAILURE_LADDER",
    "MASTERY_THRESHOLD",
    "MIN_EASE_FACTOR",
    "QUALITY_TABLE",
    "calculate_accuracy",
    "initialize_performance_record",
    "is_due",
    "is_mastered",
    "is_weak_spot",
    "map_quality",
    "round_half_up",
    "select_review_queue",
    "short_term_delay",
    "update_performance_record",
]
