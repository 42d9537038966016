"""Aggregation of performance records into category, global and weak-spot views."""
from __future__ import annotations

import logging
from collections import abc
from datetime import datetime
from typing import Callable, Iterable, List, Mapping, Optional, Sequence, TypeVar, Union

from .domain import CategoryAnalytics, OverallStats, PerformanceRecord, Question, WeakSpot
from .scheduler import calculate_accuracy, is_mastered, is_weak_spot, round_half_up


logger = logging.getLogger(__name__)

UNKNOWN_CATEGORY = "Unknown Category"
DEFAULT_WEAK_SPOT_LIMIT = 5

T = TypeVar("T")
Lookup = Union[Mapping[str, T], Callable[[str], Optional[T]]]


def _resolver(lookup: Lookup) -> Callable[[str], Optional[T]]:
    if isinstance(lookup, abc.Mapping):
        return lookup.get
    return lookup


def calculate_category_mastery(
    records: Iterable[PerformanceRecord], total_questions: int
) -> int:
    """Whole-number percentage of the category's questions that are mastered."""

    if total_questions == 0:
        return 0
    mastered = sum(1 for record in records if is_mastered(record))
    return int(round_half_up(mastered / total_questions * 100))


def build_category_analytics(
    category_id: str,
    user_id: str,
    records: Iterable[PerformanceRecord],
    total_questions: int,
    now: datetime,
) -> CategoryAnalytics:
    """Summarises one learner's records for a category.

    ``total_questions`` comes from the caller since records only exist for
    questions that were touched. Average accuracy only counts attempted
    questions and is rounded to one decimal place.
    """

    mastered = 0
    struggling = 0
    accuracy_sum = 0.0
    attempted = 0
    for record in records:
        if is_mastered(record):
            mastered += 1
        if is_weak_spot(record):
            struggling += 1
        if record.total_attempts > 0:
            attempted += 1
            accuracy_sum += calculate_accuracy(record)

    average_accuracy = accuracy_sum / attempted if attempted else 0.0
    return CategoryAnalytics(
        category_id=category_id,
        user_id=user_id,
        total_questions=total_questions,
        mastered_questions=mastered,
        struggling_questions=struggling,
        average_accuracy=round_half_up(average_accuracy, 1),
        last_updated=now,
    )


def aggregate_overall_stats(analytics_list: Iterable[CategoryAnalytics]) -> OverallStats:
    """Rolls category snapshots into global totals.

    Overall accuracy is weighted by each category's question count.
    """

    total_questions = 0
    total_mastered = 0
    total_struggling = 0
    accuracy_sum = 0.0
    for analytics in analytics_list:
        total_questions += analytics.total_questions
        total_mastered += analytics.mastered_questions
        total_struggling += analytics.struggling_questions
        accuracy_sum += analytics.average_accuracy * analytics.total_questions

    if not total_questions:
        return OverallStats(
            total_mastered=total_mastered, total_struggling=total_struggling
        )

    return OverallStats(
        total_questions=total_questions,
        total_mastered=total_mastered,
        total_struggling=total_struggling,
        overall_accuracy=round_half_up(accuracy_sum / total_questions, 1),
        mastery_percentage=int(round_half_up(total_mastered / total_questions * 100)),
    )


def rank_weak_spots(
    records: Sequence[PerformanceRecord],
    question_lookup: Lookup[Question],
    category_name_lookup: Lookup[str],
    limit: int = DEFAULT_WEAK_SPOT_LIMIT,
) -> List[WeakSpot]:
    """Weak-spot questions, lowest accuracy first.

    Records whose question cannot be resolved are skipped. Ties keep their
    input order.
    """

    resolve_question = _resolver(question_lookup)
    resolve_category = _resolver(category_name_lookup)

    weak_spots: List[WeakSpot] = []
    for record in records:
        if not is_weak_spot(record):
            continue
        question = resolve_question(record.question_id)
        if question is None:
            logger.warning(
                "Skipping weak spot %s: question %s not found", record.id, record.question_id
            )
            continue
        weak_spots.append(
            WeakSpot(
                question_id=record.question_id,
                question=question,
                accuracy=calculate_accuracy(record),
                attempts=record.total_attempts,
                last_attempted=record.last_reviewed_at,
                category_name=resolve_category(record.category_id) or UNKNOWN_CATEGORY,
            )
        )

    weak_spots.sort(key=lambda spot: spot.accuracy)
    return weak_spots[: max(limit, 0)]


__all__ = [
    "DEFAULT_WEAK_SPOT_LIMIT",
    "UNKNOWN_CATEGORY",
    "aggregate_overall_stats",
    "build_category_analytics",
    "calculate_category_mastery",
    "rank_weak_spots",
]
