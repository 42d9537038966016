"""Services wiring the scheduler and analytics to the repository ports."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Dict, Iterable, List, Optional, Tuple

from .analytics import (
    aggregate_overall_stats,
    build_category_analytics,
    calculate_category_mastery,
    rank_weak_spots,
)
from .domain import (
    AnswerEvent,
    CategoryAnalytics,
    OverallStats,
    PerformanceRecord,
    Question,
    WeakSpot,
    analytics_id,
    performance_id,
    utc_now,
)
from .metrics import METRICS
from .repositories import CategoryAnalyticsRepository, PerformanceRepository, QuestionCatalog
from .scheduler import (
    initialize_performance_record,
    is_mastered,
    is_weak_spot,
    map_quality,
    select_review_queue,
    update_performance_record,
)
from .validators import validate_answer_event, validate_performance_record, validate_question


logger = logging.getLogger(__name__)


@dataclass
class ReviewConfig:
    """Tunable limits for review queues and weak-spot views."""

    review_queue_limit: int = 20
    weak_spot_limit: int = 5
    weak_spot_quiz_size: int = 10


class InMemoryRepository(PerformanceRepository, CategoryAnalyticsRepository, QuestionCatalog):
    """Dictionary-backed repository used for tests and local development."""

    def __init__(self) -> None:
        self._performances: Dict[str, PerformanceRecord] = {}
        self._analytics: Dict[str, CategoryAnalytics] = {}
        self._questions: Dict[str, Question] = {}
        self._categories: Dict[str, str] = {}

    # region Performance
    def get_performance(self, question_id: str, user_id: str) -> Optional[PerformanceRecord]:
        return self._performances.get(performance_id(question_id, user_id))

    def save_performance(self, record: PerformanceRecord) -> None:
        validate_performance_record(record)
        self._performances[record.id] = record

    def list_performances(
        self, user_id: str, category_id: Optional[str] = None
    ) -> List[PerformanceRecord]:
        return [
            record
            for record in self._performances.values()
            if record.user_id == user_id
            and (category_id is None or record.category_id == category_id)
        ]

    def list_due_performances(
        self, user_id: str, now: datetime, limit: int
    ) -> List[PerformanceRecord]:
        return select_review_queue(self.list_performances(user_id), now, limit)

    def count_due(self, user_id: str, now: datetime) -> int:
        return sum(
            1 for record in self.list_performances(user_id) if record.next_review_date <= now
        )

    # endregion

    # region Analytics
    def get_analytics(self, category_id: str, user_id: str) -> Optional[CategoryAnalytics]:
        return self._analytics.get(analytics_id(category_id, user_id))

    def save_analytics(self, analytics: CategoryAnalytics) -> None:
        self._analytics[analytics.id] = analytics

    def list_analytics(self, user_id: str) -> List[CategoryAnalytics]:
        return [item for item in self._analytics.values() if item.user_id == user_id]

    # endregion

    # region Catalog
    def add_category(self, category_id: str, name: str) -> None:
        self._categories[category_id] = name

    def add_questions(self, questions: Iterable[Question]) -> None:
        for question in questions:
            validate_question(question)
            self._questions[question.id] = question

    def get_question(self, question_id: str) -> Optional[Question]:
        return self._questions.get(question_id)

    def list_questions(self, category_id: Optional[str] = None) -> List[Question]:
        return [
            question
            for question in self._questions.values()
            if category_id is None or question.category_id == category_id
        ]

    def category_names(self) -> Dict[str, str]:
        return dict(self._categories)

    # endregion


class PerformanceService:
    """Applies answer events and serves the review queue."""

    def __init__(
        self,
        repository: PerformanceRepository,
        catalog: QuestionCatalog,
        config: Optional[ReviewConfig] = None,
    ) -> None:
        self._repository = repository
        self._catalog = catalog
        self._config = config or ReviewConfig()

    def ensure_performance(
        self,
        question_id: str,
        user_id: str,
        category_id: str,
        now: Optional[datetime] = None,
    ) -> PerformanceRecord:
        """Return the stored record, creating a default one on first contact."""

        existing = self._repository.get_performance(question_id, user_id)
        if existing is not None:
            return existing
        record = initialize_performance_record(
            question_id, user_id, category_id, now or utc_now()
        )
        self._repository.save_performance(record)
        logger.debug("Created performance record %s", record.id)
        return record

    def submit_answer(
        self, event: AnswerEvent, now: Optional[datetime] = None
    ) -> Tuple[PerformanceRecord, int]:
        """Schedule the next review for an answered question.

        Returns the persisted record together with the quality score the
        answer was graded with.
        """

        now = now or utc_now()
        validate_answer_event(event, self._catalog.get_question(event.question_id))

        previous = self.ensure_performance(
            event.question_id, event.user_id, event.category_id, now
        )
        quality = map_quality(event.is_correct, event.confidence)
        updated = update_performance_record(previous, event.is_correct, event.confidence, now)
        self._repository.save_performance(updated)

        METRICS.record_answer(event.is_correct, quality, updated.interval)
        if updated.repetitions == 0:
            METRICS.record_ladder_step(
                int((updated.next_review_date - now).total_seconds() // 60)
            )
        if is_mastered(previous) != is_mastered(updated):
            METRICS.record_mastery_transition(event.user_id, gained=is_mastered(updated))
        if is_weak_spot(updated) and not is_weak_spot(previous):
            METRICS.record_weak_spot(event.question_id)

        logger.info(
            "User %s answered %s (%s, quality %s); next review at %s",
            event.user_id,
            event.question_id,
            "correct" if event.is_correct else "incorrect",
            quality,
            updated.next_review_date.isoformat(),
        )
        return updated, quality

    def get_due_questions(
        self,
        user_id: str,
        now: Optional[datetime] = None,
        max_questions: Optional[int] = None,
    ) -> List[Tuple[Question, PerformanceRecord]]:
        """Due questions in review order; records without content are skipped."""

        limit = self._config.review_queue_limit if max_questions is None else max_questions
        records = self._repository.list_due_performances(user_id, now or utc_now(), limit)
        due: List[Tuple[Question, PerformanceRecord]] = []
        for record in records:
            question = self._catalog.get_question(record.question_id)
            if question is None:
                logger.warning(
                    "Due record %s references missing question %s", record.id, record.question_id
                )
                continue
            due.append((question, record))
        return due

    def get_review_queue_count(self, user_id: str, now: Optional[datetime] = None) -> int:
        return self._repository.count_due(user_id, now or utc_now())


class AnalyticsService:
    """Builds and serves category, overall and weak-spot analytics."""

    def __init__(
        self,
        repository: PerformanceRepository,
        analytics_repository: CategoryAnalyticsRepository,
        catalog: QuestionCatalog,
        config: Optional[ReviewConfig] = None,
    ) -> None:
        self._repository = repository
        self._analytics_repository = analytics_repository
        self._catalog = catalog
        self._config = config or ReviewConfig()

    def refresh_category_analytics(
        self, category_id: str, user_id: str, now: Optional[datetime] = None
    ) -> CategoryAnalytics:
        records = self._repository.list_performances(user_id, category_id)
        analytics = build_category_analytics(
            category_id,
            user_id,
            records,
            self._catalog.count_questions(category_id),
            now or utc_now(),
        )
        self._analytics_repository.save_analytics(analytics)
        METRICS.record_analytics_refresh()
        logger.info(
            "Refreshed analytics for user %s in category %s: %s/%s mastered, %s struggling",
            user_id,
            category_id,
            analytics.mastered_questions,
            analytics.total_questions,
            analytics.struggling_questions,
        )
        return analytics

    def get_category_analytics(
        self, category_id: str, user_id: str
    ) -> Optional[CategoryAnalytics]:
        return self._analytics_repository.get_analytics(category_id, user_id)

    def get_overall_stats(self, user_id: str) -> OverallStats:
        return aggregate_overall_stats(self._analytics_repository.list_analytics(user_id))

    def get_mastery_percentage(self, category_id: str, user_id: str) -> int:
        return calculate_category_mastery(
            self._repository.list_performances(user_id, category_id),
            self._catalog.count_questions(category_id),
        )

    def get_weak_spots(self, user_id: str, max_spots: Optional[int] = None) -> List[WeakSpot]:
        limit = self._config.weak_spot_limit if max_spots is None else max_spots
        return rank_weak_spots(
            self._repository.list_performances(user_id),
            self._catalog.get_question,
            self._catalog.category_names(),
            limit,
        )

    def create_weak_spot_quiz(
        self, user_id: str, question_count: Optional[int] = None
    ) -> List[Question]:
        count = self._config.weak_spot_quiz_size if question_count is None else question_count
        return [spot.question for spot in self.get_weak_spots(user_id, count)]


__all__ = [
    "AnalyticsService",
    "InMemoryRepository",
    "PerformanceService",
    "ReviewConfig",
]
