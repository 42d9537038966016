"""Repository interfaces for QuizWhiz persistent state."""
from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Dict, List, Optional

from .domain import CategoryAnalytics, PerformanceRecord, Question


class PerformanceRepository(ABC):
    """Persist per-question scheduling state keyed by (question, user)."""

    @abstractmethod
    def get_performance(self, question_id: str, user_id: str) -> Optional[PerformanceRecord]:
        """Return the stored record, if present."""

    @abstractmethod
    def save_performance(self, record: PerformanceRecord) -> None:
        """Insert or replace the record."""

    @abstractmethod
    def list_performances(
        self, user_id: str, category_id: Optional[str] = None
    ) -> List[PerformanceRecord]:
        """Return the learner's records, optionally limited to one category."""

    @abstractmethod
    def list_due_performances(
        self, user_id: str, now: datetime, limit: int
    ) -> List[PerformanceRecord]:
        """Return due records ordered by next review date, at most ``limit``."""

    @abstractmethod
    def count_due(self, user_id: str, now: datetime) -> int:
        """Return how many of the learner's records are due."""


class CategoryAnalyticsRepository(ABC):
    """Store computed category analytics snapshots."""

    @abstractmethod
    def get_analytics(self, category_id: str, user_id: str) -> Optional[CategoryAnalytics]:
        """Return the last stored snapshot, if any."""

    @abstractmethod
    def save_analytics(self, analytics: CategoryAnalytics) -> None:
        """Insert or replace the snapshot."""

    @abstractmethod
    def list_analytics(self, user_id: str) -> List[CategoryAnalytics]:
        """Return every stored snapshot for the learner."""


class QuestionCatalog(ABC):
    """Read access to question content and category display names."""

    @abstractmethod
    def get_question(self, question_id: str) -> Optional[Question]:
        """Return the question, or ``None`` when it no longer exists."""

    @abstractmethod
    def list_questions(self, category_id: Optional[str] = None) -> List[Question]:
        """Return all questions, optionally limited to one category."""

    @abstractmethod
    def category_names(self) -> Dict[str, str]:
        """Return a mapping of category id to display name."""

    def count_questions(self, category_id: str) -> int:
        return len(self.list_questions(category_id))


__all__ = [
    "CategoryAnalyticsRepository",
    "PerformanceRepository",
    "QuestionCatalog",
]
