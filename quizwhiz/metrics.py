"""Simple in-process metrics registry for service instrumentation."""
from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field


def interval_bucket(interval_days: float) -> str:
    """Coarse label for a review interval."""

    if interval_days < 1:
        return "short-term"
    if interval_days <= 1:
        return "1d"
    if interval_days <= 7:
        return "<=7d"
    if interval_days <= 30:
        return "<=30d"
    return ">30d"


@dataclass
class MetricsRegistry:
    """Holds counters exposed by the review and analytics services."""

    answers_submitted: int = 0
    answers_correct: int = 0
    quality_outcomes: Counter = field(default_factory=Counter)
    interval_buckets: Counter = field(default_factory=Counter)
    ladder_steps: Counter = field(default_factory=Counter)
    mastery_transitions: Counter = field(default_factory=Counter)
    weak_spot_detections: Counter = field(default_factory=Counter)
    analytics_refreshes: int = 0

    def record_answer(self, is_correct: bool, quality: int, interval_days: float) -> None:
        self.answers_submitted += 1
        if is_correct:
            self.answers_correct += 1
        self.quality_outcomes[quality] += 1
        self.interval_buckets[interval_bucket(interval_days)] += 1

    def record_ladder_step(self, delay_minutes: int) -> None:
        self.ladder_steps[delay_minutes] += 1

    def record_mastery_transition(self, user_id: str, gained: bool) -> None:
        self.mastery_transitions[(user_id, "gained" if gained else "lost")] += 1

    def record_weak_spot(self, question_id: str) -> None:
        self.weak_spot_detections[question_id] += 1

    def record_analytics_refresh(self) -> None:
        self.analytics_refreshes += 1

    @property
    def answer_accuracy(self) -> float:
        if self.answers_submitted == 0:
            return 0.0
        return self.answers_correct / self.answers_submitted


METRICS = MetricsRegistry()

__all__ = ["METRICS", "MetricsRegistry", "interval_bucket"]
