from datetime import timedelta

import pytest

from quizwhiz.domain import AnswerEvent, ConfidenceLevel
from quizwhiz.services import AnalyticsService, PerformanceService, ReviewConfig
from quizwhiz.validators import ValidationError


@pytest.fixture
def performance_service(repository):
    return PerformanceService(repository, repository, ReviewConfig(review_queue_limit=2))


@pytest.fixture
def analytics_service(repository):
    return AnalyticsService(repository, repository, repository, ReviewConfig(weak_spot_limit=2))


def _answer(service, question_id, is_correct, confidence, now, category_id="history"):
    event = AnswerEvent(question_id, "alice", category_id, is_correct, confidence)
    return service.submit_answer(event, now)


def test_ensure_performance_creates_once(performance_service, repository, now):
    created = performance_service.ensure_performance("q1", "alice", "history", now)
    again = performance_service.ensure_performance(
        "q1", "alice", "history", now + timedelta(days=1)
    )

    assert again == created
    assert repository.get_performance("q1", "alice") == created
    assert created.next_review_date == now


def test_submit_answer_persists_updated_record(performance_service, repository, metrics, now):
    record, quality = _answer(performance_service, "q1", True, ConfidenceLevel.KNEW_IT, now)

    assert quality == 5
    assert record.repetitions == 1
    assert record.next_review_date == now + timedelta(days=1)
    assert repository.get_performance("q1", "alice") == record
    assert metrics.answers_submitted == 1
    assert metrics.quality_outcomes[5] == 1
    assert metrics.interval_buckets["1d"] == 1


def test_submit_answer_records_ladder_and_weak_spot_metrics(
    performance_service, metrics, now
):
    _answer(performance_service, "q1", False, ConfidenceLevel.SURE, now)
    record, quality = _answer(performance_service, "q1", False, ConfidenceLevel.GUESS, now)

    assert quality == 2
    assert record.next_review_date == now + timedelta(hours=1)
    assert metrics.ladder_steps == {1: 1, 60: 1}
    assert metrics.weak_spot_detections["q1"] == 1
    assert metrics.answer_accuracy == 0


def test_submit_answer_tracks_mastery_transitions(performance_service, metrics, now):
    for confidence in (ConfidenceLevel.KNEW_IT, ConfidenceLevel.KNEW_IT, ConfidenceLevel.SURE):
        _answer(performance_service, "q1", True, confidence, now)
    _answer(performance_service, "q1", False, ConfidenceLevel.KNEW_IT, now)

    assert metrics.mastery_transitions[("alice", "gained")] == 1
    assert metrics.mastery_transitions[("alice", "lost")] == 1


def test_submit_answer_rejects_category_mismatch(performance_service, repository, now):
    with pytest.raises(ValidationError):
        _answer(
            performance_service, "q1", True, ConfidenceLevel.SURE, now, category_id="science"
        )
    assert repository.get_performance("q1", "alice") is None


def test_due_questions_follow_review_order(performance_service, repository, now):
    _answer(performance_service, "q1", False, ConfidenceLevel.SURE, now)
    _answer(performance_service, "q2", False, ConfidenceLevel.SURE, now - timedelta(minutes=30))
    _answer(performance_service, "q3", True, ConfidenceLevel.SURE, now)
    performance_service.ensure_performance("missing", "alice", "history", now - timedelta(days=1))

    later = now + timedelta(minutes=5)
    due = performance_service.get_due_questions("alice", later)

    # "missing" is first in line but has no content, so it is skipped after the cap.
    assert [question.id for question, _ in due] == ["q2"]
    assert performance_service.get_review_queue_count("alice", later) == 3

    wide = performance_service.get_due_questions("alice", later, max_questions=10)
    assert [question.id for question, _ in wide] == ["q2", "q1"]


def test_refresh_category_analytics(performance_service, analytics_service, repository, now):
    for confidence in (ConfidenceLevel.KNEW_IT, ConfidenceLevel.SURE, ConfidenceLevel.UNSURE):
        _answer(performance_service, "q1", True, confidence, now)
    _answer(performance_service, "q2", False, ConfidenceLevel.SURE, now)
    _answer(performance_service, "q2", False, ConfidenceLevel.SURE, now)
    _answer(performance_service, "s1", True, ConfidenceLevel.SURE, now, category_id="science")

    analytics = analytics_service.refresh_category_analytics("history", "alice", now)

    assert analytics.total_questions == 3
    assert analytics.mastered_questions == 1
    assert analytics.struggling_questions == 1
    assert analytics.average_accuracy == pytest.approx(50.0)
    assert analytics_service.get_category_analytics("history", "alice") == analytics
    assert analytics_service.get_mastery_percentage("history", "alice") == 33

    analytics_service.refresh_category_analytics("science", "alice", now)
    stats = analytics_service.get_overall_stats("alice")
    assert stats.total_questions == 4
    assert stats.total_mastered == 1
    assert stats.mastery_percentage == 25
    assert stats.overall_accuracy == pytest.approx(62.5)


def test_overall_stats_without_snapshots(analytics_service):
    stats = analytics_service.get_overall_stats("nobody")

    assert stats.total_questions == 0
    assert stats.overall_accuracy == 0


def test_weak_spots_and_quiz(performance_service, analytics_service, now):
    for question_id in ("q1", "q2", "q3"):
        _answer(performance_service, question_id, False, ConfidenceLevel.SURE, now)
    _answer(performance_service, "q1", False, ConfidenceLevel.SURE, now)
    _answer(performance_service, "q2", True, ConfidenceLevel.SURE, now)
    _answer(performance_service, "q2", False, ConfidenceLevel.SURE, now)
    _answer(performance_service, "q3", True, ConfidenceLevel.SURE, now)

    spots = analytics_service.get_weak_spots("alice")
    assert [spot.question_id for spot in spots] == ["q1", "q2"]
    assert spots[0].category_name == "History"
    assert spots[1].accuracy == pytest.approx(100 / 3)

    quiz = analytics_service.create_weak_spot_quiz("alice", question_count=10)
    assert [question.id for question in quiz] == ["q1", "q2"]
