import logging
from datetime import timedelta

import pytest
from fastapi.testclient import TestClient

from quizwhiz.domain import utc_now
from quizwhiz.main import _log_level, app
from quizwhiz.scheduler import initialize_performance_record


@pytest.fixture
def client(monkeypatch, question_factory):
    monkeypatch.delenv("QUIZWHIZ_DB_PATH", raising=False)
    monkeypatch.setenv("QUIZWHIZ_WEAK_SPOT_LIMIT", "3")
    with TestClient(app) as test_client:
        repository = app.state.repository
        repository.add_category("history", "History")
        repository.add_questions(
            [question_factory("q1"), question_factory("q2"), question_factory("q3")]
        )
        yield test_client


def _answer(client, question_id, is_correct, confidence="sure", category_id="history"):
    return client.post(
        "/v1/performance/answer",
        json={
            "question_id": question_id,
            "user_id": "alice",
            "category_id": category_id,
            "is_correct": is_correct,
            "confidence": confidence,
        },
    )


def test_submit_answer_returns_schedule(client):
    response = _answer(client, "q1", True, "knew_it")

    assert response.status_code == 200
    body = response.json()
    assert body["id"] == "q1-alice"
    assert body["quality"] == 5
    assert body["repetitions"] == 1
    assert body["interval"] == 1
    assert body["ease_factor"] == pytest.approx(2.6)
    assert body["confidence_history"] == [4]
    assert body["accuracy"] == 100
    assert body["is_mastered"] is False


def test_submit_answer_accepts_numeric_confidence(client):
    response = _answer(client, "q1", False, 1)

    assert response.status_code == 200
    assert response.json()["quality"] == 2


def test_submit_answer_validation_errors(client):
    assert _answer(client, "q1", True, "certainly").status_code == 422
    mismatch = _answer(client, "q1", True, category_id="science")
    assert mismatch.status_code == 400
    assert "belongs to category history" in mismatch.json()["detail"]


def test_review_queue_and_count(client):
    past = utc_now() - timedelta(hours=1)
    app.state.repository.save_performance(
        initialize_performance_record("q2", "alice", "history", past)
    )
    _answer(client, "q1", True)

    due = client.get("/v1/review/due", params={"user_id": "alice"}).json()["due"]
    assert [item["question"]["id"] for item in due] == ["q2"]
    assert due[0]["repetitions"] == 0

    count = client.get("/v1/review/count", params={"user_id": "alice"}).json()
    assert count == {"user_id": "alice", "due_count": 1}


def test_category_analytics_endpoints(client):
    missing = client.get("/v1/analytics/categories/history", params={"user_id": "alice"})
    assert missing.status_code == 404

    for confidence in ("knew_it", "sure", "unsure"):
        _answer(client, "q1", True, confidence)
    _answer(client, "q2", False)
    _answer(client, "q2", False)

    refreshed = client.post(
        "/v1/analytics/categories/history/refresh", params={"user_id": "alice"}
    ).json()
    assert refreshed["total_questions"] == 3
    assert refreshed["mastered_questions"] == 1
    assert refreshed["struggling_questions"] == 1
    assert refreshed["average_accuracy"] == 50.0
    assert refreshed["mastery_percentage"] == 33

    stored = client.get("/v1/analytics/categories/history", params={"user_id": "alice"})
    assert stored.status_code == 200
    assert stored.json()["id"] == "history-alice"

    overview = client.get("/v1/analytics/overview", params={"user_id": "alice"}).json()
    assert overview["total_questions"] == 3
    assert overview["total_mastered"] == 1
    assert overview["mastery_percentage"] == 33
    assert overview["overall_accuracy"] == 50.0


def test_weak_spots_and_quiz(client):
    for question_id in ("q1", "q2", "q3"):
        _answer(client, question_id, False)
        _answer(client, question_id, False)
    _answer(client, "q2", True)

    spots = client.get("/v1/analytics/weak-spots", params={"user_id": "alice"}).json()
    assert [spot["question_id"] for spot in spots["weak_spots"]] == ["q1", "q3", "q2"]
    assert spots["weak_spots"][0]["category_name"] == "History"
    assert spots["weak_spots"][0]["attempts"] == 2

    limited = client.get(
        "/v1/analytics/weak-spots", params={"user_id": "alice", "limit": 1}
    ).json()
    assert len(limited["weak_spots"]) == 1

    quiz = client.get("/v1/review/weak-spot-quiz", params={"user_id": "alice", "count": 2}).json()
    assert [question["id"] for question in quiz["questions"]] == ["q1", "q3"]


@pytest.mark.parametrize("value", ["verbose", ""])
def test_unknown_log_level_falls_back_to_info(monkeypatch, value):
    monkeypatch.delenv("QUIZWHIZ_DB_PATH", raising=False)
    monkeypatch.setenv("QUIZWHIZ_LOG_LEVEL", value)

    with TestClient(app) as test_client:
        response = test_client.get("/v1/review/count", params={"user_id": "alice"})

    assert response.status_code == 200
    assert response.json() == {"user_id": "alice", "due_count": 0}


def test_log_level_names(monkeypatch):
    monkeypatch.setenv("QUIZWHIZ_LOG_LEVEL", " debug ")
    assert _log_level() == logging.DEBUG
    monkeypatch.setenv("QUIZWHIZ_LOG_LEVEL", "verbose")
    assert _log_level() == logging.INFO
    monkeypatch.delenv("QUIZWHIZ_LOG_LEVEL")
    assert _log_level() == logging.INFO
