"""FastAPI application wiring for the QuizWhiz review service."""

from __future__ import annotations

import logging
import os
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

from fastapi import Depends, FastAPI, HTTPException, Query

from .models import (
    AnswerSubmitRequest,
    CategoryAnalyticsResponse,
    OverallStatsResponse,
    PerformanceRecordResponse,
    QuestionPayload,
    ReviewCountResponse,
    ReviewQueueItem,
    ReviewQueueResponse,
    WeakSpotItem,
    WeakSpotQuizResponse,
    WeakSpotsResponse,
)
from .services import AnalyticsService, InMemoryRepository, PerformanceService, ReviewConfig
from .storage import SqliteStudyRepository


logger = logging.getLogger(__name__)


def load_config() -> ReviewConfig:
    return ReviewConfig(
        review_queue_limit=int(os.getenv("QUIZWHIZ_REVIEW_QUEUE_LIMIT", "20")),
        weak_spot_limit=int(os.getenv("QUIZWHIZ_WEAK_SPOT_LIMIT", "5")),
        weak_spot_quiz_size=int(os.getenv("QUIZWHIZ_WEAK_SPOT_QUIZ_SIZE", "10")),
    )


def _log_level() -> int:
    level = logging.getLevelName(os.getenv("QUIZWHIZ_LOG_LEVEL", "INFO").strip().upper())
    # getLevelName answers "Level X" for names it does not know.
    return level if isinstance(level, int) else logging.INFO


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    logging.basicConfig(level=_log_level())
    config = load_config()

    db_path = os.getenv("QUIZWHIZ_DB_PATH")
    if db_path:
        repository = SqliteStudyRepository(db_path)
        logger.info("Using SQLite storage at %s", db_path)
    else:
        repository = InMemoryRepository()
        logger.info("Using in-memory storage")

    app.state.repository = repository
    app.state.config = config
    app.state.performance_service = PerformanceService(repository, repository, config)
    app.state.analytics_service = AnalyticsService(repository, repository, repository, config)
    try:
        yield
    finally:
        if isinstance(repository, SqliteStudyRepository):
            repository.close()


app = FastAPI(title="QuizWhiz Review", version="0.1.0", lifespan=lifespan)


def get_performance_service() -> PerformanceService:
    return app.state.performance_service


def get_analytics_service() -> AnalyticsService:
    return app.state.analytics_service


@app.post("/v1/performance/answer", response_model=PerformanceRecordResponse)
def submit_answer(
    request: AnswerSubmitRequest,
    service: PerformanceService = Depends(get_performance_service),
) -> PerformanceRecordResponse:
    try:
        record, quality = service.submit_answer(request.to_event())
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return PerformanceRecordResponse.from_record(record, quality=quality)


@app.get("/v1/review/due", response_model=ReviewQueueResponse)
def review_due(
    user_id: str,
    limit: Optional[int] = Query(default=None, ge=0),
    service: PerformanceService = Depends(get_performance_service),
) -> ReviewQueueResponse:
    due = service.get_due_questions(user_id, max_questions=limit)
    return ReviewQueueResponse(
        due=[
            ReviewQueueItem(
                question=QuestionPayload.from_question(question),
                next_review_date=record.next_review_date,
                repetitions=record.repetitions,
                ease_factor=record.ease_factor,
            )
            for question, record in due
        ]
    )


@app.get("/v1/review/count", response_model=ReviewCountResponse)
def review_count(
    user_id: str, service: PerformanceService = Depends(get_performance_service)
) -> ReviewCountResponse:
    return ReviewCountResponse(user_id=user_id, due_count=service.get_review_queue_count(user_id))


@app.get("/v1/review/weak-spot-quiz", response_model=WeakSpotQuizResponse)
def weak_spot_quiz(
    user_id: str,
    count: Optional[int] = Query(default=None, ge=0),
    service: AnalyticsService = Depends(get_analytics_service),
) -> WeakSpotQuizResponse:
    questions = service.create_weak_spot_quiz(user_id, count)
    return WeakSpotQuizResponse(
        questions=[QuestionPayload.from_question(question) for question in questions]
    )


@app.post(
    "/v1/analytics/categories/{category_id}/refresh",
    response_model=CategoryAnalyticsResponse,
)
def refresh_category_analytics(
    category_id: str, user_id: str, service: AnalyticsService = Depends(get_analytics_service)
) -> CategoryAnalyticsResponse:
    analytics = service.refresh_category_analytics(category_id, user_id)
    return CategoryAnalyticsResponse.from_analytics(
        analytics, service.get_mastery_percentage(category_id, user_id)
    )


@app.get("/v1/analytics/categories/{category_id}", response_model=CategoryAnalyticsResponse)
def category_analytics(
    category_id: str, user_id: str, service: AnalyticsService = Depends(get_analytics_service)
) -> CategoryAnalyticsResponse:
    analytics = service.get_category_analytics(category_id, user_id)
    if analytics is None:
        raise HTTPException(
            status_code=404,
            detail=f"No analytics for category {category_id} and user {user_id}",
        )
    return CategoryAnalyticsResponse.from_analytics(
        analytics, service.get_mastery_percentage(category_id, user_id)
    )


@app.get("/v1/analytics/overview", response_model=OverallStatsResponse)
def analytics_overview(
    user_id: str, service: AnalyticsService = Depends(get_analytics_service)
) -> OverallStatsResponse:
    return OverallStatsResponse.from_stats(user_id, service.get_overall_stats(user_id))


@app.get("/v1/analytics/weak-spots", response_model=WeakSpotsResponse)
def weak_spots(
    user_id: str,
    limit: Optional[int] = Query(default=None, ge=0),
    service: AnalyticsService = Depends(get_analytics_service),
) -> WeakSpotsResponse:
    spots = service.get_weak_spots(user_id, limit)
    return WeakSpotsResponse(weak_spots=[WeakSpotItem.from_weak_spot(spot) for spot in spots])


__all__ = ["app", "load_config"]
