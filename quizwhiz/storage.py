"""Concrete repository implementation backed by SQLite."""
from __future__ import annotations

import json
import logging
import sqlite3
import threading
from dataclasses import asdict
from datetime import datetime
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Union

from .domain import (
    AnswerOption,
    CategoryAnalytics,
    PerformanceRecord,
    Question,
    analytics_id,
    performance_id,
    to_epoch_millis,
)
from .repositories import CategoryAnalyticsRepository, PerformanceRepository, QuestionCatalog
from .validators import ValidationError, validate_performance_record, validate_question


logger = logging.getLogger(__name__)


def _question_from_payload(payload: dict) -> Question:
    options = [AnswerOption(**option) for option in payload.get("options") or []]
    return Question(
        id=payload["id"],
        text=payload["text"],
        category_id=payload["category_id"],
        options=options,
        correct_answer_id=payload.get("correct_answer_id", ""),
        explanation=payload.get("explanation"),
    )


class SqliteStudyRepository(PerformanceRepository, CategoryAnalyticsRepository, QuestionCatalog):
    """Stores performance records, analytics snapshots and the question catalog in SQLite."""

    def __init__(self, db_path: Union[str, Path]) -> None:
        self._db_path = db_path
        self._lock = threading.Lock()
        self._conn = sqlite3.connect(str(db_path), check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        self._initialise_schema()

    def close(self) -> None:
        with self._lock:
            self._conn.close()

    def _initialise_schema(self) -> None:
        with self._lock:
            cursor = self._conn.cursor()
            cursor.executescript(
                """
                CREATE TABLE IF NOT EXISTS question_performance (
                    id TEXT PRIMARY KEY,
                    question_id TEXT NOT NULL,
                    user_id TEXT NOT NULL,
                    category_id TEXT NOT NULL,
                    next_review_ms INTEGER NOT NULL,
                    payload_json TEXT NOT NULL
                );

                CREATE INDEX IF NOT EXISTS idx_performance_due
                    ON question_performance (user_id, next_review_ms);

                CREATE INDEX IF NOT EXISTS idx_performance_category
                    ON question_performance (user_id, category_id);

                CREATE TABLE IF NOT EXISTS category_analytics (
                    id TEXT PRIMARY KEY,
                    user_id TEXT NOT NULL,
                    category_id TEXT NOT NULL,
                    payload_json TEXT NOT NULL
                );

                CREATE TABLE IF NOT EXISTS questions (
                    id TEXT PRIMARY KEY,
                    category_id TEXT NOT NULL,
                    payload_json TEXT NOT NULL
                );

                CREATE TABLE IF NOT EXISTS categories (
                    id TEXT PRIMARY KEY,
                    name TEXT NOT NULL
                );
                """
            )
            self._conn.commit()

    def _decode_record(self, row: sqlite3.Row) -> PerformanceRecord:
        try:
            record = PerformanceRecord.from_dict(json.loads(row["payload_json"]))
        except (KeyError, TypeError, ValueError) as exc:
            raise ValidationError(
                f"Performance row {row['id']} cannot be decoded: {exc!r}"
            ) from exc
        validate_performance_record(record)
        return record

    def _load_records(self, rows: Iterable[sqlite3.Row]) -> List[PerformanceRecord]:
        records: List[PerformanceRecord] = []
        for row in rows:
            try:
                records.append(self._decode_record(row))
            except ValidationError as exc:
                logger.warning("Ignoring invalid performance row %s: %s", row["id"], exc)
        return records

    # PerformanceRepository ----------------------------------------------
    def get_performance(self, question_id: str, user_id: str) -> Optional[PerformanceRecord]:
        with self._lock:
            cursor = self._conn.cursor()
            row = cursor.execute(
                "SELECT id, payload_json FROM question_performance WHERE id = ?",
                (performance_id(question_id, user_id),),
            ).fetchone()
        if not row:
            return None
        # A corrupt row must not look missing, or the next write replaces it.
        return self._decode_record(row)

    def save_performance(self, record: PerformanceRecord) -> None:
        validate_performance_record(record)
        with self._lock:
            cursor = self._conn.cursor()
            cursor.execute(
                """
                INSERT OR REPLACE INTO question_performance
                    (id, question_id, user_id, category_id, next_review_ms, payload_json)
                VALUES (?, ?, ?, ?, ?, ?)
                """,
                (
                    record.id,
                    record.question_id,
                    record.user_id,
                    record.category_id,
                    to_epoch_millis(record.next_review_date),
                    json.dumps(record.to_dict()),
                ),
            )
            self._conn.commit()

    def list_performances(
        self, user_id: str, category_id: Optional[str] = None
    ) -> List[PerformanceRecord]:
        query = "SELECT id, payload_json FROM question_performance WHERE user_id = ?"
        params: tuple = (user_id,)
        if category_id is not None:
            query += " AND category_id = ?"
            params += (category_id,)
        with self._lock:
            cursor = self._conn.cursor()
            rows = cursor.execute(query + " ORDER BY rowid", params).fetchall()
        return self._load_records(rows)

    def list_due_performances(
        self, user_id: str, now: datetime, limit: int
    ) -> List[PerformanceRecord]:
        with self._lock:
            cursor = self._conn.cursor()
            rows = cursor.execute(
                """
                SELECT id, payload_json FROM question_performance
                 WHERE user_id = ? AND next_review_ms <= ?
                 ORDER BY next_review_ms ASC, rowid ASC
                 LIMIT ?
                """,
                (user_id, to_epoch_millis(now), max(limit, 0)),
            ).fetchall()
        return self._load_records(rows)

    def count_due(self, user_id: str, now: datetime) -> int:
        with self._lock:
            cursor = self._conn.cursor()
            row = cursor.execute(
                """
                SELECT COUNT(*) AS due FROM question_performance
                 WHERE user_id = ? AND next_review_ms <= ?
                """,
                (user_id, to_epoch_millis(now)),
            ).fetchone()
        return int(row["due"])

    # CategoryAnalyticsRepository ----------------------------------------
    def get_analytics(self, category_id: str, user_id: str) -> Optional[CategoryAnalytics]:
        with self._lock:
            cursor = self._conn.cursor()
            row = cursor.execute(
                "SELECT payload_json FROM category_analytics WHERE id = ?",
                (analytics_id(category_id, user_id),),
            ).fetchone()
        if not row:
            return None
        return CategoryAnalytics.from_dict(json.loads(row["payload_json"]))

    def save_analytics(self, analytics: CategoryAnalytics) -> None:
        with self._lock:
            cursor = self._conn.cursor()
            cursor.execute(
                """
                INSERT OR REPLACE INTO category_analytics (id, user_id, category_id, payload_json)
                VALUES (?, ?, ?, ?)
                """,
                (
                    analytics.id,
                    analytics.user_id,
                    analytics.category_id,
                    json.dumps(analytics.to_dict()),
                ),
            )
            self._conn.commit()

    def list_analytics(self, user_id: str) -> List[CategoryAnalytics]:
        with self._lock:
            cursor = self._conn.cursor()
            rows = cursor.execute(
                "SELECT payload_json FROM category_analytics WHERE user_id = ? ORDER BY rowid",
                (user_id,),
            ).fetchall()
        return [CategoryAnalytics.from_dict(json.loads(row["payload_json"])) for row in rows]

    # QuestionCatalog ----------------------------------------------------
    def add_category(self, category_id: str, name: str) -> None:
        with self._lock:
            cursor = self._conn.cursor()
            cursor.execute(
                "INSERT OR REPLACE INTO categories (id, name) VALUES (?, ?)",
                (category_id, name),
            )
            self._conn.commit()

    def add_questions(self, questions: Iterable[Question]) -> None:
        payloads = []
        for question in questions:
            validate_question(question)
            payloads.append((question.id, question.category_id, json.dumps(asdict(question))))
        if not payloads:
            return
        with self._lock:
            cursor = self._conn.cursor()
            cursor.executemany(
                "INSERT OR REPLACE INTO questions (id, category_id, payload_json) VALUES (?, ?, ?)",
                payloads,
            )
            self._conn.commit()

    def get_question(self, question_id: str) -> Optional[Question]:
        with self._lock:
            cursor = self._conn.cursor()
            row = cursor.execute(
                "SELECT payload_json FROM questions WHERE id = ?", (question_id,)
            ).fetchone()
        if not row:
            return None
        return _question_from_payload(json.loads(row["payload_json"]))

    def list_questions(self, category_id: Optional[str] = None) -> List[Question]:
        query = "SELECT payload_json FROM questions"
        params: tuple = ()
        if category_id is not None:
            query += " WHERE category_id = ?"
            params = (category_id,)
        with self._lock:
            cursor = self._conn.cursor()
            rows = cursor.execute(query + " ORDER BY rowid", params).fetchall()
        return [_question_from_payload(json.loads(row["payload_json"])) for row in rows]

    def count_questions(self, category_id: str) -> int:
        with self._lock:
            cursor = self._conn.cursor()
            row = cursor.execute(
                "SELECT COUNT(*) AS total FROM questions WHERE category_id = ?", (category_id,)
            ).fetchone()
        return int(row["total"])

    def category_names(self) -> Dict[str, str]:
        with self._lock:
            cursor = self._conn.cursor()
            rows = cursor.execute("SELECT id, name FROM categories").fetchall()
        return {row["id"]: row["name"] for row in rows}


__all__ = ["SqliteStudyRepository"]
