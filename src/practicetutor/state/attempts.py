"""SQLite-backed attempt log: the sink for outcomes and the source of history."""

from __future__ import annotations

import asyncio
import sqlite3
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, Optional

from practicetutor.engine.models import (
    AttemptAggregate,
    AttemptRecord,
    FlagRecord,
    HistorySnapshot,
    TopicAggregate,
)


def _utc(ts: datetime) -> str:
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=timezone.utc)
    return ts.astimezone(timezone.utc).isoformat()


class AttemptLog:
    def __init__(
        self,
        db_path: Optional[Path] = None,
        topic_of: Optional[Callable[[str], Optional[str]]] = None,
    ):
        self.db_path = db_path or (Path.home() / ".practicetutor" / "attempts.db")
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._topic_of = topic_of or (lambda question_id: None)
        self._init_db()

    def _init_db(self) -> None:
        with self._conn() as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS attempts (
                    id TEXT PRIMARY KEY,
                    question_id TEXT NOT NULL,
                    topic_id TEXT,
                    answer_raw TEXT DEFAULT '',
                    is_correct INTEGER NOT NULL,
                    time_spent_seconds INTEGER DEFAULT 0,
                    hints_used INTEGER DEFAULT 0,
                    created_at TEXT NOT NULL
                )
            """)
            conn.execute("""
                CREATE TABLE IF NOT EXISTS flags (
                    id TEXT PRIMARY KEY,
                    question_id TEXT NOT NULL,
                    flag_type TEXT NOT NULL,
                    comment TEXT,
                    student_answer TEXT,
                    attempt_id TEXT,
                    status TEXT DEFAULT 'pending',
                    created_at TEXT NOT NULL
                )
            """)
            # Written by the external spaced-repetition scheduler.
            conn.execute("""
                CREATE TABLE IF NOT EXISTS review_schedule (
                    question_id TEXT PRIMARY KEY,
                    next_due TEXT NOT NULL
                )
            """)

    def _conn(self) -> sqlite3.Connection:
        return sqlite3.connect(self.db_path)

    # --- Attempt sink ---

    async def record_attempt(self, record: AttemptRecord) -> str:
        return await asyncio.to_thread(self._insert_attempt, record)

    async def submit_flag(self, record: FlagRecord) -> str:
        return await asyncio.to_thread(self._insert_flag, record)

    def _insert_attempt(self, record: AttemptRecord) -> str:
        attempt_id = uuid.uuid4().hex
        with self._conn() as conn:
            conn.execute(
                """INSERT INTO attempts
                   (id, question_id, topic_id, answer_raw, is_correct,
                    time_spent_seconds, hints_used, created_at)
                   VALUES (?, ?, ?, ?, ?, ?, ?, ?)""",
                (
                    attempt_id, record.question_id, self._topic_of(record.question_id),
                    record.answer_raw, int(record.is_correct), record.time_spent_seconds,
                    record.hints_used, _utc(datetime.now(timezone.utc)),
                ),
            )
        return attempt_id

    def _insert_flag(self, record: FlagRecord) -> str:
        with self._conn() as conn:
            existing = conn.execute(
                """SELECT id FROM flags
                   WHERE question_id = ? AND flag_type = ? AND status = 'pending'""",
                (record.question_id, record.flag_type.value),
            ).fetchone()
            if existing:
                raise ValueError(
                    f"A pending {record.flag_type.value} flag already exists "
                    f"for question {record.question_id}"
                )
            flag_id = uuid.uuid4().hex
            conn.execute(
                """INSERT INTO flags
                   (id, question_id, flag_type, comment, student_answer, attempt_id, created_at)
                   VALUES (?, ?, ?, ?, ?, ?, ?)""",
                (
                    flag_id, record.question_id, record.flag_type.value, record.comment,
                    record.student_answer, record.attempt_id, _utc(datetime.now(timezone.utc)),
                ),
            )
        return flag_id

    def list_flags(self, status: str = "pending") -> list[dict]:
        with self._conn() as conn:
            rows = conn.execute(
                """SELECT id, question_id, flag_type, comment, student_answer, attempt_id
                   FROM flags WHERE status = ? ORDER BY created_at""",
                (status,),
            ).fetchall()
        return [
            {
                "id": r[0], "question_id": r[1], "flag_type": r[2],
                "comment": r[3], "student_answer": r[4], "attempt_id": r[5],
            }
            for r in rows
        ]

    # --- History source ---

    def fetch_history(self) -> HistorySnapshot:
        with self._conn() as conn:
            question_rows = conn.execute(
                """SELECT question_id, COUNT(*), SUM(is_correct), MAX(created_at)
                   FROM attempts GROUP BY question_id"""
            ).fetchall()
            topic_rows = conn.execute(
                """SELECT topic_id, COUNT(*), SUM(is_correct)
                   FROM attempts WHERE topic_id IS NOT NULL GROUP BY topic_id"""
            ).fetchall()
        return HistorySnapshot(
            questions={
                r[0]: AttemptAggregate(
                    attempts=r[1], correct=r[2] or 0,
                    last_attempt_at=datetime.fromisoformat(r[3]) if r[3] else None,
                )
                for r in question_rows
            },
            topics={r[0]: TopicAggregate(attempts=r[1], correct=r[2] or 0) for r in topic_rows},
        )

    # --- Due source ---

    def schedule_review(self, question_id: str, next_due: datetime) -> None:
        with self._conn() as conn:
            conn.execute(
                "INSERT OR REPLACE INTO review_schedule (question_id, next_due) VALUES (?, ?)",
                (question_id, _utc(next_due)),
            )

    def due_question_ids(self, now: datetime) -> list[str]:
        with self._conn() as conn:
            rows = conn.execute(
                "SELECT question_id FROM review_schedule WHERE next_due <= ? ORDER BY next_due",
                (_utc(now),),
            ).fetchall()
        return [r[0] for r in rows]

    def reset(self) -> None:
        with self._conn() as conn:
            conn.execute("DELETE FROM attempts")
            conn.execute("DELETE FROM flags")
