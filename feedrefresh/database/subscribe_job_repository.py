"""
Subscribe job repository - progress of subscriptions run in the background.

A job starts RUNNING and ends either SUCCESS (with the subscribed feed's id)
or ERROR (with the failure kind).
"""

import sqlite3
from datetime import datetime

from .connection import DatabaseConnection
from .converters import format_timestamp, row_to_subscribe_job
from .models import DBSubscribeJobState

RUNNING = "RUNNING"
SUCCESS = "SUCCESS"
ERROR = "ERROR"


class SubscribeJobRepository:
    """Repository for subscribe job states."""

    def __init__(self, db: DatabaseConnection):
        self._db = db

    def add(self, user_id: int, fetch_url: str, now: datetime) -> int:
        """Record a new RUNNING job. Returns its ID."""
        ts = format_timestamp(now)
        with self._db.conn() as conn:
            cursor = conn.execute(
                """INSERT INTO subscribe_job_states (user_id, fetch_url, state, created_at, updated_at)
                   VALUES (?, ?, ?, ?, ?)""",
                (user_id, fetch_url, RUNNING, ts, ts)
            )
            return cursor.lastrowid

    def get(self, job_id: int, conn: sqlite3.Connection | None = None) -> DBSubscribeJobState | None:
        with self._db.use(conn) as c:
            row = c.execute("SELECT * FROM subscribe_job_states WHERE id = ?", (job_id,)).fetchone()
            return row_to_subscribe_job(row) if row else None

    def get_for_user(self, user_id: int) -> list[DBSubscribeJobState]:
        """A user's jobs, newest first."""
        with self._db.conn() as conn:
            rows = conn.execute(
                "SELECT * FROM subscribe_job_states WHERE user_id = ? ORDER BY id DESC",
                (user_id,)
            ).fetchall()
            return [row_to_subscribe_job(row) for row in rows]

    def mark_success(self, job_id: int, feed_id: int, now: datetime):
        with self._db.conn() as conn:
            conn.execute(
                """UPDATE subscribe_job_states
                   SET state = ?, feed_id = ?, error = NULL, updated_at = ?
                   WHERE id = ?""",
                (SUCCESS, feed_id, format_timestamp(now), job_id)
            )

    def mark_error(self, job_id: int, error: str, now: datetime):
        with self._db.conn() as conn:
            conn.execute(
                """UPDATE subscribe_job_states
                   SET state = ?, feed_id = NULL, error = ?, updated_at = ?
                   WHERE id = ?""",
                (ERROR, error, format_timestamp(now), job_id)
            )
