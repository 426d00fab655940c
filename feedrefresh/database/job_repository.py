"""
Scheduled job repository - persisted state of the recurring job scheduler.
"""

import json
from datetime import datetime, timedelta

from .connection import DatabaseConnection
from .converters import format_timestamp, row_to_job
from .models import DBScheduledJob


class JobRepository:
    """Repository for recurring job definitions."""

    def __init__(self, db: DatabaseConnection):
        self._db = db

    def upsert(
        self,
        name: str,
        job_class: str,
        payload: dict,
        interval_secs: int,
        next_run_at: datetime,
        now: datetime,
    ):
        """Create or replace the job with this name."""
        with self._db.conn() as conn:
            conn.execute(
                """
                INSERT INTO scheduled_jobs (name, job_class, payload, interval_secs, next_run_at, updated_at)
                VALUES (?, ?, ?, ?, ?, ?)
                ON CONFLICT(name) DO UPDATE SET
                    job_class = excluded.job_class,
                    payload = excluded.payload,
                    interval_secs = excluded.interval_secs,
                    next_run_at = excluded.next_run_at,
                    updated_at = excluded.updated_at
                """,
                (name, job_class, json.dumps(payload), interval_secs,
                 format_timestamp(next_run_at), format_timestamp(now))
            )

    def delete(self, name: str) -> bool:
        with self._db.conn() as conn:
            cursor = conn.execute("DELETE FROM scheduled_jobs WHERE name = ?", (name,))
            return cursor.rowcount > 0

    def get(self, name: str) -> DBScheduledJob | None:
        with self._db.conn() as conn:
            row = conn.execute("SELECT * FROM scheduled_jobs WHERE name = ?", (name,)).fetchone()
            return row_to_job(row) if row else None

    def get_all(self) -> list[DBScheduledJob]:
        with self._db.conn() as conn:
            rows = conn.execute("SELECT * FROM scheduled_jobs ORDER BY next_run_at").fetchall()
            return [row_to_job(row) for row in rows]

    def claim_due(self, now: datetime, limit: int = 100) -> list[DBScheduledJob]:
        """
        Take the jobs whose run time has come.

        Each claimed job's next run is pushed one interval past `now` in the
        same transaction, so a job is claimed once per interval even if it
        then crashes, and two scheduler processes never claim the same run.
        """
        ts = format_timestamp(now)
        with self._db.transaction() as conn:
            rows = conn.execute(
                "SELECT * FROM scheduled_jobs WHERE next_run_at <= ? ORDER BY next_run_at LIMIT ?",
                (ts, limit)
            ).fetchall()
            jobs = [row_to_job(row) for row in rows]

            conn.executemany(
                "UPDATE scheduled_jobs SET next_run_at = ?, updated_at = ? WHERE name = ?",
                [
                    (format_timestamp(now + timedelta(seconds=job.interval_secs)), ts, job.name)
                    for job in jobs
                ]
            )
            return jobs
