"""
Subscription repository - user/feed links and their cached unread counts.
"""

import sqlite3
from datetime import datetime

from .connection import DatabaseConnection
from .converters import format_timestamp, parse_timestamp, row_to_feed, row_to_subscription
from .models import DBFeed, DBSubscription


class SubscriptionRepository:
    """Repository for subscription operations."""

    def __init__(self, db: DatabaseConnection):
        self._db = db

    def add(self, user_id: int, feed_id: int, now: datetime, conn: sqlite3.Connection | None = None) -> int:
        """Subscribe a user to a feed. Returns subscription ID."""
        ts = format_timestamp(now)
        with self._db.use(conn) as c:
            cursor = c.execute(
                """INSERT INTO subscriptions (user_id, feed_id, unread_entries, created_at, updated_at)
                   VALUES (?, ?, 0, ?, ?)""",
                (user_id, feed_id, ts, ts)
            )
            return cursor.lastrowid

    def get(self, user_id: int, feed_id: int, conn: sqlite3.Connection | None = None) -> DBSubscription | None:
        with self._db.use(conn) as c:
            row = c.execute(
                "SELECT * FROM subscriptions WHERE user_id = ? AND feed_id = ?",
                (user_id, feed_id)
            ).fetchone()
            return row_to_subscription(row) if row else None

    def get_for_user(self, user_id: int, conn: sqlite3.Connection | None = None) -> list[DBSubscription]:
        with self._db.use(conn) as c:
            rows = c.execute(
                "SELECT * FROM subscriptions WHERE user_id = ? ORDER BY feed_id",
                (user_id,)
            ).fetchall()
            return [row_to_subscription(row) for row in rows]

    def get_for_folder(self, folder_id: int, conn: sqlite3.Connection | None = None) -> list[DBSubscription]:
        with self._db.use(conn) as c:
            rows = c.execute(
                "SELECT * FROM subscriptions WHERE folder_id = ? ORDER BY feed_id",
                (folder_id,)
            ).fetchall()
            return [row_to_subscription(row) for row in rows]

    def get_feeds_for_user(self, user_id: int) -> list[tuple[DBFeed, DBSubscription]]:
        """A user's feeds with their subscription rows, ordered by title."""
        with self._db.conn() as c:
            rows = c.execute(
                """
                SELECT f.*,
                       (SELECT COUNT(*) FROM entries e WHERE e.feed_id = f.id) AS entry_count,
                       s.id AS sub_id, s.user_id, s.feed_id, s.folder_id,
                       s.unread_entries, s.updated_at
                FROM subscriptions s
                JOIN feeds f ON f.id = s.feed_id
                WHERE s.user_id = ?
                ORDER BY f.title COLLATE NOCASE, f.id
                """,
                (user_id,)
            ).fetchall()

            result = []
            for row in rows:
                subscription = DBSubscription(
                    id=row["sub_id"],
                    user_id=row["user_id"],
                    feed_id=row["feed_id"],
                    folder_id=row["folder_id"],
                    unread_entries=row["unread_entries"],
                    updated_at=parse_timestamp(row["updated_at"]),
                )
                result.append((row_to_feed(row), subscription))
            return result

    def count_for_feed(self, feed_id: int, conn: sqlite3.Connection | None = None) -> int:
        with self._db.use(conn) as c:
            return c.execute(
                "SELECT COUNT(*) AS count FROM subscriptions WHERE feed_id = ?", (feed_id,)
            ).fetchone()["count"]

    def delete(self, user_id: int, feed_id: int, conn: sqlite3.Connection | None = None) -> bool:
        with self._db.use(conn) as c:
            cursor = c.execute(
                "DELETE FROM subscriptions WHERE user_id = ? AND feed_id = ?",
                (user_id, feed_id)
            )
            return cursor.rowcount > 0

    def set_unread(
        self,
        user_id: int,
        feed_id: int,
        count: int,
        now: datetime,
        conn: sqlite3.Connection | None = None,
    ) -> bool:
        """
        Store a recomputed unread count.

        The subscription is only touched when the value actually changes.
        Returns True if it changed.
        """
        with self._db.use(conn) as c:
            cursor = c.execute(
                """UPDATE subscriptions SET unread_entries = ?, updated_at = ?
                   WHERE user_id = ? AND feed_id = ? AND unread_entries != ?""",
                (count, format_timestamp(now), user_id, feed_id, count)
            )
            return cursor.rowcount > 0

    def set_folder(
        self,
        user_id: int,
        feed_id: int,
        folder_id: int | None,
        now: datetime,
        conn: sqlite3.Connection | None = None,
    ):
        """Move the user's feed into a folder (None removes it from any folder)."""
        with self._db.use(conn) as c:
            c.execute(
                "UPDATE subscriptions SET folder_id = ?, updated_at = ? WHERE user_id = ? AND feed_id = ?",
                (folder_id, format_timestamp(now), user_id, feed_id)
            )

    def sum_unread(
        self,
        user_id: int,
        folder_id: int | None = None,
        conn: sqlite3.Connection | None = None,
    ) -> int:
        """Sum of cached unread counts over all the user's feeds, or one folder's."""
        query = "SELECT COALESCE(SUM(unread_entries), 0) AS total FROM subscriptions WHERE user_id = ?"
        params: list = [user_id]
        if folder_id is not None:
            query += " AND folder_id = ?"
            params.append(folder_id)
        with self._db.use(conn) as c:
            return c.execute(query, params).fetchone()["total"]
