"""
Repository for per-user entry state (read/unread).

Every (subscribed user, entry) pair has exactly one row; the unique
(user_id, entry_id) constraint makes every insert here idempotent.
"""

import sqlite3
from datetime import datetime

from .connection import DatabaseConnection
from .converters import format_timestamp


class EntryStateRepository:
    """Repository for per-user entry read state."""

    def __init__(self, db: DatabaseConnection):
        self._db = db

    def fan_out_entry(self, entry_id: int, feed_id: int, conn: sqlite3.Connection | None = None) -> int:
        """
        Create an unread state for every current subscriber of the feed.

        Returns the number of rows actually created.
        """
        with self._db.use(conn) as c:
            cursor = c.execute(
                """
                INSERT INTO entry_states (user_id, entry_id, read)
                SELECT user_id, ?, FALSE
                FROM subscriptions
                WHERE feed_id = ?
                ON CONFLICT(user_id, entry_id) DO NOTHING
                """,
                (entry_id, feed_id)
            )
            return cursor.rowcount

    def add_for_subscription(self, user_id: int, feed_id: int, conn: sqlite3.Connection | None = None) -> int:
        """Create unread states for all entries of a feed the user just subscribed to."""
        with self._db.use(conn) as c:
            cursor = c.execute(
                """
                INSERT INTO entry_states (user_id, entry_id, read)
                SELECT ?, id, FALSE
                FROM entries
                WHERE feed_id = ?
                ON CONFLICT(user_id, entry_id) DO NOTHING
                """,
                (user_id, feed_id)
            )
            return cursor.rowcount

    def delete_for_subscription(self, user_id: int, feed_id: int, conn: sqlite3.Connection | None = None) -> int:
        """Drop the user's state for every entry of a feed."""
        with self._db.use(conn) as c:
            cursor = c.execute(
                """
                DELETE FROM entry_states
                WHERE user_id = ?
                  AND entry_id IN (SELECT id FROM entries WHERE feed_id = ?)
                """,
                (user_id, feed_id)
            )
            return cursor.rowcount

    def set_read(
        self,
        user_id: int,
        entry_id: int,
        read: bool,
        conn: sqlite3.Connection | None = None,
    ) -> int:
        """Mark one entry read/unread for a user."""
        with self._db.use(conn) as c:
            cursor = c.execute(
                "UPDATE entry_states SET read = ? WHERE user_id = ? AND entry_id = ?",
                (read, user_id, entry_id)
            )
            return cursor.rowcount

    def set_read_up_to(
        self,
        user_id: int,
        feed_ids: list[int],
        read: bool,
        published: datetime,
        entry_id: int,
        conn: sqlite3.Connection | None = None,
    ) -> int:
        """
        Mark read/unread every entry of the given feeds that is not newer than
        the reference entry (by published date, then id).

        Returns count of states changed.
        """
        if not feed_ids:
            return 0
        placeholders = ",".join("?" * len(feed_ids))
        ts = format_timestamp(published)
        with self._db.use(conn) as c:
            cursor = c.execute(
                f"""
                UPDATE entry_states SET read = ?
                WHERE user_id = ?
                  AND read != ?
                  AND entry_id IN (
                      SELECT id FROM entries
                      WHERE feed_id IN ({placeholders})
                        AND (published < ? OR (published = ? AND id <= ?))
                  )
                """,
                (read, user_id, read, *feed_ids, ts, ts, entry_id)
            )
            return cursor.rowcount

    def count_unread(self, user_id: int, feed_id: int, conn: sqlite3.Connection | None = None) -> int:
        """Count a user's unread entries in one feed, from the state rows."""
        with self._db.use(conn) as c:
            return c.execute(
                """
                SELECT COUNT(*) AS count FROM entry_states es
                JOIN entries e ON e.id = es.entry_id
                WHERE es.user_id = ? AND e.feed_id = ? AND es.read = FALSE
                """,
                (user_id, feed_id)
            ).fetchone()["count"]

    def count_unread_by_subscriber(self, feed_id: int, conn: sqlite3.Connection | None = None) -> dict[int, int]:
        """Unread counts for every subscriber of a feed (zero included)."""
        with self._db.use(conn) as c:
            rows = c.execute(
                """
                SELECT s.user_id, (
                    SELECT COUNT(*) FROM entry_states es
                    JOIN entries e ON e.id = es.entry_id
                    WHERE es.user_id = s.user_id AND e.feed_id = s.feed_id AND es.read = FALSE
                ) AS count
                FROM subscriptions s
                WHERE s.feed_id = ?
                """,
                (feed_id,)
            ).fetchall()
            return {row["user_id"]: row["count"] for row in rows}

    def count_states(self, user_id: int | None = None, conn: sqlite3.Connection | None = None) -> int:
        """Total state rows, optionally for one user."""
        with self._db.use(conn) as c:
            if user_id is None:
                return c.execute("SELECT COUNT(*) AS count FROM entry_states").fetchone()["count"]
            return c.execute(
                "SELECT COUNT(*) AS count FROM entry_states WHERE user_id = ?", (user_id,)
            ).fetchone()["count"]
