"""
Entry repository - entries of feeds, and their per-user listings.
"""

import sqlite3
from datetime import datetime

from .connection import DatabaseConnection
from .converters import format_timestamp, row_to_entry, row_to_user_entry
from .models import DBEntry, DBUserEntry


class EntryRepository:
    """Repository for entry operations."""

    def __init__(self, db: DatabaseConnection):
        self._db = db

    def add(
        self,
        feed_id: int,
        guid: str,
        title: str,
        published: datetime,
        created_at: datetime,
        url: str | None = None,
        summary: str | None = None,
        conn: sqlite3.Connection | None = None,
    ) -> int | None:
        """Add a new entry. Returns entry ID, or None if the feed already has this guid."""
        with self._db.use(conn) as c:
            cursor = c.execute(
                """INSERT INTO entries (feed_id, guid, url, title, summary, published, created_at)
                   VALUES (?, ?, ?, ?, ?, ?, ?)
                   ON CONFLICT(feed_id, guid) DO NOTHING""",
                (feed_id, guid, url, title, summary,
                 format_timestamp(published), format_timestamp(created_at))
            )
            return cursor.lastrowid if cursor.rowcount == 1 else None

    def get(self, entry_id: int, conn: sqlite3.Connection | None = None) -> DBEntry | None:
        """Get single entry by ID."""
        with self._db.use(conn) as c:
            row = c.execute("SELECT * FROM entries WHERE id = ?", (entry_id,)).fetchone()
            return row_to_entry(row) if row else None

    def existing_guids(
        self,
        feed_id: int,
        guids: list[str],
        conn: sqlite3.Connection | None = None,
    ) -> set[str]:
        """Which of the given guids the feed already has."""
        if not guids:
            return set()
        placeholders = ",".join("?" * len(guids))
        with self._db.use(conn) as c:
            rows = c.execute(
                f"SELECT guid FROM entries WHERE feed_id = ? AND guid IN ({placeholders})",
                [feed_id, *guids]
            ).fetchall()
            return {row["guid"] for row in rows}

    def count(self, feed_id: int, conn: sqlite3.Connection | None = None) -> int:
        with self._db.use(conn) as c:
            return c.execute(
                "SELECT COUNT(*) AS count FROM entries WHERE feed_id = ?", (feed_id,)
            ).fetchone()["count"]

    def get_for_user(
        self,
        user_id: int,
        entry_id: int,
        conn: sqlite3.Connection | None = None,
    ) -> DBUserEntry | None:
        """Get an entry with the user's read state; None unless the user is subscribed to it."""
        with self._db.use(conn) as c:
            row = c.execute(
                """SELECT e.*, es.read FROM entries e
                   JOIN entry_states es ON es.entry_id = e.id AND es.user_id = ?
                   WHERE e.id = ?""",
                (user_id, entry_id)
            ).fetchone()
            return row_to_user_entry(row) if row else None

    def list_for_user(
        self,
        user_id: int,
        feed_ids: list[int] | None = None,
        include_read: bool = False,
        limit: int = 25,
        offset: int = 0,
    ) -> list[DBUserEntry]:
        """
        List a user's entries, newest first.

        feed_ids restricts the listing to those feeds; None means every feed
        the user is subscribed to.
        """
        query = """
            SELECT e.*, es.read FROM entries e
            JOIN entry_states es ON es.entry_id = e.id AND es.user_id = ?
            WHERE 1=1
        """
        params: list = [user_id]

        if feed_ids is not None:
            if not feed_ids:
                return []
            query += f" AND e.feed_id IN ({','.join('?' * len(feed_ids))})"
            params.extend(feed_ids)
        if not include_read:
            query += " AND es.read = FALSE"

        query += " ORDER BY e.published DESC, e.id DESC LIMIT ? OFFSET ?"
        params.extend([limit, offset])

        with self._db.conn() as c:
            return [row_to_user_entry(row) for row in c.execute(query, params).fetchall()]
