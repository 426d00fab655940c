"""
Folder repository - per-user folders grouping subscribed feeds.
"""

import sqlite3

from .connection import DatabaseConnection
from .converters import row_to_folder
from .models import DBFolder


class FolderRepository:
    """Repository for folder operations."""

    def __init__(self, db: DatabaseConnection):
        self._db = db

    def add(self, user_id: int, title: str, conn: sqlite3.Connection | None = None) -> int:
        """Create a folder. Titles are unique per user, ignoring case."""
        with self._db.use(conn) as c:
            cursor = c.execute(
                "INSERT INTO folders (user_id, title) VALUES (?, ?)",
                (user_id, title)
            )
            return cursor.lastrowid

    def get(self, folder_id: int, conn: sqlite3.Connection | None = None) -> DBFolder | None:
        with self._db.use(conn) as c:
            row = c.execute(
                """SELECT f.*,
                          (SELECT COALESCE(SUM(s.unread_entries), 0) FROM subscriptions s
                           WHERE s.folder_id = f.id) AS unread_entries
                   FROM folders f WHERE f.id = ?""",
                (folder_id,)
            ).fetchone()
            return row_to_folder(row) if row else None

    def get_by_title(self, user_id: int, title: str, conn: sqlite3.Connection | None = None) -> DBFolder | None:
        with self._db.use(conn) as c:
            row = c.execute(
                "SELECT * FROM folders WHERE user_id = ? AND title = ?",
                (user_id, title)
            ).fetchone()
            return row_to_folder(row) if row else None

    def get_for_user(self, user_id: int) -> list[DBFolder]:
        """A user's folders with the sum of their feeds' cached unread counts."""
        with self._db.conn() as c:
            rows = c.execute(
                """SELECT f.*, COALESCE(SUM(s.unread_entries), 0) AS unread_entries
                   FROM folders f
                   LEFT JOIN subscriptions s ON s.folder_id = f.id
                   WHERE f.user_id = ?
                   GROUP BY f.id
                   ORDER BY f.title""",
                (user_id,)
            ).fetchall()
            return [row_to_folder(row) for row in rows]

    def delete_if_empty(self, folder_id: int, conn: sqlite3.Connection | None = None) -> bool:
        """Delete a folder that no longer holds any feed. Returns True if deleted."""
        with self._db.use(conn) as c:
            cursor = c.execute(
                """DELETE FROM folders
                   WHERE id = ?
                     AND NOT EXISTS (SELECT 1 FROM subscriptions WHERE folder_id = ?)""",
                (folder_id, folder_id)
            )
            return cursor.rowcount > 0
