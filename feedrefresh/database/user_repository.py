"""
Repository for user operations.

Users are owned by an external authentication system; this table only
anchors subscriptions, folders and entry states.
"""

import sqlite3

from .connection import DatabaseConnection
from .converters import row_to_user
from .models import DBUser


class UserRepository:
    """Repository for user rows."""

    def __init__(self, db: DatabaseConnection):
        self._db = db

    def get_or_create(self, email: str) -> int:
        """Get existing user by email or create a new one. Returns user ID."""
        with self._db.conn() as conn:
            row = conn.execute(
                "SELECT id FROM users WHERE email = ?", (email,)
            ).fetchone()
            if row:
                return row["id"]

            cursor = conn.execute("INSERT INTO users (email) VALUES (?)", (email,))
            return cursor.lastrowid

    def get_by_id(self, user_id: int, conn: sqlite3.Connection | None = None) -> DBUser | None:
        """Get user by ID."""
        with self._db.use(conn) as c:
            row = c.execute("SELECT * FROM users WHERE id = ?", (user_id,)).fetchone()
            return row_to_user(row) if row else None

    def delete(self, user_id: int, conn: sqlite3.Connection | None = None):
        """Delete a user; subscriptions, folders and entry states cascade."""
        with self._db.use(conn) as c:
            c.execute("DELETE FROM users WHERE id = ?", (user_id,))
