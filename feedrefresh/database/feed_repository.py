"""
Feed repository - feed rows, their refresh schedule state, and refresh leases.
"""

import sqlite3
from datetime import datetime, timedelta

from ..scheduling import FeedScheduleState
from .connection import DatabaseConnection
from .converters import format_timestamp, row_to_feed
from .models import DBFeed

FEED_COLUMNS = """
    f.*, (SELECT COUNT(*) FROM entries e WHERE e.feed_id = f.id) AS entry_count
"""


class FeedRepository:
    """Repository for feed operations."""

    def __init__(self, db: DatabaseConnection):
        self._db = db

    def add(
        self,
        fetch_url: str,
        title: str,
        url: str | None = None,
        fetch_interval_secs: int = 3600,
        conn: sqlite3.Connection | None = None,
    ) -> int:
        """Add a new feed. Returns feed ID."""
        with self._db.use(conn) as c:
            cursor = c.execute(
                "INSERT INTO feeds (fetch_url, title, url, fetch_interval_secs) VALUES (?, ?, ?, ?)",
                (fetch_url, title, url, fetch_interval_secs)
            )
            return cursor.lastrowid

    def get(self, feed_id: int, conn: sqlite3.Connection | None = None) -> DBFeed | None:
        """Get single feed by ID."""
        with self._db.use(conn) as c:
            row = c.execute(
                f"SELECT {FEED_COLUMNS} FROM feeds f WHERE f.id = ?", (feed_id,)
            ).fetchone()
            return row_to_feed(row) if row else None

    def get_by_url(self, url: str, conn: sqlite3.Connection | None = None) -> DBFeed | None:
        """Find a feed by its fetch URL, falling back to its website URL."""
        with self._db.use(conn) as c:
            row = c.execute(
                f"""SELECT {FEED_COLUMNS} FROM feeds f
                    WHERE f.fetch_url = ? OR f.url = ?
                    ORDER BY f.fetch_url = ? DESC
                    LIMIT 1""",
                (url, url, url)
            ).fetchone()
            return row_to_feed(row) if row else None

    def get_all(self, available_only: bool = False) -> list[DBFeed]:
        """Get all feeds, optionally only those still being refreshed."""
        query = f"SELECT {FEED_COLUMNS} FROM feeds f"
        if available_only:
            query += " WHERE f.available = TRUE"
        query += " ORDER BY f.id"
        with self._db.conn() as c:
            return [row_to_feed(row) for row in c.execute(query).fetchall()]

    def update_metadata(
        self,
        feed_id: int,
        title: str | None,
        url: str | None,
        conn: sqlite3.Connection | None = None,
    ):
        """Update title and website URL; None leaves a value unchanged."""
        with self._db.use(conn) as c:
            c.execute(
                "UPDATE feeds SET title = COALESCE(?, title), url = COALESCE(?, url) WHERE id = ?",
                (title, url, feed_id)
            )

    def mark_fetched(self, feed_id: int, fetched_at: datetime, conn: sqlite3.Connection | None = None):
        """Record a successful fetch."""
        with self._db.use(conn) as c:
            c.execute(
                "UPDATE feeds SET last_fetched = ? WHERE id = ?",
                (format_timestamp(fetched_at), feed_id)
            )

    def update_schedule(
        self,
        feed_id: int,
        schedule: FeedScheduleState,
        conn: sqlite3.Connection | None = None,
    ):
        """Persist interval, failure streak start and availability."""
        with self._db.use(conn) as c:
            c.execute(
                """UPDATE feeds
                   SET fetch_interval_secs = ?, failing_since = ?, available = ?
                   WHERE id = ?""",
                (
                    schedule.fetch_interval_secs,
                    format_timestamp(schedule.failing_since),
                    schedule.available,
                    feed_id,
                )
            )

    def reactivate(self, feed_id: int, conn: sqlite3.Connection | None = None) -> bool:
        """Make an unavailable feed eligible for refreshes again. Returns True if it changed."""
        with self._db.use(conn) as c:
            cursor = c.execute(
                "UPDATE feeds SET available = TRUE, failing_since = NULL WHERE id = ? AND available = FALSE",
                (feed_id,)
            )
            return cursor.rowcount > 0

    def delete(self, feed_id: int, conn: sqlite3.Connection | None = None):
        """Delete feed; entries, entry states and subscriptions cascade."""
        with self._db.use(conn) as c:
            c.execute("DELETE FROM refresh_leases WHERE feed_id = ?", (feed_id,))
            c.execute("DELETE FROM feeds WHERE id = ?", (feed_id,))

    # ─────────────────────────────────────────────────────────────
    # Refresh leases
    # ─────────────────────────────────────────────────────────────

    def acquire_lease(self, feed_id: int, holder: str, now: datetime, ttl_secs: int) -> bool:
        """
        Try to take the refresh lease for a feed.

        Returns False if another holder has an unexpired lease. Expired
        leases (a crashed worker) are taken over.
        """
        expires_at = format_timestamp(now + timedelta(seconds=ttl_secs))
        with self._db.transaction() as c:
            c.execute(
                "DELETE FROM refresh_leases WHERE feed_id = ? AND expires_at <= ?",
                (feed_id, format_timestamp(now))
            )
            cursor = c.execute(
                """INSERT INTO refresh_leases (feed_id, holder, expires_at) VALUES (?, ?, ?)
                   ON CONFLICT(feed_id) DO NOTHING""",
                (feed_id, holder, expires_at)
            )
            return cursor.rowcount == 1

    def release_lease(self, feed_id: int, holder: str):
        with self._db.conn() as c:
            c.execute(
                "DELETE FROM refresh_leases WHERE feed_id = ? AND holder = ?",
                (feed_id, holder)
            )
