"""
Unread counters.

Each subscription caches its unread count in `subscriptions.unread_entries`.
Reads go to the cache; folder and total counts are sums over it. The cache is
recomputed from entry_states whenever it may have drifted: after refreshes,
state changes, subscribe/unsubscribe and folder moves.
"""

import logging
import sqlite3
from datetime import datetime

from ..database import Database
from ..exceptions import CounterIntegrityError, NotSubscribedError

logger = logging.getLogger(__name__)


class SubscriptionCounter:
    """Reads and recomputes cached unread counts."""

    def __init__(self, db: Database):
        self.db = db

    # ─────────────────────────────────────────────────────────────
    # Reads
    # ─────────────────────────────────────────────────────────────

    def feed_unread_count(self, feed_id: int, user_id: int) -> int:
        subscription = self.db.subscriptions.get(user_id, feed_id)
        if subscription is None:
            raise NotSubscribedError(f"User {user_id} is not subscribed to feed {feed_id}")
        return _checked(subscription.unread_entries, user_id, feed_id)

    def folder_unread_count(self, folder_id: int, user_id: int) -> int:
        return _checked(self.db.subscriptions.sum_unread(user_id, folder_id=folder_id), user_id)

    def total_unread_count(self, user_id: int) -> int:
        return _checked(self.db.subscriptions.sum_unread(user_id), user_id)

    def unread_feeds(self, user_id: int) -> list[int]:
        """Ids of the user's feeds with at least one unread entry."""
        return [
            s.feed_id for s in self.db.subscriptions.get_for_user(user_id)
            if s.unread_entries > 0
        ]

    # ─────────────────────────────────────────────────────────────
    # Recomputation (inside the caller's transaction)
    # ─────────────────────────────────────────────────────────────

    def recount_feed(self, conn: sqlite3.Connection, feed_id: int, now: datetime) -> dict[int, int]:
        """Recompute every subscriber's count for a feed. Returns user_id -> count."""
        counts = self.db.entry_states.count_unread_by_subscriber(feed_id, conn=conn)
        for user_id, count in counts.items():
            self._store(conn, user_id, feed_id, count, now)
        return counts

    def recount_subscription(
        self,
        conn: sqlite3.Connection,
        user_id: int,
        feed_id: int,
        now: datetime,
    ) -> int:
        count = self.db.entry_states.count_unread(user_id, feed_id, conn=conn)
        self._store(conn, user_id, feed_id, count, now)
        return count

    def _store(self, conn: sqlite3.Connection, user_id: int, feed_id: int, count: int, now: datetime):
        _checked(count, user_id, feed_id)
        if self.db.subscriptions.set_unread(user_id, feed_id, count, now, conn=conn):
            logger.debug(f"Unread count of user {user_id} feed {feed_id} set to {count}")


def _checked(count: int, user_id: int | None = None, feed_id: int | None = None) -> int:
    if count < 0:
        logger.error(f"Negative unread count {count} for user {user_id} feed {feed_id}")
        raise CounterIntegrityError(count, user_id=user_id, feed_id=feed_id)
    return count
