"""
Entry service: per-user entry listings and read/unread state changes.
"""

import logging
from datetime import datetime
from typing import Callable

from ..config import config
from ..database import Database
from ..database.models import DBUserEntry
from ..exceptions import FeedNotFoundError, FolderNotFoundError, NotSubscribedError
from ..scheduling import utcnow
from .counter_service import SubscriptionCounter

logger = logging.getLogger(__name__)


class EntryService:
    """Service for reading entries and changing their state."""

    def __init__(
        self,
        db: Database,
        page_size: int | None = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.db = db
        self.page_size = page_size or config.ENTRIES_PAGE_SIZE
        self.clock = clock
        self.counter = SubscriptionCounter(db)

    # ─────────────────────────────────────────────────────────────
    # State changes
    # ─────────────────────────────────────────────────────────────

    def change_entries_state(
        self,
        user_id: int,
        entry_id: int,
        read: bool,
        whole_feed: bool = False,
        whole_folder: bool = False,
        all_entries: bool = False,
    ) -> list[int]:
        """
        Mark an entry read or unread for a user.

        With whole_feed, whole_folder or all_entries the change applies to
        every entry of the entry's feed, of the folder holding that feed, or
        of all the user's feeds, that was published no later than the given
        entry. Entries that arrived after it keep their state.

        Returns:
            Ids of the feeds whose unread counts were recomputed

        Raises:
            NotSubscribedError: If the user is not subscribed to the entry's feed
        """
        now = self.clock()
        with self.db.transaction() as conn:
            entry = self.db.entries.get_for_user(user_id, entry_id, conn=conn)
            if entry is None:
                raise NotSubscribedError(f"User {user_id} has no entry {entry_id}")

            if all_entries:
                feed_ids = [s.feed_id for s in self.db.subscriptions.get_for_user(user_id, conn=conn)]
            elif whole_folder:
                subscription = self.db.subscriptions.get(user_id, entry.feed_id, conn=conn)
                if subscription.folder_id is None:
                    feed_ids = [entry.feed_id]
                else:
                    feed_ids = [
                        s.feed_id
                        for s in self.db.subscriptions.get_for_folder(subscription.folder_id, conn=conn)
                    ]
            elif whole_feed:
                feed_ids = [entry.feed_id]
            else:
                feed_ids = None

            if feed_ids is None:
                self.db.entry_states.set_read(user_id, entry_id, read, conn=conn)
                feed_ids = [entry.feed_id]
            else:
                changed = self.db.entry_states.set_read_up_to(
                    user_id, feed_ids, read, entry.published, entry.id, conn=conn
                )
                logger.debug(f"User {user_id}: marked {changed} entries read={read} in {len(feed_ids)} feeds")

            for feed_id in feed_ids:
                self.counter.recount_subscription(conn, user_id, feed_id, now)

        return feed_ids

    # ─────────────────────────────────────────────────────────────
    # Listings
    # ─────────────────────────────────────────────────────────────

    def feed_entries(
        self,
        user_id: int,
        feed_id: int,
        include_read: bool = False,
        page: int | None = None,
    ) -> list[DBUserEntry]:
        """A user's entries in one feed, newest first."""
        if self.db.subscriptions.get(user_id, feed_id) is None:
            if self.db.feeds.get(feed_id) is None:
                raise FeedNotFoundError(f"Feed {feed_id} not found")
            raise NotSubscribedError(f"User {user_id} is not subscribed to feed {feed_id}")
        return self._list(user_id, [feed_id], include_read, page)

    def folder_entries(
        self,
        user_id: int,
        folder_id: int,
        include_read: bool = False,
        page: int | None = None,
    ) -> list[DBUserEntry]:
        """A user's entries in every feed of a folder, newest first."""
        folder = self.db.folders.get(folder_id)
        if folder is None or folder.user_id != user_id:
            raise FolderNotFoundError(f"Folder {folder_id} not found")
        feed_ids = [s.feed_id for s in self.db.subscriptions.get_for_folder(folder_id)]
        return self._list(user_id, feed_ids, include_read, page)

    def all_entries(
        self,
        user_id: int,
        include_read: bool = False,
        page: int | None = None,
    ) -> list[DBUserEntry]:
        """A user's entries across all subscribed feeds, newest first."""
        return self._list(user_id, None, include_read, page)

    def _list(
        self,
        user_id: int,
        feed_ids: list[int] | None,
        include_read: bool,
        page: int | None,
    ) -> list[DBUserEntry]:
        page = max(page or 1, 1)
        return self.db.entries.list_for_user(
            user_id,
            feed_ids=feed_ids,
            include_read=include_read,
            limit=self.page_size,
            offset=(page - 1) * self.page_size,
        )

    # ─────────────────────────────────────────────────────────────
    # Counters
    # ─────────────────────────────────────────────────────────────

    def unread_counts(self, user_id: int) -> tuple[int, dict[int, int], dict[int, int]]:
        """Total, per-folder and per-feed unread counts from the cached counters."""
        feeds = {s.feed_id: s.unread_entries for s in self.db.subscriptions.get_for_user(user_id)}
        folders = {f.id: f.unread_entries for f in self.db.folders.get_for_user(user_id)}
        return self.counter.total_unread_count(user_id), folders, feeds
