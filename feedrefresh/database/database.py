"""
Database facade - provides unified access to all repositories.

Services compose repository calls inside one `transaction()` when they need
several writes to become visible atomically; simple reads go through the
delegating helpers below.
"""

import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator

from .connection import DatabaseConnection
from .entry_repository import EntryRepository
from .entry_state_repository import EntryStateRepository
from .feed_repository import FeedRepository
from .folder_repository import FolderRepository
from .job_repository import JobRepository
from .models import DBEntry, DBFeed, DBFolder, DBSubscription
from .subscribe_job_repository import SubscribeJobRepository
from .subscription_repository import SubscriptionRepository
from .user_repository import UserRepository


class Database:
    """Unified database access facade."""

    def __init__(self, db_path: Path):
        self._connection = DatabaseConnection(db_path)

        # Initialize repositories
        self.users = UserRepository(self._connection)
        self.feeds = FeedRepository(self._connection)
        self.entries = EntryRepository(self._connection)
        self.entry_states = EntryStateRepository(self._connection)
        self.subscriptions = SubscriptionRepository(self._connection)
        self.folders = FolderRepository(self._connection)
        self.jobs = JobRepository(self._connection)
        self.subscribe_jobs = SubscribeJobRepository(self._connection)

    @contextmanager
    def transaction(self) -> Iterator[sqlite3.Connection]:
        with self._connection.transaction() as conn:
            yield conn

    # ─────────────────────────────────────────────────────────────
    # Convenience reads
    # ─────────────────────────────────────────────────────────────

    def add_user(self, email: str) -> int:
        return self.users.get_or_create(email)

    def get_feed(self, feed_id: int) -> DBFeed | None:
        return self.feeds.get(feed_id)

    def get_feeds(self, available_only: bool = False) -> list[DBFeed]:
        return self.feeds.get_all(available_only)

    def get_entry(self, entry_id: int) -> DBEntry | None:
        return self.entries.get(entry_id)

    def get_subscription(self, user_id: int, feed_id: int) -> DBSubscription | None:
        return self.subscriptions.get(user_id, feed_id)

    def get_folder(self, folder_id: int) -> DBFolder | None:
        return self.folders.get(folder_id)
