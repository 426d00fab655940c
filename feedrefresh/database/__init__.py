"""
Database module - SQLite storage for feeds, entries and per-user state.

Uses repository pattern for better separation of concerns.
"""

from .connection import DatabaseConnection
from .models import (
    DBEntry,
    DBFeed,
    DBFolder,
    DBScheduledJob,
    DBSubscribeJobState,
    DBSubscription,
    DBUser,
    DBUserEntry,
)
from .entry_repository import EntryRepository
from .entry_state_repository import EntryStateRepository
from .feed_repository import FeedRepository
from .folder_repository import FolderRepository
from .job_repository import JobRepository
from .subscribe_job_repository import SubscribeJobRepository
from .subscription_repository import SubscriptionRepository
from .user_repository import UserRepository
from .database import Database

__all__ = [
    "Database",
    "DatabaseConnection",
    "DBEntry",
    "DBFeed",
    "DBFolder",
    "DBScheduledJob",
    "DBSubscribeJobState",
    "DBSubscription",
    "DBUser",
    "DBUserEntry",
    "EntryRepository",
    "EntryStateRepository",
    "FeedRepository",
    "FolderRepository",
    "JobRepository",
    "SubscribeJobRepository",
    "SubscriptionRepository",
    "UserRepository",
]
