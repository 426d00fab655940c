"""
Database models - dataclasses for database entities.
"""

from dataclasses import dataclass
from datetime import datetime


@dataclass
class DBUser:
    id: int
    email: str


@dataclass
class DBFeed:
    id: int
    fetch_url: str
    title: str
    url: str | None
    last_fetched: datetime | None
    fetch_interval_secs: int
    failing_since: datetime | None
    available: bool
    entry_count: int = 0


@dataclass
class DBEntry:
    id: int
    feed_id: int
    guid: str
    url: str | None
    title: str
    summary: str | None
    published: datetime
    created_at: datetime


@dataclass
class DBUserEntry(DBEntry):
    """Entry as seen by one user."""
    read: bool = False


@dataclass
class DBSubscription:
    id: int
    user_id: int
    feed_id: int
    folder_id: int | None
    unread_entries: int
    updated_at: datetime


@dataclass
class DBFolder:
    id: int
    user_id: int
    title: str
    unread_entries: int = 0


@dataclass
class DBScheduledJob:
    name: str
    job_class: str
    payload: dict
    interval_secs: int
    next_run_at: datetime


@dataclass
class DBSubscribeJobState:
    """One user's attempt to subscribe to a URL; feed_id is set only on SUCCESS."""
    id: int
    user_id: int
    fetch_url: str
    state: str
    feed_id: int | None
    error: str | None
    created_at: datetime
    updated_at: datetime
