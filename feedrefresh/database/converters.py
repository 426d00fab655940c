"""
Database row converters - convert SQLite rows to dataclasses.

Timestamps are stored as ISO-8601 strings in UTC, so they sort correctly
as text in SQL comparisons.
"""

import json
import sqlite3
from datetime import datetime, timezone

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


def format_timestamp(value: datetime | None) -> str | None:
    """Serialize a datetime for storage (naive values are taken as UTC)."""
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat(timespec="microseconds")


def parse_timestamp(value: str | None) -> datetime | None:
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(value)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _safe_get(row: sqlite3.Row, col: str, default=None):
    """Optional columns only present in some queries."""
    try:
        return row[col]
    except (IndexError, KeyError):
        return default


def row_to_user(row: sqlite3.Row) -> DBUser:
    return DBUser(id=row["id"], email=row["email"])


def row_to_feed(row: sqlite3.Row) -> DBFeed:
    """Convert a database row to a DBFeed."""
    return DBFeed(
        id=row["id"],
        fetch_url=row["fetch_url"],
        title=row["title"],
        url=row["url"],
        last_fetched=parse_timestamp(row["last_fetched"]),
        fetch_interval_secs=row["fetch_interval_secs"],
        failing_since=parse_timestamp(row["failing_since"]),
        available=bool(row["available"]),
        entry_count=_safe_get(row, "entry_count", 0) or 0,
    )


def row_to_entry(row: sqlite3.Row) -> DBEntry:
    """Convert a database row to a DBEntry."""
    return DBEntry(
        id=row["id"],
        feed_id=row["feed_id"],
        guid=row["guid"],
        url=row["url"],
        title=row["title"],
        summary=row["summary"],
        published=parse_timestamp(row["published"]),
        created_at=parse_timestamp(row["created_at"]),
    )


def row_to_user_entry(row: sqlite3.Row) -> DBUserEntry:
    """Convert an entry row joined with entry_states to a DBUserEntry."""
    return DBUserEntry(
        id=row["id"],
        feed_id=row["feed_id"],
        guid=row["guid"],
        url=row["url"],
        title=row["title"],
        summary=row["summary"],
        published=parse_timestamp(row["published"]),
        created_at=parse_timestamp(row["created_at"]),
        read=bool(row["read"]),
    )


def row_to_subscription(row: sqlite3.Row) -> DBSubscription:
    return DBSubscription(
        id=row["id"],
        user_id=row["user_id"],
        feed_id=row["feed_id"],
        folder_id=row["folder_id"],
        unread_entries=row["unread_entries"],
        updated_at=parse_timestamp(row["updated_at"]),
    )


def row_to_folder(row: sqlite3.Row) -> DBFolder:
    return DBFolder(
        id=row["id"],
        user_id=row["user_id"],
        title=row["title"],
        unread_entries=_safe_get(row, "unread_entries", 0) or 0,
    )


def row_to_job(row: sqlite3.Row) -> DBScheduledJob:
    return DBScheduledJob(
        name=row["name"],
        job_class=row["job_class"],
        payload=json.loads(row["payload"]),
        interval_secs=row["interval_secs"],
        next_run_at=parse_timestamp(row["next_run_at"]),
    )


def row_to_subscribe_job(row: sqlite3.Row) -> DBSubscribeJobState:
    return DBSubscribeJobState(
        id=row["id"],
        user_id=row["user_id"],
        fetch_url=row["fetch_url"],
        state=row["state"],
        feed_id=row["feed_id"],
        error=row["error"],
        created_at=parse_timestamp(row["created_at"]),
        updated_at=parse_timestamp(row["updated_at"]),
    )
