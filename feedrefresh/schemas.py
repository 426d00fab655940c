"""
Pydantic models for API request/response validation.
"""

from pydantic import BaseModel, Field

from .database import DBFeed, DBFolder, DBSubscribeJobState, DBSubscription, DBUserEntry


# ─────────────────────────────────────────────────────────────
# Feed Schemas
# ─────────────────────────────────────────────────────────────

class FeedResponse(BaseModel):
    """A feed as seen by one subscriber."""
    id: int
    title: str
    fetch_url: str
    url: str | None
    available: bool
    fetch_interval_secs: int
    last_fetched: str | None
    failing_since: str | None
    entry_count: int = 0
    unread_entries: int = 0
    folder_id: int | None = None
    updated_at: str | None = None

    @classmethod
    def from_db(cls, feed: DBFeed, subscription: DBSubscription | None = None) -> "FeedResponse":
        return cls(
            id=feed.id,
            title=feed.title,
            fetch_url=feed.fetch_url,
            url=feed.url,
            available=feed.available,
            fetch_interval_secs=feed.fetch_interval_secs,
            last_fetched=feed.last_fetched.isoformat() if feed.last_fetched else None,
            failing_since=feed.failing_since.isoformat() if feed.failing_since else None,
            entry_count=feed.entry_count,
            unread_entries=subscription.unread_entries if subscription else 0,
            folder_id=subscription.folder_id if subscription else None,
            updated_at=subscription.updated_at.isoformat() if subscription else None,
        )


class SubscribeRequest(BaseModel):
    """Request to subscribe to a feed by URL (feed or website)."""
    url: str = Field(min_length=1)


class SubscribeJobResponse(BaseModel):
    """Progress of a background subscription; feed_id is set once it succeeded."""
    id: int
    fetch_url: str
    state: str
    feed_id: int | None
    error: str | None
    created_at: str
    updated_at: str

    @classmethod
    def from_db(cls, job: DBSubscribeJobState) -> "SubscribeJobResponse":
        return cls(
            id=job.id,
            fetch_url=job.fetch_url,
            state=job.state,
            feed_id=job.feed_id,
            error=job.error,
            created_at=job.created_at.isoformat(),
            updated_at=job.updated_at.isoformat(),
        )


# ─────────────────────────────────────────────────────────────
# Entry Schemas
# ─────────────────────────────────────────────────────────────

class EntryResponse(BaseModel):
    """Entry with the user's read state."""
    id: int
    feed_id: int
    title: str
    url: str | None
    summary: str | None
    published: str
    created_at: str
    read: bool

    @classmethod
    def from_db(cls, entry: DBUserEntry) -> "EntryResponse":
        return cls(
            id=entry.id,
            feed_id=entry.feed_id,
            title=entry.title,
            url=entry.url,
            summary=entry.summary,
            published=entry.published.isoformat(),
            created_at=entry.created_at.isoformat(),
            read=entry.read,
        )


class EntryStateRequest(BaseModel):
    """Change the read state of an entry, optionally of everything older too."""
    read: bool = True
    whole_feed: bool = False
    whole_folder: bool = False
    all_entries: bool = False


class EntryStateResponse(BaseModel):
    """Feeds whose unread counts changed, with their new counts."""
    unread: dict[int, int]


# ─────────────────────────────────────────────────────────────
# Folder & Counter Schemas
# ─────────────────────────────────────────────────────────────

class FolderResponse(BaseModel):
    id: int
    title: str
    unread_entries: int

    @classmethod
    def from_db(cls, folder: DBFolder) -> "FolderResponse":
        return cls(id=folder.id, title=folder.title, unread_entries=folder.unread_entries)


class MoveToFolderRequest(BaseModel):
    """Move a feed into an existing folder (folder_id) or a new/named one (title)."""
    folder_id: int | None = None
    title: str | None = None


class UnreadCountsResponse(BaseModel):
    total: int
    folders: dict[int, int]
    feeds: dict[int, int]
