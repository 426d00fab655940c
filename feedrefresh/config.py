"""
Configuration and application state management.
"""

import os
from pathlib import Path
from typing import TYPE_CHECKING

from dotenv import load_dotenv
from fastapi import HTTPException

if TYPE_CHECKING:
    from .database import Database
    from .fetcher import FeedFetcher
    from .scheduler import PersistentJobScheduler
    from .services import RefreshService, SubscriptionService, EntryService

# Load environment variables
load_dotenv()


def _parse_bool(value: str | None, default: bool = False) -> bool:
    """Parse boolean from environment variable."""
    if value is None:
        return default
    return value.lower() in ("true", "1", "yes", "on")


class Config:
    """Application configuration from environment."""
    DB_PATH: Path = Path(os.getenv("DB_PATH", "./data/feeds.db"))
    PORT: int = int(os.getenv("PORT", "5005"))
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")

    # Adaptive refresh schedule (seconds)
    FEED_MIN_INTERVAL_SECS: int = int(os.getenv("FEED_MIN_INTERVAL_SECS", "900"))
    FEED_MAX_INTERVAL_SECS: int = int(os.getenv("FEED_MAX_INTERVAL_SECS", "86400"))
    FEED_DEFAULT_INTERVAL_SECS: int = int(os.getenv("FEED_DEFAULT_INTERVAL_SECS", "3600"))
    # Feeds failing continuously for longer than this are deactivated
    FEED_DEACTIVATION_DAYS: int = int(os.getenv("FEED_DEACTIVATION_DAYS", "7"))

    # Feed fetching
    FETCH_TIMEOUT: int = int(os.getenv("FETCH_TIMEOUT", "30"))
    FETCH_USER_AGENT: str = os.getenv("FETCH_USER_AGENT", "feedrefresh/1.0")
    # Skip SSRF checks (local development against feeds on a private network)
    ALLOW_PRIVATE_URLS: bool = _parse_bool(os.getenv("ALLOW_PRIVATE_URLS"), default=False)

    # A refresh lease older than this is considered abandoned
    REFRESH_LEASE_SECS: int = int(os.getenv("REFRESH_LEASE_SECS", "300"))

    # Background job scheduler
    SCHEDULER_ENABLED: bool = _parse_bool(os.getenv("SCHEDULER_ENABLED"), default=True)
    SCHEDULER_POLL_SECS: int = int(os.getenv("SCHEDULER_POLL_SECS", "15"))
    SCHEDULER_CONCURRENCY: int = int(os.getenv("SCHEDULER_CONCURRENCY", "8"))

    ENTRIES_PAGE_SIZE: int = int(os.getenv("ENTRIES_PAGE_SIZE", "25"))


config = Config()


class AppState:
    """Shared application state."""
    db: "Database | None" = None
    fetcher: "FeedFetcher | None" = None
    scheduler: "PersistentJobScheduler | None" = None
    refresh_service: "RefreshService | None" = None
    subscription_service: "SubscriptionService | None" = None
    entry_service: "EntryService | None" = None


state = AppState()


def get_db() -> "Database":
    """Dependency to get database instance."""
    if not state.db:
        raise HTTPException(status_code=500, detail="Database not initialized")
    return state.db


def get_subscription_service() -> "SubscriptionService":
    """Dependency to get the subscription service."""
    if not state.subscription_service:
        raise HTTPException(status_code=500, detail="Subscription service not initialized")
    return state.subscription_service


def get_entry_service() -> "EntryService":
    """Dependency to get the entry service."""
    if not state.entry_service:
        raise HTTPException(status_code=500, detail="Entry service not initialized")
    return state.entry_service


def get_user_id(user_id: int) -> int:
    """Dependency resolving the {user_id} path parameter to an existing user."""
    from .exceptions import require_user
    require_user(get_db().users.get_by_id(user_id))
    return user_id
