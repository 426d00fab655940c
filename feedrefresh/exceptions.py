"""
Error taxonomy for feed refreshing, plus HTTP helpers for common 404 patterns.

Fetch and parse errors are expected operating conditions: the refresh
orchestrator catches them and turns them into a back-off. Integrity errors
are not, and propagate to the job runner.
"""

from typing import TypeVar

from fastapi import HTTPException

T = TypeVar("T")


class FeedRefreshError(Exception):
    """Base class for errors raised by this package."""


# ─────────────────────────────────────────────────────────────
# Fetch errors
# ─────────────────────────────────────────────────────────────

class FetchError(FeedRefreshError):
    """A feed document could not be retrieved."""

    kind = "fetch_error"

    def __init__(self, url: str, message: str | None = None):
        self.url = url
        super().__init__(message or f"{self.kind} fetching {url}")


class FetchTimeout(FetchError):
    kind = "timeout"


class ConnectionRefused(FetchError):
    kind = "connection_refused"


class DNSFailure(FetchError):
    kind = "dns_failure"


class FetchConnectionError(FetchError):
    """Any other transport-level failure (reset, TLS, malformed response)."""
    kind = "connection_error"


class HTTPStatusError(FetchError):
    """Server answered with a non-2xx status."""

    kind = "http_error"

    def __init__(self, url: str, status: int):
        self.status = status
        super().__init__(url, f"HTTP {status} fetching {url}")

    @property
    def is_transient(self) -> bool:
        return self.status >= 500 or self.status == 429


class AutodiscoveryError(FetchError):
    """URL returned an HTML page without a usable feed link."""
    kind = "autodiscovery_failure"


class EmptyResponseError(FetchError):
    kind = "empty_response"


class BlockedURLError(FetchError):
    """URL rejected before fetching (scheme, private address, etc.)."""
    kind = "blocked_url"


class FeedParseError(FeedRefreshError):
    """Document was fetched but is not a parseable RSS/Atom feed."""

    kind = "parse_error"

    def __init__(self, url: str, message: str | None = None):
        self.url = url
        super().__init__(message or f"Failed to parse feed {url}")


TRANSIENT_FAILURES = (FetchTimeout, ConnectionRefused, DNSFailure, FetchConnectionError)


def failure_kind(exc: Exception) -> str:
    """Short label of a failure, for logs, refresh results and subscribe jobs."""
    return getattr(exc, "kind", type(exc).__name__)


def is_transient_failure(exc: Exception) -> bool:
    """Whether a fetch failure comes from the environment rather than the feed."""
    if isinstance(exc, HTTPStatusError):
        return exc.is_transient
    return isinstance(exc, TRANSIENT_FAILURES)


# ─────────────────────────────────────────────────────────────
# Data integrity
# ─────────────────────────────────────────────────────────────

class CounterIntegrityError(FeedRefreshError):
    """An unread counter went negative. Indicates a logic error, never retried."""

    def __init__(self, count: int, user_id: int | None = None, feed_id: int | None = None):
        self.count = count
        self.user_id = user_id
        self.feed_id = feed_id
        super().__init__(
            f"Negative unread count {count} (user {user_id}, feed {feed_id})"
        )


# ─────────────────────────────────────────────────────────────
# User-facing domain errors
# ─────────────────────────────────────────────────────────────

class UserNotFoundError(FeedRefreshError):
    pass


class FeedNotFoundError(FeedRefreshError):
    pass


class FolderNotFoundError(FeedRefreshError):
    pass


class NotSubscribedError(FeedRefreshError):
    pass


class AlreadySubscribedError(FeedRefreshError):
    kind = "already_subscribed"


class SubscribeJobNotFoundError(FeedRefreshError):
    pass


def require_resource(resource: T | None, detail: str = "Resource not found") -> T:
    """
    Raise 404 if resource is None, otherwise return the resource.

    Usage:
        user = require_resource(db.users.get_by_id(id), "User not found")
    """
    if resource is None:
        raise HTTPException(status_code=404, detail=detail)
    return resource


def require_user(user: T | None) -> T:
    """Raise 404 if user is None."""
    return require_resource(user, "User not found")
