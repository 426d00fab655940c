"""
Pytest fixtures for feedrefresh tests.

Network access is never needed: feeds are served by FakeFetcher and job
registrations are captured by RecordingScheduler.
"""

import os
import tempfile
from datetime import datetime, timedelta, timezone
from email.utils import format_datetime
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from feedrefresh.config import state
from feedrefresh.database import Database
from feedrefresh.exceptions import FetchError
from feedrefresh.fetcher import FetchedDocument
from feedrefresh.scheduling import IntervalPolicy
from feedrefresh.server import app
from feedrefresh.services import EntryService, RefreshService, SubscriptionService

FEED_URL = "https://example.com/feed.xml"
START = datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)


def make_rss(items: list[tuple[str, datetime]], title: str = "Test Feed") -> bytes:
    """Build an RSS 2.0 document from (guid, published) pairs."""
    item_xml = "".join(
        f"""
        <item>
          <title>Entry {guid}</title>
          <link>https://example.com/{guid}</link>
          <guid isPermaLink="false">{guid}</guid>
          <pubDate>{format_datetime(published)}</pubDate>
          <description>&lt;p&gt;Body of {guid}&lt;/p&gt;</description>
        </item>"""
        for guid, published in items
    )
    return f"""<?xml version="1.0" encoding="UTF-8"?>
<rss version="2.0">
  <channel>
    <title>{title}</title>
    <link>https://example.com/</link>
    <description>Test</description>{item_xml}
  </channel>
</rss>""".encode()


def entries(*guids: str, start: datetime = START) -> list[tuple[str, datetime]]:
    """(guid, published) pairs one hour apart, oldest first."""
    return [(guid, start + timedelta(hours=i)) for i, guid in enumerate(guids)]


class FakeClock:
    """Controllable replacement for utcnow."""

    def __init__(self, now: datetime = START):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs):
        self.now += timedelta(**kwargs)


class FakeFetcher:
    """Serves canned documents; an Exception value is raised instead."""

    def __init__(self):
        self.responses: dict[str, bytes | Exception] = {}
        self.redirects: dict[str, str] = {}
        self.calls: list[str] = []

    def serve(self, url: str, response: bytes | Exception):
        self.responses[url] = response

    async def fetch(self, url: str) -> FetchedDocument:
        self.calls.append(url)
        target = self.redirects.get(url, url)
        response = self.responses.get(target)
        if response is None:
            raise FetchError(url, f"No canned response for {url}")
        if isinstance(response, Exception):
            raise response
        return FetchedDocument(url=target, body=response, discovered=target != url)


class RecordingScheduler:
    """JobScheduler that records registrations instead of running anything."""

    def __init__(self):
        self.jobs: dict[str, dict] = {}
        self.calls: list[tuple] = []

    def schedule(self, job_name: str, interval_secs: int, first_run_in_secs: int, payload: dict):
        self.calls.append(("schedule", job_name, interval_secs, first_run_in_secs, payload))
        self.jobs[job_name] = {
            "every": interval_secs,
            "first_in": first_run_in_secs,
            "payload": payload,
        }

    def unschedule(self, job_name: str):
        self.calls.append(("unschedule", job_name))
        self.jobs.pop(job_name, None)


@pytest.fixture
def temp_db_path():
    """Create a temporary database file path."""
    with tempfile.TemporaryDirectory() as d:
        yield Path(d) / "feeds.db"


@pytest.fixture
def test_db(temp_db_path):
    """Create a test database instance."""
    db = Database(temp_db_path)
    yield db


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def fetcher():
    return FakeFetcher()


@pytest.fixture
def scheduler():
    return RecordingScheduler()


@pytest.fixture
def policy():
    return IntervalPolicy()


@pytest.fixture
def refresh_service(test_db, fetcher, scheduler, policy, clock):
    return RefreshService(test_db, fetcher, scheduler, policy=policy, clock=clock, lease_secs=300)


@pytest.fixture
def subscription_service(test_db, fetcher, scheduler, policy, clock):
    return SubscriptionService(test_db, fetcher, scheduler, policy=policy, clock=clock)


@pytest.fixture
def entry_service(test_db, clock):
    return EntryService(test_db, page_size=10, clock=clock)


@pytest.fixture
def users(test_db):
    """Two users: alice and bob."""
    return test_db.add_user("alice@example.com"), test_db.add_user("bob@example.com")


@pytest.fixture
def client(test_db, fetcher, scheduler, policy, clock, refresh_service, subscription_service, entry_service):
    """Test client wired to the test database and fakes."""
    # Store original state
    original = (
        state.db, state.fetcher, state.scheduler,
        state.refresh_service, state.subscription_service, state.entry_service,
    )

    state.db = test_db
    state.fetcher = fetcher
    state.scheduler = None
    state.refresh_service = refresh_service
    state.subscription_service = subscription_service
    state.entry_service = entry_service

    with TestClient(app, raise_server_exceptions=False) as test_client:
        yield test_client

    # Restore original state
    (
        state.db, state.fetcher, state.scheduler,
        state.refresh_service, state.subscription_service, state.entry_service,
    ) = original
