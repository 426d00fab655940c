"""
Refresh service: one fetch-parse-merge-reschedule cycle for a feed.

A refresh fetches the feed's document, merges new entries, recomputes every
subscriber's unread count and moves the feed's adaptive interval, then
re-registers the feed's recurring job with the new interval. Fetch and parse
failures are expected and only slow the feed down; anything else (database
errors, counter integrity) propagates to the job runner.
"""

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Callable
from uuid import uuid4

from ..config import config
from ..database import Database
from ..database.models import DBFeed
from ..exceptions import FeedParseError, FetchError, failure_kind, is_transient_failure
from ..feed_parser import ParsedFeed, parse_feed
from ..fetcher import FeedFetcher
from ..scheduler import JobScheduler, job_name_for_feed, schedule_feed_refresh
from ..scheduling import (
    FeedScheduleState,
    FetchOutcome,
    IntervalPolicy,
    apply_outcome,
    classify_fetch,
    utcnow,
)
from .counter_service import SubscriptionCounter
from .entry_merger import EntryMerger

logger = logging.getLogger(__name__)


class RefreshStatus(str, Enum):
    REFRESHED = "refreshed"
    FAILED = "failed"
    SKIPPED = "skipped"
    FEED_MISSING = "feed_missing"


@dataclass
class RefreshResult:
    feed_id: int
    status: RefreshStatus
    outcome: FetchOutcome | None = None
    entries_added: int = 0
    fetch_interval_secs: int | None = None
    available: bool | None = None
    error: str | None = None


def classify_failure(error: Exception) -> FetchOutcome:
    if isinstance(error, FetchError) and is_transient_failure(error):
        return FetchOutcome.TRANSIENT_FAILURE
    return FetchOutcome.PERMANENT_FAILURE


class RefreshService:
    """Refreshes feeds and keeps their recurring jobs in step with their intervals."""

    def __init__(
        self,
        db: Database,
        fetcher: FeedFetcher,
        scheduler: JobScheduler,
        parser: Callable[[bytes, str], ParsedFeed] = parse_feed,
        policy: IntervalPolicy | None = None,
        clock: Callable[[], datetime] = utcnow,
        lease_secs: int | None = None,
    ):
        self.db = db
        self.fetcher = fetcher
        self.scheduler = scheduler
        self.parser = parser
        self.policy = policy or IntervalPolicy.from_config()
        self.clock = clock
        self.lease_secs = lease_secs or config.REFRESH_LEASE_SECS
        self.merger = EntryMerger(db)
        self.counter = SubscriptionCounter(db)

    # ─────────────────────────────────────────────────────────────
    # Scheduling
    # ─────────────────────────────────────────────────────────────

    def schedule_feed(self, feed: DBFeed):
        """Register the feed's recurring refresh, first run one interval from now."""
        schedule_feed_refresh(self.scheduler, feed.id, feed.fetch_interval_secs)

    def schedule_all_feeds(self) -> int:
        """Register a job for every available feed that has none. Returns count scheduled."""
        scheduled = 0
        for feed in self.db.feeds.get_all(available_only=True):
            if self.db.jobs.get(job_name_for_feed(feed.id)) is None:
                self.schedule_feed(feed)
                scheduled += 1
        if scheduled:
            logger.info(f"Scheduled refresh jobs for {scheduled} feeds")
        return scheduled

    # ─────────────────────────────────────────────────────────────
    # Refresh
    # ─────────────────────────────────────────────────────────────

    async def refresh_feeds(
        self,
        feed_ids: list[int],
        manual: bool = False,
        concurrency: int | None = None,
    ) -> list[RefreshResult]:
        """Refresh several feeds concurrently."""
        semaphore = asyncio.Semaphore(concurrency or config.SCHEDULER_CONCURRENCY)

        async def refresh_with_limit(feed_id: int) -> RefreshResult:
            async with semaphore:
                return await self.refresh(feed_id, manual=manual)

        return list(await asyncio.gather(*(refresh_with_limit(i) for i in feed_ids)))

    async def refresh(self, feed_id: int, manual: bool = False) -> RefreshResult:
        """
        Refresh one feed.

        Args:
            feed_id: Feed to refresh
            manual: True for user-requested refreshes, which also run on
                unavailable feeds (and reactivate them on success)

        Returns:
            RefreshResult describing what happened
        """
        job_name = job_name_for_feed(feed_id)

        feed = self.db.feeds.get(feed_id)
        if feed is None:
            logger.info(f"Feed {feed_id} no longer exists, removing its refresh job")
            self.scheduler.unschedule(job_name)
            return RefreshResult(feed_id, RefreshStatus.FEED_MISSING)

        if not feed.available and not manual:
            logger.info(f"Feed {feed_id} is unavailable, removing its refresh job")
            self.scheduler.unschedule(job_name)
            return RefreshResult(
                feed_id,
                RefreshStatus.SKIPPED,
                fetch_interval_secs=feed.fetch_interval_secs,
                available=False,
            )

        holder = uuid4().hex
        if not self.db.feeds.acquire_lease(feed_id, holder, self.clock(), self.lease_secs):
            logger.debug(f"Feed {feed_id} is already being refreshed, skipping")
            return RefreshResult(
                feed_id,
                RefreshStatus.SKIPPED,
                fetch_interval_secs=feed.fetch_interval_secs,
                available=feed.available,
            )

        try:
            return await self._refresh_locked(feed)
        finally:
            self.db.feeds.release_lease(feed_id, holder)

    async def _refresh_locked(self, feed: DBFeed) -> RefreshResult:
        parsed: ParsedFeed | None = None
        error: Exception | None = None

        # Network I/O happens before the transaction opens
        try:
            document = await self.fetcher.fetch(feed.fetch_url)
            parsed = self.parser(document.body, document.url)
        except (FetchError, FeedParseError) as e:
            error = e
            logger.warning(f"Refresh of feed {feed.id} ({feed.fetch_url}) failed [{failure_kind(e)}]: {e}")

        now = self.clock()
        entries_added = 0

        with self.db.transaction() as conn:
            current = self.db.feeds.get(feed.id, conn=conn)
            if current is None:
                deleted = True
            else:
                deleted = False
                if parsed is not None:
                    merged = self.merger.merge(conn, feed.id, parsed.entries, now)
                    entries_added = merged.created_count
                    self.db.feeds.mark_fetched(feed.id, now, conn=conn)
                    self.db.feeds.update_metadata(feed.id, parsed.title, parsed.url, conn=conn)
                    outcome = classify_fetch(entries_added)
                else:
                    outcome = classify_failure(error)

                self.counter.recount_feed(conn, feed.id, now)

                prior = FeedScheduleState(
                    fetch_interval_secs=current.fetch_interval_secs,
                    failing_since=current.failing_since,
                    available=current.available,
                )
                transition = apply_outcome(prior, outcome, now, self.policy)
                self.db.feeds.update_schedule(feed.id, transition.state, conn=conn)

        job_name = job_name_for_feed(feed.id)

        if deleted:
            logger.info(f"Feed {feed.id} was deleted during refresh, removing its refresh job")
            self.scheduler.unschedule(job_name)
            return RefreshResult(feed.id, RefreshStatus.FEED_MISSING)

        state = transition.state
        if state.available:
            schedule_feed_refresh(self.scheduler, feed.id, state.fetch_interval_secs)
            if not prior.available:
                logger.info(f"Feed {feed.id} is available again")
        else:
            if transition.deactivated:
                logger.warning(
                    f"Feed {feed.id} ({feed.fetch_url}) failing since {state.failing_since}, "
                    f"marking unavailable"
                )
            self.scheduler.unschedule(job_name)

        if parsed is not None:
            logger.info(
                f"Refreshed feed {feed.id}: {entries_added} new entries, "
                f"next in {state.fetch_interval_secs}s"
            )

        return RefreshResult(
            feed_id=feed.id,
            status=RefreshStatus.REFRESHED if parsed is not None else RefreshStatus.FAILED,
            outcome=outcome,
            entries_added=entries_added,
            fetch_interval_secs=state.fetch_interval_secs,
            available=state.available,
            error=f"{failure_kind(error)}: {error}" if error is not None else None,
        )
