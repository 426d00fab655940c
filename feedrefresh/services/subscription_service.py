"""
Subscription service: subscribe, unsubscribe and folder management.

Every operation keeps the subscription graph consistent in one transaction:
entry states follow subscriptions, unread counts are recomputed, emptied
folders are deleted and feeds without subscribers are destroyed.
"""

import logging
from datetime import datetime
from typing import Callable

from ..config import config
from ..database import Database
from ..database.models import DBFeed, DBFolder, DBSubscribeJobState, DBSubscription
from ..database.subscribe_job_repository import RUNNING
from ..exceptions import (
    AlreadySubscribedError,
    FeedNotFoundError,
    FeedParseError,
    FetchError,
    FolderNotFoundError,
    NotSubscribedError,
    SubscribeJobNotFoundError,
    UserNotFoundError,
    failure_kind,
)
from ..feed_parser import ParsedFeed, parse_feed
from ..fetcher import FeedFetcher
from ..scheduler import JobScheduler, job_name_for_feed, schedule_feed_refresh
from ..scheduling import IntervalPolicy, utcnow
from ..url_validator import normalize_url, validate_url
from .counter_service import SubscriptionCounter
from .entry_merger import EntryMerger

logger = logging.getLogger(__name__)

# Failures that end a subscribe job in ERROR; anything else propagates
SUBSCRIBE_FAILURES = (FetchError, FeedParseError, AlreadySubscribedError, UserNotFoundError)


class SubscriptionService:
    """Service for subscription and folder business logic."""

    def __init__(
        self,
        db: Database,
        fetcher: FeedFetcher,
        scheduler: JobScheduler,
        parser: Callable[[bytes, str], ParsedFeed] = parse_feed,
        policy: IntervalPolicy | None = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.db = db
        self.fetcher = fetcher
        self.scheduler = scheduler
        self.parser = parser
        self.policy = policy or IntervalPolicy.from_config()
        self.clock = clock
        self.merger = EntryMerger(db)
        self.counter = SubscriptionCounter(db)

    # ─────────────────────────────────────────────────────────────
    # Listing
    # ─────────────────────────────────────────────────────────────

    def list_feeds(self, user_id: int) -> list[tuple[DBFeed, DBSubscription]]:
        self._require_user(user_id)
        return self.db.subscriptions.get_feeds_for_user(user_id)

    def list_folders(self, user_id: int) -> list[DBFolder]:
        self._require_user(user_id)
        return self.db.folders.get_for_user(user_id)

    # ─────────────────────────────────────────────────────────────
    # Subscribe / unsubscribe
    # ─────────────────────────────────────────────────────────────

    async def subscribe(self, user_id: int, url: str) -> DBFeed:
        """
        Subscribe a user to the feed at a URL.

        A known feed (matched by fetch URL or website URL) is reused.
        Otherwise the URL is fetched, following autodiscovery when it is a
        web page, and a new feed is created with the entries it contains.

        Raises:
            AlreadySubscribedError: If the user already has this feed
            FetchError, FeedParseError: If a new feed cannot be retrieved
        """
        self._require_user(user_id)
        url = normalize_url(url)
        validate_url(url, allow_private=config.ALLOW_PRIVATE_URLS)

        feed = self.db.feeds.get_by_url(url)
        parsed: ParsedFeed | None = None
        fetch_url = url

        if feed is None:
            document = await self.fetcher.fetch(url)
            parsed = self.parser(document.body, document.url)
            fetch_url = document.url
            if document.discovered:
                logger.info(f"Discovered feed {fetch_url} from {url}")

        now = self.clock()
        created = False

        with self.db.transaction() as conn:
            if feed is None:
                # Another subscriber may have created it while we were fetching
                feed = self.db.feeds.get_by_url(fetch_url, conn=conn)

            if feed is None:
                feed_id = self.db.feeds.add(
                    fetch_url,
                    title=parsed.title or parsed.url or fetch_url,
                    url=parsed.url,
                    fetch_interval_secs=self.policy.default_interval,
                    conn=conn,
                )
                self.merger.merge(conn, feed_id, parsed.entries, now)
                self.db.feeds.mark_fetched(feed_id, now, conn=conn)
                created = True
            else:
                feed_id = feed.id
                if self.db.subscriptions.get(user_id, feed_id, conn=conn):
                    raise AlreadySubscribedError(f"User {user_id} is already subscribed to feed {feed_id}")

            self.db.subscriptions.add(user_id, feed_id, now, conn=conn)
            self.db.entry_states.add_for_subscription(user_id, feed_id, conn=conn)
            reactivated = self.db.feeds.reactivate(feed_id, conn=conn)
            self.counter.recount_subscription(conn, user_id, feed_id, now)

        feed = self.db.feeds.get(feed_id)
        if created or reactivated:
            schedule_feed_refresh(self.scheduler, feed.id, feed.fetch_interval_secs)
        if created:
            logger.info(f"Created feed {feed.id} ({feed.fetch_url}) with {feed.entry_count} entries")
        if reactivated:
            logger.info(f"Feed {feed.id} reactivated by new subscription")

        return feed

    # ─────────────────────────────────────────────────────────────
    # Subscribe jobs
    # ─────────────────────────────────────────────────────────────

    def start_subscribe(self, user_id: int, url: str) -> DBSubscribeJobState:
        """
        Record a RUNNING subscribe job; run_subscribe_job does the fetching.

        Only checks that need no network run here: the user exists, the URL
        is acceptable, and the user does not already follow a known feed at
        that URL.
        """
        self._require_user(user_id)
        url = normalize_url(url)
        validate_url(url, allow_private=config.ALLOW_PRIVATE_URLS)

        feed = self.db.feeds.get_by_url(url)
        if feed is not None and self.db.subscriptions.get(user_id, feed.id):
            raise AlreadySubscribedError(f"User {user_id} is already subscribed to feed {feed.id}")

        job_id = self.db.subscribe_jobs.add(user_id, url, self.clock())
        logger.debug(f"Subscribe job {job_id} started for user {user_id}: {url}")
        return self.db.subscribe_jobs.get(job_id)

    async def run_subscribe_job(self, job_id: int) -> DBSubscribeJobState | None:
        """
        Run a RUNNING subscribe job to completion.

        Fetch, parse and subscription failures end the job in ERROR with
        their failure kind. Any other error also ends it in ERROR, then
        propagates.
        """
        job = self.db.subscribe_jobs.get(job_id)
        if job is None or job.state != RUNNING:
            logger.info(f"Subscribe job {job_id} is gone or already finished")
            return job

        try:
            feed = await self.subscribe(job.user_id, job.fetch_url)
        except SUBSCRIBE_FAILURES as e:
            logger.warning(f"Subscribe job {job_id} ({job.fetch_url}) failed [{failure_kind(e)}]: {e}")
            self.db.subscribe_jobs.mark_error(job_id, failure_kind(e), self.clock())
        except Exception:
            self.db.subscribe_jobs.mark_error(job_id, "internal_error", self.clock())
            raise
        else:
            self.db.subscribe_jobs.mark_success(job_id, feed.id, self.clock())

        return self.db.subscribe_jobs.get(job_id)

    def get_subscribe_job(self, user_id: int, job_id: int) -> DBSubscribeJobState:
        job = self.db.subscribe_jobs.get(job_id)
        if job is None or job.user_id != user_id:
            raise SubscribeJobNotFoundError(f"Subscribe job {job_id} not found")
        return job

    def list_subscribe_jobs(self, user_id: int) -> list[DBSubscribeJobState]:
        self._require_user(user_id)
        return self.db.subscribe_jobs.get_for_user(user_id)

    def unsubscribe(self, user_id: int, feed_id: int) -> bool:
        """
        Unsubscribe a user from a feed.

        Returns True if the feed was destroyed because nobody else
        subscribes to it.
        """
        with self.db.transaction() as conn:
            subscription = self.db.subscriptions.get(user_id, feed_id, conn=conn)
            if subscription is None:
                raise NotSubscribedError(f"User {user_id} is not subscribed to feed {feed_id}")

            self.db.entry_states.delete_for_subscription(user_id, feed_id, conn=conn)
            self.db.subscriptions.delete(user_id, feed_id, conn=conn)
            if subscription.folder_id is not None:
                self.db.folders.delete_if_empty(subscription.folder_id, conn=conn)

            destroyed = self.db.subscriptions.count_for_feed(feed_id, conn=conn) == 0
            if destroyed:
                self.db.feeds.delete(feed_id, conn=conn)

        if destroyed:
            self.scheduler.unschedule(job_name_for_feed(feed_id))
            logger.info(f"Feed {feed_id} has no subscribers left, deleted")
        return destroyed

    def delete_user(self, user_id: int):
        """Unsubscribe a user from everything, then delete the user."""
        self._require_user(user_id)
        for subscription in self.db.subscriptions.get_for_user(user_id):
            self.unsubscribe(user_id, subscription.feed_id)
        with self.db.transaction() as conn:
            self.db.users.delete(user_id, conn=conn)
        logger.info(f"Deleted user {user_id}")

    # ─────────────────────────────────────────────────────────────
    # Folders
    # ─────────────────────────────────────────────────────────────

    def move_feed_to_folder(
        self,
        user_id: int,
        feed_id: int,
        folder_id: int | None = None,
        folder_title: str | None = None,
    ) -> DBFolder:
        """
        Put a feed in one of the user's folders.

        Pass either an existing folder_id, or a folder_title; a folder with
        that title is reused if the user has one and created otherwise. The
        folder the feed leaves is deleted if it ends up empty.
        """
        if (folder_id is None) == (folder_title is None):
            raise ValueError("Pass exactly one of folder_id or folder_title")

        now = self.clock()
        with self.db.transaction() as conn:
            subscription = self._require_subscription(user_id, feed_id, conn)

            if folder_id is not None:
                folder = self.db.folders.get(folder_id, conn=conn)
                if folder is None or folder.user_id != user_id:
                    raise FolderNotFoundError(f"Folder {folder_id} not found")
            else:
                title = folder_title.strip()
                if not title:
                    raise ValueError("Folder title must not be blank")
                folder = self.db.folders.get_by_title(user_id, title, conn=conn)
                if folder is None:
                    folder_id = self.db.folders.add(user_id, title, conn=conn)
                    logger.debug(f"Created folder {folder_id} ({title!r}) for user {user_id}")
                else:
                    folder_id = folder.id

            old_folder_id = subscription.folder_id
            self.db.subscriptions.set_folder(user_id, feed_id, folder_id, now, conn=conn)
            if old_folder_id is not None and old_folder_id != folder_id:
                self.db.folders.delete_if_empty(old_folder_id, conn=conn)
            self.counter.recount_subscription(conn, user_id, feed_id, now)

            return self.db.folders.get(folder_id, conn=conn)

    def remove_feed_from_folder(self, user_id: int, feed_id: int) -> bool:
        """
        Take a feed out of its folder.

        Returns True if the folder was deleted because it became empty.
        """
        now = self.clock()
        with self.db.transaction() as conn:
            subscription = self._require_subscription(user_id, feed_id, conn)
            if subscription.folder_id is None:
                return False

            self.db.subscriptions.set_folder(user_id, feed_id, None, now, conn=conn)
            self.counter.recount_subscription(conn, user_id, feed_id, now)
            return self.db.folders.delete_if_empty(subscription.folder_id, conn=conn)

    # ─────────────────────────────────────────────────────────────
    # Helpers
    # ─────────────────────────────────────────────────────────────

    def _require_user(self, user_id: int):
        if self.db.users.get_by_id(user_id) is None:
            raise UserNotFoundError(f"User {user_id} not found")

    def _require_subscription(self, user_id: int, feed_id: int, conn) -> DBSubscription:
        subscription = self.db.subscriptions.get(user_id, feed_id, conn=conn)
        if subscription is None:
            if self.db.feeds.get(feed_id, conn=conn) is None:
                raise FeedNotFoundError(f"Feed {feed_id} not found")
            raise NotSubscribedError(f"User {user_id} is not subscribed to feed {feed_id}")
        return subscription
