"""
Tests for the persistent job scheduler and the refresh job handlers.
"""

from datetime import timedelta
from unittest.mock import AsyncMock

import pytest

from feedrefresh.scheduler import (
    REFRESH_FEED_JOB,
    PersistentJobScheduler,
    job_name_for_feed,
    schedule_feed_refresh,
)
from feedrefresh.services import RefreshService, RefreshStatus
from feedrefresh.tasks import build_job_handlers

from conftest import FEED_URL, START, entries, make_rss


@pytest.fixture
def job_scheduler(test_db, clock):
    return PersistentJobScheduler(test_db, poll_secs=0.01, concurrency=2, clock=clock)


class TestRegistration:
    """Tests for schedule/unschedule."""

    def test_schedule_persists_job(self, job_scheduler, test_db):
        schedule_feed_refresh(job_scheduler, 7, 3600)

        job = test_db.jobs.get(job_name_for_feed(7))
        assert job.job_class == REFRESH_FEED_JOB
        assert job.payload == {"feed_id": 7}
        assert job.interval_secs == 3600
        assert job.next_run_at == START + timedelta(hours=1)

    def test_reschedule_replaces(self, job_scheduler, test_db, clock):
        """Re-registering a name replaces the previous job."""
        schedule_feed_refresh(job_scheduler, 7, 3600)
        clock.advance(minutes=10)
        schedule_feed_refresh(job_scheduler, 7, 7200)

        jobs = test_db.jobs.get_all()
        assert len(jobs) == 1
        assert jobs[0].interval_secs == 7200
        assert jobs[0].next_run_at == clock.now + timedelta(hours=2)

    def test_unschedule(self, job_scheduler):
        schedule_feed_refresh(job_scheduler, 7, 3600)
        job_scheduler.unschedule(job_name_for_feed(7))
        assert not job_scheduler.is_scheduled(job_name_for_feed(7))

    def test_unschedule_unknown_is_noop(self, job_scheduler):
        job_scheduler.unschedule("update_feed_404")


class TestRunDue:
    """Tests for PersistentJobScheduler.run_due."""

    @pytest.mark.asyncio
    async def test_nothing_due(self, job_scheduler):
        handler = AsyncMock()
        job_scheduler.register(REFRESH_FEED_JOB, handler)
        schedule_feed_refresh(job_scheduler, 1, 3600)

        assert await job_scheduler.run_due() == 0
        handler.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_runs_due_jobs_and_pushes_next_run(self, job_scheduler, test_db, clock):
        """A due job runs once; its next run moves one interval forward."""
        handler = AsyncMock()
        job_scheduler.register(REFRESH_FEED_JOB, handler)
        schedule_feed_refresh(job_scheduler, 1, 3600)
        schedule_feed_refresh(job_scheduler, 2, 7200)
        clock.advance(hours=1)

        assert await job_scheduler.run_due() == 1
        handler.assert_awaited_once_with({"feed_id": 1})
        assert test_db.jobs.get(job_name_for_feed(1)).next_run_at == clock.now + timedelta(hours=1)

        # Same instant: already claimed
        assert await job_scheduler.run_due() == 0

    @pytest.mark.asyncio
    async def test_failing_job_stays_scheduled(self, job_scheduler, clock):
        """A handler error is logged and the job runs again next interval."""
        handler = AsyncMock(side_effect=RuntimeError("boom"))
        job_scheduler.register(REFRESH_FEED_JOB, handler)
        schedule_feed_refresh(job_scheduler, 1, 60)

        clock.advance(seconds=60)
        await job_scheduler.run_due()
        clock.advance(seconds=60)
        await job_scheduler.run_due()

        assert handler.await_count == 2
        assert job_scheduler.is_scheduled(job_name_for_feed(1))

    @pytest.mark.asyncio
    async def test_unknown_job_class(self, job_scheduler, clock):
        """Jobs without a handler are claimed and skipped."""
        job_scheduler.schedule("mystery", 60, 0, {}, job_class="unknown")
        assert await job_scheduler.run_due() == 1

    @pytest.mark.asyncio
    async def test_start_stop(self, job_scheduler):
        await job_scheduler.start()
        assert job_scheduler.running
        await job_scheduler.stop()
        assert not job_scheduler.running


class TestRefreshJobs:
    """The refresh handler wired into the persistent scheduler."""

    @pytest.mark.asyncio
    async def test_due_feed_is_refreshed(self, test_db, clock, fetcher, subscription_service, users, policy):
        """A due refresh job fetches the feed and reschedules it."""
        job_scheduler = PersistentJobScheduler(test_db, clock=clock)
        service = RefreshService(test_db, fetcher, job_scheduler, policy=policy, clock=clock)
        job_scheduler.handlers.update(build_job_handlers(service))

        alice, _ = users
        fetcher.serve(FEED_URL, make_rss(entries("a")))
        feed = await subscription_service.subscribe(alice, FEED_URL)
        schedule_feed_refresh(job_scheduler, feed.id, feed.fetch_interval_secs)

        fetcher.serve(FEED_URL, make_rss(entries("a", "b")))
        clock.advance(seconds=feed.fetch_interval_secs)
        await job_scheduler.run_due()

        refreshed = test_db.get_feed(feed.id)
        assert refreshed.entry_count == 2
        job = test_db.jobs.get(job_name_for_feed(feed.id))
        assert job.interval_secs == refreshed.fetch_interval_secs
        assert job.next_run_at == clock.now + timedelta(seconds=refreshed.fetch_interval_secs)

    @pytest.mark.asyncio
    async def test_handler_returns_result(self, refresh_service):
        handler = build_job_handlers(refresh_service)[REFRESH_FEED_JOB]
        result = await handler({"feed_id": 999})
        assert result.status == RefreshStatus.FEED_MISSING
