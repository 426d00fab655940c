"""
Persistent recurring job scheduler.

Jobs are rows in `scheduled_jobs` (name, job class, JSON payload, interval,
next run time), so schedules survive restarts. A background polling loop
claims due jobs and runs their handlers with bounded concurrency.

Claiming a job pushes its next run one interval forward before the handler
runs: a failing job is logged and simply runs again at its next interval.
"""

import asyncio
import logging
from datetime import datetime, timedelta
from typing import TYPE_CHECKING, Awaitable, Callable, Protocol

from .config import config
from .scheduling import utcnow

if TYPE_CHECKING:
    from .database import Database
    from .database.models import DBScheduledJob


logger = logging.getLogger(__name__)

REFRESH_FEED_JOB = "refresh_feed"

JobHandler = Callable[[dict], Awaitable[object]]


def job_name_for_feed(feed_id: int) -> str:
    """Name of a feed's recurring refresh job."""
    return f"update_feed_{feed_id}"


def schedule_feed_refresh(scheduler: "JobScheduler", feed_id: int, interval_secs: int):
    """Register a feed's recurring refresh; the first run is one interval from now."""
    scheduler.schedule(job_name_for_feed(feed_id), interval_secs, interval_secs, {"feed_id": feed_id})


class JobScheduler(Protocol):
    """What the refresh core needs from a job backend."""

    def schedule(
        self,
        job_name: str,
        interval_secs: int,
        first_run_in_secs: int,
        payload: dict,
    ) -> None: ...

    def unschedule(self, job_name: str) -> None: ...


class PersistentJobScheduler:
    """
    Background scheduler for recurring jobs stored in SQLite.

    Re-registering a job under an existing name replaces it.
    """

    def __init__(
        self,
        db: "Database",
        handlers: dict[str, JobHandler] | None = None,
        poll_secs: float | None = None,
        concurrency: int | None = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.db = db
        self.handlers: dict[str, JobHandler] = dict(handlers or {})
        self.poll_secs = poll_secs if poll_secs is not None else config.SCHEDULER_POLL_SECS
        self.concurrency = concurrency or config.SCHEDULER_CONCURRENCY
        self.clock = clock
        self._task: asyncio.Task | None = None
        self._running = False

    def register(self, job_class: str, handler: JobHandler):
        self.handlers[job_class] = handler

    # ─────────────────────────────────────────────────────────────
    # Job registration
    # ─────────────────────────────────────────────────────────────

    def schedule(
        self,
        job_name: str,
        interval_secs: int,
        first_run_in_secs: int,
        payload: dict,
        job_class: str = REFRESH_FEED_JOB,
    ):
        now = self.clock()
        self.db.jobs.upsert(
            job_name,
            job_class,
            payload,
            interval_secs,
            next_run_at=now + timedelta(seconds=first_run_in_secs),
            now=now,
        )
        logger.debug(f"Scheduled {job_name} every {interval_secs}s (first in {first_run_in_secs}s)")

    def unschedule(self, job_name: str):
        if self.db.jobs.delete(job_name):
            logger.info(f"Unscheduled {job_name}")

    def is_scheduled(self, job_name: str) -> bool:
        return self.db.jobs.get(job_name) is not None

    # ─────────────────────────────────────────────────────────────
    # Polling loop
    # ─────────────────────────────────────────────────────────────

    async def start(self):
        """Start the polling loop."""
        if self._running:
            return
        self._running = True
        self._task = asyncio.create_task(self._poll_loop())
        logger.info(
            f"Job scheduler started (poll every {self.poll_secs}s, concurrency {self.concurrency})"
        )

    async def stop(self):
        """Stop the polling loop."""
        self._running = False

        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None

        logger.info("Job scheduler stopped")

    @property
    def running(self) -> bool:
        return self._running

    async def _poll_loop(self):
        while self._running:
            try:
                await self.run_due()
            except asyncio.CancelledError:
                break
            except Exception as e:
                logger.exception(f"Error in job scheduler loop: {e}")

            await asyncio.sleep(self.poll_secs)

    async def run_due(self) -> int:
        """Run every job whose time has come. Returns the number of jobs run."""
        jobs = self.db.jobs.claim_due(self.clock())
        if not jobs:
            return 0

        logger.debug(f"Running {len(jobs)} due jobs")
        semaphore = asyncio.Semaphore(self.concurrency)

        async def run_with_limit(job: "DBScheduledJob"):
            async with semaphore:
                await self._run_job(job)

        await asyncio.gather(*(run_with_limit(job) for job in jobs))
        return len(jobs)

    async def _run_job(self, job: "DBScheduledJob"):
        handler = self.handlers.get(job.job_class)
        if handler is None:
            logger.warning(f"No handler for job class {job.job_class!r} ({job.name})")
            return

        try:
            await handler(job.payload)
        except Exception as e:
            logger.exception(f"Job {job.name} failed: {e}")
