"""
Background tasks: scheduled feed refresh jobs, on-demand refreshes and
subscribe jobs.
"""

import logging

from .config import state
from .scheduler import REFRESH_FEED_JOB, JobHandler
from .services import RefreshResult, RefreshService

logger = logging.getLogger(__name__)


async def run_refresh_job(refresh_service: RefreshService, payload: dict) -> RefreshResult:
    """Run one scheduled refresh. Errors other than fetch/parse failures propagate."""
    feed_id = int(payload["feed_id"])
    result = await refresh_service.refresh(feed_id, manual=False)
    logger.debug(f"Refresh job for feed {feed_id}: {result.status.value}")
    return result


def build_job_handlers(refresh_service: RefreshService) -> dict[str, JobHandler]:
    """Job class -> handler mapping for the job scheduler."""

    async def refresh_feed(payload: dict) -> RefreshResult:
        return await run_refresh_job(refresh_service, payload)

    return {REFRESH_FEED_JOB: refresh_feed}


async def refresh_single_feed(feed_id: int):
    """Manual refresh of one feed, run as a FastAPI background task."""
    if not state.refresh_service:
        logger.error("Refresh service not initialized, cannot refresh feed")
        return

    try:
        result = await state.refresh_service.refresh(feed_id, manual=True)
        logger.info(f"Manual refresh of feed {feed_id}: {result.status.value}")
    except Exception as e:
        logger.exception(f"Manual refresh of feed {feed_id} failed: {e}")


async def subscribe_in_background(job_id: int):
    """Run a subscribe job as a FastAPI background task."""
    if not state.subscription_service:
        logger.error("Subscription service not initialized, cannot run subscribe job")
        return

    try:
        job = await state.subscription_service.run_subscribe_job(job_id)
        if job is not None:
            logger.info(f"Subscribe job {job_id}: {job.state}")
    except Exception as e:
        logger.exception(f"Subscribe job {job_id} failed: {e}")
