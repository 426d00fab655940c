"""
Standalone refresh worker.

Runs the job scheduler without the HTTP API, for deployments that keep
scheduled refreshes out of the web process (start the server with
SCHEDULER_ENABLED=false).

Run with: python -m feedrefresh.worker
"""

import asyncio
import logging
import signal

from .config import config, state
from .database import Database
from .server import init_state

logger = logging.getLogger(__name__)


async def run_worker():
    init_state(Database(config.DB_PATH))
    state.refresh_service.schedule_all_feeds()

    stop_event = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, stop_event.set)
        except NotImplementedError:
            # Signal handlers are unavailable on Windows event loops
            pass

    await state.scheduler.start()
    logger.info(f"Refresh worker running against {config.DB_PATH}")
    try:
        await stop_event.wait()
    finally:
        await state.scheduler.stop()


def main():
    try:
        asyncio.run(run_worker())
    except KeyboardInterrupt:
        logger.info("Refresh worker interrupted")


if __name__ == "__main__":
    main()
