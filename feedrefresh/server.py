"""
Feed refresh API server

FastAPI application providing endpoints for:
- Subscriptions (background subscribe jobs, unsubscribe, folders)
- Entries (listing, read/unread state)
- Unread counts
- Manual feed refresh

Run with: uvicorn feedrefresh.server:app --port 5005
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from . import __version__
from .config import config, state
from .database import Database
from .exceptions import (
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
from .fetcher import FeedFetcher
from .routes import (
    entries_router,
    feeds_router,
    folders_router,
    misc_router,
    subscribe_jobs_router,
)
from .scheduler import PersistentJobScheduler
from .services import EntryService, RefreshService, SubscriptionService
from .tasks import build_job_handlers

logging.basicConfig(
    level=config.LOG_LEVEL.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


def init_state(db: Database):
    """Build the services around a database. Used by the server and the worker."""
    state.db = db
    state.fetcher = FeedFetcher()
    state.scheduler = PersistentJobScheduler(db)
    state.refresh_service = RefreshService(db, state.fetcher, state.scheduler)
    state.subscription_service = SubscriptionService(db, state.fetcher, state.scheduler)
    state.entry_service = EntryService(db)
    for job_class, handler in build_job_handlers(state.refresh_service).items():
        state.scheduler.register(job_class, handler)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Initialize and cleanup application resources."""
    # Startup - skip if already initialized (e.g., by tests)
    if state.db is None:
        init_state(Database(config.DB_PATH))

        state.refresh_service.schedule_all_feeds()
        if config.SCHEDULER_ENABLED:
            await state.scheduler.start()
        else:
            logger.info("Job scheduler disabled (SCHEDULER_ENABLED=false)")

    yield

    # Shutdown
    if state.scheduler and state.scheduler.running:
        await state.scheduler.stop()


app = FastAPI(
    title="Feed Refresh API",
    version=__version__,
    lifespan=lifespan
)


# ─────────────────────────────────────────────────────────────
# Domain errors -> HTTP
# ─────────────────────────────────────────────────────────────

@app.exception_handler(UserNotFoundError)
@app.exception_handler(FeedNotFoundError)
@app.exception_handler(FolderNotFoundError)
@app.exception_handler(SubscribeJobNotFoundError)
async def not_found_handler(request: Request, exc: Exception) -> JSONResponse:
    return JSONResponse(status_code=404, content={"detail": str(exc)})


@app.exception_handler(NotSubscribedError)
async def not_subscribed_handler(request: Request, exc: NotSubscribedError) -> JSONResponse:
    return JSONResponse(status_code=404, content={"detail": str(exc)})


@app.exception_handler(AlreadySubscribedError)
async def already_subscribed_handler(request: Request, exc: AlreadySubscribedError) -> JSONResponse:
    return JSONResponse(status_code=409, content={"detail": str(exc)})


@app.exception_handler(FetchError)
@app.exception_handler(FeedParseError)
async def feed_error_handler(request: Request, exc: Exception) -> JSONResponse:
    return JSONResponse(
        status_code=400,
        content={"detail": f"Invalid feed URL: {exc}", "kind": failure_kind(exc)},
    )


# Include routers
app.include_router(misc_router)
app.include_router(feeds_router)
app.include_router(entries_router)
app.include_router(folders_router)
app.include_router(subscribe_jobs_router)
