"""
Feed routes: subscriptions, manual refresh, feed entries and folder placement.
"""

from typing import Annotated

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Query

from ..config import get_user_id
from ..schemas import (
    EntryResponse,
    FeedResponse,
    FolderResponse,
    MoveToFolderRequest,
    SubscribeJobResponse,
    SubscribeRequest,
)
from ..services import EntryServiceDep, SubscriptionServiceDep
from ..tasks import refresh_single_feed, subscribe_in_background

router = APIRouter(prefix="/users/{user_id}/feeds", tags=["feeds"])

UserId = Annotated[int, Depends(get_user_id)]


# ─────────────────────────────────────────────────────────────
# Subscriptions
# ─────────────────────────────────────────────────────────────

@router.get("")
async def list_feeds(
    user_id: UserId,
    service: SubscriptionServiceDep,
) -> list[FeedResponse]:
    """List the user's feeds with cached unread counts."""
    return [FeedResponse.from_db(feed, sub) for feed, sub in service.list_feeds(user_id)]


@router.post("", status_code=202)
async def subscribe(
    user_id: UserId,
    request: SubscribeRequest,
    service: SubscriptionServiceDep,
    background_tasks: BackgroundTasks,
) -> SubscribeJobResponse:
    """
    Subscribe to a feed by feed or website URL.

    The feed is fetched in the background; poll the returned job at
    /users/{user_id}/subscribe_jobs/{job_id}.
    """
    job = service.start_subscribe(user_id, request.url)
    background_tasks.add_task(subscribe_in_background, job.id)
    return SubscribeJobResponse.from_db(job)


@router.delete("/{feed_id}")
async def unsubscribe(
    user_id: UserId,
    feed_id: int,
    service: SubscriptionServiceDep,
) -> dict:
    """Unsubscribe from a feed."""
    feed_deleted = service.unsubscribe(user_id, feed_id)
    return {"success": True, "feed_deleted": feed_deleted}


# ─────────────────────────────────────────────────────────────
# Refresh
# ─────────────────────────────────────────────────────────────

@router.post("/{feed_id}/refresh")
async def refresh_feed(
    user_id: UserId,
    feed_id: int,
    service: SubscriptionServiceDep,
    background_tasks: BackgroundTasks,
) -> dict:
    """
    Refresh a feed now. Runs in the background; the outcome shows up in
    the feed listing (last_fetched, fetch_interval_secs, failing_since).
    """
    if service.db.subscriptions.get(user_id, feed_id) is None:
        raise HTTPException(status_code=404, detail="Feed not found")

    background_tasks.add_task(refresh_single_feed, feed_id)
    return {"status": "refresh started"}


# ─────────────────────────────────────────────────────────────
# Entries
# ─────────────────────────────────────────────────────────────

@router.get("/{feed_id}/entries")
async def list_feed_entries(
    user_id: UserId,
    feed_id: int,
    service: EntryServiceDep,
    include_read: bool = False,
    page: int = Query(default=1, ge=1),
) -> list[EntryResponse]:
    """List the feed's entries, newest first."""
    entries = service.feed_entries(user_id, feed_id, include_read=include_read, page=page)
    return [EntryResponse.from_db(e) for e in entries]


# ─────────────────────────────────────────────────────────────
# Folder placement
# ─────────────────────────────────────────────────────────────

@router.put("/{feed_id}/folder")
async def move_to_folder(
    user_id: UserId,
    feed_id: int,
    request: MoveToFolderRequest,
    service: SubscriptionServiceDep,
) -> FolderResponse:
    """Move the feed into an existing folder, or a folder with the given title."""
    try:
        folder = service.move_feed_to_folder(
            user_id, feed_id, folder_id=request.folder_id, folder_title=request.title
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return FolderResponse.from_db(folder)


@router.delete("/{feed_id}/folder")
async def remove_from_folder(
    user_id: UserId,
    feed_id: int,
    service: SubscriptionServiceDep,
) -> dict:
    """Take the feed out of its folder."""
    folder_deleted = service.remove_feed_from_folder(user_id, feed_id)
    return {"success": True, "folder_deleted": folder_deleted}
