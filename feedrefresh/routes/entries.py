"""
Entry routes: all-entries listing, read state changes and unread counts.
"""

from typing import Annotated

from fastapi import APIRouter, Depends, Query

from ..config import get_user_id
from ..schemas import EntryResponse, EntryStateRequest, EntryStateResponse, UnreadCountsResponse
from ..services import EntryServiceDep

router = APIRouter(prefix="/users/{user_id}", tags=["entries"])

UserId = Annotated[int, Depends(get_user_id)]


@router.get("/entries")
async def list_entries(
    user_id: UserId,
    service: EntryServiceDep,
    include_read: bool = False,
    page: int = Query(default=1, ge=1),
) -> list[EntryResponse]:
    """List entries across all subscribed feeds, newest first."""
    entries = service.all_entries(user_id, include_read=include_read, page=page)
    return [EntryResponse.from_db(e) for e in entries]


@router.put("/entries/{entry_id}")
async def change_entry_state(
    user_id: UserId,
    entry_id: int,
    request: EntryStateRequest,
    service: EntryServiceDep,
) -> EntryStateResponse:
    """Mark an entry (or everything up to it) read or unread."""
    feed_ids = service.change_entries_state(
        user_id,
        entry_id,
        request.read,
        whole_feed=request.whole_feed,
        whole_folder=request.whole_folder,
        all_entries=request.all_entries,
    )
    _, _, feeds = service.unread_counts(user_id)
    return EntryStateResponse(unread={feed_id: feeds.get(feed_id, 0) for feed_id in feed_ids})


@router.get("/unread")
async def unread_counts(
    user_id: UserId,
    service: EntryServiceDep,
) -> UnreadCountsResponse:
    """Total, per-folder and per-feed unread counts."""
    total, folders, feeds = service.unread_counts(user_id)
    return UnreadCountsResponse(total=total, folders=folders, feeds=feeds)
