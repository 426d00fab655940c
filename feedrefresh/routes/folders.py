"""
Folder routes: folder listing and folder entries.
"""

from typing import Annotated

from fastapi import APIRouter, Depends, Query

from ..config import get_user_id
from ..schemas import EntryResponse, FolderResponse
from ..services import EntryServiceDep, SubscriptionServiceDep

router = APIRouter(prefix="/users/{user_id}/folders", tags=["folders"])

UserId = Annotated[int, Depends(get_user_id)]


@router.get("")
async def list_folders(
    user_id: UserId,
    service: SubscriptionServiceDep,
) -> list[FolderResponse]:
    """List the user's folders with unread counts."""
    return [FolderResponse.from_db(f) for f in service.list_folders(user_id)]


@router.get("/{folder_id}/entries")
async def list_folder_entries(
    user_id: UserId,
    folder_id: int,
    service: EntryServiceDep,
    include_read: bool = False,
    page: int = Query(default=1, ge=1),
) -> list[EntryResponse]:
    """List entries of every feed in the folder, newest first."""
    entries = service.folder_entries(user_id, folder_id, include_read=include_read, page=page)
    return [EntryResponse.from_db(e) for e in entries]
