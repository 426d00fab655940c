"""
Subscribe job routes: progress of background subscriptions.
"""

from typing import Annotated

from fastapi import APIRouter, Depends

from ..config import get_user_id
from ..schemas import SubscribeJobResponse
from ..services import SubscriptionServiceDep

router = APIRouter(prefix="/users/{user_id}/subscribe_jobs", tags=["subscribe_jobs"])

UserId = Annotated[int, Depends(get_user_id)]


@router.get("")
async def list_subscribe_jobs(
    user_id: UserId,
    service: SubscriptionServiceDep,
) -> list[SubscribeJobResponse]:
    """List the user's subscribe jobs, newest first."""
    return [SubscribeJobResponse.from_db(job) for job in service.list_subscribe_jobs(user_id)]


@router.get("/{job_id}")
async def get_subscribe_job(
    user_id: UserId,
    job_id: int,
    service: SubscriptionServiceDep,
) -> SubscribeJobResponse:
    """State of one subscribe job: RUNNING, SUCCESS (with feed_id) or ERROR."""
    return SubscribeJobResponse.from_db(service.get_subscribe_job(user_id, job_id))
