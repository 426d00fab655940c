"""
Service layer for business logic.

Services encapsulate business logic, keeping routes as thin HTTP adapters.
Each service receives its dependencies via constructor injection; the
server builds one instance of each at startup and keeps it on `state`.

Usage in routes:
    from ..services import EntryServiceDep

    @router.get("/users/{user_id}/entries")
    async def list_entries(user_id: int, service: EntryServiceDep):
        return service.all_entries(user_id)
"""

from typing import Annotated

from fastapi import Depends

from ..config import get_entry_service, get_subscription_service

from .counter_service import SubscriptionCounter
from .entry_merger import EntryMerger, MergeResult
from .entry_service import EntryService
from .refresh_service import RefreshResult, RefreshService, RefreshStatus
from .subscription_service import SubscriptionService

__all__ = [
    # Services
    "EntryMerger",
    "EntryService",
    "RefreshService",
    "SubscriptionCounter",
    "SubscriptionService",
    # Results
    "MergeResult",
    "RefreshResult",
    "RefreshStatus",
    # Type aliases for dependency injection
    "EntryServiceDep",
    "SubscriptionServiceDep",
]


EntryServiceDep = Annotated[EntryService, Depends(get_entry_service)]
SubscriptionServiceDep = Annotated[SubscriptionService, Depends(get_subscription_service)]
