"""
API route modules.
"""

from .entries import router as entries_router
from .feeds import router as feeds_router
from .folders import router as folders_router
from .misc import router as misc_router
from .subscribe_jobs import router as subscribe_jobs_router

__all__ = [
    "entries_router",
    "feeds_router",
    "folders_router",
    "misc_router",
    "subscribe_jobs_router",
]
