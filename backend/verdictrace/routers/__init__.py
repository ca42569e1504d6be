"""VerdictTrace - API Routers"""
from .scan import router as scan_router
from .cases import router as cases_router
from .notifications import router as notifications_router

__all__ = [
    "scan_router",
    "cases_router",
    "notifications_router",
]
