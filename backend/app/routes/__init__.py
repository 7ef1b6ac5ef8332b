"""API routes."""

from .admin import router as admin_router
from .featured import router as featured_router
from .maintenance import router as maintenance_router
from .offers import project_offers_router
from .offers import router as offers_router
from .transactions import router as transactions_router

__all__ = [
    "admin_router",
    "featured_router",
    "maintenance_router",
    "offers_router",
    "project_offers_router",
    "transactions_router",
]
