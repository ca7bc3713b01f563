"""API routes."""

from .maintenance import router as maintenance_router
from .payments import router as payments_router

__all__ = [
    "payments_router",
    "maintenance_router",
]
