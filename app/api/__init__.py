"""API routers package initialization."""

from app.api.missions import router as missions_router
from app.api.seasons import router as seasons_router
from app.api.admin_bandit import router as admin_bandit_router

__all__ = [
    "missions_router",
    "seasons_router",
    "admin_bandit_router",
]
