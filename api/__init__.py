"""
API Module
FastAPI routers for the IntakeAware application
"""

from api.intake import router as intake_router
from api.awareness import router as awareness_router

from api.deps import (
    get_db,
    get_current_user_id,
    get_snapshot_service,
    get_snapshot_refresh_queue,
    services,
)


__all__ = [
    # Routers
    "intake_router",
    "awareness_router",
    # Dependencies
    "get_db",
    "get_current_user_id",
    "get_snapshot_service",
    "get_snapshot_refresh_queue",
    "services",
]


def include_routers(app, prefix: str = "/api/v1"):
    """
    Include all API routers in the FastAPI app

    Usage:
        from api import include_routers
        include_routers(app)
    """
    app.include_router(intake_router, prefix=prefix)
    app.include_router(awareness_router, prefix=prefix)
