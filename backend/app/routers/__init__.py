"""API Routers package."""

from app.routers import health as health_router
from app.routers import jobs as jobs_router

__all__ = ["health_router", "jobs_router"]
