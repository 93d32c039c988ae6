"""
Health Check Endpoints

Provides health check endpoints for monitoring and orchestration.

Endpoints:
- GET /api/health - Basic health check
- GET /api/health/detailed - Detailed health with dependency checks
- GET /api/health/ready - Readiness probe for orchestration systems
"""

from fastapi import APIRouter, Request
from sqlalchemy import text

from app.config import settings
from app.db.redis import get_redis

router = APIRouter(prefix="/api/health", tags=["health"])


@router.get("")
async def health_check():
    """
    Basic health check.

    Returns a simple status response indicating the API is running.
    """
    return {
        "status": "healthy",
        "service": settings.APP_NAME,
    }


@router.get("/detailed")
async def detailed_health_check(request: Request):
    """
    Detailed health check with dependency status.

    Checks:
    - Job database
    - Redis (only when job events go through Redis)
    - Embedded worker loop
    """
    health = {"status": "healthy", "service": settings.APP_NAME, "dependencies": {}}

    # Check job database
    try:
        async with request.app.state.job_queue.session_maker() as session:
            await session.execute(text("SELECT 1"))
        health["dependencies"]["database"] = {"status": "healthy"}
    except Exception as e:
        health["dependencies"]["database"] = {"status": "unhealthy", "error": str(e)}
        health["status"] = "degraded"

    # Check Redis
    if settings.JOB_EVENTS_BACKEND == "redis":
        try:
            r = await get_redis()
            await r.ping()
            health["dependencies"]["redis"] = {"status": "healthy"}
        except Exception as e:
            health["dependencies"]["redis"] = {"status": "unhealthy", "error": str(e)}
            health["status"] = "degraded"

    # Check embedded worker
    worker = getattr(request.app.state, "worker", None)
    if worker is not None:
        status = worker.status()
        health["dependencies"]["worker"] = {
            "status": "healthy" if status.is_running else "unhealthy",
            "worker_id": status.worker_id,
            "active_jobs": status.active_jobs,
            "max_concurrent_jobs": status.max_concurrent_jobs,
        }
        if not status.is_running:
            health["status"] = "degraded"

    return health


@router.get("/ready")
async def readiness_check(request: Request):
    """
    Readiness probe for orchestration systems.

    Returns ready only if the job database answers.

    Used by: Docker health checks, load balancers, Kubernetes, etc.
    """
    try:
        async with request.app.state.job_queue.session_maker() as session:
            await session.execute(text("SELECT 1"))
        return {"ready": True}
    except Exception as e:
        return {"ready": False, "error": str(e)}
