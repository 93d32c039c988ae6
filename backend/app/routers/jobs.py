"""
Job Queue Router

Submit notes jobs and follow them through the queue.

The caller's identity arrives in the ``X-User-Id`` header, set by the
gateway in front of this service. Users only ever see their own jobs.

Endpoints:
- POST /api/jobs - Submit a job
- GET /api/jobs - List the caller's jobs (paged, newest first)
- GET /api/jobs/stats - Job counts for the caller
- GET /api/jobs/{job_id} - Get one job
- GET /api/jobs/{job_id}/position - Queue position and estimated wait
- POST /api/jobs/{job_id}/cancel - Cancel a queued job
- POST /api/jobs/{job_id}/retry - Re-queue a failed job
- GET /api/worker/status - Embedded worker status

Usage:
    curl -X POST /api/jobs -H "X-User-Id: user-1" -H "Content-Type: application/json" \
         -d '{"job_type": "text", "input_data": {"content": "..."}}'
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request

from app.db.models import Job
from app.dependencies import get_job_queue, get_user_id
from app.enums.jobs import JobPriority, JobStatus
from app.middleware.error_handling import ConflictError, NotFoundError, ServiceError
from app.models.jobs import (
    EnqueueJobRequest,
    EnqueueResult,
    JobPage,
    JobRecord,
    JobStats,
    QueuePositionResponse,
    WorkerStatus,
)
from app.services.jobs.queue import JobQueue

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/jobs", tags=["jobs"])
worker_router = APIRouter(prefix="/api/worker", tags=["jobs"])


# =============================================================================
# Helpers
# =============================================================================


async def _get_owned_job(queue: JobQueue, job_id: str, user_id: str) -> Job:
    job = await queue.get_job(job_id)
    # Other users' jobs look exactly like missing ones
    if job is None or job.user_id != user_id:
        raise NotFoundError(f"Job {job_id} not found", details={"job_id": job_id})
    return job


# =============================================================================
# Submission
# =============================================================================


@router.post("", response_model=EnqueueResult, status_code=201)
async def enqueue_job(
    request: EnqueueJobRequest,
    user_id: str = Depends(get_user_id),
    queue: JobQueue = Depends(get_job_queue),
) -> EnqueueResult:
    """
    Submit a job.

    The input is validated against the job type before anything is stored;
    the priority comes from the caller's subscription tier.
    """
    job_id = await queue.enqueue(
        user_id,
        request.job_type,
        request.input_data,
        estimated_duration_seconds=request.estimated_duration_seconds,
    )
    job = await queue.get_job(job_id)
    position = await queue.queue_position(job_id)

    return EnqueueResult(
        job_id=job_id,
        priority=JobPriority(job.priority),
        position=position,
        estimated_wait_seconds=(
            queue.estimate_wait_seconds(position) if position is not None else None
        ),
    )


# =============================================================================
# Queries
# =============================================================================


@router.get("", response_model=JobPage)
async def list_jobs(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    status: Optional[JobStatus] = None,
    user_id: str = Depends(get_user_id),
    queue: JobQueue = Depends(get_job_queue),
) -> JobPage:
    """List the caller's jobs, newest first."""
    return await queue.list_user_jobs(user_id, page=page, limit=limit, status=status)


@router.get("/stats", response_model=JobStats)
async def get_job_stats(
    user_id: str = Depends(get_user_id),
    queue: JobQueue = Depends(get_job_queue),
) -> JobStats:
    return await queue.get_stats(user_id)


@router.get("/{job_id}", response_model=JobRecord)
async def get_job(
    job_id: str,
    user_id: str = Depends(get_user_id),
    queue: JobQueue = Depends(get_job_queue),
) -> JobRecord:
    job = await _get_owned_job(queue, job_id, user_id)
    return JobRecord.model_validate(job)


@router.get("/{job_id}/position", response_model=QueuePositionResponse)
async def get_queue_position(
    job_id: str,
    user_id: str = Depends(get_user_id),
    queue: JobQueue = Depends(get_job_queue),
) -> QueuePositionResponse:
    """
    Jobs that will run before this one.

    ``position`` is null once the job has left the queue.
    """
    await _get_owned_job(queue, job_id, user_id)
    position = await queue.queue_position(job_id)
    return QueuePositionResponse(
        job_id=job_id,
        position=position,
        estimated_wait_seconds=(
            queue.estimate_wait_seconds(position) if position is not None else None
        ),
    )


# =============================================================================
# Caller-initiated transitions
# =============================================================================


@router.post("/{job_id}/cancel", response_model=JobRecord)
async def cancel_job(
    job_id: str,
    user_id: str = Depends(get_user_id),
    queue: JobQueue = Depends(get_job_queue),
) -> JobRecord:
    """Cancel a job that no worker has picked up yet."""
    job = await _get_owned_job(queue, job_id, user_id)
    if not await queue.cancel(job_id):
        raise ConflictError(
            f"Job cannot be cancelled in status '{job.status}'",
            details={"job_id": job_id, "status": job.status},
        )
    return JobRecord.model_validate(await queue.get_job(job_id))


@router.post("/{job_id}/retry", response_model=JobRecord)
async def retry_job(
    job_id: str,
    user_id: str = Depends(get_user_id),
    queue: JobQueue = Depends(get_job_queue),
) -> JobRecord:
    """Re-queue a failed job at the back of its priority tier."""
    job = await _get_owned_job(queue, job_id, user_id)
    if not await queue.retry(job_id):
        if job.status != JobStatus.FAILED.value:
            reason = f"Only failed jobs can be retried (status '{job.status}')"
        else:
            reason = f"Retry limit reached ({job.retry_count}/{job.max_retries})"
        raise ConflictError(reason, details={"job_id": job_id, "status": job.status})
    return JobRecord.model_validate(await queue.get_job(job_id))


# =============================================================================
# Worker
# =============================================================================


@worker_router.get("/status", response_model=WorkerStatus)
async def get_worker_status(request: Request) -> WorkerStatus:
    """Status of the worker embedded in this process."""
    worker = getattr(request.app.state, "worker", None)
    if worker is None:
        raise ServiceError(
            "No worker runs in this process",
            status_code=503,
            error_code="worker_unavailable",
        )
    return worker.status()
