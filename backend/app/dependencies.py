"""
FastAPI Dependencies

Common dependencies for the job API: caller identity and the shared
job queue.
"""

from fastapi import Header, Request

from app.services.jobs.queue import JobQueue


async def get_user_id(
    x_user_id: str = Header(..., min_length=1, max_length=255),
) -> str:
    """
    Caller identity from the X-User-Id header.

    The gateway in front of this service authenticates the caller and sets
    the header; a missing or empty header is rejected with 422.
    """
    return x_user_id


def get_job_queue(request: Request) -> JobQueue:
    """Job queue created at startup."""
    return request.app.state.job_queue
