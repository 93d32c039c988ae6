"""
SQLAlchemy Database Models

These models define the schema of the job queue.

Tables:
- jobs: Submitted content-processing jobs with status, priority and progress

ARCHITECTURE NOTE:
    The API/pipeline view of a job is the Pydantic JobRecord in
    app/models/jobs.py. Enum-valued columns are stored as their string
    values so the table reads the same from SQL as from the API.
"""

from datetime import datetime, timezone
from typing import Any, Optional
import uuid

from sqlalchemy import JSON, DateTime, Float, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from app.db.base import Base
from app.enums.jobs import JobStatus


def _utc_now() -> datetime:
    """Return current UTC time as timezone-aware datetime."""
    return datetime.now(timezone.utc)


def _new_job_id() -> str:
    return str(uuid.uuid4())


class Job(Base):
    """
    Content-processing job tracked from submission to a terminal state.

    Ordering: queued jobs are dequeued by priority rank, then ``queued_at``,
    then ``id``. ``queued_at`` equals ``created_at`` until the job is
    retried, at which point it moves to the back of its priority tier.
    ``priority`` and ``created_at`` never change after insert.

    Attributes:
        id: Integer primary key, final FIFO tie-breaker
        job_id: Public UUID string
        user_id: Submitting user
        job_type: JobType value
        status: JobStatus value
        priority: JobPriority value, snapshot of the tier at enqueue time
        input_data: Typed job input dumped to JSON (see parse_job_input)
        output_data: Notes, summary, quiz and metadata on success
        progress: 0-100, never decreases while processing
        error_message: Failure message on failed jobs
        error_details: Structured failure context (error type, failed chunks)
        retry_count: Times the job was put back into the queue
        max_retries: Retry limit for this job
        worker_id: Owning worker while processing
        estimated_duration_seconds: Submitter's estimate, if any
        actual_duration_seconds: Wall time from claim to terminal state
        created_at: Submission time
        queued_at: Time the job (re-)entered the queue
        started_at: Claim time
        completed_at: Terminal transition time
        updated_at: Last change, used to spot abandoned jobs
    """

    __tablename__ = "jobs"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    job_id: Mapped[str] = mapped_column(
        String(36), unique=True, index=True, default=_new_job_id
    )
    user_id: Mapped[str] = mapped_column(String(255), index=True)

    job_type: Mapped[str] = mapped_column(String(20))
    status: Mapped[str] = mapped_column(String(20), default=JobStatus.QUEUED.value)
    priority: Mapped[str] = mapped_column(String(10))

    input_data: Mapped[dict[str, Any]] = mapped_column(JSON)
    output_data: Mapped[Optional[dict[str, Any]]] = mapped_column(JSON, nullable=True)

    progress: Mapped[int] = mapped_column(Integer, default=0)
    error_message: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    error_details: Mapped[Optional[dict[str, Any]]] = mapped_column(
        JSON, nullable=True
    )

    retry_count: Mapped[int] = mapped_column(Integer, default=0)
    max_retries: Mapped[int] = mapped_column(Integer, default=3)
    worker_id: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    estimated_duration_seconds: Mapped[Optional[int]] = mapped_column(
        Integer, nullable=True
    )
    actual_duration_seconds: Mapped[Optional[float]] = mapped_column(
        Float, nullable=True
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utc_now
    )
    queued_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utc_now
    )
    started_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    completed_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utc_now, onupdate=_utc_now
    )

    __table_args__ = (
        Index("ix_jobs_dequeue", "status", "priority", "queued_at", "id"),
        Index("ix_jobs_user_created", "user_id", "created_at"),
    )

    def __repr__(self) -> str:
        return f"<Job {self.job_id} {self.job_type} {self.status} {self.priority}>"
