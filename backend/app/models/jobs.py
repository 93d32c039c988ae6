"""
Job Data Models (Pydantic)

Typed job inputs, API request/response bodies for the job queue, and the
records the worker and queue exchange.

ARCHITECTURE NOTE:
    This file contains PYDANTIC models. The persisted job row lives in
    app/db/models.py (SQLAlchemy).

    Job input is a tagged union keyed by ``job_type``: one model per job
    type, decoded once at enqueue time (to reject bad submissions) and once
    at the worker boundary (to drive the right processing path). The row
    stores the dumped dict in ``input_data``.

Models:
- JobOptions: Generation options shared by every job type
- TextJobInput / FileJobInput / VideoJobInput / PlatformLinkJobInput
- JobInput: Discriminated union of the four inputs
- JobRecord: Job row as returned by the API
- JobPage: Paginated job list
- JobStats: Aggregate counts and average duration
- JobEvent: Change notification published to subscribers
- EnqueueResult, WorkerStatus, JobOutcome
"""

from datetime import datetime
from typing import Annotated, Any, Literal, Optional, Union

from pydantic import BaseModel, Field, TypeAdapter, field_validator
from pydantic import ValidationError as PydanticValidationError

from app.enums.jobs import JobEventType, JobPriority, JobStatus, JobType
from app.middleware.error_handling import InputError
from app.models.base import StrictRequest, StrictResponse

MIN_TEXT_CONTENT_CHARS = 10

DEFAULT_PREFERRED_LANGUAGES = ["en", "pl", "es", "fr", "de"]


# =============================================================================
# Job Inputs
# =============================================================================


class JobOptions(BaseModel):
    """
    Generation options a submitter can set on any job.

    Attributes:
        language: Language the notes, quiz and summary are written in
        generate_quiz: Skip quiz generation when False
        custom_prompt: Extra instructions appended to the note prompt
    """

    language: str = "English"
    generate_quiz: bool = True
    custom_prompt: Optional[str] = Field(None, max_length=2000)


class TextJobInput(BaseModel):
    """Raw text pasted by the submitter."""

    job_type: Literal[JobType.TEXT] = JobType.TEXT
    content: str
    options: JobOptions = Field(default_factory=JobOptions)

    @field_validator("content")
    @classmethod
    def _content_long_enough(cls, value: str) -> str:
        if len(value.strip()) < MIN_TEXT_CONTENT_CHARS:
            raise ValueError(
                f"content must have at least {MIN_TEXT_CONTENT_CHARS} characters"
            )
        return value


class FileJobInput(BaseModel):
    """Uploaded document, already stored by the upload collaborator."""

    job_type: Literal[JobType.FILE] = JobType.FILE
    file_url: str = Field(..., min_length=1)
    file_name: str = Field(..., min_length=1)
    file_type: str = Field(..., min_length=1)  # declared mime type
    options: JobOptions = Field(default_factory=JobOptions)


class VideoJobInput(BaseModel):
    """Uploaded video that needs transcription."""

    job_type: Literal[JobType.VIDEO] = JobType.VIDEO
    video_url: str = Field(..., min_length=1)
    options: JobOptions = Field(default_factory=JobOptions)


class PlatformLinkJobInput(BaseModel):
    """Link to a video on a hosting platform; transcript fetched by id."""

    job_type: Literal[JobType.PLATFORM_LINK] = JobType.PLATFORM_LINK
    url: str = Field(..., min_length=1)
    video_id: Optional[str] = None
    preferred_languages: list[str] = Field(
        default_factory=lambda: list(DEFAULT_PREFERRED_LANGUAGES)
    )
    options: JobOptions = Field(default_factory=JobOptions)


JobInput = Annotated[
    Union[TextJobInput, FileJobInput, VideoJobInput, PlatformLinkJobInput],
    Field(discriminator="job_type"),
]

_job_input_adapter: TypeAdapter = TypeAdapter(JobInput)


def parse_job_input(job_type: Union[JobType, str], data: dict[str, Any]) -> JobInput:
    """
    Decode a stored or submitted input payload into its typed variant.

    The ``job_type`` argument wins over any ``job_type`` key in ``data``,
    so a row's column and its payload can never disagree.

    Raises:
        InputError: If the job type is unknown or the payload doesn't match it
    """
    try:
        job_type = JobType(job_type)
    except ValueError:
        raise InputError(f"Unknown job type: {job_type}")

    try:
        return _job_input_adapter.validate_python({**data, "job_type": job_type})
    except PydanticValidationError as e:
        errors = [
            f"{'.'.join(str(p) for p in err['loc'][1:]) or 'input'}: {err['msg']}"
            for err in e.errors()
        ]
        raise InputError(
            f"Invalid {job_type.value} job input: {'; '.join(errors)}",
            details={"errors": errors},
        )


# =============================================================================
# API Models
# =============================================================================


class EnqueueJobRequest(StrictRequest):
    """
    Request body for submitting a job.

    ``input_data`` is validated against the variant for ``job_type``.
    """

    job_type: JobType
    input_data: dict[str, Any]
    estimated_duration_seconds: Optional[int] = Field(None, ge=0)


class EnqueueResult(StrictResponse):
    """Where a newly submitted job landed in the queue."""

    job_id: str
    priority: JobPriority
    position: Optional[int] = None
    estimated_wait_seconds: Optional[int] = None


class JobRecord(StrictResponse):
    """Job row as exposed to callers."""

    job_id: str
    user_id: str
    job_type: JobType
    status: JobStatus
    priority: JobPriority
    progress: int
    input_data: dict[str, Any]
    output_data: Optional[dict[str, Any]] = None
    error_message: Optional[str] = None
    error_details: Optional[dict[str, Any]] = None
    retry_count: int
    max_retries: int
    worker_id: Optional[str] = None
    estimated_duration_seconds: Optional[int] = None
    actual_duration_seconds: Optional[float] = None
    created_at: datetime
    queued_at: datetime
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    updated_at: datetime


class JobPage(StrictResponse):
    """One page of a user's jobs, newest first."""

    jobs: list[JobRecord]
    total: int
    page: int
    limit: int
    has_more: bool


class JobStats(StrictResponse):
    """Aggregate job counts, optionally scoped to one user."""

    total_jobs: int = 0
    queued_jobs: int = 0
    processing_jobs: int = 0
    completed_jobs: int = 0
    failed_jobs: int = 0
    cancelled_jobs: int = 0
    avg_duration_seconds: Optional[float] = None


class QueuePositionResponse(StrictResponse):
    """Jobs strictly ahead of this one, None when the job isn't queued."""

    job_id: str
    position: Optional[int] = None
    estimated_wait_seconds: Optional[int] = None


# =============================================================================
# Queue / Worker Records
# =============================================================================


class JobEvent(BaseModel):
    """Change notification for one job, delivered to the owner's subscribers."""

    event_type: JobEventType
    job_id: str
    user_id: str
    status: JobStatus
    progress: int
    error_message: Optional[str] = None
    timestamp: datetime


class WorkerStatus(BaseModel):
    """Snapshot of a worker's loop and job slots."""

    worker_id: str
    is_running: bool
    active_jobs: int
    max_concurrent_jobs: int


class JobOutcome(BaseModel):
    """Posted on the worker's completion channel when a job task ends."""

    job_id: str
    success: bool
    error_message: Optional[str] = None
    duration_seconds: float
