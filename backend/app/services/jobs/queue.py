"""
Priority Job Queue

Persistent store of submitted jobs. The database is the single source of
truth for job state; every state transition is a conditional UPDATE that
only matches rows in the expected source state, so racing callers can't
both win.

Lifecycle:
    queued → processing → completed | failed
    queued → cancelled          (caller-initiated, only before a claim)
    failed → queued             (retry, while retry_count < max_retries)

Dequeue order:
    Priority rank (urgent > high > normal > low), then ``queued_at``, then
    the integer primary key. ``queued_at`` is the arrival time until a
    retry moves the job to the back of its tier.

Claim:
    The candidate row is selected with ``FOR UPDATE SKIP LOCKED`` (on
    backends that support it) and claimed with
    ``UPDATE ... WHERE id = :id AND status = 'queued'``. Only a rowcount of
    1 means this worker owns the job. Dequeues from one process are also
    serialized by an asyncio lock to avoid pointless claim conflicts.

Usage:
    from app.services.jobs import JobQueue

    queue = JobQueue(async_session_maker)
    job_id = await queue.enqueue("user-1", JobType.TEXT, {"content": text})
    job = await queue.dequeue_next("worker-a")
"""

import asyncio
import logging
import math
import uuid
from datetime import datetime, timedelta, timezone
from typing import Any, Optional, Protocol, Union

from pydantic import BaseModel
from sqlalchemy import and_, case, delete, func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.config.queue import QueueSettings, queue_settings
from app.db.models import Job
from app.enums.jobs import (
    TERMINAL_STATUSES,
    JobEventType,
    JobPriority,
    JobStatus,
    JobType,
    SubscriptionTier,
)
from app.models.jobs import JobEvent, JobPage, JobRecord, JobStats, parse_job_input
from app.services.jobs.events import JobEventPublisher

logger = logging.getLogger(__name__)

# Candidates tried per dequeue before giving up on a contended queue
MAX_CLAIM_ATTEMPTS = 5

_TERMINAL_VALUES = [status.value for status in TERMINAL_STATUSES]

# SQL expression for the numeric rank of Job.priority
priority_rank = case(
    {priority.value: priority.rank for priority in JobPriority},
    value=Job.priority,
    else_=0,
)


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _as_utc(value: Optional[datetime]) -> Optional[datetime]:
    # Some backends hand timestamps back without tzinfo
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class TierResolver(Protocol):
    """Looks up a user's current subscription tier."""

    async def get_tier(self, user_id: str) -> SubscriptionTier: ...


class StaticTierResolver:
    """Same tier for everyone, with optional per-user overrides."""

    def __init__(
        self,
        default: SubscriptionTier = SubscriptionTier.FREE,
        overrides: Optional[dict[str, SubscriptionTier]] = None,
    ):
        self.default = default
        self.overrides = overrides or {}

    async def get_tier(self, user_id: str) -> SubscriptionTier:
        return self.overrides.get(user_id, self.default)


class JobQueue:
    """
    Job store with priority dequeue.

    Attributes:
        session_maker: Async session factory (expire_on_commit=False)
        tier_resolver: Source of subscription tiers for priorities
        events: Publisher for job change events, if any
        settings: Queue settings
    """

    def __init__(
        self,
        session_maker: async_sessionmaker[AsyncSession],
        tier_resolver: Optional[TierResolver] = None,
        events: Optional[JobEventPublisher] = None,
        settings: Optional[QueueSettings] = None,
    ):
        self.session_maker = session_maker
        self.tier_resolver = tier_resolver or StaticTierResolver()
        self.events = events
        self.settings = settings or queue_settings
        self._claim_lock = asyncio.Lock()

    # =========================================================================
    # Submission
    # =========================================================================

    def priority_for_tier(self, tier: SubscriptionTier) -> JobPriority:
        return self.settings.TIER_PRIORITIES.get(tier, JobPriority.LOW)

    async def enqueue(
        self,
        user_id: str,
        job_type: Union[JobType, str],
        input_data: Union[dict[str, Any], BaseModel],
        estimated_duration_seconds: Optional[int] = None,
        tier: Optional[SubscriptionTier] = None,
    ) -> str:
        """
        Add a job to the queue.

        The priority is a snapshot of the user's tier now; later plan
        changes don't move queued jobs.

        Args:
            user_id: Submitting user
            job_type: Kind of job
            input_data: Payload for the job type (dict or typed input model)
            estimated_duration_seconds: Optional caller estimate
            tier: Tier to use instead of asking the tier resolver

        Returns:
            Public job id

        Raises:
            InputError: If the input doesn't match the job type
        """
        if isinstance(input_data, BaseModel):
            input_data = input_data.model_dump(mode="json")
        job_input = parse_job_input(job_type, input_data)

        if tier is None:
            tier = await self.tier_resolver.get_tier(user_id)
        priority = self.priority_for_tier(tier)

        now = _utc_now()
        job = Job(
            job_id=str(uuid.uuid4()),
            user_id=user_id,
            job_type=job_input.job_type.value,
            status=JobStatus.QUEUED.value,
            priority=priority.value,
            input_data=job_input.model_dump(mode="json"),
            progress=0,
            retry_count=0,
            max_retries=self.settings.DEFAULT_MAX_RETRIES,
            estimated_duration_seconds=estimated_duration_seconds,
            created_at=now,
            queued_at=now,
            updated_at=now,
        )

        async with self.session_maker() as session:
            session.add(job)
            await session.commit()

        logger.info(
            f"Enqueued job {job.job_id} ({job.job_type}, priority={job.priority}) "
            f"for user {user_id}"
        )
        await self._publish(job, JobEventType.ENQUEUED)
        return job.job_id

    # =========================================================================
    # Dequeue / Claim
    # =========================================================================

    async def dequeue_next(self, worker_id: str) -> Optional[Job]:
        """
        Claim the next job for ``worker_id``.

        Returns:
            The claimed job, now ``processing`` and owned by ``worker_id``,
            or None when nothing is queued
        """
        async with self._claim_lock:
            for _ in range(MAX_CLAIM_ATTEMPTS):
                async with self.session_maker() as session:
                    candidate_id = await session.scalar(
                        select(Job.id)
                        .where(Job.status == JobStatus.QUEUED.value)
                        .order_by(priority_rank.desc(), Job.queued_at, Job.id)
                        .limit(1)
                        .with_for_update(skip_locked=True)
                    )
                    if candidate_id is None:
                        return None

                    if not await self._claim(session, candidate_id, worker_id):
                        # Another worker got there first; look again
                        continue

                    job = await session.get(Job, candidate_id)

                logger.info(f"Worker {worker_id} claimed job {job.job_id}")
                await self._publish(job, JobEventType.STARTED)
                return job

        logger.warning(f"Worker {worker_id} lost {MAX_CLAIM_ATTEMPTS} claim races")
        return None

    async def _claim(self, session: AsyncSession, row_id: int, worker_id: str) -> bool:
        now = _utc_now()
        result = await session.execute(
            update(Job)
            .where(Job.id == row_id, Job.status == JobStatus.QUEUED.value)
            .values(
                status=JobStatus.PROCESSING.value,
                worker_id=worker_id,
                started_at=now,
                updated_at=now,
            )
            .execution_options(synchronize_session=False)
        )
        await session.commit()
        return result.rowcount == 1

    # =========================================================================
    # Progress / Completion
    # =========================================================================

    async def update_progress(
        self,
        job_id: str,
        progress: int,
        status: Optional[JobStatus] = None,
    ) -> bool:
        """
        Record progress for a job that hasn't finished.

        Progress never goes down: a lower value than the stored one leaves
        the stored value in place. ``status`` may only confirm the current
        state; moving to ``processing`` requires a claim and terminal
        states require ``complete``.

        Returns:
            False if the job is unknown, finished, or ``status`` doesn't match
        """
        progress = max(0, min(100, int(progress)))

        async with self.session_maker() as session:
            job = await session.scalar(select(Job).where(Job.job_id == job_id))
            if job is None or job.status in _TERMINAL_VALUES:
                return False
            if status is not None and JobStatus(status).value != job.status:
                return False

            new_progress = max(job.progress, progress)
            result = await session.execute(
                update(Job)
                .where(
                    Job.id == job.id,
                    Job.status == job.status,
                    Job.progress <= new_progress,
                )
                .values(progress=new_progress, updated_at=_utc_now())
                .execution_options(synchronize_session=False)
            )
            await session.commit()

        if result.rowcount != 1:
            return False
        await self._publish(job, JobEventType.PROGRESS, progress=new_progress)
        return True

    async def complete(
        self,
        job_id: str,
        output_data: Optional[dict[str, Any]],
        success: bool,
        error_message: Optional[str] = None,
        error_details: Optional[dict[str, Any]] = None,
    ) -> bool:
        """
        Move a processing job to its terminal state.

        Only the first call for a job has an effect; later calls return
        False and leave the job unchanged. Output is stored only on success.

        Returns:
            True if this call performed the transition
        """
        async with self.session_maker() as session:
            job = await session.scalar(select(Job).where(Job.job_id == job_id))
            if job is None or job.status != JobStatus.PROCESSING.value:
                return False

            now = _utc_now()
            started_at = _as_utc(job.started_at)
            duration = (now - started_at).total_seconds() if started_at else None
            status = JobStatus.COMPLETED if success else JobStatus.FAILED

            values: dict[str, Any] = {
                "status": status.value,
                "completed_at": now,
                "updated_at": now,
                "actual_duration_seconds": duration,
                "error_message": None if success else (error_message or "Job failed"),
                "error_details": None if success else error_details,
                "output_data": output_data if success else None,
            }
            if success:
                values["progress"] = 100

            result = await session.execute(
                update(Job)
                .where(Job.id == job.id, Job.status == JobStatus.PROCESSING.value)
                .values(**values)
                .execution_options(synchronize_session=False)
            )
            await session.commit()

        if result.rowcount != 1:
            return False

        if success:
            logger.info(f"Job {job_id} completed in {duration or 0:.1f}s")
            await self._publish(job, JobEventType.COMPLETED, status=status, progress=100)
        else:
            logger.warning(f"Job {job_id} failed: {values['error_message']}")
            await self._publish(
                job,
                JobEventType.FAILED,
                status=status,
                error_message=values["error_message"],
            )
        return True

    # =========================================================================
    # Caller-initiated transitions
    # =========================================================================

    async def retry(self, job_id: str) -> bool:
        """
        Put a failed job back in the queue.

        Only valid while ``retry_count < max_retries``. The job keeps its
        priority and goes to the back of its tier.

        Returns:
            True if the job was re-queued
        """
        async with self.session_maker() as session:
            job = await session.scalar(select(Job).where(Job.job_id == job_id))
            if job is None:
                return False

            now = _utc_now()
            result = await session.execute(
                update(Job)
                .where(
                    Job.id == job.id,
                    Job.status == JobStatus.FAILED.value,
                    Job.retry_count < Job.max_retries,
                )
                .values(
                    status=JobStatus.QUEUED.value,
                    retry_count=Job.retry_count + 1,
                    queued_at=now,
                    updated_at=now,
                    progress=0,
                    worker_id=None,
                    started_at=None,
                    completed_at=None,
                    actual_duration_seconds=None,
                    output_data=None,
                    error_message=None,
                    error_details=None,
                )
                .execution_options(synchronize_session=False)
            )
            await session.commit()

        if result.rowcount != 1:
            return False

        logger.info(f"Job {job_id} re-queued (retry {job.retry_count + 1}/{job.max_retries})")
        await self._publish(job, JobEventType.REQUEUED, status=JobStatus.QUEUED, progress=0)
        return True

    async def cancel(self, job_id: str) -> bool:
        """
        Cancel a job that hasn't been claimed yet.

        Returns:
            True if the job was cancelled; False once a worker owns it
        """
        async with self.session_maker() as session:
            job = await session.scalar(select(Job).where(Job.job_id == job_id))
            if job is None:
                return False

            now = _utc_now()
            result = await session.execute(
                update(Job)
                .where(Job.id == job.id, Job.status == JobStatus.QUEUED.value)
                .values(
                    status=JobStatus.CANCELLED.value,
                    completed_at=now,
                    updated_at=now,
                )
                .execution_options(synchronize_session=False)
            )
            await session.commit()

        if result.rowcount != 1:
            return False

        logger.info(f"Job {job_id} cancelled")
        await self._publish(job, JobEventType.CANCELLED, status=JobStatus.CANCELLED)
        return True

    # =========================================================================
    # Queries
    # =========================================================================

    async def get_job(self, job_id: str) -> Optional[Job]:
        async with self.session_maker() as session:
            return await session.scalar(select(Job).where(Job.job_id == job_id))

    async def queue_position(self, job_id: str) -> Optional[int]:
        """
        Number of queued jobs that will be dequeued before this one.

        Returns:
            0 for the head of the queue; None if the job isn't queued
        """
        async with self.session_maker() as session:
            job = await session.scalar(select(Job).where(Job.job_id == job_id))
            if job is None or job.status != JobStatus.QUEUED.value:
                return None

            rank = JobPriority(job.priority).rank
            ahead = await session.scalar(
                select(func.count())
                .select_from(Job)
                .where(
                    Job.status == JobStatus.QUEUED.value,
                    or_(
                        priority_rank > rank,
                        and_(
                            priority_rank == rank,
                            or_(
                                Job.queued_at < job.queued_at,
                                and_(Job.queued_at == job.queued_at, Job.id < job.id),
                            ),
                        ),
                    ),
                )
            )
            return int(ahead or 0)

    def estimate_wait_seconds(self, position: int) -> int:
        """Rough wait for a job with ``position`` jobs ahead of it."""
        slots = max(1, self.settings.MAX_CONCURRENT_JOBS)
        return int(
            math.ceil((position + 1) / slots) * self.settings.AVERAGE_PROCESSING_SECONDS
        )

    async def list_user_jobs(
        self,
        user_id: str,
        page: int = 1,
        limit: int = 20,
        status: Optional[JobStatus] = None,
    ) -> JobPage:
        """Page through a user's jobs, newest first."""
        page = max(1, page)
        limit = max(1, min(100, limit))

        conditions = [Job.user_id == user_id]
        if status is not None:
            conditions.append(Job.status == JobStatus(status).value)

        async with self.session_maker() as session:
            total = await session.scalar(
                select(func.count()).select_from(Job).where(*conditions)
            )
            result = await session.scalars(
                select(Job)
                .where(*conditions)
                .order_by(Job.created_at.desc(), Job.id.desc())
                .offset((page - 1) * limit)
                .limit(limit)
            )
            jobs = [JobRecord.model_validate(job) for job in result.all()]

        total = int(total or 0)
        return JobPage(
            jobs=jobs,
            total=total,
            page=page,
            limit=limit,
            has_more=page * limit < total,
        )

    async def get_stats(self, user_id: Optional[str] = None) -> JobStats:
        """Counts per status and the average duration of completed jobs."""
        conditions = [Job.user_id == user_id] if user_id is not None else []

        async with self.session_maker() as session:
            rows = await session.execute(
                select(Job.status, func.count()).where(*conditions).group_by(Job.status)
            )
            counts = {status: count for status, count in rows.all()}
            avg_duration = await session.scalar(
                select(func.avg(Job.actual_duration_seconds)).where(
                    *conditions, Job.status == JobStatus.COMPLETED.value
                )
            )

        return JobStats(
            total_jobs=sum(counts.values()),
            queued_jobs=counts.get(JobStatus.QUEUED.value, 0),
            processing_jobs=counts.get(JobStatus.PROCESSING.value, 0),
            completed_jobs=counts.get(JobStatus.COMPLETED.value, 0),
            failed_jobs=counts.get(JobStatus.FAILED.value, 0),
            cancelled_jobs=counts.get(JobStatus.CANCELLED.value, 0),
            avg_duration_seconds=float(avg_duration) if avg_duration is not None else None,
        )

    # =========================================================================
    # Maintenance
    # =========================================================================

    async def cleanup_old_jobs(self, days_old: Optional[int] = None) -> int:
        """
        Delete finished jobs that completed more than ``days_old`` days ago.

        Returns:
            Number of deleted jobs
        """
        days_old = self.settings.CLEANUP_AFTER_DAYS if days_old is None else days_old
        cutoff = _utc_now() - timedelta(days=days_old)

        async with self.session_maker() as session:
            result = await session.execute(
                delete(Job)
                .where(Job.status.in_(_TERMINAL_VALUES), Job.completed_at < cutoff)
                .execution_options(synchronize_session=False)
            )
            await session.commit()

        if result.rowcount:
            logger.info(f"Cleaned up {result.rowcount} jobs older than {days_old} days")
        return result.rowcount or 0

    async def reap_stale_jobs(self, stale_after_seconds: Optional[int] = None) -> int:
        """
        Fail processing jobs whose worker stopped updating them.

        Reaped jobs end up ``failed`` and can be re-queued with ``retry``.

        Returns:
            Number of reaped jobs
        """
        stale_after_seconds = (
            self.settings.STALE_JOB_TIMEOUT_SECONDS
            if stale_after_seconds is None
            else stale_after_seconds
        )
        cutoff = _utc_now() - timedelta(seconds=stale_after_seconds)

        async with self.session_maker() as session:
            result = await session.execute(
                select(Job.job_id, Job.worker_id).where(
                    Job.status == JobStatus.PROCESSING.value,
                    Job.updated_at < cutoff,
                )
            )
            stale = result.all()

        reaped = 0
        for job_id, worker_id in stale:
            if await self.complete(
                job_id,
                None,
                success=False,
                error_message="Worker stopped responding",
                error_details={
                    "error": "stale_job",
                    "worker_id": worker_id,
                    "stale_after_seconds": stale_after_seconds,
                },
            ):
                reaped += 1

        if reaped:
            logger.warning(f"Reaped {reaped} stale processing jobs")
        return reaped

    # =========================================================================
    # Notifications
    # =========================================================================

    async def _publish(
        self,
        job: Job,
        event_type: JobEventType,
        status: Optional[JobStatus] = None,
        progress: Optional[int] = None,
        error_message: Optional[str] = None,
    ) -> None:
        if self.events is None:
            return
        event = JobEvent(
            event_type=event_type,
            job_id=job.job_id,
            user_id=job.user_id,
            status=status or JobStatus(job.status),
            progress=job.progress if progress is None else progress,
            error_message=error_message,
            timestamp=_utc_now(),
        )
        try:
            await self.events.publish(event)
        except Exception as e:
            logger.warning(f"Failed to publish {event_type.value} event for job {job.job_id}: {e}")
