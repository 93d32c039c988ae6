"""
Job Worker

Polls the job queue and runs claimed jobs through extraction and the
notes pipeline, up to a fixed number of jobs at a time.

Loop:
    1. Take a job slot (pauses here while all slots are busy)
    2. dequeue_next(); if nothing is queued, give the slot back and sleep
       for the poll interval
    3. Start the job as a task that gives the slot back when it ends and
       posts a JobOutcome on the ``completions`` channel

Job path:
    parse input → extract text (non-text jobs) → notes pipeline → complete()

    Progress: 10 after the claim, 40 after extraction (50 for text jobs),
    up to 90 as chunks and pipeline stages finish, 100 on completion. Each
    update refreshes the job, so the stale-job reaper only fails jobs whose
    worker really went quiet. A job finished elsewhere while running (e.g.
    reaped) keeps its stored state and is reported as failed here. Any exception
    on this path is reported with complete(success=False); it never
    reaches the poll loop or the other running jobs.

Usage:
    worker = JobWorker(queue, NotesPipeline(client), extractor=ExtractorRegistry())
    await worker.start()
    ...
    await worker.stop()
"""

import asyncio
import logging
import socket
import time
import traceback
from datetime import datetime, timezone
from typing import Any, Optional

from app.config.pipeline import pipeline_settings
from app.config.queue import QueueSettings, queue_settings
from app.db.models import Job
from app.middleware.error_handling import AllChunksFailedError, ServiceError
from app.models.jobs import (
    FileJobInput,
    JobInput,
    JobOutcome,
    PlatformLinkJobInput,
    TextJobInput,
    VideoJobInput,
    WorkerStatus,
    parse_job_input,
)
from app.models.notes import NotesResult
from app.services.jobs.extraction import ExtractorRegistry, TextExtractor
from app.services.jobs.queue import JobQueue
from app.services.processing.pipeline import NotesPipeline

logger = logging.getLogger(__name__)


# Progress milestones
PROGRESS_CLAIMED = 10
PROGRESS_EXTRACTED = 40
PROGRESS_TEXT_READY = 50
PROGRESS_GENERATED = 90


def default_worker_id() -> str:
    return f"worker-{socket.gethostname()}-{int(time.time() * 1000)}"


def build_job_output(job_input: JobInput, source_text: str, result: NotesResult) -> dict[str, Any]:
    """
    Shape the stored output of a successful job.

    Args:
        job_input: Decoded job input
        source_text: Text the notes were generated from
        result: Notes pipeline result

    Returns:
        JSON-serializable output dict
    """
    metadata: dict[str, Any] = {
        "job_type": job_input.job_type.value,
        "language": job_input.options.language,
        "original_content": source_text[: pipeline_settings.ORIGINAL_CONTENT_PREVIEW_CHARS],
        "chunk_count": result.chunk_count,
        "generated_at": datetime.now(timezone.utc).isoformat(),
    }
    if isinstance(job_input, FileJobInput):
        metadata["file_info"] = {
            "file_name": job_input.file_name,
            "file_type": job_input.file_type,
        }
    elif isinstance(job_input, VideoJobInput):
        metadata["video_info"] = {"video_url": job_input.video_url}
    elif isinstance(job_input, PlatformLinkJobInput):
        metadata["video_info"] = {"url": job_input.url, "video_id": job_input.video_id}

    return {
        "notes": result.content,
        "summary": result.summary,
        "quiz": [question.model_dump(by_alias=True) for question in result.quiz],
        "quiz_error": result.quiz_error,
        "partial_success": result.partial_success,
        "failed_chunks": [record.model_dump() for record in result.failed_chunks],
        "warnings": result.warnings,
        "error": result.error,
        "metadata": metadata,
    }


def build_error_details(error: BaseException) -> dict[str, Any]:
    """Structured failure context stored with a failed job."""
    details: dict[str, Any] = {
        "error": type(error).__name__,
        "stack": traceback.format_exception(type(error), error, error.__traceback__),
    }
    if isinstance(error, ServiceError):
        details["error_code"] = error.error_code
        if error.details:
            details["context"] = error.details
    if isinstance(error, AllChunksFailedError):
        details["failed_chunks"] = [record.model_dump() for record in error.failed_chunks]
    return details


class JobWorker:
    """
    Polling worker with a bounded set of concurrently running jobs.

    The job ceiling is the capacity of ``_slots``: the loop takes a slot
    before each dequeue and the job task returns it when done.

    Attributes:
        queue: Job queue to claim from and report to
        pipeline: Notes pipeline (holds the generation client)
        extractor: Text extraction for non-text jobs
        worker_id: Identity recorded on claimed jobs
        completions: Channel of JobOutcome, one per finished job
    """

    def __init__(
        self,
        queue: JobQueue,
        pipeline: NotesPipeline,
        extractor: Optional[TextExtractor] = None,
        settings: Optional[QueueSettings] = None,
        worker_id: Optional[str] = None,
    ):
        self.queue = queue
        self.pipeline = pipeline
        self.extractor = extractor or ExtractorRegistry()
        self.settings = settings or queue_settings
        self.worker_id = worker_id or default_worker_id()

        self.max_concurrent_jobs = self.settings.MAX_CONCURRENT_JOBS
        self.poll_interval = self.settings.POLL_INTERVAL_SECONDS
        self.completions: asyncio.Queue[JobOutcome] = asyncio.Queue()

        self._slots = asyncio.Semaphore(self.max_concurrent_jobs)
        self._active: dict[str, asyncio.Task] = {}
        self._stopping = asyncio.Event()
        self._loop_task: Optional[asyncio.Task] = None
        self._last_reap = time.monotonic()

    # =========================================================================
    # Lifecycle
    # =========================================================================

    @property
    def is_running(self) -> bool:
        return self._loop_task is not None and not self._loop_task.done()

    def status(self) -> WorkerStatus:
        return WorkerStatus(
            worker_id=self.worker_id,
            is_running=self.is_running,
            active_jobs=len(self._active),
            max_concurrent_jobs=self.max_concurrent_jobs,
        )

    async def start(self) -> None:
        """Start the poll loop in the background."""
        if self.is_running:
            logger.warning(f"Worker {self.worker_id} is already running")
            return
        self._stopping.clear()
        self._loop_task = asyncio.create_task(self.run(), name=f"job-worker-{self.worker_id}")
        logger.info(
            f"Worker {self.worker_id} started "
            f"(max_concurrent_jobs={self.max_concurrent_jobs}, "
            f"poll_interval={self.poll_interval}s)"
        )

    async def stop(self, timeout: Optional[float] = None) -> None:
        """
        Stop polling and wait for running jobs to finish.

        Jobs still running after ``timeout`` are cancelled; they stay in
        ``processing`` until the stale-job reaper fails them.
        """
        timeout = self.settings.SHUTDOWN_TIMEOUT_SECONDS if timeout is None else timeout
        self._stopping.set()

        if self._loop_task is not None:
            await self._loop_task
            self._loop_task = None

        active = list(self._active.values())
        if active:
            logger.info(f"Worker {self.worker_id} waiting for {len(active)} active jobs")
            _, pending = await asyncio.wait(active, timeout=timeout)
            for task in pending:
                task.cancel()
            if pending:
                logger.warning(
                    f"Worker {self.worker_id} cancelled {len(pending)} jobs still "
                    f"running after {timeout}s"
                )
                await asyncio.gather(*pending, return_exceptions=True)

        logger.info(f"Worker {self.worker_id} stopped")

    # =========================================================================
    # Poll Loop
    # =========================================================================

    async def run(self) -> None:
        """Poll until stop() is called."""
        while not self._stopping.is_set():
            if not await self._acquire_slot():
                break

            await self._maybe_reap()

            try:
                job = await self.queue.dequeue_next(self.worker_id)
            except Exception as e:
                logger.error(f"Worker {self.worker_id} failed to dequeue: {e}")
                job = None

            if job is None:
                self._slots.release()
                await self._idle(self.poll_interval)
                continue

            task = asyncio.create_task(self._run_job(job), name=f"job-{job.job_id}")
            self._active[job.job_id] = task

    async def _acquire_slot(self) -> bool:
        """Wait for a free job slot; False if the worker is stopping instead."""
        acquire = asyncio.ensure_future(self._slots.acquire())
        stopping = asyncio.ensure_future(self._stopping.wait())
        await asyncio.wait({acquire, stopping}, return_when=asyncio.FIRST_COMPLETED)
        stopping.cancel()

        if not acquire.done():
            acquire.cancel()
            try:
                await acquire
            except asyncio.CancelledError:
                return False
        if self._stopping.is_set():
            self._slots.release()
            return False
        return True

    async def _idle(self, seconds: float) -> None:
        try:
            await asyncio.wait_for(self._stopping.wait(), timeout=seconds)
        except asyncio.TimeoutError:
            pass

    async def _maybe_reap(self) -> None:
        interval = self.settings.REAPER_INTERVAL_SECONDS
        if interval <= 0 or time.monotonic() - self._last_reap < interval:
            return
        self._last_reap = time.monotonic()
        try:
            await self.queue.reap_stale_jobs()
        except Exception as e:
            logger.error(f"Stale job sweep failed: {e}")

    # =========================================================================
    # Job Execution
    # =========================================================================

    async def _run_job(self, job: Job) -> None:
        start_time = time.perf_counter()
        outcome = JobOutcome(job_id=job.job_id, success=False, duration_seconds=0.0)
        try:
            outcome = await self.process_job(job)
        except Exception as e:
            # Reporting the failure itself failed (e.g. database unavailable)
            logger.error(f"Job {job.job_id} crashed outside the job boundary: {e}", exc_info=True)
            outcome = JobOutcome(
                job_id=job.job_id,
                success=False,
                error_message=str(e),
                duration_seconds=time.perf_counter() - start_time,
            )
        finally:
            self._active.pop(job.job_id, None)
            self._slots.release()
            self.completions.put_nowait(outcome)

    async def process_job(self, job: Job) -> JobOutcome:
        """
        Run one claimed job to a terminal state.

        Returns:
            JobOutcome describing how the job ended
        """
        start_time = time.perf_counter()
        logger.info(f"Processing job {job.job_id} ({job.job_type})")

        try:
            job_input = parse_job_input(job.job_type, job.input_data)
            await self.queue.update_progress(job.job_id, PROGRESS_CLAIMED)

            source_text = await self.extractor.extract_text(job_input)
            text_progress = (
                PROGRESS_TEXT_READY if isinstance(job_input, TextJobInput) else PROGRESS_EXTRACTED
            )
            await self.queue.update_progress(job.job_id, text_progress)

            async def report_progress(progress: int) -> None:
                await self.queue.update_progress(job.job_id, progress)

            result = await self.pipeline.generate_notes(
                source_text,
                options=job_input.options,
                on_progress=report_progress,
                progress_range=(text_progress, PROGRESS_GENERATED),
            )
            output = build_job_output(job_input, source_text, result)

        except Exception as e:
            message = e.message if isinstance(e, ServiceError) else (str(e) or type(e).__name__)
            logger.error(f"Job {job.job_id} failed: {message}", exc_info=True)
            await self.queue.complete(
                job.job_id,
                None,
                success=False,
                error_message=message,
                error_details=build_error_details(e),
            )
            return JobOutcome(
                job_id=job.job_id,
                success=False,
                error_message=message,
                duration_seconds=time.perf_counter() - start_time,
            )

        duration = time.perf_counter() - start_time
        if not await self.queue.complete(job.job_id, output, success=True):
            # Reaped or otherwise finished while running; the stored state wins
            message = "Job was already finished; result discarded"
            logger.warning(f"Job {job.job_id}: {message}")
            return JobOutcome(
                job_id=job.job_id,
                success=False,
                error_message=message,
                duration_seconds=duration,
            )

        logger.info(
            f"Job {job.job_id} done in {duration:.1f}s"
            + (f" ({result.error})" if result.partial_success else "")
        )
        return JobOutcome(job_id=job.job_id, success=True, duration_seconds=duration)
