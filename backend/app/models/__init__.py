"""Pydantic models for the application."""

from app.models.chunks import AggregatedNotes, Chunk, ChunkResult, FailedChunkRecord
from app.models.jobs import (
    EnqueueJobRequest,
    EnqueueResult,
    JobEvent,
    JobInput,
    JobOptions,
    JobOutcome,
    JobPage,
    JobRecord,
    JobStats,
    WorkerStatus,
    parse_job_input,
)
from app.models.notes import NotesResult
from app.models.quiz import QuizQuestion, QuizResult

__all__ = [
    "AggregatedNotes",
    "Chunk",
    "ChunkResult",
    "FailedChunkRecord",
    "EnqueueJobRequest",
    "EnqueueResult",
    "JobEvent",
    "JobInput",
    "JobOptions",
    "JobOutcome",
    "JobPage",
    "JobRecord",
    "JobStats",
    "WorkerStatus",
    "parse_job_input",
    "NotesResult",
    "QuizQuestion",
    "QuizResult",
]
