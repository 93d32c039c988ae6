"""Services package for text generation, notes processing, and the job queue."""

from app.services.llm import GenerationClient
from app.services.processing import NotesPipeline
from app.services.jobs import JobQueue, JobWorker

__all__ = [
    "GenerationClient",
    "NotesPipeline",
    "JobQueue",
    "JobWorker",
]
