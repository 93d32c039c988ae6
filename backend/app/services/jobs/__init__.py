"""
Job Queue Services

- queue.py: JobQueue, persistent priority queue with atomic claims
- worker.py: JobWorker, polling worker with a bounded job pool
- events.py: Job change notifications (in-process bus, Redis pub/sub)
- extraction.py: Text extraction collaborator interface

Usage:
    from app.services.jobs import JobQueue, JobWorker

    queue = JobQueue(async_session_maker, events=JobEventBus())
    worker = JobWorker(queue, NotesPipeline(GenerationClient()))
    await worker.start()
"""

from app.services.jobs.events import JobEventBus, RedisJobEventPublisher
from app.services.jobs.extraction import ExtractorRegistry, TextExtractor
from app.services.jobs.queue import JobQueue, StaticTierResolver, TierResolver
from app.services.jobs.worker import JobWorker

__all__ = [
    "ExtractorRegistry",
    "JobEventBus",
    "JobQueue",
    "JobWorker",
    "RedisJobEventPublisher",
    "StaticTierResolver",
    "TextExtractor",
    "TierResolver",
]
