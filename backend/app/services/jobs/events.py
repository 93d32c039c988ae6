"""
Job Change Notifications

Every state change of a job (enqueue, claim, progress, completion,
cancellation, re-queue) is published as a JobEvent keyed by the job's
owner. Two publishers:

- JobEventBus: in-process fan-out to ``subscribe(user_id)`` listeners
- RedisJobEventPublisher: JSON on the ``jobs:{user_id}`` pub/sub channel,
  for listeners in other processes

Publishing is best-effort; a failed publish is logged and never fails
the queue operation that triggered it (callers can always poll the job).

Usage:
    bus = JobEventBus()
    queue = JobQueue(session_maker, events=bus)

    async with bus.subscribe("user-1") as subscription:
        async for event in subscription:
            print(event.job_id, event.status, event.progress)
"""

import asyncio
import logging
from collections import defaultdict
from typing import Optional, Protocol

from app.db.redis import get_redis
from app.models.jobs import JobEvent

logger = logging.getLogger(__name__)

CHANNEL_PREFIX = "jobs"


def channel_for_user(user_id: str) -> str:
    return f"{CHANNEL_PREFIX}:{user_id}"


class JobEventPublisher(Protocol):
    """Anything the job queue can hand events to."""

    async def publish(self, event: JobEvent) -> None: ...


class JobSubscription:
    """
    Stream of events for one user.

    Iterate with ``async for`` or call ``get()``; use as an async context
    manager (or call ``close()``) to stop receiving.
    """

    def __init__(self, bus: "JobEventBus", user_id: str, max_pending: int):
        self.user_id = user_id
        self._bus = bus
        self._queue: asyncio.Queue[JobEvent] = asyncio.Queue(maxsize=max_pending)
        self.closed = False

    def _offer(self, event: JobEvent) -> None:
        # A slow listener loses its oldest events rather than blocking publishers
        if self._queue.full():
            self._queue.get_nowait()
        self._queue.put_nowait(event)

    async def get(self, timeout: Optional[float] = None) -> JobEvent:
        """Next event; raises asyncio.TimeoutError if none arrives in time."""
        if timeout is None:
            return await self._queue.get()
        return await asyncio.wait_for(self._queue.get(), timeout=timeout)

    def pending(self) -> int:
        return self._queue.qsize()

    def close(self) -> None:
        if not self.closed:
            self.closed = True
            self._bus._unsubscribe(self)

    def __aiter__(self):
        return self

    async def __anext__(self) -> JobEvent:
        if self.closed:
            raise StopAsyncIteration
        return await self.get()

    async def __aenter__(self) -> "JobSubscription":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        self.close()


class JobEventBus:
    """In-process publisher with per-user subscriptions."""

    def __init__(self, max_pending: int = 100):
        self.max_pending = max_pending
        self._subscriptions: dict[str, set[JobSubscription]] = defaultdict(set)

    def subscribe(self, user_id: str) -> JobSubscription:
        subscription = JobSubscription(self, user_id, self.max_pending)
        self._subscriptions[user_id].add(subscription)
        logger.debug(f"New job event subscription for user {user_id}")
        return subscription

    def _unsubscribe(self, subscription: JobSubscription) -> None:
        listeners = self._subscriptions.get(subscription.user_id)
        if listeners is None:
            return
        listeners.discard(subscription)
        if not listeners:
            del self._subscriptions[subscription.user_id]

    def subscriber_count(self, user_id: str) -> int:
        return len(self._subscriptions.get(user_id, ()))

    async def publish(self, event: JobEvent) -> None:
        for subscription in list(self._subscriptions.get(event.user_id, ())):
            subscription._offer(event)


class RedisJobEventPublisher:
    """Publishes events as JSON on the owner's Redis channel."""

    def __init__(self, redis_client=None):
        self._redis = redis_client

    async def publish(self, event: JobEvent) -> None:
        client = self._redis or await get_redis()
        await client.publish(channel_for_user(event.user_id), event.model_dump_json())
