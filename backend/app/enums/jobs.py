"""
Job queue enums.

Defines enums for job types, lifecycle states, dequeue priorities,
subscription tiers, and job change notifications.
"""

from enum import Enum


class JobType(str, Enum):
    """Kind of source material a job was submitted with."""

    TEXT = "text"  # Raw text pasted by the user
    FILE = "file"  # Uploaded document reference + declared mime type
    VIDEO = "video"  # Uploaded video reference, needs transcription
    PLATFORM_LINK = "platform_link"  # Video platform link (e.g. YouTube)


class JobStatus(str, Enum):
    """
    Lifecycle state of a job.

    queued -> processing -> completed | failed, and queued -> cancelled.
    """

    QUEUED = "queued"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATUSES


TERMINAL_STATUSES = frozenset(
    {JobStatus.COMPLETED, JobStatus.FAILED, JobStatus.CANCELLED}
)


class JobPriority(str, Enum):
    """Dequeue priority tier, snapshotted from the subscription at enqueue time."""

    LOW = "low"
    NORMAL = "normal"
    HIGH = "high"
    URGENT = "urgent"

    @property
    def rank(self) -> int:
        """Numeric rank, higher drains first."""
        return PRIORITY_RANK[self]


PRIORITY_RANK: dict[JobPriority, int] = {
    JobPriority.LOW: 0,
    JobPriority.NORMAL: 1,
    JobPriority.HIGH: 2,
    JobPriority.URGENT: 3,
}


class SubscriptionTier(str, Enum):
    """Subscription plan of the submitting user."""

    FREE = "free"
    STUDENT = "student"
    PRO = "pro"
    ENTERPRISE = "enterprise"


class JobEventType(str, Enum):
    """Kind of change published to job subscribers."""

    ENQUEUED = "enqueued"
    STARTED = "started"
    PROGRESS = "progress"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"
    REQUEUED = "requeued"
