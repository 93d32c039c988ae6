"""
Centralized enum definitions for the application.

All enums are organized by domain:
- jobs.py: Job types, statuses, priorities, subscription tiers, job events
- generation.py: Generation error kinds and operations

Usage:
    from app.enums import JobStatus, JobPriority

    # Or import from specific module
    from app.enums.generation import GenerationErrorKind
"""

from app.enums.generation import (
    GenerationErrorKind,
    TERMINAL_ERROR_KINDS,
)
from app.enums.jobs import (
    JobEventType,
    JobPriority,
    JobStatus,
    JobType,
    PRIORITY_RANK,
    SubscriptionTier,
    TERMINAL_STATUSES,
)

__all__ = [
    # Generation
    "GenerationErrorKind",
    "TERMINAL_ERROR_KINDS",
    # Jobs
    "JobEventType",
    "JobPriority",
    "JobStatus",
    "JobType",
    "PRIORITY_RANK",
    "SubscriptionTier",
    "TERMINAL_STATUSES",
]
