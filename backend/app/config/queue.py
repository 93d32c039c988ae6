"""
Job Queue and Worker Configuration

Settings for the priority job queue and the polling worker pool.

All settings can be overridden via environment variables with QUEUE_ prefix.

Usage:
    from app.config.queue import queue_settings

    interval = queue_settings.POLL_INTERVAL_SECONDS
"""

from functools import lru_cache

from pydantic_settings import BaseSettings

from app.enums.jobs import JobPriority, SubscriptionTier


class QueueSettings(BaseSettings):
    """Job queue and worker configuration."""

    # ===========================================
    # Worker Pool
    # ===========================================
    POLL_INTERVAL_SECONDS: float = 5.0
    MAX_CONCURRENT_JOBS: int = 3

    # Seconds to wait for active jobs on shutdown before giving up
    SHUTDOWN_TIMEOUT_SECONDS: float = 300.0

    # ===========================================
    # Job Records
    # ===========================================
    DEFAULT_MAX_RETRIES: int = 3

    # Processing jobs with no update for this long are considered abandoned
    STALE_JOB_TIMEOUT_SECONDS: int = 1800

    # How often the worker sweeps for abandoned jobs (0 disables)
    REAPER_INTERVAL_SECONDS: float = 300.0

    # Terminal jobs older than this are removed by cleanup
    CLEANUP_AFTER_DAYS: int = 30

    # Used for queue wait estimates when no history is available
    AVERAGE_PROCESSING_SECONDS: int = 90

    # ===========================================
    # Priorities
    # ===========================================
    TIER_PRIORITIES: dict[SubscriptionTier, JobPriority] = {
        SubscriptionTier.FREE: JobPriority.LOW,
        SubscriptionTier.STUDENT: JobPriority.NORMAL,
        SubscriptionTier.PRO: JobPriority.HIGH,
        SubscriptionTier.ENTERPRISE: JobPriority.URGENT,
    }

    class Config:
        env_prefix = "QUEUE_"
        extra = "ignore"


@lru_cache
def get_queue_settings() -> QueueSettings:
    """Get cached queue settings instance."""
    return QueueSettings()


queue_settings = get_queue_settings()
