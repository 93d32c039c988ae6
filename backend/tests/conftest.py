"""
Shared Test Fixtures and Configuration

This module provides pytest fixtures used across the unit tests: test
environment, a mock generation client, fast retry policies, and a
temporary SQLite job database.
"""

import os
import sys
from pathlib import Path
from typing import AsyncGenerator
from unittest.mock import AsyncMock, MagicMock

import pytest
import pytest_asyncio

# Add the backend directory to the path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

# Settings are read when app.config is first imported, so the test
# environment has to be in place before any app.* import below
os.environ.update(
    {
        "DATABASE_URL_OVERRIDE": "sqlite+aiosqlite:///:memory:",
        "REDIS_URL": os.environ.get("REDIS_URL", "redis://localhost:6379/1"),
        "OPENAI_API_KEY": os.environ.get("OPENAI_API_KEY", "test-api-key"),
        "JOB_EVENTS_BACKEND": "memory",
        "RUN_EMBEDDED_WORKER": "false",
        "DEBUG": "false",
    }
)

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from app.config.pipeline import PipelineSettings
from app.config.queue import QueueSettings
from app.db.base import Base
from app.services.jobs.events import JobEventBus
from app.services.jobs.queue import JobQueue
from app.services.processing.policy import RetryPolicy


# ============================================================================
# Pipeline Fixtures
# ============================================================================


@pytest.fixture
def mock_generation_client() -> MagicMock:
    """
    Create a mock generation client.

    ``generate`` is an AsyncMock returning fixed notes; tests replace its
    return_value or side_effect to script failures.
    """
    client = MagicMock()
    client.generate = AsyncMock(return_value="Generated notes")
    return client


@pytest.fixture
def fast_policy() -> RetryPolicy:
    """Default retry semantics (3 attempts) without backoff sleeps."""
    return RetryPolicy(max_retries=2, delay_seconds=0, timeout_seconds=5)


@pytest.fixture
def test_pipeline_settings() -> PipelineSettings:
    """Pipeline settings with small chunks and no backoff."""
    return PipelineSettings(
        CHUNK_MAX_WORDS=10,
        RETRY_DELAY_SECONDS=0,
        LLM_TIMEOUT_SECONDS=5,
    )


# ============================================================================
# Database Fixtures
# ============================================================================


@pytest_asyncio.fixture
async def db_engine(tmp_path):
    """
    SQLite job database in a temporary file.

    Each session gets its own connection, so concurrent queue calls
    behave like separate database clients.
    """
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'jobs.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_maker(db_engine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
def queue_settings_for_tests() -> QueueSettings:
    return QueueSettings(
        POLL_INTERVAL_SECONDS=0.01,
        MAX_CONCURRENT_JOBS=2,
        SHUTDOWN_TIMEOUT_SECONDS=5,
        REAPER_INTERVAL_SECONDS=0,
    )


@pytest.fixture
def event_bus() -> JobEventBus:
    return JobEventBus()


@pytest_asyncio.fixture
async def job_queue(session_maker, event_bus, queue_settings_for_tests) -> AsyncGenerator[JobQueue, None]:
    """Job queue over the test database, publishing to ``event_bus``."""
    yield JobQueue(session_maker, events=event_bus, settings=queue_settings_for_tests)
