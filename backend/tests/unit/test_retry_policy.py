"""
Unit tests for the generation call policy.

Tests retry decisions, attempt budgets, and the timeout/limiter wrapper
around single generation calls.
"""

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

from app.config.pipeline import PipelineSettings
from app.enums.generation import GenerationErrorKind
from app.middleware.error_handling import GenerationError
from app.services.processing.policy import RetryPolicy, guarded_generate, run_with_retry


# =============================================================================
# Policy Decisions
# =============================================================================


class TestRetryPolicy:
    """Tests for RetryPolicy."""

    def test_defaults_allow_three_attempts(self):
        assert RetryPolicy().max_attempts == 3

    def test_from_settings(self):
        policy = RetryPolicy.from_settings(
            PipelineSettings(MAX_RETRIES=4, RETRY_DELAY_SECONDS=0.5, LLM_TIMEOUT_SECONDS=10)
        )

        assert policy.max_attempts == 5
        assert policy.delay_seconds == 0.5
        assert policy.timeout_seconds == 10

    def test_terminal_kinds_not_retried(self):
        policy = RetryPolicy()

        assert not policy.should_retry(GenerationError("x", kind=GenerationErrorKind.AUTH))
        assert not policy.should_retry(GenerationError("x", kind=GenerationErrorKind.BAD_REQUEST))

    def test_retryable_kinds_retried(self):
        policy = RetryPolicy()

        for kind in (
            GenerationErrorKind.NETWORK,
            GenerationErrorKind.RATE_LIMIT,
            GenerationErrorKind.TIMEOUT,
            GenerationErrorKind.UNKNOWN,
        ):
            assert policy.should_retry(GenerationError("x", kind=kind))

    def test_uniform_retry_when_configured(self):
        policy = RetryPolicy(retry_terminal_errors=True)

        assert policy.should_retry(GenerationError("x", kind=GenerationErrorKind.AUTH))

    def test_other_exceptions_retried(self):
        """Test that parse failures raised by callers count as retryable."""
        assert RetryPolicy().should_retry(ValueError("bad json"))


# =============================================================================
# run_with_retry
# =============================================================================


class TestRunWithRetry:
    """Tests for run_with_retry."""

    @pytest.mark.asyncio
    async def test_succeeds_after_transient_failures(self, fast_policy):
        operation = AsyncMock(
            side_effect=[
                GenerationError("reset", kind=GenerationErrorKind.NETWORK),
                GenerationError("busy", kind=GenerationErrorKind.RATE_LIMIT),
                "done",
            ]
        )

        result = await run_with_retry(operation, fast_policy, label="test")

        assert result == "done"
        assert operation.await_count == 3

    @pytest.mark.asyncio
    async def test_gives_up_after_max_attempts(self, fast_policy):
        operation = AsyncMock(
            side_effect=GenerationError("down", kind=GenerationErrorKind.NETWORK)
        )

        with pytest.raises(GenerationError):
            await run_with_retry(operation, fast_policy, label="test")

        assert operation.await_count == 3

    @pytest.mark.asyncio
    async def test_terminal_error_stops_immediately(self, fast_policy):
        operation = AsyncMock(
            side_effect=GenerationError("bad key", kind=GenerationErrorKind.AUTH)
        )

        with pytest.raises(GenerationError):
            await run_with_retry(operation, fast_policy, label="test")

        assert operation.await_count == 1

    @pytest.mark.asyncio
    async def test_attempts_used_reduce_budget(self, fast_policy):
        operation = AsyncMock(side_effect=ValueError("nope"))

        with pytest.raises(ValueError):
            await run_with_retry(operation, fast_policy, label="test", attempts_used=2)

        assert operation.await_count == 1

    def test_linear_backoff_delays(self):
        """Test that the delay before retry n is delay * n."""
        wait = RetryPolicy(delay_seconds=1.0).retrying("test").wait

        delays = [wait(MagicMock(attempt_number=n)) for n in (1, 2)]

        assert delays == [1.0, 2.0]

    def test_jitter_stays_within_bound(self):
        wait = RetryPolicy(delay_seconds=1.0, jitter_seconds=0.5).retrying("test").wait

        for _ in range(20):
            assert 1.0 <= wait(MagicMock(attempt_number=1)) <= 1.5


# =============================================================================
# guarded_generate
# =============================================================================


class TestGuardedGenerate:
    """Tests for the timeout and limiter wrapper."""

    @pytest.mark.asyncio
    async def test_passes_prompt_through(self, mock_generation_client):
        result = await guarded_generate(
            mock_generation_client,
            "System",
            "User",
            "Content",
            0.3,
            timeout_seconds=5,
            max_tokens=100,
        )

        assert result == "Generated notes"
        mock_generation_client.generate.assert_awaited_once_with(
            system_prompt="System",
            user_prompt="User",
            content="Content",
            temperature=0.3,
            max_tokens=100,
        )

    @pytest.mark.asyncio
    async def test_timeout_becomes_timeout_error(self):
        async def never_answers(**kwargs):
            await asyncio.sleep(10)

        client = MagicMock()
        client.generate = never_answers

        with pytest.raises(GenerationError) as exc_info:
            await guarded_generate(client, "S", "U", "C", 0.3, timeout_seconds=0.05)

        assert exc_info.value.kind == GenerationErrorKind.TIMEOUT
        assert exc_info.value.message == "Request timeout after 0.05s"

    @pytest.mark.asyncio
    async def test_limiter_bounds_in_flight_calls(self):
        """Test that no more calls run at once than the limiter allows."""
        in_flight = 0
        peak = 0

        async def slow_generate(**kwargs):
            nonlocal in_flight, peak
            in_flight += 1
            peak = max(peak, in_flight)
            await asyncio.sleep(0.01)
            in_flight -= 1
            return "ok"

        client = MagicMock()
        client.generate = slow_generate
        limiter = asyncio.Semaphore(2)

        await asyncio.gather(
            *(
                guarded_generate(client, "S", "U", "C", 0.3, timeout_seconds=5, limiter=limiter)
                for _ in range(8)
            )
        )

        assert peak == 2
