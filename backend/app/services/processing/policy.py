"""
Generation Call Policy

Timeout, retry and concurrency rules wrapped around every call to the
generation client.

- Timeout: each call gets a hard wall-clock limit. Expiry is a failure of
  kind ``timeout`` whether or not the service would eventually answer.
- Retry: tenacity with linear backoff (delay before retry n is
  ``delay * n``) plus optional random jitter. GenerationErrors of a
  terminal kind (auth, badRequest) stop immediately unless
  ``retry_terminal_errors`` is set; any other exception, including
  malformed output raised by a caller's parser, is retried.
- Concurrency: an optional semaphore shared by every call of a worker
  process bounds the number of in-flight requests across all jobs.

Usage:
    from app.services.processing.policy import RetryPolicy, guarded_generate

    policy = RetryPolicy.from_settings()

    async def call() -> str:
        return await guarded_generate(client, system, user, content, 0.3,
                                      timeout_seconds=policy.timeout_seconds)

    text = await run_with_retry(call, policy, label="summary")
"""

import asyncio
import logging
from contextlib import nullcontext
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional, TypeVar

from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception,
    stop_after_attempt,
    wait_incrementing,
    wait_random,
)

from app.config.pipeline import PipelineSettings, pipeline_settings
from app.enums.generation import GenerationErrorKind
from app.middleware.error_handling import GenerationError

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class RetryPolicy:
    """
    Retry/timeout policy for generation calls.

    Attributes:
        max_retries: Retries after the first attempt
        delay_seconds: Linear backoff step
        jitter_seconds: Upper bound of uniform jitter added to each delay
        timeout_seconds: Wall-clock limit per call
        retry_terminal_errors: Also retry auth/badRequest failures
    """

    max_retries: int = 2
    delay_seconds: float = 1.0
    jitter_seconds: float = 0.0
    timeout_seconds: float = 60.0
    retry_terminal_errors: bool = False

    @classmethod
    def from_settings(cls, settings: PipelineSettings = None) -> "RetryPolicy":
        settings = settings or pipeline_settings
        return cls(
            max_retries=settings.MAX_RETRIES,
            delay_seconds=settings.RETRY_DELAY_SECONDS,
            jitter_seconds=settings.RETRY_JITTER_SECONDS,
            timeout_seconds=settings.LLM_TIMEOUT_SECONDS,
            retry_terminal_errors=settings.RETRY_TERMINAL_ERRORS,
        )

    @property
    def max_attempts(self) -> int:
        return self.max_retries + 1

    def should_retry(self, error: BaseException) -> bool:
        """Whether another attempt can help after ``error``."""
        if isinstance(error, GenerationError):
            return self.retry_terminal_errors or error.retryable
        return isinstance(error, Exception)

    def retrying(self, label: str, attempts_used: int = 0) -> AsyncRetrying:
        """
        Build the tenacity controller for one operation.

        Args:
            label: Name used in retry log lines (e.g. "chunk 3")
            attempts_used: Attempts already spent elsewhere; counted
                against ``max_attempts``
        """
        wait = wait_incrementing(start=self.delay_seconds, increment=self.delay_seconds)
        if self.jitter_seconds > 0:
            wait = wait + wait_random(0, self.jitter_seconds)

        def log_retry(retry_state: RetryCallState) -> None:
            error = retry_state.outcome.exception()
            kind = (
                error.kind
                if isinstance(error, GenerationError)
                else GenerationErrorKind.UNKNOWN
            )
            delay = retry_state.next_action.sleep if retry_state.next_action else 0
            logger.warning(
                f"{label} attempt {retry_state.attempt_number + attempts_used} "
                f"failed [{kind.value}]: {error}; retrying in {delay:.1f}s"
            )

        return AsyncRetrying(
            stop=stop_after_attempt(max(1, self.max_attempts - attempts_used)),
            wait=wait,
            retry=retry_if_exception(self.should_retry),
            before_sleep=log_retry,
            reraise=True,
        )


async def run_with_retry(
    operation: Callable[[], Awaitable[T]],
    policy: RetryPolicy,
    label: str,
    attempts_used: int = 0,
) -> T:
    """
    Run ``operation`` under ``policy``, re-raising the last error when
    attempts run out or the error is not retryable.
    """
    return await policy.retrying(label, attempts_used=attempts_used)(operation)


async def guarded_generate(
    client,
    system_prompt: str,
    user_prompt: str,
    content: str,
    temperature: float,
    *,
    timeout_seconds: float,
    limiter: Optional[asyncio.Semaphore] = None,
    max_tokens: Optional[int] = None,
) -> str:
    """
    One generation call under a wall-clock timeout and the worker-wide limiter.

    The limiter slot is held only for the call itself, never across a
    backoff sleep.

    Raises:
        GenerationError: Client failure, or kind ``timeout`` when the limit expires
    """
    async with limiter if limiter is not None else nullcontext():
        try:
            return await asyncio.wait_for(
                client.generate(
                    system_prompt=system_prompt,
                    user_prompt=user_prompt,
                    content=content,
                    temperature=temperature,
                    max_tokens=max_tokens,
                ),
                timeout=timeout_seconds,
            )
        except asyncio.TimeoutError:
            raise GenerationError(
                f"Request timeout after {timeout_seconds:g}s",
                kind=GenerationErrorKind.TIMEOUT,
            )
