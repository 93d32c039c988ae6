"""
Generation Client over LiteLLM.

LiteLLM provides a unified interface to 100+ LLM providers using
the format "provider/model-name". The client is the only place that
talks to the generation service; note, quiz and summary generation all
go through the same ``generate()`` call with different prompts and
temperatures.

Two things it deliberately does not do:
- Retry. Callers own retry and backoff because their policies differ.
- Timeouts. Callers wrap each call in a wall-clock timeout.

Failures are raised as GenerationError with a classified kind (network,
auth, rateLimit, badRequest, timeout, unknown) so retry loops can skip
errors that will never succeed.

See: https://docs.litellm.ai/

Usage:
    from app.services.llm import GenerationClient

    client = GenerationClient()  # once per process, then pass it around
    text = await client.generate(
        system_prompt="You write study notes.",
        user_prompt="Write notes for this fragment:",
        content=chunk.content,
        temperature=0.7,
    )
"""

import asyncio
import logging
import os
import time
from typing import Optional

import litellm
from litellm import acompletion
from litellm.exceptions import (
    APIConnectionError,
    AuthenticationError,
    BadRequestError,
    NotFoundError,
    RateLimitError,
    Timeout,
)

from app.config.settings import settings
from app.enums.generation import GenerationErrorKind
from app.middleware.error_handling import GenerationError

logger = logging.getLogger(__name__)

# Configure LiteLLM
litellm.drop_params = True  # Drop unsupported params instead of erroring
if settings.DEBUG:
    os.environ["LITELLM_LOG"] = "DEBUG"


# Substrings checked (lowercased) when the exception type says nothing useful.
# Order matters: "etimedout" is a network failure, not a request timeout.
_ERROR_TEXT_PATTERNS: list[tuple[GenerationErrorKind, tuple[str, ...]]] = [
    (
        GenerationErrorKind.NETWORK,
        ("econnrefused", "etimedout", "econnreset", "network", "connection", "socket"),
    ),
    (
        GenerationErrorKind.AUTH,
        ("status code 401", "status code 403", "authentication", "api key", "unauthorized"),
    ),
    (GenerationErrorKind.RATE_LIMIT, ("status code 429", "rate limit", "ratelimit")),
    (GenerationErrorKind.BAD_REQUEST, ("status code 400", "bad request", "context length")),
    (GenerationErrorKind.TIMEOUT, ("timeout", "timed out")),
]


def classify_generation_error(error: BaseException) -> GenerationErrorKind:
    """
    Map an exception from the generation service to an error kind.

    LiteLLM's exception types are checked first; anything else is
    classified by inspecting its message.

    Args:
        error: Exception raised by the provider call

    Returns:
        GenerationErrorKind for the failure
    """
    if isinstance(error, GenerationError):
        return error.kind
    if isinstance(error, (asyncio.TimeoutError, Timeout)):
        return GenerationErrorKind.TIMEOUT
    if isinstance(error, AuthenticationError):
        return GenerationErrorKind.AUTH
    if isinstance(error, RateLimitError):
        return GenerationErrorKind.RATE_LIMIT
    if isinstance(error, (BadRequestError, NotFoundError)):
        return GenerationErrorKind.BAD_REQUEST
    if isinstance(error, (APIConnectionError, ConnectionError)):
        return GenerationErrorKind.NETWORK

    message = str(error).lower()
    for kind, patterns in _ERROR_TEXT_PATTERNS:
        if any(pattern in message for pattern in patterns):
            return kind
    return GenerationErrorKind.UNKNOWN


def build_messages(
    system_prompt: str,
    user_prompt: str,
    content: str = "",
) -> list[dict[str, str]]:
    """
    Build the chat messages for one generation call.

    The content is appended to the user prompt after a blank line.

    Args:
        system_prompt: Instructions for the model
        user_prompt: Request text
        content: Material the request is about

    Returns:
        List of message dicts for LLM API
    """
    messages = []
    if system_prompt:
        messages.append({"role": "system", "content": system_prompt})
    user_message = f"{user_prompt}\n\n{content}" if content else user_prompt
    messages.append({"role": "user", "content": user_message})
    return messages


class GenerationClient:
    """
    Adapter to the external text-generation service.

    Construct once at process startup and inject into the pipeline; tests
    pass an ``AsyncMock`` with the same ``generate`` signature instead.

    Attributes:
        model: LiteLLM model identifier (provider/model-name)
        default_max_tokens: Response limit used when a call doesn't set one
    """

    def __init__(self, model: Optional[str] = None, default_max_tokens: int = 4096):
        self.model = model or settings.TEXT_MODEL
        self.default_max_tokens = default_max_tokens
        self._validate_api_keys()

    def _validate_api_keys(self) -> None:
        """Warn when no provider key is configured; calls would fail with auth errors."""
        available_keys = []

        if os.getenv("OPENAI_API_KEY") or settings.OPENAI_API_KEY:
            available_keys.append("OpenAI")
        if os.getenv("ANTHROPIC_API_KEY") or settings.ANTHROPIC_API_KEY:
            available_keys.append("Anthropic")
        if os.getenv("GEMINI_API_KEY") or settings.GEMINI_API_KEY:
            available_keys.append("Google/Gemini")
        if os.getenv("MISTRAL_API_KEY") or settings.MISTRAL_API_KEY:
            available_keys.append("Mistral")

        if not available_keys:
            logger.warning(
                "No LLM API keys configured. Set at least one of: "
                "OPENAI_API_KEY, ANTHROPIC_API_KEY, GEMINI_API_KEY, MISTRAL_API_KEY"
            )
        else:
            logger.info(
                f"Generation client initialized (model={self.model}, "
                f"providers={available_keys})"
            )

    async def generate(
        self,
        system_prompt: str,
        user_prompt: str,
        content: str,
        temperature: float,
        max_tokens: Optional[int] = None,
    ) -> str:
        """
        Generate text for one prompt.

        Args:
            system_prompt: Instructions for the model
            user_prompt: Request text
            content: Material the request is about
            temperature: Sampling temperature (lower = more deterministic)
            max_tokens: Response limit, defaults to ``default_max_tokens``

        Returns:
            Generated text; empty string if the service returned no content

        Raises:
            GenerationError: Classified failure of the underlying call
        """
        kwargs = {
            "model": self.model,
            "messages": build_messages(system_prompt, user_prompt, content),
            "temperature": temperature,
            "max_tokens": max_tokens or self.default_max_tokens,
        }

        start_time = time.perf_counter()

        try:
            response = await acompletion(**kwargs)
        except Exception as e:
            kind = classify_generation_error(e)
            logger.error(
                f"Generation failed [{kind.value}]: {e} (model={self.model})"
            )
            raise GenerationError(
                str(e) or type(e).__name__,
                kind=kind,
                details={"model": self.model, "exception": type(e).__name__},
            ) from e

        latency_ms = int((time.perf_counter() - start_time) * 1000)
        logger.debug(f"Generation [{self.model}] completed in {latency_ms}ms")

        return response.choices[0].message.content or ""
