"""
Chunk Processor

Drives one chunk through note generation: token-size precheck, timeout,
and bounded retry with linear backoff.

A chunk that still fails after its attempts comes back as a ChunkResult
with ``error`` set; nothing is raised, so one bad chunk never stops its
siblings.

Usage:
    processor = ChunkProcessor(client, policy=RetryPolicy.from_settings())
    result = await processor.process(chunk)
    if result.error:
        print(f"chunk {result.chunk_index} failed after {result.attempts} attempts")
"""

import asyncio
import logging
from typing import Optional

from app.config.pipeline import PipelineSettings, pipeline_settings
from app.enums.generation import GenerationErrorKind
from app.middleware.error_handling import GenerationError
from app.models.chunks import Chunk, ChunkResult
from app.services.processing.chunker import estimate_token_count
from app.services.processing.policy import RetryPolicy, guarded_generate, run_with_retry

logger = logging.getLogger(__name__)


CHUNK_TOO_LARGE_REASON = "Chunk exceeds token limit"

NOTES_SYSTEM_PROMPT = """You are an expert note-taker who turns long-form material into clear study notes.

Write the notes in {language}.

Guidelines:
- Organize the notes with Markdown headings and bullet points
- Keep every key idea, definition, example and number from the fragment
- Do not add facts that are not in the fragment
- Do not mention that the text is a fragment of a longer source
{custom_instructions}"""

NOTES_USER_PROMPT = "Write structured notes for this fragment:"


def build_notes_system_prompt(language: str = "English", custom_prompt: Optional[str] = None) -> str:
    custom_instructions = ""
    if custom_prompt:
        custom_instructions = f"\nAdditional instructions from the user:\n{custom_prompt.strip()}\n"
    return NOTES_SYSTEM_PROMPT.format(
        language=language, custom_instructions=custom_instructions
    )


class ChunkProcessor:
    """
    Generates notes for single chunks.

    One instance serves all chunks of a job. The generation client and the
    limiter are shared by every job on the worker; prompt options are per job.

    Attributes:
        client: Generation client (anything with an async ``generate``)
        policy: Retry/timeout policy
        limiter: Worker-wide semaphore bounding in-flight generation calls
    """

    def __init__(
        self,
        client,
        policy: Optional[RetryPolicy] = None,
        limiter: Optional[asyncio.Semaphore] = None,
        settings: Optional[PipelineSettings] = None,
        language: str = "English",
        custom_prompt: Optional[str] = None,
    ):
        self.client = client
        self.settings = settings or pipeline_settings
        self.policy = policy or RetryPolicy.from_settings(self.settings)
        self.limiter = limiter
        self.system_prompt = build_notes_system_prompt(language, custom_prompt)

    async def process(self, chunk: Chunk, attempt: int = 0) -> ChunkResult:
        """
        Generate notes for one chunk.

        Args:
            chunk: Chunk to process
            attempt: Attempts already spent on this chunk

        Returns:
            ChunkResult with notes, or with ``error`` and the attempt count
        """
        attempts = attempt

        async def attempt_once() -> str:
            nonlocal attempts
            attempts += 1

            estimated_tokens = estimate_token_count(
                chunk.content, self.settings.CHARS_PER_TOKEN
            )
            if estimated_tokens > self.settings.CHUNK_MAX_TOKENS:
                raise GenerationError(
                    CHUNK_TOO_LARGE_REASON,
                    kind=GenerationErrorKind.BAD_REQUEST,
                    details={"estimated_tokens": estimated_tokens},
                )

            return await guarded_generate(
                self.client,
                self.system_prompt,
                NOTES_USER_PROMPT,
                chunk.content,
                self.settings.NOTES_TEMPERATURE,
                timeout_seconds=self.policy.timeout_seconds,
                limiter=self.limiter,
                max_tokens=self.settings.NOTES_MAX_TOKENS,
            )

        try:
            content = await run_with_retry(
                attempt_once,
                self.policy,
                label=f"Chunk {chunk.index}",
                attempts_used=attempt,
            )
        except Exception as e:
            reason = getattr(e, "message", None) or str(e) or type(e).__name__
            logger.error(
                f"Chunk {chunk.index} (words {chunk.start_word}-{chunk.end_word}) "
                f"failed after {attempts} attempts: {reason}"
            )
            return ChunkResult(chunk_index=chunk.index, error=reason, attempts=attempts)

        logger.debug(f"Chunk {chunk.index} processed in {attempts} attempt(s)")
        return ChunkResult(chunk_index=chunk.index, content=content, attempts=attempts)
