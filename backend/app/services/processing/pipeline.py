"""
Notes Pipeline Orchestrator

Turns source text into notes, a quiz and a summary.

Pipeline stages:
1. Chunking - Split the text into word-bounded chunks
2. Chunk notes - Generate notes for every chunk concurrently, join in order
3. Quiz - Multiple-choice quiz from the joined notes (optional per job)
4. Summary - Short summary of the joined notes

Stages 3 and 4 only run when stage 2 produced notes. They run one after
the other to keep load on the generation service down; neither depends on
the other's output.

Failure semantics:
- Empty input or no producible chunks: InputError
- Every chunk failed: AllChunksFailedError (the job fails)
- Some chunks failed: result is marked partial_success with the failed
  word ranges attached
- Quiz or summary failed: empty quiz / fallback summary plus a warning

Usage:
    from app.services.processing import NotesPipeline

    pipeline = NotesPipeline(client)  # once per worker process
    result = await pipeline.generate_notes(text, options=JobOptions(language="English"))
    print(result.partial_success, len(result.quiz))
"""

import asyncio
import logging
from typing import Awaitable, Callable, Optional

from app.config.pipeline import PipelineSettings, pipeline_settings
from app.middleware.error_handling import InputError
from app.models.jobs import JobOptions
from app.models.notes import NotesResult
from app.services.processing.aggregator import aggregate_chunks
from app.services.processing.chunk_processor import ChunkProcessor
from app.services.processing.chunker import split_into_chunks
from app.services.processing.policy import RetryPolicy
from app.services.processing.stages.quiz import generate_quiz
from app.services.processing.stages.summary import generate_summary

logger = logging.getLogger(__name__)

# Called with a 0-100 value as chunks and stages finish
ProgressCallback = Callable[[int], Awaitable[None]]

# Part of progress_range covered by the chunk fan-out
CHUNKS_PROGRESS_SHARE = 0.6


class NotesPipeline:
    """
    Notes pipeline bound to one generation client.

    Construct once per worker process. The limiter created here is shared
    by every job the pipeline runs, so it bounds in-flight generation calls
    for the whole worker rather than per job.

    Attributes:
        client: Generation client
        settings: Pipeline settings
        policy: Retry/timeout policy used by every stage
        limiter: Worker-wide semaphore for generation calls
    """

    def __init__(
        self,
        client,
        settings: Optional[PipelineSettings] = None,
        policy: Optional[RetryPolicy] = None,
        limiter: Optional[asyncio.Semaphore] = None,
    ):
        self.client = client
        self.settings = settings or pipeline_settings
        self.policy = policy or RetryPolicy.from_settings(self.settings)
        self.limiter = limiter or asyncio.Semaphore(self.settings.MAX_INFLIGHT_LLM_CALLS)

    async def generate_notes(
        self,
        text: str,
        options: Optional[JobOptions] = None,
        on_progress: Optional[ProgressCallback] = None,
        progress_range: tuple[int, int] = (50, 90),
    ) -> NotesResult:
        """
        Run the full pipeline on ``text``.

        Args:
            text: Source text
            options: Per-job generation options
            on_progress: Awaited with progress values inside ``progress_range``
            progress_range: Progress spanned from the first chunk to the last stage

        Returns:
            NotesResult

        Raises:
            InputError: If the text has no words
            AllChunksFailedError: If no chunk produced notes
        """
        options = options or JobOptions()
        start, end = progress_range

        async def report(fraction: float) -> None:
            if on_progress is not None:
                await on_progress(round(start + (end - start) * fraction))

        # =====================================================================
        # Stage 1: Chunking
        # =====================================================================
        chunks = split_into_chunks(text, self.settings.CHUNK_MAX_WORDS)
        if not chunks:
            raise InputError("Content is empty")
        logger.info(f"Split content into {len(chunks)} chunks")

        # =====================================================================
        # Stage 2: Chunk notes
        # =====================================================================
        processor = ChunkProcessor(
            self.client,
            policy=self.policy,
            limiter=self.limiter,
            settings=self.settings,
            language=options.language,
            custom_prompt=options.custom_prompt,
        )

        async def chunk_done(finished: int, total: int) -> None:
            await report(CHUNKS_PROGRESS_SHARE * finished / total)

        aggregated = await aggregate_chunks(
            chunks,
            processor,
            separator=self.settings.CHUNK_SEPARATOR,
            on_chunk_done=chunk_done,
        )

        warnings: list[str] = []
        error: Optional[str] = None
        if aggregated.partial_success:
            error = (
                f"Some fragments were not processed "
                f"({len(aggregated.failed_chunks)}/{aggregated.total_chunks})"
            )
            warnings.append(error)

        # =====================================================================
        # Stage 3: Quiz
        # =====================================================================
        quiz = []
        quiz_error = None
        if options.generate_quiz:
            quiz_result = await generate_quiz(
                aggregated.combined_content,
                self.client,
                policy=self.policy,
                limiter=self.limiter,
                settings=self.settings,
                language=options.language,
            )
            quiz = quiz_result.questions
            quiz_error = quiz_result.error
            if quiz_error:
                warnings.append(quiz_error)
        await report(0.8)

        # =====================================================================
        # Stage 4: Summary
        # =====================================================================
        summary, summary_error = await generate_summary(
            aggregated.combined_content,
            self.client,
            policy=self.policy,
            limiter=self.limiter,
            settings=self.settings,
            language=options.language,
        )
        if summary_error:
            warnings.append(summary_error)
        await report(1.0)

        return NotesResult(
            content=aggregated.combined_content,
            summary=summary,
            quiz=quiz,
            quiz_error=quiz_error,
            partial_success=aggregated.partial_success,
            failed_chunks=aggregated.failed_chunks,
            warnings=warnings,
            error=error,
            chunk_count=aggregated.total_chunks,
        )
