"""
Chunk Aggregator

Fans out chunk processing for one job, waits for every chunk, and joins
the notes back together in source order.

Outcomes:
- every chunk produced notes: full success
- some chunks failed: partial success, the failures are returned as
  FailedChunkRecords alongside the joined notes
- no chunk produced usable notes (errors, or only empty/whitespace
  output): AllChunksFailedError

Fan-out within a job is unbounded here; the worker-wide limiter inside
the chunk processor caps the number of calls actually in flight.

Every finished chunk is reported through ``on_chunk_done``; the worker
turns these into progress updates so a long fan-out keeps the job fresh.
"""

import asyncio
import logging
from typing import Awaitable, Callable, Optional

from app.config.pipeline import pipeline_settings
from app.middleware.error_handling import AllChunksFailedError, InputError
from app.models.chunks import AggregatedNotes, Chunk, ChunkResult, FailedChunkRecord
from app.services.processing.chunk_processor import ChunkProcessor

logger = logging.getLogger(__name__)

EMPTY_OUTPUT_REASON = "Generation returned empty content"

# Awaited with (finished, total) each time a chunk finishes, failed or not
ChunkDoneCallback = Callable[[int, int], Awaitable[None]]


async def aggregate_chunks(
    chunks: list[Chunk],
    processor: ChunkProcessor,
    separator: str = None,
    on_chunk_done: Optional[ChunkDoneCallback] = None,
) -> AggregatedNotes:
    """
    Process all chunks concurrently and join the successful notes.

    Args:
        chunks: Chunks of one job, as produced by the chunker
        processor: Chunk processor configured for the job
        separator: Text placed between chunk notes
        on_chunk_done: Awaited after every finished chunk with the number of
            chunks finished so far and the total

    Returns:
        AggregatedNotes with combined content and failed chunk records

    Raises:
        InputError: If there are no chunks
        AllChunksFailedError: If no chunk produced non-empty notes
    """
    if not chunks:
        raise InputError("No content to process")

    separator = pipeline_settings.CHUNK_SEPARATOR if separator is None else separator
    by_index = {chunk.index: chunk for chunk in chunks}

    finished = 0

    async def process(chunk: Chunk) -> ChunkResult:
        nonlocal finished
        result = await processor.process(chunk)
        finished += 1
        if on_chunk_done is not None:
            await on_chunk_done(finished, len(chunks))
        return result

    logger.info(f"Processing {len(chunks)} chunks concurrently")
    results: list[ChunkResult] = await asyncio.gather(*(process(chunk) for chunk in chunks))
    results = sorted(results, key=lambda r: r.chunk_index)

    sections: list[str] = []
    failed: list[FailedChunkRecord] = []
    had_errors = False

    for result in results:
        chunk = by_index[result.chunk_index]
        if not result.succeeded:
            had_errors = True
            reason = result.error
        elif not result.content.strip():
            reason = EMPTY_OUTPUT_REASON
        else:
            sections.append(result.content.strip())
            continue

        failed.append(
            FailedChunkRecord(
                index=chunk.index,
                reason=reason,
                attempts=result.attempts,
                start_word=chunk.start_word,
                end_word=chunk.end_word,
            )
        )

    if not sections:
        if had_errors:
            first_error = next(r.reason for r in failed if r.reason != EMPTY_OUTPUT_REASON)
            message = (
                f"All {len(chunks)} chunks failed to process. First error: {first_error}"
            )
        else:
            message = "No content was generated from any chunks"
        logger.error(message)
        raise AllChunksFailedError(message, failed_chunks=failed)

    if failed:
        logger.warning(
            f"{len(failed)}/{len(chunks)} chunks failed: "
            f"{[record.index for record in failed]}"
        )

    return AggregatedNotes(
        combined_content=separator.join(sections),
        failed_chunks=failed,
        total_chunks=len(chunks),
    )
