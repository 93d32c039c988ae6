"""
Unit tests for the chunk aggregator.

Tests ordered joining, partial failure records, and the all-failed and
all-empty outcomes.
"""

import asyncio
from unittest.mock import MagicMock

import pytest

from app.enums.generation import GenerationErrorKind
from app.middleware.error_handling import AllChunksFailedError, GenerationError, InputError
from app.services.processing.aggregator import EMPTY_OUTPUT_REASON, aggregate_chunks
from app.services.processing.chunk_processor import ChunkProcessor
from app.services.processing.chunker import split_into_chunks

SEPARATOR = "\n\n---\n\n"


def make_text(words: int) -> str:
    return " ".join(f"w{i}" for i in range(words))


def scripted_client(outputs: dict[int, object], delays: dict[int, float] = None) -> MagicMock:
    """
    Client whose answer depends on the chunk it is asked about.

    The chunk index is recovered from the first word offset of the content
    (chunks of 10 words starting at w0, w10, ...). An Exception value is
    raised instead of returned.
    """
    delays = delays or {}

    async def generate(system_prompt, user_prompt, content, temperature, max_tokens=None):
        index = int(content.split()[0][1:]) // 10
        await asyncio.sleep(delays.get(index, 0))
        output = outputs.get(index, f"notes {index}")
        if isinstance(output, Exception):
            raise output
        return output

    client = MagicMock()
    client.generate = generate
    return client


# =============================================================================
# Ordering
# =============================================================================


class TestAggregateOrdering:
    """Tests for source-order joining."""

    @pytest.mark.asyncio
    async def test_all_chunks_joined_in_order(self, fast_policy):
        chunks = split_into_chunks(make_text(30), max_words=10)
        processor = ChunkProcessor(scripted_client({}), policy=fast_policy)

        aggregated = await aggregate_chunks(chunks, processor, separator=SEPARATOR)

        assert aggregated.combined_content == SEPARATOR.join(["notes 0", "notes 1", "notes 2"])
        assert aggregated.failed_chunks == []
        assert aggregated.total_chunks == 3
        assert not aggregated.partial_success

    @pytest.mark.asyncio
    async def test_order_independent_of_completion_order(self, fast_policy):
        """Test that the first chunk finishing last still comes first."""
        chunks = split_into_chunks(make_text(30), max_words=10)
        client = scripted_client({}, delays={0: 0.05, 1: 0.01, 2: 0})
        processor = ChunkProcessor(client, policy=fast_policy)

        aggregated = await aggregate_chunks(chunks, processor, separator=SEPARATOR)

        assert aggregated.combined_content.split(SEPARATOR) == ["notes 0", "notes 1", "notes 2"]

    @pytest.mark.asyncio
    async def test_chunk_notes_are_trimmed(self, fast_policy):
        chunks = split_into_chunks(make_text(20), max_words=10)
        processor = ChunkProcessor(
            scripted_client({0: "  first\n", 1: "\nsecond  "}), policy=fast_policy
        )

        aggregated = await aggregate_chunks(chunks, processor, separator=SEPARATOR)

        assert aggregated.combined_content == f"first{SEPARATOR}second"


# =============================================================================
# Partial Failure
# =============================================================================


class TestAggregatePartialFailure:
    """Tests for jobs where some chunks fail."""

    @pytest.mark.asyncio
    async def test_one_failed_chunk_of_five(self, fast_policy):
        chunks = split_into_chunks(make_text(50), max_words=10)
        client = scripted_client(
            {2: GenerationError("Service unavailable", kind=GenerationErrorKind.NETWORK)}
        )
        processor = ChunkProcessor(client, policy=fast_policy)

        aggregated = await aggregate_chunks(chunks, processor, separator=SEPARATOR)

        assert aggregated.combined_content.split(SEPARATOR) == [
            "notes 0",
            "notes 1",
            "notes 3",
            "notes 4",
        ]
        assert aggregated.partial_success
        assert len(aggregated.failed_chunks) == 1

        record = aggregated.failed_chunks[0]
        assert record.index == 2
        assert record.reason == "Service unavailable"
        assert record.attempts == 3
        assert (record.start_word, record.end_word) == (20, 30)

    @pytest.mark.asyncio
    async def test_empty_output_recorded_as_failure(self, fast_policy):
        chunks = split_into_chunks(make_text(20), max_words=10)
        processor = ChunkProcessor(scripted_client({1: "   \n"}), policy=fast_policy)

        aggregated = await aggregate_chunks(chunks, processor, separator=SEPARATOR)

        assert aggregated.combined_content == "notes 0"
        assert aggregated.failed_chunks[0].index == 1
        assert aggregated.failed_chunks[0].reason == EMPTY_OUTPUT_REASON


# =============================================================================
# Total Failure
# =============================================================================


class TestAggregateTotalFailure:
    """Tests for jobs where no chunk produced notes."""

    @pytest.mark.asyncio
    async def test_all_chunks_failed(self, fast_policy):
        chunks = split_into_chunks(make_text(30), max_words=10)
        client = scripted_client(
            {i: GenerationError("Invalid API key", kind=GenerationErrorKind.AUTH) for i in range(3)}
        )
        processor = ChunkProcessor(client, policy=fast_policy)

        with pytest.raises(AllChunksFailedError) as exc_info:
            await aggregate_chunks(chunks, processor, separator=SEPARATOR)

        assert exc_info.value.message == (
            "All 3 chunks failed to process. First error: Invalid API key"
        )
        assert [r.index for r in exc_info.value.failed_chunks] == [0, 1, 2]

    @pytest.mark.asyncio
    async def test_all_outputs_empty(self, fast_policy):
        chunks = split_into_chunks(make_text(20), max_words=10)
        processor = ChunkProcessor(scripted_client({0: "", 1: " "}), policy=fast_policy)

        with pytest.raises(AllChunksFailedError) as exc_info:
            await aggregate_chunks(chunks, processor, separator=SEPARATOR)

        assert exc_info.value.message == "No content was generated from any chunks"

    @pytest.mark.asyncio
    async def test_no_chunks(self, fast_policy, mock_generation_client):
        processor = ChunkProcessor(mock_generation_client, policy=fast_policy)

        with pytest.raises(InputError):
            await aggregate_chunks([], processor)


# =============================================================================
# Chunk Completion Reporting
# =============================================================================


class TestChunkDoneCallback:
    """Tests for per-chunk completion reporting."""

    @pytest.mark.asyncio
    async def test_reports_every_finished_chunk(self, fast_policy):
        chunks = split_into_chunks(make_text(30), max_words=10)
        client = scripted_client(
            {1: GenerationError("Service unavailable", kind=GenerationErrorKind.NETWORK)},
            delays={0: 0.02},
        )
        processor = ChunkProcessor(client, policy=fast_policy)
        reported = []

        async def on_chunk_done(finished: int, total: int) -> None:
            reported.append((finished, total))

        aggregated = await aggregate_chunks(
            chunks, processor, separator=SEPARATOR, on_chunk_done=on_chunk_done
        )

        # Failed chunks count as finished too
        assert reported == [(1, 3), (2, 3), (3, 3)]
        assert [r.index for r in aggregated.failed_chunks] == [1]

    @pytest.mark.asyncio
    async def test_reported_before_total_failure(self, fast_policy):
        chunks = split_into_chunks(make_text(20), max_words=10)
        processor = ChunkProcessor(scripted_client({0: "", 1: ""}), policy=fast_policy)
        reported = []

        async def on_chunk_done(finished: int, total: int) -> None:
            reported.append(finished)

        with pytest.raises(AllChunksFailedError):
            await aggregate_chunks(chunks, processor, on_chunk_done=on_chunk_done)

        assert reported == [1, 2]
