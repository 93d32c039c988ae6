"""
Chunk Data Models (Pydantic)

Models that flow between the chunker, the chunk processor and the
aggregator.

Models:
- Chunk: Bounded-size word range of a job's source text
- ChunkResult: Outcome of driving one chunk through generation
- FailedChunkRecord: Diagnostic record for a chunk that produced nothing
- AggregatedNotes: Joined notes plus the chunks that failed

Usage:
    from app.models.chunks import Chunk, ChunkResult

    chunk = Chunk(index=0, content="...", word_count=800, start_word=0, end_word=800)
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator


class Chunk(BaseModel):
    """
    Contiguous word range of a job's source content.

    Chunks of one job never overlap and together cover every word of the
    input. Indices start at 0 and are contiguous.

    Attributes:
        index: Position of the chunk in the sequence
        content: Words of the range joined by single spaces
        word_count: Number of words in the chunk
        start_word: First word offset (inclusive)
        end_word: Last word offset (exclusive)
    """

    model_config = ConfigDict(frozen=True)

    index: int = Field(..., ge=0)
    content: str
    word_count: int = Field(..., ge=0)
    start_word: int = Field(..., ge=0)
    end_word: int = Field(..., ge=0)

    @model_validator(mode="after")
    def _check_word_range(self) -> "Chunk":
        if self.end_word - self.start_word != self.word_count:
            raise ValueError("word_count must equal end_word - start_word")
        return self


class ChunkResult(BaseModel):
    """
    Result of processing one chunk. Exactly one per chunk.

    When ``error`` is set, ``content`` is empty.
    """

    chunk_index: int
    content: str = ""
    error: Optional[str] = None
    attempts: int = 1

    @property
    def succeeded(self) -> bool:
        return self.error is None

    @model_validator(mode="after")
    def _clear_content_on_error(self) -> "ChunkResult":
        if self.error is not None and self.content:
            self.content = ""
        return self


class FailedChunkRecord(BaseModel):
    """
    Chunk that produced no notes, kept so callers can see which part of
    the source was skipped.

    Attributes:
        index: Chunk index
        reason: Final error message
        attempts: Generation attempts made before giving up
        start_word: First word offset of the skipped range
        end_word: End word offset (exclusive) of the skipped range
    """

    index: int
    reason: str
    attempts: int
    start_word: int
    end_word: int


class AggregatedNotes(BaseModel):
    """Joined notes from every successful chunk, in source order."""

    combined_content: str
    failed_chunks: list[FailedChunkRecord] = Field(default_factory=list)
    total_chunks: int

    @property
    def partial_success(self) -> bool:
        return len(self.failed_chunks) > 0
