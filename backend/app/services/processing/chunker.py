"""
Content Chunker

Splits source text into word-bounded chunks for independent note
generation.

Words are whitespace-separated tokens; runs of whitespace count as one
separator and empty tokens are dropped, so a chunk's content is its words
joined by single spaces. Chunk word ranges are half-open
``[start_word, end_word)`` offsets into that word list: contiguous,
non-overlapping, and together covering the whole input.

Usage:
    from app.services.processing.chunker import split_into_chunks

    chunks = split_into_chunks(text, max_words=800)
    for chunk in chunks:
        print(chunk.index, chunk.start_word, chunk.end_word)
"""

import math

from app.config.pipeline import pipeline_settings
from app.models.chunks import Chunk


def split_into_chunks(content: str, max_words: int = None) -> list[Chunk]:
    """
    Split content into chunks of at most ``max_words`` words.

    Deterministic for a given content and limit. Only the last chunk may be
    shorter than the limit.

    Args:
        content: Source text
        max_words: Word limit per chunk (default from pipeline settings)

    Returns:
        Chunks in source order; empty for empty or whitespace-only content

    Raises:
        ValueError: If max_words is not positive
    """
    if max_words is None:
        max_words = pipeline_settings.CHUNK_MAX_WORDS
    if max_words < 1:
        raise ValueError(f"max_words must be positive, got {max_words}")

    words = content.split() if content else []

    chunks = []
    for start in range(0, len(words), max_words):
        chunk_words = words[start : start + max_words]
        chunks.append(
            Chunk(
                index=len(chunks),
                content=" ".join(chunk_words),
                word_count=len(chunk_words),
                start_word=start,
                end_word=start + len(chunk_words),
            )
        )
    return chunks


def estimate_token_count(text: str, chars_per_token: int = None) -> int:
    """Rough token estimate: one token per ``chars_per_token`` characters, rounded up."""
    chars_per_token = chars_per_token or pipeline_settings.CHARS_PER_TOKEN
    return math.ceil(len(text) / chars_per_token)

