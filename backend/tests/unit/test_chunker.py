"""
Unit tests for the content chunker.

Covers word-bounded splitting, chunk word ranges, and the token estimate
used for the pre-call size check.
"""

import pytest
from pydantic import ValidationError

from app.models.chunks import Chunk
from app.services.processing.chunker import (
    estimate_token_count,
    split_into_chunks,
)


def make_words(count: int) -> str:
    return " ".join(f"w{i}" for i in range(count))


# =============================================================================
# Splitting
# =============================================================================


class TestSplitIntoChunks:
    """Tests for split_into_chunks."""

    def test_2000_words_make_three_chunks(self):
        """Test that 2000 words at 800 per chunk give 800/800/400."""
        chunks = split_into_chunks(make_words(2000), max_words=800)

        assert [c.word_count for c in chunks] == [800, 800, 400]
        assert [(c.start_word, c.end_word) for c in chunks] == [
            (0, 800),
            (800, 1600),
            (1600, 2000),
        ]

    def test_indices_are_contiguous(self):
        chunks = split_into_chunks(make_words(25), max_words=10)

        assert [c.index for c in chunks] == [0, 1, 2]

    def test_exact_multiple_has_no_short_chunk(self):
        chunks = split_into_chunks(make_words(30), max_words=10)

        assert len(chunks) == 3
        assert all(c.word_count == 10 for c in chunks)

    def test_ranges_cover_input_without_overlap(self):
        """Test that chunk ranges are contiguous and cover every word."""
        chunks = split_into_chunks(make_words(1234), max_words=100)

        assert chunks[0].start_word == 0
        assert chunks[-1].end_word == 1234
        for previous, current in zip(chunks, chunks[1:]):
            assert current.start_word == previous.end_word

    def test_only_last_chunk_is_short(self):
        chunks = split_into_chunks(make_words(95), max_words=20)

        assert all(c.word_count == 20 for c in chunks[:-1])
        assert chunks[-1].word_count == 15

    def test_content_is_words_joined_by_single_spaces(self):
        chunks = split_into_chunks("alpha   beta\n\tgamma\n\ndelta", max_words=3)

        assert chunks[0].content == "alpha beta gamma"
        assert chunks[1].content == "delta"

    def test_whitespace_runs_do_not_create_empty_words(self):
        chunks = split_into_chunks("  one  two   ", max_words=10)

        assert len(chunks) == 1
        assert chunks[0].word_count == 2

    def test_empty_content_gives_no_chunks(self):
        assert split_into_chunks("", max_words=10) == []

    def test_whitespace_only_content_gives_no_chunks(self):
        assert split_into_chunks(" \n\t  ", max_words=10) == []

    def test_deterministic(self):
        text = make_words(321)

        assert split_into_chunks(text, max_words=50) == split_into_chunks(text, max_words=50)

    def test_zero_word_limit_rejected(self):
        with pytest.raises(ValueError):
            split_into_chunks("some words", max_words=0)

    def test_negative_word_limit_rejected(self):
        with pytest.raises(ValueError):
            split_into_chunks("some words", max_words=-5)

    def test_default_limit_from_settings(self):
        """Test that the configured 800-word limit applies by default."""
        chunks = split_into_chunks(make_words(801))

        assert [c.word_count for c in chunks] == [800, 1]


# =============================================================================
# Chunk Model
# =============================================================================


class TestChunkModel:
    """Tests for the Chunk model invariants."""

    def test_word_count_must_match_range(self):
        with pytest.raises(ValidationError):
            Chunk(index=0, content="a b", word_count=3, start_word=0, end_word=2)

    def test_chunk_is_immutable(self):
        chunk = Chunk(index=0, content="a b", word_count=2, start_word=0, end_word=2)

        with pytest.raises(ValidationError):
            chunk.content = "changed"


# =============================================================================
# Token Estimate
# =============================================================================


class TestTokenEstimate:
    """Tests for the character-based token estimate."""

    def test_rounds_up(self):
        assert estimate_token_count("abcde", chars_per_token=4) == 2

    def test_empty_text_is_zero_tokens(self):
        assert estimate_token_count("", chars_per_token=4) == 0

    def test_limit_boundary(self):
        assert estimate_token_count("a" * 12000, chars_per_token=4) == 3000
        assert estimate_token_count("a" * 12001, chars_per_token=4) == 3001
