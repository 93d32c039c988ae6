"""
Notes Pipeline Result (Pydantic)

Output of one run of the notes pipeline: chunk notes joined in source
order, the derived summary and quiz, and diagnostics for anything that
was skipped along the way.
"""

from typing import Optional

from pydantic import BaseModel, Field

from app.models.chunks import FailedChunkRecord
from app.models.quiz import QuizQuestion


class NotesResult(BaseModel):
    """
    Complete notes pipeline result.

    Attributes:
        content: Combined notes, chunk sections separated by the chunk separator
        summary: Short summary, or the fallback text when generation failed
        quiz: Quiz questions (empty when quiz generation failed or was skipped)
        quiz_error: Why the quiz is empty, if it failed
        partial_success: True when some, but not all, chunks failed
        failed_chunks: Word ranges that produced no notes
        warnings: Human-readable notes about degraded output
        error: Short description of the partial failure, if any
        chunk_count: Number of chunks the source was split into
    """

    content: str
    summary: str
    quiz: list[QuizQuestion] = Field(default_factory=list)
    quiz_error: Optional[str] = None
    partial_success: bool = False
    failed_chunks: list[FailedChunkRecord] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)
    error: Optional[str] = None
    chunk_count: int = 0
