"""
Notes Processing Module

Turns long-form source text into structured notes, a quiz and a summary.

1. Chunking - Split text into word-bounded chunks
2. Chunk notes - Generate notes per chunk concurrently, with retry and timeout
3. Aggregation - Join notes in source order, tolerate partial failure
4. Quiz - Multiple-choice quiz from the joined notes
5. Summary - Short summary of the joined notes

Usage:
    from app.services.processing import NotesPipeline

    result = await NotesPipeline(client).generate_notes(text)
"""

from app.services.processing.pipeline import NotesPipeline
from app.services.processing.policy import RetryPolicy

__all__ = ["NotesPipeline", "RetryPolicy"]
