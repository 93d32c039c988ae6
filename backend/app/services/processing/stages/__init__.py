"""
Derived-Artifact Stages

Stages that run on the aggregated notes of a job rather than on chunks:

- quiz: Multiple-choice quiz, validated as a whole
- summary: Short prose summary with a fixed fallback

Both are best-effort: on exhausted retries they return an empty quiz or
the fallback summary together with an error string instead of raising.
"""

from app.services.processing.stages.quiz import generate_quiz, quiz_question_count
from app.services.processing.stages.summary import generate_summary

__all__ = ["generate_quiz", "generate_summary", "quiz_question_count"]
