"""
Quiz Generation Stage

Generates a multiple-choice quiz from the combined notes of a job.

The question count is a step function of the notes length (10, 15 or 20
questions). Output must parse into exactly that many well-formed
questions; anything else counts as a failed attempt and is retried, never
patched or partially accepted. When every attempt fails the stage returns
an empty quiz with an error instead of raising, because a missing quiz
should not fail the job.

Usage:
    from app.services.processing.stages.quiz import generate_quiz

    result = await generate_quiz(notes, client, policy=policy)
    if result.error:
        print(f"No quiz: {result.error}")
"""

import asyncio
import json
import logging
import re
from typing import Optional

from pydantic import ValidationError as PydanticValidationError

from app.config.pipeline import PipelineSettings, pipeline_settings
from app.models.quiz import QuizQuestion, QuizResult
from app.services.processing.policy import RetryPolicy, guarded_generate, run_with_retry

logger = logging.getLogger(__name__)


QUIZ_SYSTEM_PROMPT = """You write multiple-choice quizzes that check understanding of study notes.

Write the quiz in {language}.

Rules:
- Write exactly {count} questions, numbered with "id" from 1 to {count}
- Every question has exactly three options, keyed "A", "B" and "C"
- Exactly one option is correct; "correctAnswer" is its key
- "explanation" says in one or two sentences why the answer is correct
- Ask about the content of the notes, not about their formatting

Respond with a JSON array only, no prose and no code fences:
[
  {{
    "id": 1,
    "question": "Question text",
    "options": {{"A": "First option", "B": "Second option", "C": "Third option"}},
    "correctAnswer": "B",
    "explanation": "Why B is correct"
  }}
]"""

QUIZ_USER_PROMPT = "Create the quiz from these notes:"

_CODE_FENCE = re.compile(r"^```(?:json)?\s*|\s*```$", re.IGNORECASE)


class QuizFormatError(ValueError):
    """Generated quiz text is not a well-formed quiz."""


def quiz_question_count(content_length: int, settings: PipelineSettings = None) -> int:
    """
    Number of questions for notes of ``content_length`` characters.

    Args:
        content_length: Length of the combined notes
        settings: Pipeline settings with the thresholds

    Returns:
        10 for short notes, 15 for medium, 20 for long (with default settings)
    """
    settings = settings or pipeline_settings
    if content_length <= settings.QUIZ_SHORT_CONTENT_CHARS:
        return settings.QUIZ_SHORT_QUESTIONS
    if content_length <= settings.QUIZ_MEDIUM_CONTENT_CHARS:
        return settings.QUIZ_MEDIUM_QUESTIONS
    return settings.QUIZ_LONG_QUESTIONS


def parse_quiz_response(text: str, expected_count: int) -> list[QuizQuestion]:
    """
    Parse and validate generated quiz text.

    Accepts a bare JSON array, or an object with a "questions" array,
    optionally wrapped in a Markdown code fence.

    Raises:
        QuizFormatError: If the text isn't a complete, well-formed quiz
    """
    cleaned = _CODE_FENCE.sub("", text.strip())
    try:
        data = json.loads(cleaned)
    except json.JSONDecodeError as e:
        raise QuizFormatError(f"Quiz response is not valid JSON: {e}")

    if isinstance(data, dict) and isinstance(data.get("questions"), list):
        data = data["questions"]
    if not isinstance(data, list):
        raise QuizFormatError("Quiz response is not a list of questions")

    try:
        questions = [QuizQuestion.model_validate(item) for item in data]
    except PydanticValidationError as e:
        raise QuizFormatError(f"Malformed quiz question: {e.errors()[0]['msg']}")

    if len(questions) != expected_count:
        raise QuizFormatError(
            f"Expected {expected_count} questions, got {len(questions)}"
        )
    if len({q.id for q in questions}) != len(questions):
        raise QuizFormatError("Quiz question ids are not unique")

    return questions


async def generate_quiz(
    combined_content: str,
    client,
    policy: Optional[RetryPolicy] = None,
    limiter: Optional[asyncio.Semaphore] = None,
    settings: Optional[PipelineSettings] = None,
    language: str = "English",
    attempt: int = 0,
) -> QuizResult:
    """
    Generate a quiz for the combined notes of a job.

    Args:
        combined_content: Aggregated notes
        client: Generation client
        policy: Retry/timeout policy
        limiter: Worker-wide semaphore bounding in-flight calls
        settings: Pipeline settings
        language: Language of the quiz
        attempt: Attempts already spent

    Returns:
        QuizResult with questions, or empty with ``error`` set
    """
    settings = settings or pipeline_settings
    policy = policy or RetryPolicy.from_settings(settings)
    count = quiz_question_count(len(combined_content), settings)
    system_prompt = QUIZ_SYSTEM_PROMPT.format(language=language, count=count)

    async def attempt_once() -> list[QuizQuestion]:
        text = await guarded_generate(
            client,
            system_prompt,
            QUIZ_USER_PROMPT,
            combined_content,
            settings.QUIZ_TEMPERATURE,
            timeout_seconds=policy.timeout_seconds,
            limiter=limiter,
            max_tokens=settings.QUIZ_MAX_TOKENS,
        )
        return parse_quiz_response(text, count)

    try:
        questions = await run_with_retry(
            attempt_once, policy, label="Quiz generation", attempts_used=attempt
        )
    except Exception as e:
        logger.error(f"Quiz generation failed: {e}")
        return QuizResult(questions=[], error=f"Quiz generation failed: {e}")

    logger.debug(f"Generated quiz with {len(questions)} questions")
    return QuizResult(questions=questions)
