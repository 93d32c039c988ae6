"""
Summary Generation Stage

Generates a short summary of the combined notes. Same retry and timeout
policy as the quiz stage; the only validation is that the summary is not
empty. When every attempt fails the stage returns a fixed fallback text.

Usage:
    from app.services.processing.stages.summary import generate_summary

    summary, error = await generate_summary(notes, client, policy=policy)
"""

import asyncio
import logging
from typing import Optional

from app.config.pipeline import PipelineSettings, pipeline_settings
from app.services.processing.policy import RetryPolicy, guarded_generate, run_with_retry

logger = logging.getLogger(__name__)


SUMMARY_SYSTEM_PROMPT = """You write concise summaries of study notes.

Write the summary in {language}.

- 3 to 5 sentences of plain prose, no headings or lists
- Cover the main topic and the most important conclusions
- Do not add information that is not in the notes"""

SUMMARY_USER_PROMPT = "Summarize these notes:"


async def generate_summary(
    combined_content: str,
    client,
    policy: Optional[RetryPolicy] = None,
    limiter: Optional[asyncio.Semaphore] = None,
    settings: Optional[PipelineSettings] = None,
    language: str = "English",
    attempt: int = 0,
) -> tuple[str, Optional[str]]:
    """
    Generate a summary of the combined notes.

    Args:
        combined_content: Aggregated notes
        client: Generation client
        policy: Retry/timeout policy
        limiter: Worker-wide semaphore bounding in-flight calls
        settings: Pipeline settings
        language: Language of the summary
        attempt: Attempts already spent

    Returns:
        Tuple of (summary, error). On failure the summary is the fallback
        text and error describes what went wrong.
    """
    settings = settings or pipeline_settings
    policy = policy or RetryPolicy.from_settings(settings)
    system_prompt = SUMMARY_SYSTEM_PROMPT.format(language=language)

    async def attempt_once() -> str:
        text = await guarded_generate(
            client,
            system_prompt,
            SUMMARY_USER_PROMPT,
            combined_content,
            settings.SUMMARY_TEMPERATURE,
            timeout_seconds=policy.timeout_seconds,
            limiter=limiter,
            max_tokens=settings.SUMMARY_MAX_TOKENS,
        )
        if not text or not text.strip():
            raise ValueError("Empty summary")
        return text.strip()

    try:
        summary = await run_with_retry(
            attempt_once, policy, label="Summary generation", attempts_used=attempt
        )
    except Exception as e:
        logger.error(f"Summary generation failed: {e}")
        return settings.SUMMARY_FALLBACK, f"Summary generation failed: {e}"

    return summary, None
