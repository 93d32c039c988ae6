"""
Notes Pipeline Configuration

Settings for chunking, note generation, quiz and summary generation,
and the retry/timeout policy wrapped around every generation call.

All settings can be overridden via environment variables with PIPELINE_ prefix.

Usage:
    from app.config.pipeline import pipeline_settings

    max_words = pipeline_settings.CHUNK_MAX_WORDS
    timeout = pipeline_settings.LLM_TIMEOUT_SECONDS
"""

from functools import lru_cache

from pydantic_settings import BaseSettings


class PipelineSettings(BaseSettings):
    """
    Notes pipeline configuration.

    Attributes are grouped by category:
    - Chunking limits
    - Generation call policy (timeout, retries, backoff)
    - Note, quiz and summary generation parameters
    - Worker-wide limits on external calls
    """

    # =========================================================================
    # CHUNKING
    # =========================================================================

    # Maximum words per chunk
    CHUNK_MAX_WORDS: int = 800

    # Chunks estimated above this many tokens are rejected without a call
    CHUNK_MAX_TOKENS: int = 3000

    # Rough characters-per-token ratio for the token estimate
    CHARS_PER_TOKEN: int = 4

    # =========================================================================
    # GENERATION CALL POLICY
    # =========================================================================

    # Hard wall-clock limit for a single generation call
    LLM_TIMEOUT_SECONDS: float = 60.0

    # Retries after the first attempt (3 attempts total)
    MAX_RETRIES: int = 2

    # Linear backoff: delay before retry n is RETRY_DELAY_SECONDS * n
    RETRY_DELAY_SECONDS: float = 1.0

    # Upper bound of random jitter added to each backoff delay (0 disables)
    RETRY_JITTER_SECONDS: float = 0.0

    # False: auth/badRequest fail after one attempt. True: the uniform policy,
    # every error kind gets MAX_RETRIES + 1 attempts per call
    RETRY_TERMINAL_ERRORS: bool = False

    # Concurrent generation calls allowed per worker process, across all jobs
    MAX_INFLIGHT_LLM_CALLS: int = 24

    # =========================================================================
    # NOTE GENERATION
    # =========================================================================

    NOTES_TEMPERATURE: float = 0.7
    NOTES_MAX_TOKENS: int = 4096

    # Separator between successfully generated chunk notes
    CHUNK_SEPARATOR: str = "\n\n---\n\n"

    # =========================================================================
    # QUIZ GENERATION
    # =========================================================================

    QUIZ_TEMPERATURE: float = 0.3
    QUIZ_MAX_TOKENS: int = 4096

    # Question count steps by combined content length (characters)
    QUIZ_SHORT_CONTENT_CHARS: int = 2000
    QUIZ_MEDIUM_CONTENT_CHARS: int = 3000
    QUIZ_SHORT_QUESTIONS: int = 10
    QUIZ_MEDIUM_QUESTIONS: int = 15
    QUIZ_LONG_QUESTIONS: int = 20

    # =========================================================================
    # SUMMARY GENERATION
    # =========================================================================

    SUMMARY_TEMPERATURE: float = 0.3
    SUMMARY_MAX_TOKENS: int = 400
    SUMMARY_FALLBACK: str = "Summary could not be generated."

    # =========================================================================
    # OUTPUT
    # =========================================================================

    # Characters of the source kept in job output metadata
    ORIGINAL_CONTENT_PREVIEW_CHARS: int = 500

    class Config:
        env_prefix = "PIPELINE_"
        extra = "ignore"


@lru_cache
def get_pipeline_settings() -> PipelineSettings:
    """Get cached pipeline settings instance."""
    return PipelineSettings()


pipeline_settings = get_pipeline_settings()
