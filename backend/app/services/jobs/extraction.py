"""
Text Extraction Collaborators

Non-text jobs need their source turned into plain text before chunking:
documents need text extraction, videos and platform links need a
transcript. That work belongs to external services; the worker only
knows the TextExtractor interface and calls it once per job.

Extraction failures are fatal for the job and are not retried here.

Usage:
    extractor = ExtractorRegistry({
        JobType.FILE: my_document_extractor,
        JobType.PLATFORM_LINK: my_transcript_fetcher,
    })
    text = await extractor.extract_text(job_input)
"""

import logging
from typing import Optional, Protocol

from app.enums.jobs import JobType
from app.middleware.error_handling import ExtractionError
from app.models.jobs import JobInput, TextJobInput

logger = logging.getLogger(__name__)


class TextExtractor(Protocol):
    """Turns a job's source into plain text, or raises."""

    async def extract_text(self, job_input: JobInput) -> str: ...


class ExtractorRegistry:
    """
    Dispatches extraction by job type.

    Text jobs never reach an extractor; their content is the text. Job
    types without a registered extractor fail with ExtractionError.
    """

    def __init__(self, extractors: Optional[dict[JobType, TextExtractor]] = None):
        self.extractors = dict(extractors or {})

    def register(self, job_type: JobType, extractor: TextExtractor) -> None:
        self.extractors[job_type] = extractor

    async def extract_text(self, job_input: JobInput) -> str:
        if isinstance(job_input, TextJobInput):
            return job_input.content

        extractor = self.extractors.get(job_input.job_type)
        if extractor is None:
            raise ExtractionError(
                f"No text extractor configured for {job_input.job_type.value} jobs"
            )

        try:
            text = await extractor.extract_text(job_input)
        except ExtractionError:
            raise
        except Exception as e:
            logger.error(f"Text extraction failed for {job_input.job_type.value} job: {e}")
            raise ExtractionError(
                f"Text extraction failed: {e}",
                details={"job_type": job_input.job_type.value},
            ) from e

        if not text or not text.strip():
            raise ExtractionError("No text could be extracted from the source")
        return text
