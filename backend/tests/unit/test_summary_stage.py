"""
Unit tests for summary generation.
"""

from unittest.mock import AsyncMock

import pytest

from app.config.pipeline import pipeline_settings
from app.services.processing.stages.summary import generate_summary


class TestGenerateSummary:
    """Tests for generate_summary with a mocked client."""

    @pytest.mark.asyncio
    async def test_returns_trimmed_summary(self, mock_generation_client, fast_policy):
        mock_generation_client.generate = AsyncMock(return_value="  A short summary.\n")

        summary, error = await generate_summary("notes", mock_generation_client, policy=fast_policy)

        assert summary == "A short summary."
        assert error is None

    @pytest.mark.asyncio
    async def test_uses_summary_parameters(self, mock_generation_client, fast_policy):
        await generate_summary("notes", mock_generation_client, policy=fast_policy, language="French")

        kwargs = mock_generation_client.generate.call_args.kwargs
        assert kwargs["temperature"] == 0.3
        assert kwargs["max_tokens"] == 400
        assert "Write the summary in French." in kwargs["system_prompt"]

    @pytest.mark.asyncio
    async def test_empty_summary_is_retried(self, mock_generation_client, fast_policy):
        mock_generation_client.generate = AsyncMock(side_effect=["", "  ", "Finally."])

        summary, error = await generate_summary("notes", mock_generation_client, policy=fast_policy)

        assert summary == "Finally."
        assert mock_generation_client.generate.await_count == 3

    @pytest.mark.asyncio
    async def test_fallback_after_exhausted_attempts(self, mock_generation_client, fast_policy):
        mock_generation_client.generate = AsyncMock(side_effect=RuntimeError("service down"))

        summary, error = await generate_summary("notes", mock_generation_client, policy=fast_policy)

        assert summary == pipeline_settings.SUMMARY_FALLBACK
        assert "service down" in error
