"""
LLM Service Module

Adapter to the external text-generation service via LiteLLM.

Key Components:
- client.py: GenerationClient, error classification, message building

Usage:
    from app.services.llm import GenerationClient

    client = GenerationClient()
    text = await client.generate(system_prompt, user_prompt, content, temperature=0.3)
"""

from app.services.llm.client import (
    GenerationClient,
    build_messages,
    classify_generation_error,
)

__all__ = [
    "GenerationClient",
    "build_messages",
    "classify_generation_error",
]
