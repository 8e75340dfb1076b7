"""Deterministic offline provider used for development without network access."""
from __future__ import annotations

from .base import LLMProvider


class MockLLMProvider(LLMProvider):
    """Return predictable completions derived from the prompt."""

    async def generate(self, system_prompt: str, user_prompt: str, temperature: float = 0.0) -> str:
        del system_prompt, temperature
        return f"MOCK_ANSWER: {user_prompt[:100]}"

    async def describe_image(
        self, image: bytes, instructions: str, mime_type: str = "image/png"
    ) -> str:
        del instructions
        return f"MOCK_IMAGE: {mime_type} image of {len(image)} bytes."
