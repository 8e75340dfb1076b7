"""Base provider interfaces for language and vision models."""

from __future__ import annotations

from abc import ABC, abstractmethod

__all__ = ["LLMError", "LLMGenerationError", "LLMProvider"]


class LLMError(RuntimeError):
    """Base exception raised for LLM provider issues."""


class LLMGenerationError(LLMError):
    """Raised when generation fails or returns nothing usable."""


class LLMProvider(ABC):
    """Stateless request/response contract for text and image generation."""

    @abstractmethod
    async def generate(self, system_prompt: str, user_prompt: str, temperature: float = 0.0) -> str:
        """Generate text for the given system and user prompts."""

    @abstractmethod
    async def describe_image(
        self, image: bytes, instructions: str, mime_type: str = "image/png"
    ) -> str:
        """Describe *image* following *instructions*."""
