"""Language/vision model providers and the cached provider factory."""
from __future__ import annotations

import logging
import os
from functools import lru_cache

from .base import LLMError, LLMGenerationError, LLMProvider
from .mock_llm import MockLLMProvider

LOGGER = logging.getLogger(__name__)

__all__ = [
    "LLMError",
    "LLMGenerationError",
    "LLMProvider",
    "MockLLMProvider",
    "get_llm_provider",
    "reset_llm_provider_cache",
]


@lru_cache()
def get_llm_provider() -> LLMProvider:
    """Return the provider selected by ``LLM_PROVIDER`` (``openai`` or ``mock``)."""

    backend = os.getenv("LLM_PROVIDER", "openai").strip().lower()
    if backend == "mock":
        LOGGER.info("LLM_PROVIDER=mock; using deterministic offline provider")
        return MockLLMProvider()
    if backend != "openai":
        raise LLMError(f"Unknown LLM_PROVIDER '{backend}'")

    from .openai_provider import OpenAIProvider

    return OpenAIProvider()


def reset_llm_provider_cache() -> None:
    """Clear the cached provider instance (primarily for testing)."""

    get_llm_provider.cache_clear()  # type: ignore[attr-defined]
