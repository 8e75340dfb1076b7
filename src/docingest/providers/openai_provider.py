"""LLM provider backed by the OpenAI chat completions API."""
from __future__ import annotations

import base64
import logging
import os
from typing import Any, Optional

import openai

from .base import LLMGenerationError, LLMProvider

LOGGER = logging.getLogger(__name__)

DEFAULT_MODEL = "gpt-4o-mini"


class OpenAIProvider(LLMProvider):
    """Thin async wrapper translating provider calls into chat completions."""

    def __init__(
        self,
        *,
        model: Optional[str] = None,
        vision_model: Optional[str] = None,
        client: Optional[Any] = None,
        max_tokens: int = 2048,
    ) -> None:
        self.model = model or os.getenv("LLM_MODEL", DEFAULT_MODEL)
        self.vision_model = vision_model or os.getenv("LLM_VISION_MODEL", self.model)
        self.max_tokens = max_tokens
        self._client = client or openai.AsyncOpenAI()
        LOGGER.info("OpenAI provider initialised (model=%s, vision=%s)", self.model, self.vision_model)

    async def generate(self, system_prompt: str, user_prompt: str, temperature: float = 0.0) -> str:
        messages = [
            {"role": "system", "content": system_prompt},
            {"role": "user", "content": user_prompt},
        ]
        return await self._complete(self.model, messages, temperature)

    async def describe_image(
        self, image: bytes, instructions: str, mime_type: str = "image/png"
    ) -> str:
        encoded = base64.b64encode(image).decode("ascii")
        messages = [
            {
                "role": "user",
                "content": [
                    {"type": "text", "text": instructions},
                    {"type": "image_url", "image_url": {"url": f"data:{mime_type};base64,{encoded}"}},
                ],
            }
        ]
        return await self._complete(self.vision_model, messages, 0.2)

    async def _complete(self, model: str, messages: list[dict[str, Any]], temperature: float) -> str:
        try:
            response = await self._client.chat.completions.create(
                model=model,
                messages=messages,
                temperature=temperature,
                max_tokens=self.max_tokens,
            )
        except openai.OpenAIError as error:
            raise LLMGenerationError(f"{model} request failed: {error}") from error

        content = response.choices[0].message.content if response.choices else None
        if not content or not content.strip():
            raise LLMGenerationError(f"{model} returned an empty response")
        return content.strip()
