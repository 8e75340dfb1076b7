"""Language detection helpers."""
from __future__ import annotations

import logging
from typing import Optional

from langdetect import DetectorFactory, LangDetectException, detect

LOGGER = logging.getLogger(__name__)
DetectorFactory.seed = 0

_MAX_SAMPLE_CHARS = 5000


class LanguageDetector:
    """Best-effort ISO 639-1 detection over a bounded text sample."""

    def __init__(self, max_chars: int = _MAX_SAMPLE_CHARS) -> None:
        self.max_chars = max_chars

    def detect(self, text: str, default: Optional[str] = None) -> Optional[str]:
        sample = text.strip()[: self.max_chars]
        if not sample:
            return default
        try:
            language = detect(sample)
        except LangDetectException:
            LOGGER.info("Unable to determine language for sample of length %s", len(sample))
            return default
        LOGGER.debug("Detected language: %s", language)
        return language
