"""Normalisation of text pulled out of paginated sources."""
from __future__ import annotations

import re
import unicodedata

_WHITESPACE_RE = re.compile(r"[ \t\f\v]+")
_MULTIPLE_NEWLINES_RE = re.compile(r"\n{3,}")
_TRAILING_SPACE_RE = re.compile(r"[ \t]+\n")
_HYPHENATED_BREAK_RE = re.compile(r"(\w)-\n(\w)")


def normalize_text(text: str) -> str:
    """Normalise Unicode, line endings and whitespace runs of a page of text.

    Words hyphenated across a line break are rejoined; paragraph breaks
    (blank lines) are preserved so paragraph-aware chunking still applies.
    """

    normalized = unicodedata.normalize("NFC", text)
    normalized = normalized.replace("\r\n", "\n").replace("\r", "\n")
    normalized = _HYPHENATED_BREAK_RE.sub(r"\1\2", normalized)
    normalized = _WHITESPACE_RE.sub(" ", normalized)
    normalized = _TRAILING_SPACE_RE.sub("\n", normalized)
    normalized = _MULTIPLE_NEWLINES_RE.sub("\n\n", normalized)
    return normalized.strip()


def collapse_whitespace(text: str) -> str:
    """Flatten all whitespace runs, including newlines, into single spaces."""

    return " ".join(text.split())
