"""Utilities for detecting the format of uploaded documents."""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from pathlib import PurePath
from typing import Callable, Optional, Tuple

from docingest.errors import UnsupportedFormat


class DocumentFormat(str, Enum):
    """Supported document formats, one per extraction strategy."""

    TEXT = "text"
    LEGAL_XML = "legal-xml"
    PDF = "pdf"
    CSV = "csv"
    IMAGE = "image"


@dataclass(frozen=True, slots=True)
class _FormatRule:
    document_format: DocumentFormat
    matches: Callable[[str, str], bool]


def _mime_or_suffix(mime_types: Tuple[str, ...], suffixes: Tuple[str, ...]) -> Callable[[str, str], bool]:
    def matches(mime_type: str, suffix: str) -> bool:
        return mime_type in mime_types or suffix in suffixes

    return matches


# First match wins; a new format is a new rule, not a change to an existing one.
_RULES: Tuple[_FormatRule, ...] = (
    _FormatRule(DocumentFormat.TEXT, _mime_or_suffix(("text/plain", "text/markdown"), (".txt", ".md", ".markdown"))),
    _FormatRule(DocumentFormat.LEGAL_XML, _mime_or_suffix(("application/xml", "text/xml"), (".xml",))),
    _FormatRule(DocumentFormat.PDF, _mime_or_suffix(("application/pdf",), (".pdf",))),
    _FormatRule(DocumentFormat.CSV, _mime_or_suffix(("text/csv",), (".csv",))),
    _FormatRule(
        DocumentFormat.IMAGE,
        lambda mime_type, suffix: mime_type.startswith("image/")
        or suffix in (".png", ".jpg", ".jpeg", ".gif", ".webp"),
    ),
)

SUPPORTED_FORMATS: Tuple[str, ...] = (".txt", ".md", ".xml", ".pdf", ".csv", "images")


class DocumentFormatDetector:
    """Detects the document format based on the declared MIME type and file name."""

    @classmethod
    def detect(cls, file_name: str, mime_type: Optional[str] = None) -> DocumentFormat:
        """Return the first format whose rule matches.

        Raises :class:`UnsupportedFormat` naming the attempted type and the
        supported set when nothing matches.
        """

        normalized_mime = (mime_type or "").split(";", 1)[0].strip().lower()
        suffix = PurePath(file_name).suffix.lower()
        for rule in _RULES:
            if rule.matches(normalized_mime, suffix):
                return rule.document_format

        attempted = f"{mime_type or 'unknown'} ({file_name})"
        raise UnsupportedFormat(attempted, SUPPORTED_FORMATS)
