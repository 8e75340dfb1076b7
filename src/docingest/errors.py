"""Exceptions raised by the ingestion pipeline."""
from __future__ import annotations

from typing import Iterable


class IngestError(RuntimeError):
    """Base class for document-level ingestion failures."""


class UnsupportedFormat(IngestError):
    """Raised when no extractor is registered for the declared media type."""

    def __init__(self, attempted: str, supported: Iterable[str]) -> None:
        self.attempted = attempted
        self.supported = tuple(supported)
        super().__init__(
            f"Unsupported file type: {attempted}. "
            f"Currently supported: {', '.join(self.supported)}."
        )


class ExtractionFailed(IngestError):
    """Raised when a source is corrupt, protected or yields no text at all."""


class StorageNotFound(IngestError, FileNotFoundError):
    """Raised when the byte storage has no object at the requested path."""


class ProcessingFailed(IngestError):
    """Single document-level failure wrapping the original cause."""

    def __init__(self, filename: str, message: str, *, cause: Exception | None = None) -> None:
        super().__init__(f"Failed to process {filename}: {message}")
        self.filename = filename
        self.__cause__ = cause
