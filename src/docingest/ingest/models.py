"""Data models used by the ingestion pipeline."""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional


@dataclass(frozen=True, slots=True)
class TextChunk:
    """A token-bounded span of extracted text, immutable once created."""

    text: str
    index: int
    token_count: int
    start_char: int
    end_char: int
    page_number: Optional[int] = None
    section_title: Optional[str] = None


@dataclass(slots=True)
class ChunkingOptions:
    max_tokens: int = 800
    overlap_tokens: int = 100
    respect_sentences: bool = True
    respect_paragraphs: bool = True


@dataclass(slots=True)
class ChunkingStats:
    total_chunks: int = 0
    total_tokens: int = 0
    avg_tokens_per_chunk: int = 0
    min_tokens: int = 0
    max_tokens: int = 0


@dataclass(slots=True)
class PageContent:
    """Represents text extracted from a page in the source document."""

    page_number: int
    text: str
    char_offset: int = 0


@dataclass(slots=True)
class ExtractionMetadata:
    extraction_method: str
    warnings: List[str] = field(default_factory=list)
    pages: Optional[List[PageContent]] = None
    rows: Optional[int] = None
    columns: Optional[List[str]] = None
    # Set only by the legal-XML route; the caller must skip standard chunking.
    enriched_chunks: Optional[List[TextChunk]] = None
    enrichment_degraded: bool = False


@dataclass(slots=True)
class ExtractedText:
    text: str
    metadata: ExtractionMetadata
    page_count: Optional[int] = None


@dataclass(slots=True)
class DocumentStats:
    total_tokens: int
    chunk_count: int
    extraction_method: str
    warnings: List[str] = field(default_factory=list)
    page_count: Optional[int] = None
    enrichment_degraded: bool = False


@dataclass(slots=True)
class ProcessedDocument:
    """Terminal artifact handed to the embedding/storage layer."""

    file_id: str
    filename: str
    chunks: List[TextChunk]
    metadata: DocumentStats


@dataclass(slots=True)
class CostEstimate:
    estimated_chunks: int
    estimated_tokens: int
    estimated_cost: float
