"""Extraction, token counting and chunking of uploaded documents.

The orchestrating :class:`~docingest.ingest.pipeline.DocumentProcessor` lives in
``docingest.ingest.pipeline`` and is imported from there, since it depends on
the legal-document package which in turn builds on the models below.
"""

from .chunking import TokenAwareChunker
from .models import ChunkingOptions, ChunkingStats, PageContent, ProcessedDocument, TextChunk
from .tokens import count_tokens

__all__ = [
    "ChunkingOptions",
    "ChunkingStats",
    "PageContent",
    "ProcessedDocument",
    "TextChunk",
    "TokenAwareChunker",
    "count_tokens",
]
