"""Legal-document structure, table parsing, enrichment and chunk assembly."""

from .assembler import StructureAwareChunkAssembler, legal_chunk_fallback
from .enrichment import TableEnricher
from .models import (
    CrossReferences,
    ElementType,
    EnrichedTable,
    EnrichmentOutcome,
    LegalChunk,
    LegalStructureElement,
    ParsedTable,
)
from .structure import LegalStructureParser
from .tables import XMLTableParser
from .xml_processor import LegalXMLProcessor

__all__ = [
    "CrossReferences",
    "ElementType",
    "EnrichedTable",
    "EnrichmentOutcome",
    "LegalChunk",
    "LegalStructureElement",
    "LegalStructureParser",
    "LegalXMLProcessor",
    "ParsedTable",
    "StructureAwareChunkAssembler",
    "TableEnricher",
    "XMLTableParser",
    "legal_chunk_fallback",
]
