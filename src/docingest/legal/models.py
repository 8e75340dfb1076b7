"""Data models for legal-document structure, tables and structure-aware chunks."""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from docingest.ingest.models import TextChunk


class ElementType(str, Enum):
    HOOFDSTUK = "hoofdstuk"
    AFDELING = "afdeling"
    PARAGRAAF = "paragraaf"
    ARTIKEL = "artikel"
    LID = "lid"
    TABEL = "tabel"
    TEXT = "text"


# Hierarchy depth per element type; 0 is the top of the hierarchy.
ELEMENT_LEVELS: Dict[ElementType, int] = {
    ElementType.HOOFDSTUK: 0,
    ElementType.AFDELING: 1,
    ElementType.PARAGRAAF: 1,
    ElementType.ARTIKEL: 2,
    ElementType.LID: 3,
    ElementType.TABEL: 3,
    ElementType.TEXT: 4,
}


@dataclass(frozen=True, slots=True)
class LegalStructureElement:
    type: ElementType
    content: str
    start_index: int
    end_index: int
    level: int
    identifier: Optional[str] = None


@dataclass(frozen=True, slots=True)
class CrossReferences:
    has_references: bool
    article_refs: Tuple[str, ...] = ()
    table_refs: Tuple[str, ...] = ()


@dataclass(slots=True)
class TableCell:
    value: str
    col_index: int
    row_index: int
    colspan: Optional[int] = None
    rowspan: Optional[int] = None


@dataclass(slots=True)
class TableRow:
    cells: List[TableCell]
    row_index: int
    is_header: bool


@dataclass(slots=True)
class TableMetadata:
    total_columns: int
    total_rows: int
    article_references: List[str] = field(default_factory=list)


@dataclass(slots=True)
class ParsedTable:
    title: str
    columns: List[str]
    headers: List[TableRow]
    data_rows: List[TableRow]
    metadata: TableMetadata
    table_number: Optional[str] = None


class EnrichmentOutcome(str, Enum):
    ENRICHED = "enriched"
    FALLBACK = "fallback"


@dataclass(frozen=True, slots=True)
class EnrichedTable:
    original_table: ParsedTable
    synthetic_sentences: Tuple[str, ...]
    structured_data: Dict[str, Any]
    markdown: str
    outcome: EnrichmentOutcome = EnrichmentOutcome.ENRICHED

    @property
    def degraded(self) -> bool:
        return self.outcome is EnrichmentOutcome.FALLBACK


@dataclass(frozen=True, slots=True)
class LegalChunk(TextChunk):
    """A structure-aware chunk whose metadata is derived from its own text."""

    article_numbers: Tuple[str, ...] = ()
    table_names: Tuple[str, ...] = ()
    parent_section: Optional[str] = None
    has_table: bool = False
    has_cross_reference: bool = False
    structure_level: str = "text"
    enriched_by_llm: bool = False
