"""Group parsed legal structure into chunks that keep articles and their tables together."""
from __future__ import annotations

import logging
from collections import deque
from typing import Deque, Dict, List, Optional, Sequence, Set

from docingest.ingest.chunking import TokenAwareChunker, TokenCounter
from docingest.ingest.models import ChunkingOptions, TextChunk
from docingest.ingest.tokens import count_tokens

from .models import ElementType, EnrichedTable, EnrichmentOutcome, LegalChunk, LegalStructureElement
from .structure import LegalStructureParser

LOGGER = logging.getLogger(__name__)

DEFAULT_MAX_TOKENS = 1500
DEFAULT_MIN_TOKENS = 300

ELEMENT_SEPARATOR = "\n\n"
TABLE_DETAILS_HEADING = "--- Tabel details ---"
TABLE_SUMMARY_HEADING = "--- Tabel samenvatting ---"

# Merging stops at these; a new chapter or section starts a new chunk.
_BOUNDARY_TYPES = {ElementType.HOOFDSTUK, ElementType.AFDELING}


class StructureAwareChunkAssembler:
    """Turn an ordered element list into :class:`LegalChunk` objects.

    Articles absorb their associated table (enriched content when available),
    undersized chunks absorb following elements up to ``max_tokens`` and
    metadata is always recomputed from the final chunk text.
    """

    def __init__(
        self,
        parser: Optional[LegalStructureParser] = None,
        *,
        max_tokens: int = DEFAULT_MAX_TOKENS,
        min_tokens: int = DEFAULT_MIN_TOKENS,
        token_counter: TokenCounter = count_tokens,
    ) -> None:
        self.parser = parser or LegalStructureParser()
        self.max_tokens = max_tokens
        self.min_tokens = min_tokens
        self.count_tokens = token_counter

    def chunk(
        self, text: str, enriched_tables: Optional[Sequence[EnrichedTable]] = None
    ) -> List[LegalChunk]:
        """Parse *text* and assemble it; unstructured text is packed by paragraph."""

        elements = self.parser.parse_structure(text)
        if not elements:
            LOGGER.warning("No legal structure detected, falling back to paragraph chunking")
            return legal_chunk_fallback(
                text, max_tokens=self.max_tokens, token_counter=self.count_tokens, parser=self.parser
            )
        return self.create_chunks(elements, enriched_tables)

    def create_chunks(
        self,
        elements: Sequence[LegalStructureElement],
        enriched_tables: Optional[Sequence[EnrichedTable]] = None,
    ) -> List[LegalChunk]:
        """Assemble *elements*; *enriched_tables* are given in document order."""

        paired = pair_enriched_tables(elements, enriched_tables or ())
        consumed: Set[int] = set()
        chunks: List[LegalChunk] = []
        parent_section: Optional[str] = None

        for position, element in enumerate(elements):
            if position in consumed:
                continue
            consumed.add(position)

            if element.type is ElementType.HOOFDSTUK:
                parent_section = None
            elif element.type is ElementType.AFDELING:
                parent_section = element.content.split("\n", 1)[0].strip()

            parts = [_element_text(element, paired.get(position))]
            start, end = element.start_index, element.end_index
            enriched = _is_enriched(paired.get(position))

            if element.type is ElementType.ARTIKEL:
                table = self.parser.find_associated_table(element, elements)
                table_position = _position_of(table, elements)
                if table is not None and table_position not in consumed:
                    candidate = parts + [_element_text(table, paired.get(table_position))]
                    if self.count_tokens(ELEMENT_SEPARATOR.join(candidate)) <= self.max_tokens:
                        parts = candidate
                        consumed.add(table_position)
                        end = max(end, table.end_index)
                        enriched = enriched or _is_enriched(paired.get(table_position))
                    else:
                        LOGGER.debug(
                            "Table %s does not fit with article %s, emitting separately",
                            table.identifier,
                            element.identifier,
                        )

            next_position = position + 1
            while self.count_tokens(ELEMENT_SEPARATOR.join(parts)) < self.min_tokens:
                while next_position in consumed:
                    next_position += 1
                if next_position >= len(elements):
                    break
                following = elements[next_position]
                if following.type in _BOUNDARY_TYPES:
                    break
                candidate = parts + [_element_text(following, paired.get(next_position))]
                if self.count_tokens(ELEMENT_SEPARATOR.join(candidate)) > self.max_tokens:
                    break
                parts = candidate
                consumed.add(next_position)
                end = max(end, following.end_index)
                enriched = enriched or _is_enriched(paired.get(next_position))

            text = ELEMENT_SEPARATOR.join(parts)
            for piece_text, piece_start, piece_end in self._fit(text, start, end):
                chunks.append(
                    build_legal_chunk(
                        piece_text,
                        index=len(chunks),
                        start_char=piece_start,
                        end_char=piece_end,
                        token_count=self.count_tokens(piece_text),
                        parser=self.parser,
                        parent_section=parent_section,
                        structure_level=element.type.value,
                        enriched_by_llm=enriched,
                    )
                )

        LOGGER.info("Assembled %s legal chunks from %s elements", len(chunks), len(elements))
        return chunks

    def _fit(self, text: str, start: int, end: int) -> List[tuple[str, int, int]]:
        """Split a single over-budget element so no chunk exceeds ``max_tokens``."""

        if self.count_tokens(text) <= self.max_tokens:
            return [(text, start, end)]

        chunker = TokenAwareChunker(
            ChunkingOptions(max_tokens=self.max_tokens, overlap_tokens=0),
            token_counter=self.count_tokens,
        )
        LOGGER.debug("Splitting oversized element at offset %s", start)
        # Enriched table text is not a verbatim source span, so offsets are clamped.
        return [
            (piece.text, min(start + piece.start_char, end), min(start + piece.end_char, end))
            for piece in chunker.chunk(text)
        ]


def _element_text(element: LegalStructureElement, table: Optional[EnrichedTable]) -> str:
    if table is None:
        return element.content
    return enriched_table_text(element, table)


def _is_enriched(table: Optional[EnrichedTable]) -> bool:
    return table is not None and table.outcome is EnrichmentOutcome.ENRICHED


def enriched_table_text(element: LegalStructureElement, table: EnrichedTable) -> str:
    """Heading line of the table element followed by its markdown and sentences.

    Sentences are written as list items so one opening with ``Artikel 4.2``
    is never read back as an article heading.
    """

    heading = element.content.split("\n", 1)[0].strip()
    parts = [heading, TABLE_DETAILS_HEADING, table.markdown]
    if table.synthetic_sentences:
        parts.append(TABLE_SUMMARY_HEADING)
        parts.append("\n".join(f"- {sentence}" for sentence in table.synthetic_sentences))
    return "\n\n".join(parts)


def build_legal_chunk(
    text: str,
    *,
    index: int,
    start_char: int,
    end_char: int,
    token_count: int,
    parser: LegalStructureParser,
    parent_section: Optional[str] = None,
    structure_level: str = ElementType.TEXT.value,
    enriched_by_llm: bool = False,
) -> LegalChunk:
    article_numbers = parser.headings(text, ElementType.ARTIKEL)
    table_names = parser.headings(text, ElementType.TABEL)
    references = parser.detect_cross_references(text)
    own = set(article_numbers) | set(table_names)
    external = [ref for ref in references.article_refs + references.table_refs if ref not in own]
    return LegalChunk(
        text=text,
        index=index,
        token_count=token_count,
        start_char=start_char,
        end_char=end_char,
        section_title=parent_section,
        article_numbers=tuple(article_numbers),
        table_names=tuple(table_names),
        parent_section=parent_section,
        has_table=bool(table_names),
        has_cross_reference=bool(external),
        structure_level=structure_level,
        enriched_by_llm=enriched_by_llm,
    )


def legal_chunk_fallback(
    text: str,
    *,
    max_tokens: int = DEFAULT_MAX_TOKENS,
    token_counter: TokenCounter = count_tokens,
    parser: Optional[LegalStructureParser] = None,
) -> List[LegalChunk]:
    """Pack unstructured text by paragraph into :class:`LegalChunk` objects."""

    parser = parser or LegalStructureParser()
    chunker = TokenAwareChunker(
        ChunkingOptions(max_tokens=max_tokens, overlap_tokens=0), token_counter=token_counter
    )
    plain: List[TextChunk] = chunker.chunk(text)
    return [
        build_legal_chunk(
            chunk.text,
            index=chunk.index,
            start_char=chunk.start_char,
            end_char=chunk.end_char,
            token_count=chunk.token_count,
            parser=parser,
        )
        for chunk in plain
    ]


def _position_of(
    element: Optional[LegalStructureElement], elements: Sequence[LegalStructureElement]
) -> int:
    if element is None:
        return -1
    return next(i for i, candidate in enumerate(elements) if candidate is element)


def pair_enriched_tables(
    elements: Sequence[LegalStructureElement], tables: Sequence[EnrichedTable]
) -> Dict[int, EnrichedTable]:
    """Map table element positions to enriched tables.

    Tables sharing a number (a table and its continuation) are matched in
    document order, so the n-th ``Tabel 1.1`` element gets the n-th enriched
    table numbered 1.1. Elements without a counterpart keep their raw content.
    """

    pending: Dict[str, Deque[EnrichedTable]] = {}
    for table in tables:
        number = table.original_table.table_number
        if number:
            pending.setdefault(number, deque()).append(table)

    paired: Dict[int, EnrichedTable] = {}
    for position, element in enumerate(elements):
        if element.type is not ElementType.TABEL:
            continue
        queue = pending.get(element.identifier or "")
        if queue:
            paired[position] = queue.popleft()
    return paired
