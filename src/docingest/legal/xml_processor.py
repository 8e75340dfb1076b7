"""Structure-aware processing of legal XML documents.

The XML tree is rendered into marker text (``Hoofdstuk 4``, ``Artikel 4.162``,
``Tabel 4.162`` headings at line starts) so that the structure parser can
work on plain text, while the tables found along the way are parsed and
enriched separately and spliced back in by the chunk assembler.
"""
from __future__ import annotations

import logging
import re
import xml.etree.ElementTree as ET
from typing import List, Optional, Tuple, Union

from docingest.errors import ExtractionFailed
from docingest.ingest.models import ExtractedText, ExtractionMetadata

from .assembler import StructureAwareChunkAssembler
from .enrichment import TableEnricher
from .models import ParsedTable
from .structure import MARKER_RE, LegalStructureParser
from .tables import XMLTableParser, element_text, local_name

LOGGER = logging.getLogger(__name__)

EXTRACTION_METHOD = "legal-xml"

_HEADING_LABELS = {
    "hoofdstuk": "Hoofdstuk",
    "afdeling": "Afdeling",
    "paragraaf": "Paragraaf",
    "artikel": "Artikel",
}
_STRUCTURAL_TAGS = set(_HEADING_LABELS) | {"lid", "table", "kop"}
_BLOCK_TAGS = {"al", "p", "li", "para"}


class LegalXMLProcessor:
    def __init__(
        self,
        enricher: Optional[TableEnricher] = None,
        *,
        table_parser: Optional[XMLTableParser] = None,
        structure_parser: Optional[LegalStructureParser] = None,
        assembler: Optional[StructureAwareChunkAssembler] = None,
    ) -> None:
        self.enricher = enricher
        self.table_parser = table_parser or XMLTableParser()
        self.structure_parser = structure_parser or LegalStructureParser()
        self.assembler = assembler or StructureAwareChunkAssembler(self.structure_parser)

    def render(self, xml_content: Union[str, bytes]) -> Tuple[str, List[ParsedTable]]:
        """Render *xml_content* into marker text and collect the tables it contains."""

        try:
            root = ET.fromstring(xml_content)
        except ET.ParseError as error:
            raise ExtractionFailed(f"Malformed XML: {error}") from error

        blocks: List[str] = []
        tables: List[ParsedTable] = []
        self._walk(root, blocks, tables)
        return "\n\n".join(blocks), tables

    async def process(self, xml_content: Union[str, bytes], filename: str) -> ExtractedText:
        text, tables = self.render(xml_content)
        LOGGER.info("Rendered %s: %s characters, %s tables", filename, len(text), len(tables))

        warnings: List[str] = []
        elements = self.structure_parser.parse_structure(text)
        if not elements:
            warnings.append("No legal structure detected; falling back to standard chunking")
            return ExtractedText(
                text=text,
                metadata=ExtractionMetadata(extraction_method=EXTRACTION_METHOD, warnings=warnings),
            )

        numbered = [table for table in tables if table.table_number]
        enriched = []
        if self.enricher is not None and numbered:
            enriched = await self.enricher.enrich_tables(numbered)
        degraded = sum(1 for table in enriched if table.degraded)
        if degraded:
            warnings.append(
                f"Table enrichment degraded for {degraded} of {len(enriched)} tables; "
                "fallback sentences were used"
            )

        chunks = self.assembler.create_chunks(elements, enriched)
        LOGGER.info("Created %s structure-aware chunks for %s", len(chunks), filename)
        return ExtractedText(
            text=text,
            metadata=ExtractionMetadata(
                extraction_method=EXTRACTION_METHOD,
                warnings=warnings,
                enriched_chunks=list(chunks),
                enrichment_degraded=bool(degraded),
            ),
        )

    def _walk(self, element: ET.Element, blocks: List[str], tables: List[ParsedTable]) -> None:
        name = local_name(element.tag)
        if name == "table":
            self._render_table(element, blocks, tables)
        elif name in _HEADING_LABELS:
            self._render_section(element, name, blocks, tables)
        elif name == "lid":
            self._render_lid(element, blocks, tables)
        elif _is_leaf_block(element):
            _append(blocks, element_text(element))
        else:
            _append(blocks, element.text)
            for child in element:
                self._walk(child, blocks, tables)
                _append(blocks, child.tail)

    def _render_section(
        self, element: ET.Element, name: str, blocks: List[str], tables: List[ParsedTable]
    ) -> None:
        kop = next((child for child in element if local_name(child.tag) == "kop"), None)
        number = _child_text(kop, "nr") if kop is not None else element.get("nr", "")
        title = _child_text(kop, "titel") if kop is not None else ""
        heading = " ".join(part for part in (_HEADING_LABELS[name], number, title) if part)
        _append(blocks, heading)
        for child in element:
            if child is not kop:
                self._walk(child, blocks, tables)
                _append(blocks, child.tail)

    def _render_lid(self, element: ET.Element, blocks: List[str], tables: List[ParsedTable]) -> None:
        number = _child_text(element, "lidnr")
        inner: List[str] = []
        for child in element:
            if local_name(child.tag) != "lidnr":
                self._walk(child, inner, tables)
                _append(inner, child.tail)
        if not inner:
            _append(blocks, element_text(element))
            return
        if number:
            # Prefixing a table heading would hide its marker from the structure parser.
            if MARKER_RE.match(inner[0]):
                inner.insert(0, f"{number}.")
            else:
                inner[0] = f"{number}. {inner[0]}"
        blocks.extend(inner)

    def _render_table(self, element: ET.Element, blocks: List[str], tables: List[ParsedTable]) -> None:
        table = self.table_parser.parse_table_element(element)
        if table is None:
            _append(blocks, element_text(element))
            return
        tables.append(table)
        body = self.table_parser.table_to_markdown(table, with_title=False)
        blocks.append(f"{table_heading(table)}\n{body}")


def table_heading(table: ParsedTable) -> str:
    """``Tabel <nr> <rest of title>`` for numbered tables, the plain title otherwise."""

    if not table.table_number:
        return table.title
    rest = re.sub(rf"^\s*tabel\s+{re.escape(table.table_number)}\.?", "", table.title, flags=re.IGNORECASE)
    rest = rest.strip()
    return f"Tabel {table.table_number} {rest}" if rest else f"Tabel {table.table_number}"


def _is_leaf_block(element: ET.Element) -> bool:
    return not any(
        local_name(descendant.tag) in _STRUCTURAL_TAGS | _BLOCK_TAGS
        for descendant in element.iter()
        if descendant is not element
    )


def _child_text(element: Optional[ET.Element], tag: str) -> str:
    if element is None:
        return ""
    child = next((candidate for candidate in element if local_name(candidate.tag) == tag), None)
    return element_text(child)


def _append(blocks: List[str], text: Optional[str]) -> None:
    if text and text.strip():
        blocks.append(" ".join(text.split()))
