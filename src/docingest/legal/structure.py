"""Detection of the chapter/section/article/table hierarchy in legal text."""
from __future__ import annotations

import logging
import re
from typing import Dict, List, Optional, Sequence

from .models import ELEMENT_LEVELS, CrossReferences, ElementType, LegalStructureElement

LOGGER = logging.getLogger(__name__)

IDENTIFIER_PATTERN = r"\d+(?:\.\d+)*[a-z]?"

# Headings start a line and are capitalised; inline mentions ("zie artikel 4.2") are not.
MARKER_RE = re.compile(
    rf"^[ \t]*(?P<label>Hoofdstuk|Afdeling|Artikel|Tabel)[ \t]+(?P<identifier>{IDENTIFIER_PATTERN})\.?(?=\s|$)",
    re.MULTILINE,
)
_ARTICLE_REF_RE = re.compile(
    rf"\b(?:artikelen|artikel|art\.)\s+(?P<identifier>\d+\.{IDENTIFIER_PATTERN})", re.IGNORECASE
)
_TABLE_REF_RE = re.compile(rf"\btabel\s+(?P<identifier>\d+\.{IDENTIFIER_PATTERN})", re.IGNORECASE)

_LABEL_TYPES: Dict[str, ElementType] = {
    "Hoofdstuk": ElementType.HOOFDSTUK,
    "Afdeling": ElementType.AFDELING,
    "Artikel": ElementType.ARTIKEL,
    "Tabel": ElementType.TABEL,
}


class LegalStructureParser:
    """Parse rendered legal text into an ordered list of structural elements.

    Each marker's content runs up to the next structural marker or the end of
    the document, so elements never overlap and re-parsing the same text is
    deterministic.
    """

    def parse_structure(self, text: str) -> List[LegalStructureElement]:
        matches = list(MARKER_RE.finditer(text))
        if not matches:
            return []

        elements: List[LegalStructureElement] = []
        preamble = text[: matches[0].start()].strip()
        if preamble:
            begin = text.index(preamble)
            elements.append(
                LegalStructureElement(
                    type=ElementType.TEXT,
                    content=preamble,
                    start_index=begin,
                    end_index=begin + len(preamble),
                    level=ELEMENT_LEVELS[ElementType.TEXT],
                )
            )

        for position, match in enumerate(matches):
            start = match.start("label")
            end = matches[position + 1].start() if position + 1 < len(matches) else len(text)
            content = text[start:end].rstrip()
            element_type = _LABEL_TYPES[match.group("label")]
            elements.append(
                LegalStructureElement(
                    type=element_type,
                    content=content,
                    start_index=start,
                    end_index=start + len(content),
                    level=ELEMENT_LEVELS[element_type],
                    identifier=match.group("identifier"),
                )
            )

        elements.sort(key=lambda element: element.start_index)
        LOGGER.debug("Parsed %s structural elements", len(elements))
        return elements

    def detect_cross_references(self, text: str) -> CrossReferences:
        """Collect mentions of article and table identifiers, ignoring headings."""

        heading_starts = {match.start("label") for match in MARKER_RE.finditer(text)}
        article_refs = self._collect(_ARTICLE_REF_RE, text, heading_starts)
        table_refs = self._collect(_TABLE_REF_RE, text, heading_starts)
        return CrossReferences(
            has_references=bool(article_refs or table_refs),
            article_refs=tuple(article_refs),
            table_refs=tuple(table_refs),
        )

    def find_associated_table(
        self, article: LegalStructureElement, elements: Sequence[LegalStructureElement]
    ) -> Optional[LegalStructureElement]:
        """Return the table belonging to *article*, if one precedes the next article.

        A table whose identifier equals the article's wins; otherwise the
        nearest following table is used.
        """

        position = next((i for i, element in enumerate(elements) if element is article), None)
        if position is None:
            return None

        nearest: Optional[LegalStructureElement] = None
        for element in elements[position + 1 :]:
            if element.type is ElementType.ARTIKEL:
                break
            if element.type is not ElementType.TABEL:
                continue
            if article.identifier and element.identifier == article.identifier:
                return element
            if nearest is None:
                nearest = element
        return nearest

    @staticmethod
    def headings(text: str, element_type: ElementType) -> List[str]:
        """Identifiers of the headings of *element_type* found in *text*, deduplicated."""

        found = (
            match.group("identifier")
            for match in MARKER_RE.finditer(text)
            if _LABEL_TYPES[match.group("label")] is element_type
        )
        return list(dict.fromkeys(found))

    @staticmethod
    def _collect(pattern: re.Pattern[str], text: str, heading_starts: set[int]) -> List[str]:
        found = (
            match.group("identifier")
            for match in pattern.finditer(text)
            if match.start() not in heading_starts
        )
        return list(dict.fromkeys(found))
