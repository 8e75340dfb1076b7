"""Extractors for supported document types."""
from __future__ import annotations

import csv
import io
import logging
import mimetypes
import re
import time
from typing import Awaitable, Callable, Dict, List, Optional

from PyPDF2 import PdfReader

from docingest.errors import ExtractionFailed
from docingest.legal.xml_processor import LegalXMLProcessor
from docingest.providers import LLMProvider
from docingest.telemetry import emit_extraction_event

from .format_detection import DocumentFormat, DocumentFormatDetector
from .models import ExtractedText, ExtractionMetadata, PageContent
from .normalization import normalize_text

LOGGER = logging.getLogger(__name__)

PAGE_SEPARATOR = "\n\n"

# Heuristics only: dense prose can trip the first, subtly broken tables can slip past it.
_WHITESPACE_RUN_RE = re.compile(r"\s{3,}")
_SHORT_TEXT_THRESHOLD = 100

TABLE_STRUCTURE_WARNING = (
    "Large whitespace runs detected; table structure was likely lost during PDF extraction."
)
SCANNED_PDF_WARNING = (
    "Very little text extracted for the page count; the PDF likely contains scanned images "
    "and OCR is not available."
)

IMAGE_INSTRUCTIONS = (
    "Describe this image so it can be found with text search. Cover: "
    "1) the main subject and what is depicted; "
    "2) all visible text, labels and numbers, transcribed literally; "
    "3) technical annotations such as dimensions, scales or legend entries; "
    "4) the layout and how the parts relate to each other."
)


class TextExtractor:
    """Extract text from plaintext and markdown documents."""

    def extract(self, data: bytes, encoding: str = "utf-8") -> ExtractedText:
        warnings: List[str] = []
        try:
            text = data.decode(encoding)
        except UnicodeDecodeError:
            LOGGER.warning("Text is not valid %s; decoding as latin-1", encoding)
            warnings.append(f"File is not valid {encoding}; decoded as latin-1.")
            text = data.decode("latin-1")
        return ExtractedText(
            text=text, metadata=ExtractionMetadata(extraction_method="plain-text", warnings=warnings)
        )


class PDFExtractor:
    """Extract text page by page from PDF documents, flagging likely quality problems."""

    def extract(self, data: bytes) -> ExtractedText:
        try:
            reader = PdfReader(io.BytesIO(data))
            if reader.is_encrypted:
                raise ExtractionFailed("PDF is password-protected")
            raw_pages = [self._page_text(page, index) for index, page in enumerate(reader.pages, start=1)]
        except ExtractionFailed:
            raise
        except Exception as error:  # noqa: BLE001 - PyPDF2 raises a wide range of errors on bad input
            raise ExtractionFailed(
                f"PDF extraction failed: {error}. The PDF may be corrupted, password-protected "
                "or use an unsupported format."
            ) from error

        raw_text = "\f".join(raw_pages)
        warnings: List[str] = []
        if _WHITESPACE_RUN_RE.search(raw_text):
            warnings.append(TABLE_STRUCTURE_WARNING)
        if len(raw_text.strip()) < _SHORT_TEXT_THRESHOLD and raw_pages:
            warnings.append(SCANNED_PDF_WARNING)

        pages: List[PageContent] = []
        char_offset = 0
        for number, page_text in enumerate(raw_pages, start=1):
            normalized = normalize_text(page_text)
            pages.append(PageContent(page_number=number, text=normalized, char_offset=char_offset))
            char_offset += len(normalized) + len(PAGE_SEPARATOR)

        return ExtractedText(
            text=PAGE_SEPARATOR.join(page.text for page in pages),
            page_count=len(pages),
            metadata=ExtractionMetadata(extraction_method="pypdf2", warnings=warnings, pages=pages),
        )

    @staticmethod
    def _page_text(page, index: int) -> str:
        try:
            return page.extract_text() or ""
        except Exception as error:  # pragma: no cover - depends on the PDF content
            LOGGER.warning("Failed to extract text from PDF page %s: %s", index, error)
            return ""


class CSVExtractor:
    """Turn every CSV row into one ``column: value`` sentence."""

    def extract(self, data: bytes) -> ExtractedText:
        try:
            content = data.decode("utf-8-sig")
        except UnicodeDecodeError:
            content = data.decode("latin-1")

        try:
            reader = csv.DictReader(io.StringIO(content))
            columns = [name.strip() for name in reader.fieldnames or []]
            rows = [row for row in reader if any((value or "").strip() for value in _row_values(row))]
        except csv.Error as error:
            raise ExtractionFailed(f"CSV parsing failed: {error}") from error

        if not columns:
            raise ExtractionFailed("CSV file has no header row")

        lines = [
            f"This CSV file contains {len(rows)} rows and {len(columns)} columns: {', '.join(columns)}."
        ]
        for number, row in enumerate(rows, start=1):
            pairs = ", ".join(
                f"{name}: {(row.get(field) or '').strip()}"
                for name, field in zip(columns, reader.fieldnames or [])
            )
            lines.append(f"Row {number}: {pairs}.")

        return ExtractedText(
            text="\n".join(lines),
            metadata=ExtractionMetadata(extraction_method="csv", rows=len(rows), columns=columns),
        )


def _row_values(row: Dict[Optional[str], object]) -> List[str]:
    return [value for key, value in row.items() if key is not None and isinstance(value, str)]


class ImageExtractor:
    """Describe images with a vision-capable model."""

    def __init__(self, provider: LLMProvider, instructions: str = IMAGE_INSTRUCTIONS) -> None:
        self.provider = provider
        self.instructions = instructions

    async def extract(self, data: bytes, filename: str, mime_type: str) -> ExtractedText:
        if not mime_type.startswith("image/"):
            mime_type = mimetypes.guess_type(filename)[0] or "image/png"
        try:
            description = (await self.provider.describe_image(data, self.instructions, mime_type)).strip()
        except Exception as error:  # noqa: BLE001 - any vision failure degrades to the filename
            LOGGER.warning("Vision description failed for %s: %s", filename, error)
            return ExtractedText(
                text=f"Image: {filename}",
                metadata=ExtractionMetadata(
                    extraction_method="vision-fallback",
                    warnings=[f"Image description unavailable: {error}"],
                ),
            )
        return ExtractedText(
            text=f"Image: {filename}\n\n{description}",
            metadata=ExtractionMetadata(extraction_method="vision-model"),
        )


class ExtractionRouter:
    """Dispatch raw bytes to the extractor matching the detected document format."""

    def __init__(
        self,
        provider: LLMProvider,
        xml_processor: Optional[LegalXMLProcessor] = None,
        *,
        text_extractor: Optional[TextExtractor] = None,
        pdf_extractor: Optional[PDFExtractor] = None,
        csv_extractor: Optional[CSVExtractor] = None,
        image_extractor: Optional[ImageExtractor] = None,
    ) -> None:
        self.text_extractor = text_extractor or TextExtractor()
        self.pdf_extractor = pdf_extractor or PDFExtractor()
        self.csv_extractor = csv_extractor or CSVExtractor()
        self.image_extractor = image_extractor or ImageExtractor(provider)
        self.xml_processor = xml_processor or LegalXMLProcessor()
        self._handlers: Dict[DocumentFormat, Callable[[bytes, str, str], Awaitable[ExtractedText]]] = {
            DocumentFormat.TEXT: self._extract_text,
            DocumentFormat.LEGAL_XML: self._extract_legal_xml,
            DocumentFormat.PDF: self._extract_pdf,
            DocumentFormat.CSV: self._extract_csv,
            DocumentFormat.IMAGE: self.image_extractor.extract,
        }

    async def extract(self, buffer: bytes, mime_type: str, filename: str) -> ExtractedText:
        document_format = DocumentFormatDetector.detect(filename, mime_type)
        LOGGER.info("Extracting %s as %s", filename, document_format.value)

        started = time.perf_counter()
        extracted = await self._handlers[document_format](buffer, filename, mime_type)
        if not extracted.text.strip() and not extracted.metadata.enriched_chunks:
            raise ExtractionFailed(f"No text could be extracted from {filename}")

        emit_extraction_event(
            file_name=filename,
            extraction_method=extracted.metadata.extraction_method,
            characters=len(extracted.text),
            pages=extracted.page_count,
            warnings=extracted.metadata.warnings,
            duration_ms=(time.perf_counter() - started) * 1000.0,
        )
        for warning in extracted.metadata.warnings:
            LOGGER.warning("Extraction warning for %s: %s", filename, warning)
        return extracted

    def render_legal_xml(self, buffer: bytes) -> ExtractedText:
        """Rendered XML text without structure assembly or enrichment, for estimates."""

        text, _ = self.xml_processor.render(buffer)
        return ExtractedText(text=text, metadata=ExtractionMetadata(extraction_method="legal-xml"))

    async def _extract_text(self, buffer: bytes, filename: str, mime_type: str) -> ExtractedText:
        return self.text_extractor.extract(buffer)

    async def _extract_pdf(self, buffer: bytes, filename: str, mime_type: str) -> ExtractedText:
        return self.pdf_extractor.extract(buffer)

    async def _extract_csv(self, buffer: bytes, filename: str, mime_type: str) -> ExtractedText:
        return self.csv_extractor.extract(buffer)

    async def _extract_legal_xml(self, buffer: bytes, filename: str, mime_type: str) -> ExtractedText:
        return await self.xml_processor.process(buffer, filename)
