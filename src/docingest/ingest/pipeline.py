"""High level ingestion pipeline entry point."""
from __future__ import annotations

import asyncio
import logging
import time
from typing import List, Optional

from docingest.config import IngestConfig
from docingest.errors import ProcessingFailed
from docingest.legal.assembler import StructureAwareChunkAssembler
from docingest.legal.enrichment import TableEnricher
from docingest.legal.structure import LegalStructureParser
from docingest.legal.xml_processor import LegalXMLProcessor
from docingest.logging_config import AUDIT_LOGGER_NAME
from docingest.providers import LLMProvider, get_llm_provider
from docingest.storage import LocalFileStorage
from docingest.telemetry import emit_chunking_event, emit_exception, traced_duration

from .chunking import TokenAwareChunker, TokenCounter
from .extractors import ExtractionRouter
from .format_detection import DocumentFormat, DocumentFormatDetector
from .models import (
    ChunkingOptions,
    ChunkingStats,
    CostEstimate,
    DocumentStats,
    ExtractedText,
    ProcessedDocument,
    TextChunk,
)
from .tokens import count_tokens

LOGGER = logging.getLogger(__name__)
AUDIT_LOGGER = logging.getLogger(AUDIT_LOGGER_NAME)

DIRECT_TEXT_FILENAME = "direct-text-input.txt"


class DocumentProcessor:
    """Fetch, extract and chunk a stored document into a :class:`ProcessedDocument`."""

    def __init__(
        self,
        config: Optional[IngestConfig] = None,
        *,
        storage: Optional[LocalFileStorage] = None,
        provider: Optional[LLMProvider] = None,
        router: Optional[ExtractionRouter] = None,
        token_counter: TokenCounter = count_tokens,
    ) -> None:
        self.config = config or IngestConfig.from_env()
        self.storage = storage or LocalFileStorage(self.config.data_dir)
        self.count_tokens = token_counter
        self.chunker = TokenAwareChunker(
            ChunkingOptions(max_tokens=self.config.max_tokens, overlap_tokens=self.config.overlap_tokens),
            token_counter=token_counter,
        )
        if router is None:
            provider = provider or get_llm_provider()
            router = ExtractionRouter(provider, self._build_xml_processor(provider))
        self.router = router

    def _build_xml_processor(self, provider: LLMProvider) -> LegalXMLProcessor:
        parser = LegalStructureParser()
        enricher = TableEnricher(
            provider,
            batch_size=self.config.enrichment_batch_size,
            batch_delay=self.config.enrichment_batch_delay,
            temperature=self.config.enrichment_temperature,
        )
        assembler = StructureAwareChunkAssembler(
            parser,
            max_tokens=self.config.legal_max_tokens,
            min_tokens=self.config.legal_min_tokens,
            token_counter=self.count_tokens,
        )
        return LegalXMLProcessor(enricher, structure_parser=parser, assembler=assembler)

    async def process_file(
        self, file_id: str, file_path: str, filename: str, mime_type: str
    ) -> ProcessedDocument:
        """Fetch, extract and chunk one stored document.

        Any failure is reported as a single :class:`ProcessingFailed` carrying
        the filename; the original exception is chained as its cause.
        """

        LOGGER.info("Processing file %s (%s) with id %s", filename, mime_type, file_id)
        try:
            with traced_duration("ingest.process_file", file=filename, file_id=file_id):
                buffer = await self._fetch(file_path)
                extracted = await self.router.extract(buffer, mime_type, filename)
                chunks = self._chunk(extracted)
        except Exception as error:  # noqa: BLE001 - every stage failure becomes ProcessingFailed
            message = str(error) or error.__class__.__name__
            emit_exception(module=__name__, error=error, file_id=file_id)
            LOGGER.error("Document processing failed for %s: %s", filename, message)
            raise ProcessingFailed(filename, message, cause=error) from error

        document = self._build_document(file_id, filename, chunks, extracted)
        self._audit(document)
        return document

    async def process_text(
        self, text: str, *, file_id: Optional[str] = None, filename: Optional[str] = None
    ) -> ProcessedDocument:
        """Chunk *text* directly, without storage or extraction."""

        file_id = file_id or f"text-{int(time.time() * 1000)}"
        filename = filename or DIRECT_TEXT_FILENAME
        LOGGER.info("Processing direct text input (%s characters)", len(text))

        chunks = self.chunker.chunk(text)
        stats = self.chunker.get_chunking_stats(chunks)
        self._log_chunking(filename, stats, structure_aware=False)
        return ProcessedDocument(
            file_id=file_id,
            filename=filename,
            chunks=chunks,
            metadata=DocumentStats(
                total_tokens=stats.total_tokens,
                chunk_count=len(chunks),
                extraction_method="plain-text",
            ),
        )

    async def estimate_processing_cost(self, file_path: str, mime_type: str) -> CostEstimate:
        """Extract only and derive an approximate chunk count, token volume and cost.

        Legal XML is rendered without table enrichment so an estimate never
        calls the language model.
        """

        try:
            buffer = await self._fetch(file_path)
            if DocumentFormatDetector.detect(file_path, mime_type) is DocumentFormat.LEGAL_XML:
                extracted = self.router.render_legal_xml(buffer)
            else:
                extracted = await self.router.extract(buffer, mime_type, file_path)
        except Exception as error:  # noqa: BLE001 - estimation failures share the document error
            raise ProcessingFailed(file_path, f"Cost estimation failed: {error}", cause=error) from error

        estimated_chunks = self.chunker.estimate_chunk_count(extracted.text)
        estimated_tokens = estimated_chunks * self.config.max_tokens
        estimated_cost = estimated_tokens / 1_000_000 * self.config.embedding_cost_per_million
        LOGGER.info(
            "Estimated %s chunks (%s tokens, $%.6f) for %s",
            estimated_chunks,
            estimated_tokens,
            estimated_cost,
            file_path,
        )
        return CostEstimate(
            estimated_chunks=estimated_chunks,
            estimated_tokens=estimated_tokens,
            estimated_cost=estimated_cost,
        )

    async def _fetch(self, file_path: str) -> bytes:
        try:
            return await asyncio.wait_for(
                self.storage.get_file_buffer(file_path), timeout=self.config.fetch_timeout
            )
        except asyncio.TimeoutError as error:
            raise TimeoutError(
                f"Fetching {file_path} timed out after {self.config.fetch_timeout:g}s"
            ) from error

    def _chunk(self, extracted: ExtractedText) -> List[TextChunk]:
        if extracted.metadata.enriched_chunks is not None:
            return list(extracted.metadata.enriched_chunks)
        if extracted.metadata.pages:
            return self.chunker.chunk_pdf(extracted.metadata.pages)
        return self.chunker.chunk(extracted.text)

    def _build_document(
        self, file_id: str, filename: str, chunks: List[TextChunk], extracted: ExtractedText
    ) -> ProcessedDocument:
        metadata = extracted.metadata
        stats = self.chunker.get_chunking_stats(chunks)
        self._log_chunking(filename, stats, structure_aware=metadata.enriched_chunks is not None)
        return ProcessedDocument(
            file_id=file_id,
            filename=filename,
            chunks=chunks,
            metadata=DocumentStats(
                total_tokens=stats.total_tokens,
                chunk_count=len(chunks),
                extraction_method=metadata.extraction_method,
                warnings=list(metadata.warnings),
                page_count=extracted.page_count,
                enrichment_degraded=metadata.enrichment_degraded,
            ),
        )

    @staticmethod
    def _log_chunking(filename: str, stats: ChunkingStats, *, structure_aware: bool) -> None:
        LOGGER.info(
            "Created %s chunks for %s (avg %s tokens, min %s, max %s)",
            stats.total_chunks,
            filename,
            stats.avg_tokens_per_chunk,
            stats.min_tokens,
            stats.max_tokens,
        )
        emit_chunking_event(
            file_name=filename,
            chunks=stats.total_chunks,
            total_tokens=stats.total_tokens,
            avg_tokens=stats.avg_tokens_per_chunk,
            min_tokens=stats.min_tokens,
            max_tokens=stats.max_tokens,
            structure_aware=structure_aware,
        )

    @staticmethod
    def _audit(document: ProcessedDocument) -> None:
        AUDIT_LOGGER.info(
            {
                "event": "document_processed",
                "file_id": document.file_id,
                "filename": document.filename,
                "extraction_method": document.metadata.extraction_method,
                "chunks": document.metadata.chunk_count,
                "total_tokens": document.metadata.total_tokens,
                "page_count": document.metadata.page_count,
                "warnings": document.metadata.warnings,
                "enrichment_degraded": document.metadata.enrichment_degraded,
            }
        )
