"""API router exposing document processing and cost estimation."""
from __future__ import annotations

from dataclasses import asdict
from functools import lru_cache
from typing import Any, Callable, TypeVar
from uuid import uuid4

from fastapi import APIRouter, Depends, File, Form, HTTPException, Request, UploadFile
from pydantic import BaseModel, Field

from docingest.config import IngestConfig
from docingest.errors import ExtractionFailed, ProcessingFailed, StorageNotFound, UnsupportedFormat
from docingest.ingest.models import TextChunk
from docingest.ingest.pipeline import DocumentProcessor
from docingest.legal.models import LegalChunk
from docingest.metadata import DocumentMetadataGenerator
from docingest.providers import get_llm_provider

router = APIRouter(prefix="/documents", tags=["documents"])

T = TypeVar("T")

_STATUS_BY_CAUSE: tuple[tuple[type[BaseException], int], ...] = (
    (UnsupportedFormat, 415),
    (ExtractionFailed, 422),
    (StorageNotFound, 404),
)


class ChunkResponse(BaseModel):
    index: int
    text: str
    token_count: int
    start_char: int
    end_char: int
    page_number: int | None = None
    section_title: str | None = None
    legal: dict[str, Any] | None = Field(
        None, description="Structural metadata for chunks of legal documents."
    )


class MetadataResponse(BaseModel):
    summary: str
    topics: list[str]
    document_type: str
    key_concepts: list[str]
    language: str
    generated_at: str


class ProcessResponse(BaseModel):
    """Response body returned from the process endpoint."""

    file_id: str
    filename: str
    storage_path: str
    chunk_count: int
    total_tokens: int
    extraction_method: str
    page_count: int | None
    warnings: list[str]
    enrichment_degraded: bool
    chunks: list[ChunkResponse]
    document_metadata: MetadataResponse | None = None


class EstimateResponse(BaseModel):
    filename: str
    estimated_chunks: int
    estimated_tokens: int
    estimated_cost: float


@lru_cache()
def get_document_processor() -> DocumentProcessor:
    return DocumentProcessor(IngestConfig.from_env())


def get_metadata_generator() -> DocumentMetadataGenerator:
    config = IngestConfig.from_env()
    return DocumentMetadataGenerator(
        get_llm_provider(), max_chunks=config.metadata_max_chunks, max_chars=config.metadata_max_chars
    )


def _resolve_dependency(request: Request, factory: Callable[[], T]) -> T:
    """Resolve a dependency lazily while respecting FastAPI overrides."""

    override: Any | None = request.app.dependency_overrides.get(factory)
    resolved: Any = override if override is not None else factory
    return resolved()


def _status_for(error: ProcessingFailed) -> int:
    cause = error.__cause__
    for error_type, status in _STATUS_BY_CAUSE:
        if isinstance(cause, error_type):
            return status
    return 500


def _serialise_chunk(chunk: TextChunk) -> ChunkResponse:
    legal: dict[str, Any] | None = None
    if isinstance(chunk, LegalChunk):
        legal = {
            "article_numbers": list(chunk.article_numbers),
            "table_names": list(chunk.table_names),
            "parent_section": chunk.parent_section,
            "has_table": chunk.has_table,
            "has_cross_reference": chunk.has_cross_reference,
            "structure_level": chunk.structure_level,
            "enriched_by_llm": chunk.enriched_by_llm,
        }
    return ChunkResponse(
        index=chunk.index,
        text=chunk.text,
        token_count=chunk.token_count,
        start_char=chunk.start_char,
        end_char=chunk.end_char,
        page_number=chunk.page_number,
        section_title=chunk.section_title,
        legal=legal,
    )


@router.post("/process", response_model=ProcessResponse)
async def process_document(
    request: Request,
    file: UploadFile = File(...),
    with_metadata: bool = Form(False),
    processor: DocumentProcessor = Depends(get_document_processor),
) -> ProcessResponse:
    """Store an uploaded document, then extract and chunk it."""

    filename = file.filename or "upload"
    storage_path = await processor.storage.save_upload(file)
    try:
        document = await processor.process_file(
            uuid4().hex, storage_path, filename, file.content_type or ""
        )
    except ProcessingFailed as exc:
        raise HTTPException(status_code=_status_for(exc), detail=str(exc)) from exc

    document_metadata = None
    if with_metadata:
        generator = _resolve_dependency(request, get_metadata_generator)
        generated = await generator.generate(filename, document.chunks)
        document_metadata = MetadataResponse(**asdict(generated))

    return ProcessResponse(
        file_id=document.file_id,
        filename=document.filename,
        storage_path=storage_path,
        chunk_count=document.metadata.chunk_count,
        total_tokens=document.metadata.total_tokens,
        extraction_method=document.metadata.extraction_method,
        page_count=document.metadata.page_count,
        warnings=document.metadata.warnings,
        enrichment_degraded=document.metadata.enrichment_degraded,
        chunks=[_serialise_chunk(chunk) for chunk in document.chunks],
        document_metadata=document_metadata,
    )


@router.post("/estimate", response_model=EstimateResponse)
async def estimate_document(
    file: UploadFile = File(...),
    processor: DocumentProcessor = Depends(get_document_processor),
) -> EstimateResponse:
    """Pre-flight chunk, token and embedding cost estimate for an upload."""

    filename = file.filename or "upload"
    storage_path = await processor.storage.save_upload(file)
    try:
        estimate = await processor.estimate_processing_cost(storage_path, file.content_type or "")
    except ProcessingFailed as exc:
        raise HTTPException(status_code=_status_for(exc), detail=str(exc)) from exc
    return EstimateResponse(filename=filename, **asdict(estimate))
