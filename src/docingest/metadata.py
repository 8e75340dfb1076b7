"""Document-level metadata profile generated from a sample of chunks."""
from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import List, Optional, Sequence

from pydantic import BaseModel, ConfigDict, Field

from docingest.ingest.language import LanguageDetector
from docingest.ingest.models import TextChunk
from docingest.providers import LLMProvider

LOGGER = logging.getLogger(__name__)

_JSON_OBJECT_RE = re.compile(r"\{.*\}", re.DOTALL)
_EDGE_SAMPLES = 3
_MAX_TOPICS = 5

SYSTEM_PROMPT = """You generate metadata for documents. Analyse the content samples and return structured metadata.

OUTPUT FORMAT (JSON):
{
  "summary": "1-2 sentences describing what the document covers",
  "topics": ["topic 1", "topic 2", "topic 3"],
  "documentType": "document type, e.g. 'Building regulation', 'Parking standard', 'Technical report'",
  "keyConcepts": ["concept 1", "concept 2", "concept 3", "concept 4", "concept 5"],
  "language": "ISO 639-1 code of the main language"
}

GUIDELINES:
- summary: be specific about what the document covers
- topics: at most 5 main themes
- documentType: classify as specifically as possible
- keyConcepts: important terms, standards, article numbers and technical concepts"""


@dataclass(slots=True)
class DocumentMetadata:
    summary: str
    topics: List[str] = field(default_factory=list)
    document_type: str = "Unknown"
    key_concepts: List[str] = field(default_factory=list)
    language: str = "unknown"
    generated_at: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())


class MetadataResponse(BaseModel):
    """Shape of the JSON object the language model is asked to return."""

    model_config = ConfigDict(populate_by_name=True)

    summary: str = Field(..., min_length=1)
    topics: List[str] = Field(default_factory=list)
    document_type: str = Field("Unknown", alias="documentType")
    key_concepts: List[str] = Field(default_factory=list, alias="keyConcepts")
    language: Optional[str] = None


def sample_chunks(chunks: Sequence[TextChunk], max_samples: int) -> List[TextChunk]:
    """Take chunks from the beginning, a middle slice and the end, without duplicates."""

    if len(chunks) <= max_samples:
        return list(chunks)

    total = len(chunks)
    middle_start = total // 3
    middle_count = max(min(_EDGE_SAMPLES, max_samples - 2 * _EDGE_SAMPLES), 0)
    candidates = (
        list(chunks[:_EDGE_SAMPLES])
        + list(chunks[middle_start : middle_start + middle_count])
        + list(chunks[max(0, total - _EDGE_SAMPLES) :])
    )

    seen: set[int] = set()
    samples: List[TextChunk] = []
    for chunk in candidates:
        if chunk.index in seen:
            continue
        seen.add(chunk.index)
        samples.append(chunk)
    return samples[:max_samples]


class DocumentMetadataGenerator:
    """Ask a language model for a summary/topic/type/concept profile of a document."""

    def __init__(
        self,
        provider: LLMProvider,
        *,
        max_chunks: int = 10,
        max_chars: int = 8000,
        temperature: float = 0.3,
        language_detector: Optional[LanguageDetector] = None,
    ) -> None:
        self.provider = provider
        self.max_chunks = max_chunks
        self.max_chars = max_chars
        self.temperature = temperature
        self.language_detector = language_detector or LanguageDetector()

    async def generate(self, filename: str, chunks: Sequence[TextChunk]) -> DocumentMetadata:
        """Return the metadata profile; failures yield a placeholder instead of raising."""

        sampled = sample_chunks(chunks, self.max_chunks)
        content_sample = "\n\n---\n\n".join(
            f"[Chunk {position}]\n{chunk.text}" for position, chunk in enumerate(sampled, start=1)
        )[: self.max_chars]
        LOGGER.info("Generating metadata for %s from %s sampled chunks", filename, len(sampled))

        prompt = (
            "Analyse this document and generate metadata.\n\n"
            f"FILENAME: {filename}\n\n"
            f"CONTENT SAMPLES:\n{content_sample}\n\n"
            "Answer in JSON."
        )
        try:
            response = await self.provider.generate(SYSTEM_PROMPT, prompt, self.temperature)
            parsed = self._parse(response)
        except Exception as error:  # noqa: BLE001 - any model failure yields the placeholder
            LOGGER.warning("Metadata generation failed for %s: %s", filename, error)
            return DocumentMetadata(
                summary=f"Document: {filename}",
                language=self.language_detector.detect(content_sample, default="unknown") or "unknown",
            )

        language = parsed.language or self.language_detector.detect(content_sample, default="unknown")
        metadata = DocumentMetadata(
            summary=parsed.summary.strip(),
            topics=parsed.topics[:_MAX_TOPICS],
            document_type=parsed.document_type,
            key_concepts=parsed.key_concepts,
            language=language or "unknown",
        )
        LOGGER.info(
            "Metadata for %s: type=%s topics=%s language=%s",
            filename,
            metadata.document_type,
            ", ".join(metadata.topics),
            metadata.language,
        )
        return metadata

    @staticmethod
    def _parse(response: str) -> MetadataResponse:
        match = _JSON_OBJECT_RE.search(response)
        if match is None:
            raise ValueError("No JSON object found in metadata response")
        return MetadataResponse.model_validate(json.loads(match.group(0)))
