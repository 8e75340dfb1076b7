"""Language-model enrichment turning table rows into retrievable sentences.

Each data row of a parsed table is described by one natural-language
sentence naming the row's category, the table identifier and the quantities
with their units. When the model cannot be reached or returns nothing usable
a deterministic template sentence per non-empty row is used instead, and the
result is marked :attr:`EnrichmentOutcome.FALLBACK` so callers can tell a
degraded table apart from an enriched one.
"""
from __future__ import annotations

import asyncio
import logging
import re
import time
from typing import Any, Dict, List, Optional, Sequence

from docingest.providers import LLMProvider
from docingest.telemetry import emit_enrichment_event

from .models import EnrichedTable, EnrichmentOutcome, ParsedTable
from .tables import XMLTableParser

LOGGER = logging.getLogger(__name__)

MIN_SENTENCE_LENGTH = 10
DEFAULT_BATCH_SIZE = 5
DEFAULT_BATCH_DELAY = 0.1

_ENUMERATION_RE = re.compile(r"^\d+[.)]\s*")
_MARKDOWN_ARTIFACT_PREFIXES = ("#", "|", "-", "*", "`")

SYSTEM_PROMPT = (
    "You analyse tables from building regulations and other legal documents. "
    "Turn every data row of a table into one complete, self-contained sentence "
    "that is easy to find with semantic search. Write in the language of the table."
)


class TableEnricher:
    """Ask a language model for one sentence per data row, with a template fallback."""

    def __init__(
        self,
        provider: LLMProvider,
        *,
        batch_size: int = DEFAULT_BATCH_SIZE,
        batch_delay: float = DEFAULT_BATCH_DELAY,
        temperature: float = 0.1,
        table_parser: Optional[XMLTableParser] = None,
    ) -> None:
        self.provider = provider
        self.batch_size = max(batch_size, 1)
        self.batch_delay = max(batch_delay, 0.0)
        self.temperature = temperature
        self.table_parser = table_parser or XMLTableParser()

    async def enrich_table(self, table: ParsedTable) -> EnrichedTable:
        """Enrich one table; never raises."""

        markdown = self.table_parser.table_to_markdown(table)
        structured = table_to_structured_data(table)
        label = table.table_number or table.title
        started = time.perf_counter()

        if not table.data_rows:
            return EnrichedTable(table, (), structured, markdown, EnrichmentOutcome.ENRICHED)

        try:
            response = await self.provider.generate(
                SYSTEM_PROMPT, build_enrichment_prompt(table, markdown), self.temperature
            )
            sentences = parse_model_sentences(response)
            if not sentences:
                raise ValueError("model response contained no usable sentences")
        except Exception as error:  # noqa: BLE001 - any provider failure degrades to the template
            sentences = fallback_sentences(table)
            LOGGER.warning("Enrichment of table %s failed, using fallback sentences: %s", label, error)
            emit_enrichment_event(
                table=label,
                outcome=EnrichmentOutcome.FALLBACK.value,
                sentences=len(sentences),
                duration_ms=(time.perf_counter() - started) * 1000.0,
                error=str(error),
            )
            return EnrichedTable(
                table, tuple(sentences), structured, markdown, EnrichmentOutcome.FALLBACK
            )

        emit_enrichment_event(
            table=label,
            outcome=EnrichmentOutcome.ENRICHED.value,
            sentences=len(sentences),
            duration_ms=(time.perf_counter() - started) * 1000.0,
        )
        return EnrichedTable(table, tuple(sentences), structured, markdown, EnrichmentOutcome.ENRICHED)

    async def enrich_tables(self, tables: Sequence[ParsedTable]) -> List[EnrichedTable]:
        """Enrich *tables* in fixed-size concurrent batches, preserving input order."""

        LOGGER.info("Enriching %s tables in batches of %s", len(tables), self.batch_size)
        enriched: List[EnrichedTable] = []
        for start in range(0, len(tables), self.batch_size):
            if start:
                await asyncio.sleep(self.batch_delay)
            batch = tables[start : start + self.batch_size]
            enriched.extend(await asyncio.gather(*(self.enrich_table(table) for table in batch)))

        degraded = sum(1 for table in enriched if table.degraded)
        LOGGER.info("Enriched %s tables (%s degraded)", len(enriched), degraded)
        return enriched


def build_enrichment_prompt(table: ParsedTable, markdown: str) -> str:
    reference = f"Tabel {table.table_number}" if table.table_number else "this table"
    return (
        "Analyse the following table and write one complete sentence for EVERY data row.\n\n"
        f"TABLE:\n{markdown}\n\n"
        "INSTRUCTIONS:\n"
        "1. Write exactly one sentence per data row; do not describe header rows.\n"
        "2. Every sentence must explicitly name:\n"
        "   - the category or function of the row,\n"
        f"   - the table identifier ({reference}),\n"
        "   - the specific values together with their units,\n"
        "   - the kind of requirement (height, floor area, ...).\n"
        f'3. Use the pattern: "For [CATEGORY], according to {reference}, [REQUIREMENTS]."\n\n'
        "EXAMPLE (for Tabel 4.162):\n"
        "- Row: woonwagen | 18 | 2,2\n"
        '- Sentence: "Voor de gebruiksfunctie woonwagen geldt volgens Tabel 4.162 een minimale '
        'vloeroppervlakte van 18 m² en een minimale hoogte van 2,2 meter."\n\n'
        "Return only the sentences, one per line:"
    )


def parse_model_sentences(response: str) -> List[str]:
    """Split a model response into sentences, dropping markdown and enumeration noise."""

    sentences: List[str] = []
    for line in response.splitlines():
        candidate = line.strip()
        if candidate.startswith(_MARKDOWN_ARTIFACT_PREFIXES):
            continue
        candidate = _ENUMERATION_RE.sub("", candidate).strip().strip('"').strip()
        if len(candidate) <= MIN_SENTENCE_LENGTH:
            continue
        sentences.append(candidate)
    return sentences


def fallback_sentences(table: ParsedTable) -> List[str]:
    """One template sentence per non-empty data row."""

    subject = f"Tabel {table.table_number}" if table.table_number else table.title or "This table"
    sentences: List[str] = []
    for row in table.data_rows:
        values = ", ".join(cell.value for cell in row.cells if cell.value.strip())
        if values:
            sentences.append(f"{subject} contains the following information: {values}.")
    return sentences


def table_to_structured_data(table: ParsedTable) -> Dict[str, Any]:
    column_map: Dict[int, str] = {}
    if table.headers:
        for cell in table.headers[-1].cells:
            if cell.value.strip():
                column_map[cell.col_index] = cell.value.strip()

    rows = [
        {column_map.get(cell.col_index, f"col_{cell.col_index}"): cell.value for cell in row.cells}
        for row in table.data_rows
    ]
    return {
        "table": table.table_number or table.title,
        "columns": list(column_map.values()),
        "rows": rows,
        "metadata": {
            "total_columns": table.metadata.total_columns,
            "total_rows": table.metadata.total_rows,
            "article_references": list(table.metadata.article_references),
        },
    }
