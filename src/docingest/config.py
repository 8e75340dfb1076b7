"""Runtime configuration for the ingestion pipeline."""
from __future__ import annotations

import logging
import os
from dataclasses import dataclass

LOGGER = logging.getLogger(__name__)


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None:
        return default
    try:
        return int(value)
    except ValueError:
        LOGGER.warning("Invalid integer for %s: %s; using default %s", name, value, default)
        return default


def _env_float(name: str, default: float) -> float:
    value = os.getenv(name)
    if value is None:
        return default
    try:
        return float(value)
    except ValueError:
        LOGGER.warning("Invalid float for %s: %s; using default %s", name, value, default)
        return default


@dataclass(slots=True)
class IngestConfig:
    max_tokens: int = 800
    overlap_tokens: int = 100
    legal_max_tokens: int = 1500
    legal_min_tokens: int = 300
    enrichment_batch_size: int = 5
    enrichment_batch_delay: float = 0.1
    enrichment_temperature: float = 0.1
    metadata_max_chunks: int = 10
    metadata_max_chars: int = 8000
    fetch_timeout: float = 30.0
    embedding_cost_per_million: float = 0.02
    data_dir: str = "data"

    @classmethod
    def from_env(cls) -> "IngestConfig":
        """Build a configuration from ``INGEST_*`` environment variables."""

        defaults = cls()
        return cls(
            max_tokens=_env_int("INGEST_MAX_TOKENS", defaults.max_tokens),
            overlap_tokens=_env_int("INGEST_OVERLAP_TOKENS", defaults.overlap_tokens),
            legal_max_tokens=_env_int("INGEST_LEGAL_MAX_TOKENS", defaults.legal_max_tokens),
            legal_min_tokens=_env_int("INGEST_LEGAL_MIN_TOKENS", defaults.legal_min_tokens),
            enrichment_batch_size=_env_int(
                "INGEST_ENRICHMENT_BATCH_SIZE", defaults.enrichment_batch_size
            ),
            enrichment_batch_delay=_env_float(
                "INGEST_ENRICHMENT_BATCH_DELAY", defaults.enrichment_batch_delay
            ),
            enrichment_temperature=_env_float(
                "INGEST_ENRICHMENT_TEMPERATURE", defaults.enrichment_temperature
            ),
            metadata_max_chunks=_env_int("INGEST_METADATA_MAX_CHUNKS", defaults.metadata_max_chunks),
            metadata_max_chars=_env_int("INGEST_METADATA_MAX_CHARS", defaults.metadata_max_chars),
            fetch_timeout=_env_float("INGEST_FETCH_TIMEOUT", defaults.fetch_timeout),
            embedding_cost_per_million=_env_float(
                "INGEST_EMBEDDING_COST_PER_MILLION", defaults.embedding_cost_per_million
            ),
            data_dir=os.getenv("INGEST_DATA_DIR", defaults.data_dir),
        )
