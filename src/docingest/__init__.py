"""Document ingestion and structure-aware chunking for retrieval pipelines."""

from .config import IngestConfig
from .errors import ExtractionFailed, IngestError, ProcessingFailed, StorageNotFound, UnsupportedFormat

__version__ = "0.1.0"

__all__ = [
    "ExtractionFailed",
    "IngestConfig",
    "IngestError",
    "ProcessingFailed",
    "StorageNotFound",
    "UnsupportedFormat",
    "__version__",
]
