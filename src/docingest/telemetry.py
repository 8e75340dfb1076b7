"""Structured lifecycle events for the ingestion pipeline."""

from __future__ import annotations

import logging
import time
import traceback
from contextlib import contextmanager
from typing import Any, Iterator, Optional

LOGGER = logging.getLogger("docingest.telemetry")


def _format_exception(error: BaseException) -> str:
    return "".join(traceback.format_exception(error.__class__, error, error.__traceback__))


def log_event(
    logger: Optional[logging.Logger],
    step: str,
    *,
    level: str = "info",
    file_id: str | None = None,
    duration_ms: float | None = None,
    exc: BaseException | str | None = None,
    details: dict[str, Any] | None = None,
    **payload: Any,
) -> None:
    """Emit a structured log event with the agreed-upon schema."""

    logger = logger or LOGGER
    event: dict[str, Any] = {"step": step, "module": logger.name}
    if file_id:
        event["file_id"] = file_id
    if duration_ms is not None:
        event["duration_ms"] = round(duration_ms, 3)
    if details is not None:
        event["details"] = details
    event.update(payload)

    exc_info = None
    if exc is not None:
        if isinstance(exc, BaseException):
            event["exc"] = _format_exception(exc)
            exc_info = (exc.__class__, exc, exc.__traceback__)
        else:
            event["exc"] = str(exc)

    log_method = getattr(logger, level.lower(), logger.info)
    log_method(event, exc_info=exc_info)


def emit_extraction_event(
    *,
    file_name: str,
    extraction_method: str,
    characters: int,
    pages: int | None,
    warnings: list[str],
    duration_ms: float,
) -> None:
    details = {
        "file": file_name,
        "method": extraction_method,
        "characters": characters,
        "pages": pages,
        "warnings": list(warnings),
    }
    log_event(LOGGER, "ingest.extract", duration_ms=duration_ms, details=details)


def emit_chunking_event(
    *,
    file_name: str,
    chunks: int,
    total_tokens: int,
    avg_tokens: int,
    min_tokens: int,
    max_tokens: int,
    structure_aware: bool,
) -> None:
    details = {
        "file": file_name,
        "chunks": chunks,
        "total_tokens": total_tokens,
        "avg_tokens": avg_tokens,
        "min_tokens": min_tokens,
        "max_tokens": max_tokens,
        "structure_aware": structure_aware,
    }
    log_event(LOGGER, "ingest.chunk", details=details)


def emit_enrichment_event(
    *, table: str, outcome: str, sentences: int, duration_ms: float, error: str | None = None
) -> None:
    details = {"table": table, "outcome": outcome, "sentences": sentences}
    if error:
        details["error"] = error
    log_event(LOGGER, "enrichment.table", duration_ms=duration_ms, details=details)


def emit_exception(*, module: str, error: BaseException, file_id: str | None = None) -> None:
    log_event(
        LOGGER,
        "exception",
        level="error",
        file_id=file_id,
        details={"module": module},
        exc=error,
    )


@contextmanager
def traced_duration(step: str, *, logger: Optional[logging.Logger] = None, **fields: Any) -> Iterator[None]:
    start = time.perf_counter()
    log_event(logger or LOGGER, f"{step}.start", details=fields)
    try:
        yield
    except Exception as error:
        log_event(logger or LOGGER, f"{step}.error", level="error", details=fields, exc=error)
        raise
    finally:
        end = time.perf_counter()
        log_event(
            logger or LOGGER,
            f"{step}.complete",
            duration_ms=(end - start) * 1000.0,
            details=fields,
        )
