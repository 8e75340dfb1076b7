import json
import logging

from docingest.config import IngestConfig
from docingest.logging_config import AUDIT_LOGGER_NAME, MinimalJSONFormatter, configure_logging


def _record(msg, **extra) -> logging.LogRecord:
    record = logging.LogRecord("docingest.test", logging.INFO, __file__, 1, msg, None, None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


def test_config_reads_environment(monkeypatch) -> None:
    monkeypatch.setenv("INGEST_MAX_TOKENS", "500")
    monkeypatch.setenv("INGEST_LEGAL_MIN_TOKENS", "120")
    monkeypatch.setenv("INGEST_ENRICHMENT_BATCH_DELAY", "0.5")
    monkeypatch.setenv("INGEST_DATA_DIR", "/srv/documents")

    config = IngestConfig.from_env()

    assert config.max_tokens == 500
    assert config.legal_min_tokens == 120
    assert config.enrichment_batch_delay == 0.5
    assert config.data_dir == "/srv/documents"
    assert config.overlap_tokens == 100


def test_invalid_values_fall_back_to_defaults(monkeypatch, caplog) -> None:
    monkeypatch.setenv("INGEST_OVERLAP_TOKENS", "many")
    monkeypatch.setenv("INGEST_FETCH_TIMEOUT", "soon")

    with caplog.at_level(logging.WARNING, logger="docingest.config"):
        config = IngestConfig.from_env()

    assert config.overlap_tokens == 100
    assert config.fetch_timeout == 30.0
    assert "INGEST_OVERLAP_TOKENS" in caplog.text


def test_json_formatter_merges_dict_messages() -> None:
    payload = json.loads(MinimalJSONFormatter().format(_record({"step": "ingest.chunk", "chunks": 3})))

    assert payload["level"] == "INFO"
    assert payload["module"] == "docingest.test"
    assert payload["step"] == "ingest.chunk"
    assert payload["chunks"] == 3
    assert payload["timestamp"].endswith("Z")
    assert "message" not in payload


def test_json_formatter_keeps_plain_messages_and_extras() -> None:
    payload = json.loads(MinimalJSONFormatter().format(_record("Processing file", file_id="doc-1")))

    assert payload["message"] == "Processing file"
    assert payload["file_id"] == "doc-1"


def test_configure_logging_routes_audit_events_to_file(tmp_path) -> None:
    configure_logging(level="INFO", log_dir=tmp_path)

    audit = logging.getLogger(AUDIT_LOGGER_NAME)
    audit.info({"event": "document_processed", "file_id": "doc-9"})
    for handler in audit.handlers:
        handler.flush()

    assert not audit.propagate
    lines = (tmp_path / "ingest_audit.log").read_text(encoding="utf-8").splitlines()
    assert json.loads(lines[-1])["file_id"] == "doc-9"
