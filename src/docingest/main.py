import logging
import os

from fastapi import FastAPI
from fastapi.responses import PlainTextResponse

from docingest.api.documents import router as documents_router
from docingest.logging_config import configure_logging

configure_logging(level=os.getenv("LOG_LEVEL", "INFO"), log_dir=os.getenv("LOG_DIR", "logs"))

LOGGER = logging.getLogger(__name__)

app = FastAPI(title="Document Ingestion API")
app.include_router(documents_router)
LOGGER.info("Document ingestion API initialised")


@app.get("/", response_class=PlainTextResponse)
def read_root() -> str:
    """Healthcheck endpoint for the service."""
    return "ok"
