"""FastAPI application exposing document upload, progress and RAG chat."""
from __future__ import annotations

import logging
import os

from fastapi import FastAPI
from fastapi.responses import PlainTextResponse

from docrag import __version__
from docrag.api.chat import router as chat_router
from docrag.api.documents import router as documents_router
from docrag.embeddings import reset_embedding_client_cache
from docrag.llm_provider import reset_chat_model_cache
from docrag.logging_config import configure_logging
from docrag.services.rag import get_rag_service

configure_logging(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    log_dir=os.getenv("DOCRAG_LOG_DIR", "logs"),
)

LOGGER = logging.getLogger(__name__)

app = FastAPI(title="DocRAG API", version=__version__)
app.include_router(documents_router)
app.include_router(chat_router)


@app.on_event("shutdown")
def _shutdown_rag_service() -> None:
    """Drain ingestion workers and close model clients if the service was built."""

    if get_rag_service.cache_info().currsize:
        LOGGER.info("Shutting down RAG service")
        get_rag_service().close()
    get_rag_service.cache_clear()
    reset_embedding_client_cache()
    reset_chat_model_cache()


@app.get("/", response_class=PlainTextResponse)
def read_root() -> str:
    """Healthcheck endpoint for the service."""
    return "ok"


@app.get("/healthz", response_class=PlainTextResponse)
def healthcheck() -> str:
    """Liveness probe used by container orchestrators."""
    return "ok"
