"""Structured observability events for ingestion, retrieval and inference.

Every event is a flat dict with a dotted ``step`` name (``ingest.chunk.stored``,
``embeddings.fallback``...) logged through ``docrag.telemetry``; the JSON
formatter in :mod:`docrag.logging_config` turns it into one line per event.
"""

from __future__ import annotations

import logging
import traceback
from typing import Any, Iterable, Optional

LOGGER = logging.getLogger("docrag.telemetry")

_LEVELS = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warning": logging.WARNING,
    "error": logging.ERROR,
}


def _describe_exception(exc: BaseException | str) -> str:
    if isinstance(exc, BaseException):
        return "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))
    return str(exc)


def log_event(
    logger: Optional[logging.Logger],
    step: str,
    *,
    level: str = "info",
    req_id: str | None = None,
    document_id: int | None = None,
    owner_id: int | None = None,
    duration_ms: float | None = None,
    exc: BaseException | str | None = None,
    details: dict[str, Any] | None = None,
    **payload: Any,
) -> None:
    """Log one structured event; ``None`` identifiers are left out of the record."""

    target = logger or LOGGER
    identifiers = {"req_id": req_id or None, "document_id": document_id, "owner_id": owner_id}
    event: dict[str, Any] = {"step": step, "module": target.name}
    event.update((key, value) for key, value in identifiers.items() if value is not None)
    if duration_ms is not None:
        event["duration_ms"] = round(duration_ms, 3)
    if details is not None:
        event["details"] = details
    event.update(payload)
    if exc is not None:
        event["exc"] = _describe_exception(exc)

    # Traceback text travels in ``exc``, not exc_info.
    target.log(_LEVELS.get(level.lower(), logging.INFO), event)


def emit_ingest_event(
    step: str,
    *,
    document_id: int | None,
    file_name: str,
    owner_id: int | None = None,
    size_bytes: int | None = None,
    mime_type: str | None = None,
    duration_ms: float | None = None,
    chunks_total: int | None = None,
    chunks_completed: int | None = None,
    status: str | None = None,
    error: BaseException | None = None,
) -> None:
    details = {
        "file": file_name,
        "size_bytes": size_bytes,
        "mime_type": mime_type,
        "chunks_total": chunks_total,
        "chunks_completed": chunks_completed,
        "status": status,
    }
    log_event(
        LOGGER,
        step,
        level="error" if error else "info",
        document_id=document_id,
        owner_id=owner_id,
        duration_ms=duration_ms,
        details=details,
        exc=error,
    )


def emit_chunk_event(
    step: str,
    *,
    document_id: int,
    chunk_index: int,
    fallback: bool | None = None,
    error: BaseException | None = None,
) -> None:
    details = {"chunk_index": chunk_index, "fallback": fallback}
    log_event(
        LOGGER,
        step,
        level="warning" if error else "debug",
        document_id=document_id,
        details=details,
        exc=error,
    )


def emit_embeddings_event(
    *,
    model: str,
    backend: str,
    count: int,
    duration_ms: float,
    fallback: bool = False,
    errors: list[str] | None = None,
) -> None:
    details = {
        "model": model,
        "backend": backend,
        "count": count,
        "fallback": fallback,
        "errors": errors or [],
        "per_item_ms": round(duration_ms / count, 3) if count else None,
    }
    step = "embeddings.fallback" if fallback else "embeddings.compute"
    log_event(
        LOGGER,
        step,
        level="warning" if fallback else "info",
        duration_ms=duration_ms,
        details=details,
    )


def emit_retriever_event(
    *,
    query: str,
    owner_id: int,
    limit: int,
    mode: str,
    results: list[dict[str, Any]],
    duration_ms: float,
    error: BaseException | None = None,
) -> None:
    details = {
        "query_preview": query[:120],
        "limit": limit,
        "mode": mode,
        "results": results,
    }
    log_event(
        LOGGER,
        "retriever.search",
        level="warning" if error else "info",
        owner_id=owner_id,
        duration_ms=duration_ms,
        details=details,
        exc=error,
    )


def emit_inference_request(
    *,
    req_id: str,
    owner_id: int,
    model: str,
    prompt_preview: str,
    prompt_len: int,
    temperature: float,
    max_tokens: int | None,
    sources: Iterable[int],
) -> None:
    details = {
        "model": model,
        "prompt_preview": prompt_preview[:120],
        "prompt_len": prompt_len,
        "temperature": temperature,
        "max_tokens": max_tokens,
        "sources": list(sources),
    }
    log_event(LOGGER, "inference.request", req_id=req_id, owner_id=owner_id, details=details)


def emit_inference_result(
    *,
    req_id: str,
    owner_id: int,
    duration_ms: float,
    model_used: str,
    answer_preview: str,
    fallback: bool,
) -> None:
    details = {
        "model_used": model_used,
        "answer_preview": answer_preview[:120],
        "fallback": fallback,
    }
    log_event(
        LOGGER,
        "inference.result",
        req_id=req_id,
        owner_id=owner_id,
        duration_ms=duration_ms,
        details=details,
    )


def emit_exception(
    *,
    module: str,
    error: BaseException,
    req_id: str | None = None,
    document_id: int | None = None,
    owner_id: int | None = None,
) -> None:
    log_event(
        LOGGER,
        "exception",
        level="error",
        req_id=req_id,
        document_id=document_id,
        owner_id=owner_id,
        details={"module": module},
        exc=error,
    )

