"""Thread-safe in-memory storage engine with auto-incrementing ids."""
from __future__ import annotations

import logging
import threading
from dataclasses import replace
from typing import Dict, Iterable, List, Optional

from docrag.errors import DocumentNotFoundError, PipelineError
from docrag.models import (
    Chunk,
    Document,
    DocumentProgress,
    DocumentStatus,
    NewChunk,
    NewDocument,
)

from .base import Storage

LOGGER = logging.getLogger(__name__)


def _copy_document(document: Document) -> Document:
    return replace(document, metadata=dict(document.metadata))


def _copy_chunk(chunk: Chunk) -> Chunk:
    embedding = list(chunk.embedding) if chunk.embedding is not None else None
    return replace(chunk, embedding=embedding)


class InMemoryStorage(Storage):
    """Keep documents and chunks in process memory.

    Every operation runs under one lock and returns copies, so concurrent
    readers always see a consistent document and never a half-applied
    progress update.
    """

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._documents: Dict[int, Document] = {}
        self._chunks: Dict[int, List[Chunk]] = {}
        self._next_document_id = 1
        self._next_chunk_id = 1

    def create_document(self, document: NewDocument) -> Document:
        if document.chunks_total < 0:
            raise ValueError("chunks_total must not be negative")
        with self._lock:
            record = Document(
                id=self._next_document_id,
                original_name=document.original_name,
                filename=document.filename,
                size_bytes=document.size_bytes,
                mime_type=document.mime_type,
                content=document.content,
                owner_id=document.owner_id,
                metadata=dict(document.metadata),
                chunks_total=document.chunks_total,
            )
            self._next_document_id += 1
            self._documents[record.id] = record
            self._chunks[record.id] = []
            return _copy_document(record)

    def get_document(self, document_id: int) -> Optional[Document]:
        with self._lock:
            record = self._documents.get(document_id)
            return _copy_document(record) if record is not None else None

    def list_documents(self, owner_id: int) -> List[Document]:
        with self._lock:
            return [
                _copy_document(record)
                for record in self._documents.values()
                if record.owner_id == owner_id
            ]

    def delete_document(self, document_id: int, owner_id: Optional[int] = None) -> bool:
        with self._lock:
            record = self._documents.get(document_id)
            if record is None or (owner_id is not None and record.owner_id != owner_id):
                return False
            del self._documents[document_id]
            self._chunks.pop(document_id, None)
            return True

    def add_chunk(self, chunk: NewChunk) -> Chunk:
        with self._lock:
            if chunk.document_id not in self._documents:
                raise DocumentNotFoundError(chunk.document_id)
            record = Chunk(
                id=self._next_chunk_id,
                document_id=chunk.document_id,
                index=chunk.index,
                content=chunk.content,
                embedding=list(chunk.embedding) if chunk.embedding is not None else None,
                embedding_fallback=chunk.embedding_fallback,
                start_page=chunk.start_page,
                end_page=chunk.end_page,
            )
            self._next_chunk_id += 1
            chunks = self._chunks[chunk.document_id]
            chunks.append(record)
            chunks.sort(key=lambda item: item.index)
            return _copy_chunk(record)

    def list_chunks(self, document_ids: Iterable[int]) -> List[Chunk]:
        with self._lock:
            result: List[Chunk] = []
            for document_id in document_ids:
                result.extend(_copy_chunk(chunk) for chunk in self._chunks.get(document_id, []))
            return result

    def advance_progress(self, document_id: int) -> DocumentProgress:
        with self._lock:
            record = self._require(document_id)
            if record.chunks_completed < record.chunks_total:
                record.chunks_completed += 1
            else:
                LOGGER.warning(
                    "Progress for document %s already at %s/%s",
                    document_id,
                    record.chunks_completed,
                    record.chunks_total,
                )
            return record.progress()

    def mark_ready(self, document_id: int) -> DocumentProgress:
        with self._lock:
            record = self._require(document_id)
            if record.status is not DocumentStatus.PROCESSING:
                raise PipelineError(f"Document {document_id} is already {record.status.value}")
            if record.chunks_completed != record.chunks_total:
                raise PipelineError(
                    f"Document {document_id} has {record.chunks_completed} of "
                    f"{record.chunks_total} chunks processed"
                )
            record.status = DocumentStatus.READY
            return record.progress()

    def mark_error(self, document_id: int, message: str) -> DocumentProgress:
        with self._lock:
            record = self._require(document_id)
            if record.status is not DocumentStatus.PROCESSING:
                raise PipelineError(f"Document {document_id} is already {record.status.value}")
            record.status = DocumentStatus.ERROR
            record.error = message
            return record.progress()

    def _require(self, document_id: int) -> Document:
        record = self._documents.get(document_id)
        if record is None:
            raise DocumentNotFoundError(document_id)
        return record
