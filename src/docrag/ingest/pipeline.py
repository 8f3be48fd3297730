"""Upload handling and the background chunk-embedding run."""
from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import List, Optional, Sequence

from docrag.embeddings import EmbeddingClient, EmbeddingOutcome
from docrag.errors import (
    ChunkPersistenceError,
    DocumentNotFoundError,
    ExtractionError,
    PipelineError,
    UnsupportedContentTypeError,
)
from docrag.logging_config import AUDIT_LOGGER_NAME
from docrag.models import Document, DocumentProgress, NewChunk, NewDocument
from docrag.storage import Storage
from docrag.tasks import TaskRunner, ThreadPoolTaskRunner
from docrag.telemetry import emit_chunk_event, emit_exception, emit_ingest_event
from docrag.uploads import generate_stored_filename

from .chunking import DEFAULT_MAX_CHUNK_CHARS, ChunkingConfig, SentenceChunker, TextChunk
from .extractors import ContentExtractor
from .models import ExtractedContent

LOGGER = logging.getLogger(__name__)
AUDIT_LOGGER = logging.getLogger(AUDIT_LOGGER_NAME)


@dataclass(slots=True)
class IngestPipelineConfig:
    max_chunk_chars: int = DEFAULT_MAX_CHUNK_CHARS


class IngestionPipeline:
    """Turn uploads into documents and index their chunks in the background.

    ``upload`` runs synchronously: it extracts and chunks the content,
    creates the document in ``processing`` with its chunk total, and hands
    the embedding work to the task runner. ``run`` walks the chunks in index
    order, embedding and persisting each one before advancing the progress
    counter, and always finishes in ``ready`` or ``error``.
    """

    def __init__(
        self,
        storage: Storage,
        embedding_client: EmbeddingClient,
        *,
        task_runner: Optional[TaskRunner] = None,
        extractor: Optional[ContentExtractor] = None,
        config: Optional[IngestPipelineConfig] = None,
    ) -> None:
        self.config = config or IngestPipelineConfig()
        self.storage = storage
        self.embedding_client = embedding_client
        self.task_runner = task_runner or ThreadPoolTaskRunner()
        self.extractor = extractor or ContentExtractor()
        self.chunker = SentenceChunker(ChunkingConfig(max_chunk_chars=self.config.max_chunk_chars))

    def upload(
        self,
        data: bytes,
        original_name: str,
        mime_type: Optional[str],
        owner_id: int,
    ) -> Document:
        """Create a document for *data* and schedule its indexing.

        Raises :class:`UnsupportedContentTypeError` or :class:`ExtractionError`
        before any document is created.
        """

        started = time.perf_counter()
        extracted = self._extract(data, original_name, mime_type)
        chunks = self._chunk(extracted, original_name)

        document = self.storage.create_document(
            NewDocument(
                original_name=original_name,
                filename=generate_stored_filename(original_name),
                size_bytes=len(data),
                mime_type=mime_type or "",
                content=extracted.text,
                owner_id=owner_id,
                chunks_total=len(chunks),
                metadata=extracted.metadata,
            )
        )
        emit_ingest_event(
            "ingest.document.accepted",
            document_id=document.id,
            file_name=original_name,
            owner_id=owner_id,
            size_bytes=len(data),
            mime_type=mime_type,
            duration_ms=(time.perf_counter() - started) * 1000.0,
            chunks_total=len(chunks),
            status=document.status.value,
        )
        AUDIT_LOGGER.info(
            {
                "event": "upload",
                "document_id": document.id,
                "owner_id": owner_id,
                "filename": original_name,
                "chunks_total": len(chunks),
            }
        )

        self.task_runner.submit(self.run, document.id, chunks)
        return document

    def run(self, document_id: int, chunks: Sequence[TextChunk]) -> Optional[DocumentProgress]:
        """Embed and persist *chunks* for a document, then settle its state.

        Returns the final progress, or ``None`` when the document was deleted
        while the run was in flight.
        """

        started = time.perf_counter()
        try:
            if not chunks:
                raise PipelineError("Document contains no text that could be split into chunks")
            for index, chunk in enumerate(chunks):
                self._process_chunk(document_id, index, chunk)
            progress = self.storage.mark_ready(document_id)
        except DocumentNotFoundError:
            self._log_abandoned(document_id)
            return None
        except Exception as error:
            emit_exception(module=f"{__name__}.run", error=error, document_id=document_id)
            try:
                progress = self.storage.mark_error(document_id, str(error))
            except DocumentNotFoundError:
                self._log_abandoned(document_id)
                return None

        emit_ingest_event(
            "ingest.document.complete",
            document_id=document_id,
            file_name="",
            duration_ms=(time.perf_counter() - started) * 1000.0,
            chunks_total=progress.chunks_total,
            chunks_completed=progress.chunks_completed,
            status=progress.status.value,
        )
        AUDIT_LOGGER.info(
            {
                "event": "ingest",
                "document_id": document_id,
                "status": progress.status.value,
                "chunks_completed": progress.chunks_completed,
                "chunks_total": progress.chunks_total,
            }
        )
        return progress

    def _extract(self, data: bytes, original_name: str, mime_type: Optional[str]) -> ExtractedContent:
        try:
            return self.extractor.extract(data, mime_type, original_name)
        except (UnsupportedContentTypeError, ExtractionError) as error:
            emit_ingest_event(
                "ingest.document.rejected",
                document_id=None,
                file_name=original_name,
                size_bytes=len(data),
                mime_type=mime_type,
                error=error,
            )
            raise
        except Exception as error:
            LOGGER.exception("Unexpected error while extracting %s", original_name)
            raise ExtractionError(f"Failed to extract text from {original_name}", cause=error) from error

    def _chunk(self, extracted: ExtractedContent, original_name: str) -> List[TextChunk]:
        try:
            return self.chunker.chunk_pages(extracted.pages)
        except Exception as error:
            emit_exception(module=f"{__name__}.chunk", error=error)
            LOGGER.warning("Chunking failed for %s; document will be marked as failed", original_name)
            return []

    def _process_chunk(self, document_id: int, index: int, chunk: TextChunk) -> None:
        outcome = self._embed(document_id, index, chunk.content)
        try:
            self.storage.add_chunk(
                NewChunk(
                    document_id=document_id,
                    index=index,
                    content=chunk.content,
                    embedding=outcome.vector if outcome else None,
                    embedding_fallback=outcome.fallback if outcome else False,
                    start_page=chunk.start_page,
                    end_page=chunk.end_page,
                )
            )
        except ChunkPersistenceError as error:
            emit_chunk_event("ingest.chunk.skipped", document_id=document_id, chunk_index=index, error=error)
        else:
            emit_chunk_event(
                "ingest.chunk.stored",
                document_id=document_id,
                chunk_index=index,
                fallback=outcome.fallback if outcome else None,
            )
        self.storage.advance_progress(document_id)

    def _embed(self, document_id: int, index: int, content: str) -> Optional[EmbeddingOutcome]:
        try:
            return self.embedding_client.embed(content)
        except Exception as error:
            emit_chunk_event("ingest.chunk.unembedded", document_id=document_id, chunk_index=index, error=error)
            return None

    @staticmethod
    def _log_abandoned(document_id: int) -> None:
        emit_ingest_event(
            "ingest.document.abandoned",
            document_id=document_id,
            file_name="",
            status="deleted",
        )
