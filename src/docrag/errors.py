"""Exception taxonomy shared by the ingestion and retrieval core."""
from __future__ import annotations


class DocRAGError(RuntimeError):
    """Base class for all errors raised by the document RAG core."""

    def __init__(self, message: str, *, cause: Exception | None = None) -> None:
        super().__init__(message)
        self.__cause__ = cause


class UnsupportedContentTypeError(DocRAGError):
    """Raised before ingestion when an upload has an unsupported MIME type."""

    def __init__(self, mime_type: str | None, *, cause: Exception | None = None) -> None:
        super().__init__(f"Unsupported file type: {mime_type or 'unknown'}", cause=cause)
        self.mime_type = mime_type


class ExtractionError(DocRAGError):
    """Raised when text cannot be extracted from an otherwise supported upload."""


class EmbeddingError(DocRAGError):
    """Raised when the embedding model cannot produce a usable vector."""


class ChunkPersistenceError(DocRAGError):
    """Raised by storage engines when a single chunk cannot be written."""


class PipelineError(DocRAGError):
    """Raised when an ingestion run cannot continue for a document."""


class GenerationError(DocRAGError):
    """Raised when the generation model fails to answer a prompt."""


class DocumentNotFoundError(DocRAGError, LookupError):
    """Raised when a document id does not exist (or belongs to another owner)."""

    def __init__(self, document_id: int) -> None:
        super().__init__(f"Document {document_id} not found")
        self.document_id = document_id


class VectorDimensionError(DocRAGError, ValueError):
    """Raised when vectors of different dimensions are compared."""


__all__ = [
    "ChunkPersistenceError",
    "DocRAGError",
    "DocumentNotFoundError",
    "EmbeddingError",
    "ExtractionError",
    "GenerationError",
    "PipelineError",
    "UnsupportedContentTypeError",
    "VectorDimensionError",
]
