"""Domain records shared by storage, ingestion and retrieval."""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, List, Optional


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class DocumentStatus(str, Enum):
    """Processing state of an uploaded document."""

    PROCESSING = "processing"
    READY = "ready"
    ERROR = "error"

    @property
    def is_terminal(self) -> bool:
        return self is not DocumentStatus.PROCESSING


class MatchType(str, Enum):
    """How a source was found; the two regimes score on different scales."""

    SEMANTIC = "semantic"
    KEYWORD = "keyword"


@dataclass(slots=True)
class Document:
    """An uploaded document together with its ingestion progress."""

    id: int
    original_name: str
    filename: str
    size_bytes: int
    mime_type: str
    content: str
    owner_id: int
    metadata: dict[str, Any] = field(default_factory=dict)
    uploaded_at: datetime = field(default_factory=utcnow)
    status: DocumentStatus = DocumentStatus.PROCESSING
    chunks_total: int = 0
    chunks_completed: int = 0
    error: Optional[str] = None

    def progress(self) -> "DocumentProgress":
        return DocumentProgress(
            id=self.id,
            status=self.status,
            chunks_total=self.chunks_total,
            chunks_completed=self.chunks_completed,
        )


@dataclass(slots=True)
class NewDocument:
    """Fields supplied by the caller when a document row is created."""

    original_name: str
    filename: str
    size_bytes: int
    mime_type: str
    content: str
    owner_id: int
    chunks_total: int
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass(slots=True)
class Chunk:
    """A bounded slice of a document's text with its embedding."""

    id: int
    document_id: int
    index: int
    content: str
    embedding: Optional[List[float]] = None
    embedding_fallback: bool = False
    start_page: Optional[int] = None
    end_page: Optional[int] = None
    created_at: datetime = field(default_factory=utcnow)


@dataclass(slots=True)
class NewChunk:
    document_id: int
    index: int
    content: str
    embedding: Optional[List[float]] = None
    embedding_fallback: bool = False
    start_page: Optional[int] = None
    end_page: Optional[int] = None


@dataclass(slots=True, frozen=True)
class DocumentProgress:
    """Pollable processing status of a document."""

    id: int
    status: DocumentStatus
    chunks_total: int
    chunks_completed: int


@dataclass(slots=True)
class Source:
    """A retrieved excerpt cited in an answer."""

    document_id: int
    filename: str
    original_name: str
    excerpt: str
    relevance_score: float
    match_type: MatchType = MatchType.SEMANTIC
    page: Optional[int] = None
    chunk_index: Optional[int] = None


@dataclass(slots=True)
class RetrievalResult:
    """Ranked sources plus the context string assembled from them."""

    sources: List[Source] = field(default_factory=list)
    context: str = ""
    mode: str = "empty"

    @property
    def is_empty(self) -> bool:
        return not self.sources


@dataclass(slots=True)
class QueryResult:
    """Answer returned to the caller of the chat endpoint."""

    answer: str
    sources: List[Source]
    model_used: str
    timestamp: datetime = field(default_factory=utcnow)
