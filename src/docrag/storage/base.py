"""Abstract storage interface used by the ingestion and retrieval core.

The core only talks to :class:`Storage`; swapping the in-memory engine for
a database-backed one requires no change to ingestion or retrieval code.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Iterable, List, Optional

from docrag.models import Chunk, Document, DocumentProgress, NewChunk, NewDocument


class Storage(ABC):
    """CRUD for documents and chunks plus atomic progress updates."""

    # -- documents ------------------------------------------------------------

    @abstractmethod
    def create_document(self, document: NewDocument) -> Document:
        """Persist a new document in the ``processing`` state and return it."""

    @abstractmethod
    def get_document(self, document_id: int) -> Optional[Document]:
        """Return a snapshot of the document, or ``None`` when it is gone."""

    @abstractmethod
    def list_documents(self, owner_id: int) -> List[Document]:
        """Return snapshots of every document owned by *owner_id*, oldest first."""

    @abstractmethod
    def delete_document(self, document_id: int, owner_id: Optional[int] = None) -> bool:
        """Delete a document and its chunks; ``False`` when nothing was deleted."""

    # -- chunks ---------------------------------------------------------------

    @abstractmethod
    def add_chunk(self, chunk: NewChunk) -> Chunk:
        """Persist one chunk.

        Raises :class:`DocumentNotFoundError` when the owning document no
        longer exists and :class:`ChunkPersistenceError` when the write fails.
        :class:`~docrag.storage.memory.InMemoryStorage` never fails a write,
        so only persistent backends exercise the skip path of the ingestion
        pipeline.
        """

    @abstractmethod
    def list_chunks(self, document_ids: Iterable[int]) -> List[Chunk]:
        """Return chunks of the given documents ordered by document then index."""

    # -- progress -------------------------------------------------------------

    @abstractmethod
    def advance_progress(self, document_id: int) -> DocumentProgress:
        """Atomically increment ``chunks_completed`` (capped at the total)."""

    @abstractmethod
    def mark_ready(self, document_id: int) -> DocumentProgress:
        """Move a fully processed document to ``ready``."""

    @abstractmethod
    def mark_error(self, document_id: int, message: str) -> DocumentProgress:
        """Move a document to ``error``, leaving its counters untouched."""
