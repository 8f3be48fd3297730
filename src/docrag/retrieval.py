"""Semantic search over stored chunks with a keyword fallback."""
from __future__ import annotations

import logging
import time
from typing import Iterable, List, Optional, Sequence

from docrag.context import DEFAULT_MAX_CONTEXT_CHARS, assemble_context
from docrag.embeddings import EmbeddingClient
from docrag.models import Chunk, Document, DocumentStatus, MatchType, RetrievalResult, Source
from docrag.ranking import rank
from docrag.storage import Storage
from docrag.telemetry import emit_exception, emit_retriever_event

LOGGER = logging.getLogger(__name__)

KEYWORD_MATCH_SCORE = 0.1
KEYWORD_EXCERPT_CHARS = 500


class RetrievalEngine:
    """Find the stored text most relevant to a query.

    Ranked search embeds the query and scores every embedded chunk of the
    in-scope documents. When that path raises (embedding backend down,
    vectors of the wrong dimension, storage trouble) the engine degrades to
    a case-insensitive substring scan of whole documents. Keyword hits carry
    :data:`KEYWORD_MATCH_SCORE` and ``MatchType.KEYWORD`` so callers can tell
    them apart from cosine scores, which are clamped to [0, 1]. If the
    fallback fails as well the result is empty.
    """

    def __init__(
        self,
        storage: Storage,
        embedding_client: EmbeddingClient,
        *,
        max_context_chars: int = DEFAULT_MAX_CONTEXT_CHARS,
    ) -> None:
        self.storage = storage
        self.embedding_client = embedding_client
        self.max_context_chars = max_context_chars

    def retrieve(
        self,
        query: str,
        owner_id: int,
        limit: int = 5,
        document_ids: Optional[Iterable[int]] = None,
    ) -> RetrievalResult:
        started = time.perf_counter()
        if not query or not query.strip() or limit <= 0:
            return RetrievalResult()

        if document_ids is not None:
            document_ids = list(document_ids)
        documents: Optional[List[Document]] = None
        error: Optional[BaseException] = None
        mode = MatchType.SEMANTIC.value
        try:
            documents = self._documents_in_scope(owner_id, document_ids)
            sources = self._semantic_search(query, documents, limit)
        except Exception as exc:
            error = exc
            mode = MatchType.KEYWORD.value
            LOGGER.warning("Semantic search failed (%s); using keyword fallback", exc)
            sources = self._fallback_search(query, owner_id, document_ids, documents, limit)

        if not sources:
            mode = "empty"
        result = RetrievalResult(
            sources=sources,
            context=assemble_context(sources, self.max_context_chars),
            mode=mode,
        )
        emit_retriever_event(
            query=query,
            owner_id=owner_id,
            limit=limit,
            mode=mode,
            results=[
                {
                    "document_id": source.document_id,
                    "chunk_index": source.chunk_index,
                    "score": source.relevance_score,
                }
                for source in sources
            ],
            duration_ms=(time.perf_counter() - started) * 1000.0,
            error=error,
        )
        return result

    def _documents_in_scope(self, owner_id: int, document_ids: Optional[Iterable[int]]) -> List[Document]:
        documents = self.storage.list_documents(owner_id)
        if document_ids is None:
            return documents
        wanted = set(document_ids)
        return [document for document in documents if document.id in wanted]

    def _semantic_search(self, query: str, documents: Sequence[Document], limit: int) -> List[Source]:
        searchable = {
            document.id: document
            for document in documents
            if document.status is not DocumentStatus.ERROR
        }
        if not searchable:
            return []

        query_vector = self.embedding_client.embed_query(query)
        chunks = self.storage.list_chunks(searchable.keys())
        ranked = rank(query_vector, ((chunk.embedding, chunk) for chunk in chunks), limit)
        return [self._semantic_source(searchable[chunk.document_id], chunk, score) for score, chunk in ranked]

    @staticmethod
    def _semantic_source(document: Document, chunk: Chunk, score: float) -> Source:
        return Source(
            document_id=document.id,
            filename=document.filename,
            original_name=document.original_name,
            excerpt=chunk.content,
            relevance_score=min(1.0, max(0.0, score)),
            match_type=MatchType.SEMANTIC,
            page=chunk.start_page,
            chunk_index=chunk.index,
        )

    def _fallback_search(
        self,
        query: str,
        owner_id: int,
        document_ids: Optional[Iterable[int]],
        documents: Optional[List[Document]],
        limit: int,
    ) -> List[Source]:
        try:
            if documents is None:
                documents = self._documents_in_scope(owner_id, document_ids)
            return self._keyword_search(query, documents, limit)
        except Exception as exc:
            emit_exception(module=f"{__name__}.keyword", error=exc, owner_id=owner_id)
            return []

    def _keyword_search(self, query: str, documents: Sequence[Document], limit: int) -> List[Source]:
        needle = query.strip().lower()
        sources: List[Source] = []
        for document in documents:
            if len(sources) >= limit:
                break
            position = document.content.lower().find(needle)
            if position < 0 and needle not in document.original_name.lower():
                continue
            sources.append(
                Source(
                    document_id=document.id,
                    filename=document.filename,
                    original_name=document.original_name,
                    excerpt=keyword_excerpt(document.content, position, len(needle)),
                    relevance_score=KEYWORD_MATCH_SCORE,
                    match_type=MatchType.KEYWORD,
                )
            )
        return sources


def keyword_excerpt(content: str, position: int, match_length: int, width: int = KEYWORD_EXCERPT_CHARS) -> str:
    """Return up to *width* characters of *content* around a match.

    A negative *position* (the match was in the filename only) yields the
    leading text of the document.
    """

    if position < 0 or len(content) <= width:
        return content[:width].strip()
    start = max(0, position - (width - match_length) // 2)
    end = min(len(content), start + width)
    start = max(0, end - width)
    return content[start:end].strip()
