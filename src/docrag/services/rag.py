from __future__ import annotations

import logging
import time
import uuid
from functools import lru_cache
from typing import Iterable, List, Optional

from docrag.config import Settings, get_settings
from docrag.embeddings import EmbeddingClient, get_embedding_client
from docrag.errors import DocumentNotFoundError
from docrag.ingest.pipeline import IngestionPipeline, IngestPipelineConfig
from docrag.llm_provider import DEFAULT_SYSTEM_PROMPT, ChatModel, build_user_prompt, get_chat_model
from docrag.logging_config import AUDIT_LOGGER_NAME
from docrag.models import Document, DocumentProgress, QueryResult
from docrag.retrieval import RetrievalEngine
from docrag.storage import InMemoryStorage, Storage
from docrag.tasks import TaskRunner, ThreadPoolTaskRunner
from docrag.telemetry import emit_exception, emit_inference_request, emit_inference_result

LOGGER = logging.getLogger(__name__)
AUDIT_LOGGER = logging.getLogger(AUDIT_LOGGER_NAME)

NO_DOCUMENTS_ANSWER = (
    "I don't have any relevant documents to answer your question. "
    "Please upload some documents first."
)
GENERATION_FAILED_ANSWER = (
    "I found relevant documents but could not generate an answer right now. "
    "Please try again later."
)


class RAGService:
    """High level orchestration for document upload, progress and answering."""

    def __init__(
        self,
        *,
        storage: Optional[Storage] = None,
        embedding_client: Optional[EmbeddingClient] = None,
        chat_model: Optional[ChatModel] = None,
        task_runner: Optional[TaskRunner] = None,
        settings: Optional[Settings] = None,
    ) -> None:
        self.settings = settings or get_settings()
        self.storage = storage or InMemoryStorage()
        embedding_client = embedding_client or get_embedding_client()
        self._chat_model = chat_model
        self.pipeline = IngestionPipeline(
            self.storage,
            embedding_client,
            task_runner=task_runner or ThreadPoolTaskRunner(self.settings.ingest_workers),
            config=IngestPipelineConfig(max_chunk_chars=self.settings.max_chunk_chars),
        )
        self.retrieval = RetrievalEngine(
            self.storage,
            embedding_client,
            max_context_chars=self.settings.max_context_chars,
        )

    @property
    def chat_model(self) -> ChatModel:
        if self._chat_model is None:
            self._chat_model = get_chat_model()
        return self._chat_model

    def upload_document(
        self,
        data: bytes,
        original_name: str,
        mime_type: Optional[str],
        owner_id: int,
    ) -> Document:
        return self.pipeline.upload(data, original_name, mime_type, owner_id)

    def get_progress(self, document_id: int, owner_id: int) -> DocumentProgress:
        document = self.storage.get_document(document_id)
        if document is None or document.owner_id != owner_id:
            raise DocumentNotFoundError(document_id)
        return document.progress()

    def list_documents(self, owner_id: int) -> List[Document]:
        return self.storage.list_documents(owner_id)

    def close(self) -> None:
        """Stop ingestion workers and release the model HTTP clients."""

        shutdown = getattr(self.pipeline.task_runner, "shutdown", None)
        if shutdown is not None:
            shutdown(wait=True)
        self.retrieval.embedding_client.close()
        close_chat = getattr(self._chat_model, "close", None)
        if close_chat is not None:
            close_chat()

    def delete_document(self, document_id: int, owner_id: int) -> None:
        if not self.storage.delete_document(document_id, owner_id):
            raise DocumentNotFoundError(document_id)
        AUDIT_LOGGER.info({"event": "delete", "document_id": document_id, "owner_id": owner_id})

    def answer(
        self,
        query: str,
        owner_id: int,
        *,
        model: Optional[str] = None,
        document_ids: Optional[Iterable[int]] = None,
        limit: Optional[int] = None,
        temperature: Optional[float] = None,
        system_prompt: Optional[str] = None,
    ) -> QueryResult:
        """Answer *query* from the owner's documents.

        No sources means the canned :data:`NO_DOCUMENTS_ANSWER` without a
        model call. A failed generation yields :data:`GENERATION_FAILED_ANSWER`
        and no sources; it is not retried. Any exception from the chat model counts
        as a failed generation.
        """

        model_name = model or self.settings.llm_model
        effective_limit = limit if limit is not None else self.settings.retrieval_limit
        retrieval = self.retrieval.retrieve(query, owner_id, effective_limit, document_ids)
        req_id = uuid.uuid4().hex

        if retrieval.is_empty:
            emit_inference_result(
                req_id=req_id,
                owner_id=owner_id,
                duration_ms=0.0,
                model_used=model_name,
                answer_preview=NO_DOCUMENTS_ANSWER,
                fallback=True,
            )
            return QueryResult(answer=NO_DOCUMENTS_ANSWER, sources=[], model_used=model_name)

        effective_temperature = temperature if temperature is not None else self.settings.llm_temperature
        prompt = build_user_prompt(query, retrieval.context)
        source_ids = [source.document_id for source in retrieval.sources]
        emit_inference_request(
            req_id=req_id,
            owner_id=owner_id,
            model=model_name,
            prompt_preview=prompt,
            prompt_len=len(prompt),
            temperature=effective_temperature,
            max_tokens=self.settings.llm_max_tokens,
            sources=source_ids,
        )

        started = time.perf_counter()
        try:
            answer_text = self.chat_model.chat(
                system_prompt or DEFAULT_SYSTEM_PROMPT,
                prompt,
                model_name,
                {
                    "temperature": effective_temperature,
                    "top_p": 0.9,
                    "num_predict": self.settings.llm_max_tokens,
                },
            )
        except Exception as error:
            LOGGER.warning("Generation failed for request %s: %s", req_id, error)
            emit_exception(module=f"{__name__}.llm", error=error, req_id=req_id, owner_id=owner_id)
            emit_inference_result(
                req_id=req_id,
                owner_id=owner_id,
                duration_ms=(time.perf_counter() - started) * 1000.0,
                model_used=model_name,
                answer_preview=GENERATION_FAILED_ANSWER,
                fallback=True,
            )
            return QueryResult(answer=GENERATION_FAILED_ANSWER, sources=[], model_used=model_name)

        emit_inference_result(
            req_id=req_id,
            owner_id=owner_id,
            duration_ms=(time.perf_counter() - started) * 1000.0,
            model_used=model_name,
            answer_preview=answer_text,
            fallback=False,
        )
        AUDIT_LOGGER.info(
            {
                "event": "query",
                "owner_id": owner_id,
                "query": query,
                "mode": retrieval.mode,
                "sources": source_ids,
            }
        )
        return QueryResult(answer=answer_text, sources=retrieval.sources, model_used=model_name)


@lru_cache()
def get_rag_service() -> RAGService:
    """FastAPI dependency returning the shared :class:`RAGService` instance."""

    return RAGService()
