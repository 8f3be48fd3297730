"""API router answering questions over the uploaded documents."""
from __future__ import annotations

from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from fastapi.concurrency import run_in_threadpool
from pydantic import BaseModel, Field

from docrag.api.dependencies import get_owner_id
from docrag.models import QueryResult, Source
from docrag.services.rag import RAGService, get_rag_service

router = APIRouter(prefix="/api/chat", tags=["chat"])


class RAGChatRequest(BaseModel):
    """Request body accepted by the RAG chat endpoint."""

    query: str = Field(..., min_length=1, description="Question to answer from the uploaded documents.")
    model: Optional[str] = Field(None, description="Generation model override.")
    document_ids: Optional[list[int]] = Field(None, description="Restrict retrieval to these documents.")
    limit: Optional[int] = Field(None, ge=1, le=50, description="Maximum number of sources to retrieve.")
    temperature: Optional[float] = Field(None, ge=0.0, le=2.0)
    system_prompt: Optional[str] = None


class SourceResponse(BaseModel):
    document_id: int
    filename: str
    original_name: str
    excerpt: str
    page: Optional[int] = None
    chunk_index: Optional[int] = None
    relevance_score: float
    match_type: str


class RAGChatResponse(BaseModel):
    """Response payload for the RAG chat endpoint."""

    answer: str
    sources: list[SourceResponse]
    model_used: str
    timestamp: datetime


def _serialise_source(source: Source) -> SourceResponse:
    return SourceResponse(
        document_id=source.document_id,
        filename=source.filename,
        original_name=source.original_name,
        excerpt=source.excerpt,
        page=source.page,
        chunk_index=source.chunk_index,
        relevance_score=source.relevance_score,
        match_type=source.match_type.value,
    )


@router.post("/rag", response_model=RAGChatResponse)
async def rag_chat(
    request: RAGChatRequest,
    owner_id: int = Depends(get_owner_id),
    rag_service: RAGService = Depends(get_rag_service),
) -> RAGChatResponse:
    """Answer a question with context retrieved from the owner's documents."""

    if not request.query.strip():
        raise HTTPException(status_code=422, detail="Query must not be empty")

    result: QueryResult = await run_in_threadpool(
        lambda: rag_service.answer(
            request.query,
            owner_id,
            model=request.model,
            document_ids=request.document_ids,
            limit=request.limit,
            temperature=request.temperature,
            system_prompt=request.system_prompt,
        )
    )
    return RAGChatResponse(
        answer=result.answer,
        sources=[_serialise_source(source) for source in result.sources],
        model_used=result.model_used,
        timestamp=result.timestamp,
    )
