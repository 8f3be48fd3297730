"""API router exposing document upload, listing, progress and deletion."""
from __future__ import annotations

from datetime import datetime
from typing import Any, Optional

from fastapi import APIRouter, Depends, File, HTTPException, UploadFile
from fastapi.concurrency import run_in_threadpool
from pydantic import BaseModel

from docrag.api.dependencies import get_owner_id
from docrag.errors import DocumentNotFoundError, ExtractionError, UnsupportedContentTypeError
from docrag.models import Document, DocumentProgress
from docrag.services.rag import RAGService, get_rag_service

router = APIRouter(prefix="/api/documents", tags=["documents"])


class UploadResponse(BaseModel):
    """Response body returned from the upload endpoint."""

    success: bool
    document_id: int
    filename: str
    size: int
    status: str
    chunks_total: int


class ProgressResponse(BaseModel):
    id: int
    status: str
    chunks_total: int
    chunks_completed: int


class DocumentResponse(BaseModel):
    """A document as listed for its owner, including ingestion progress."""

    id: int
    original_name: str
    filename: str
    size: int
    mime_type: str
    uploaded_at: datetime
    status: str
    chunks_total: int
    chunks_completed: int
    error: Optional[str] = None
    metadata: dict[str, Any]


class DeleteResponse(BaseModel):
    success: bool


def _serialise_progress(progress: DocumentProgress) -> ProgressResponse:
    return ProgressResponse(
        id=progress.id,
        status=progress.status.value,
        chunks_total=progress.chunks_total,
        chunks_completed=progress.chunks_completed,
    )


def _serialise_document(document: Document) -> DocumentResponse:
    return DocumentResponse(
        id=document.id,
        original_name=document.original_name,
        filename=document.filename,
        size=document.size_bytes,
        mime_type=document.mime_type,
        uploaded_at=document.uploaded_at,
        status=document.status.value,
        chunks_total=document.chunks_total,
        chunks_completed=document.chunks_completed,
        error=document.error,
        metadata=document.metadata,
    )


@router.post("/upload", response_model=UploadResponse)
async def upload_document(
    file: UploadFile = File(...),
    owner_id: int = Depends(get_owner_id),
    rag_service: RAGService = Depends(get_rag_service),
) -> UploadResponse:
    """Accept a PDF or text file and start indexing it in the background."""

    data = await file.read()
    if not data:
        raise HTTPException(status_code=400, detail="Uploaded file is empty")
    if len(data) > rag_service.settings.max_upload_bytes:
        raise HTTPException(status_code=413, detail="Uploaded file is too large")

    try:
        document = await run_in_threadpool(
            rag_service.upload_document,
            data,
            file.filename or "upload",
            file.content_type,
            owner_id,
        )
    except UnsupportedContentTypeError as exc:
        raise HTTPException(status_code=415, detail=str(exc)) from exc
    except ExtractionError as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc

    return UploadResponse(
        success=True,
        document_id=document.id,
        filename=document.original_name,
        size=document.size_bytes,
        status=document.status.value,
        chunks_total=document.chunks_total,
    )


@router.get("", response_model=list[DocumentResponse])
def list_documents(
    owner_id: int = Depends(get_owner_id),
    rag_service: RAGService = Depends(get_rag_service),
) -> list[DocumentResponse]:
    return [_serialise_document(document) for document in rag_service.list_documents(owner_id)]


@router.get("/{document_id}/status", response_model=ProgressResponse)
def document_status(
    document_id: int,
    owner_id: int = Depends(get_owner_id),
    rag_service: RAGService = Depends(get_rag_service),
) -> ProgressResponse:
    """Poll the ingestion progress of a document."""

    try:
        progress = rag_service.get_progress(document_id, owner_id)
    except DocumentNotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    return _serialise_progress(progress)


@router.delete("/{document_id}", response_model=DeleteResponse)
def delete_document(
    document_id: int,
    owner_id: int = Depends(get_owner_id),
    rag_service: RAGService = Depends(get_rag_service),
) -> DeleteResponse:
    try:
        rag_service.delete_document(document_id, owner_id)
    except DocumentNotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    return DeleteResponse(success=True)
