from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from docrag.config import Settings
from docrag.errors import ExtractionError
from docrag.ingest.extractors import ContentExtractor
from docrag.main import app
from docrag.services.rag import NO_DOCUMENTS_ANSWER, RAGService, get_rag_service

from conftest import RecordingChatModel


class _BrokenPDFExtractor:
    def extract(self, data: bytes):
        raise ExtractionError("corrupted xref table")


@pytest.fixture()
def service(storage, embedding_client, inline_runner) -> RAGService:
    return RAGService(
        storage=storage,
        embedding_client=embedding_client,
        chat_model=RecordingChatModel("The cat is on the mat."),
        task_runner=inline_runner,
        settings=Settings(llm_model="test-llm", max_upload_bytes=1024),
    )


@pytest.fixture()
def client(service: RAGService):
    app.dependency_overrides[get_rag_service] = lambda: service
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


def _upload(client: TestClient, content: bytes, name: str = "cat.txt", mime: str = "text/plain", owner: str | None = None):
    headers = {"X-Owner-Id": owner} if owner else {}
    return client.post("/api/documents/upload", files={"file": (name, content, mime)}, headers=headers)


def test_healthz(client: TestClient) -> None:
    response = client.get("/healthz")

    assert response.status_code == 200
    assert response.text == "ok"


def test_upload_then_status_and_listing(client: TestClient) -> None:
    response = _upload(client, b"The cat sat on the mat.")

    assert response.status_code == 200
    payload = response.json()
    assert payload["success"] is True
    assert payload["filename"] == "cat.txt"
    assert payload["chunks_total"] == 1
    document_id = payload["document_id"]

    status = client.get(f"/api/documents/{document_id}/status")
    assert status.status_code == 200
    assert status.json() == {"id": document_id, "status": "ready", "chunks_total": 1, "chunks_completed": 1}

    listing = client.get("/api/documents")
    assert listing.status_code == 200
    documents = listing.json()
    assert [doc["id"] for doc in documents] == [document_id]
    assert documents[0]["original_name"] == "cat.txt"
    assert documents[0]["filename"].endswith("_cat.txt")


def test_owner_header_scopes_documents(client: TestClient) -> None:
    document_id = _upload(client, b"The cat sat.", owner="5").json()["document_id"]

    assert client.get("/api/documents").json() == []
    assert client.get(f"/api/documents/{document_id}/status").status_code == 404
    assert len(client.get("/api/documents", headers={"X-Owner-Id": "5"}).json()) == 1


def test_unsupported_type_is_415(client: TestClient, service: RAGService) -> None:
    response = _upload(client, b"\x89PNG", name="picture.png", mime="image/png")

    assert response.status_code == 415
    assert service.list_documents(1) == []


def test_extraction_failure_is_422(client: TestClient, service: RAGService) -> None:
    service.pipeline.extractor = ContentExtractor(pdf_extractor=_BrokenPDFExtractor())

    response = _upload(client, b"%PDF-1.4", name="broken.pdf", mime="application/pdf")

    assert response.status_code == 422


def test_oversized_upload_is_413(client: TestClient) -> None:
    assert _upload(client, b"a" * 2048).status_code == 413


def test_missing_document_is_404(client: TestClient) -> None:
    assert client.get("/api/documents/999/status").status_code == 404
    assert client.delete("/api/documents/999").status_code == 404


def test_delete_then_status_is_404(client: TestClient) -> None:
    document_id = _upload(client, b"The cat sat.").json()["document_id"]

    response = client.delete(f"/api/documents/{document_id}")

    assert response.status_code == 200
    assert response.json() == {"success": True}
    assert client.get(f"/api/documents/{document_id}/status").status_code == 404


def test_rag_chat_returns_answer_with_sources(client: TestClient) -> None:
    _upload(client, b"The cat sat on the mat.")

    response = client.post("/api/chat/rag", json={"query": "Where is the cat?", "limit": 3})

    assert response.status_code == 200
    payload = response.json()
    assert payload["answer"] == "The cat is on the mat."
    assert payload["model_used"] == "test-llm"
    assert payload["timestamp"]
    source = payload["sources"][0]
    assert source["original_name"] == "cat.txt"
    assert source["match_type"] == "semantic"
    assert source["excerpt"] == "The cat sat on the mat."


def test_rag_chat_without_documents(client: TestClient) -> None:
    response = client.post("/api/chat/rag", json={"query": "anything", "model": "other"})

    assert response.status_code == 200
    payload = response.json()
    assert payload["answer"] == NO_DOCUMENTS_ANSWER
    assert payload["sources"] == []
    assert payload["model_used"] == "other"


@pytest.mark.parametrize("body", [{}, {"query": ""}, {"query": "   "}, {"query": "x", "limit": 0}])
def test_rag_chat_rejects_invalid_requests(client: TestClient, body: dict) -> None:
    assert client.post("/api/chat/rag", json=body).status_code == 422


def test_shutdown_closes_shared_service(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("EMBEDDING_BACKEND", "disabled")
    shared = get_rag_service()

    with TestClient(app) as client:
        assert client.get("/healthz").text == "ok"

    assert get_rag_service.cache_info().currsize == 0
    with pytest.raises(RuntimeError):
        shared.pipeline.task_runner.submit(print)
