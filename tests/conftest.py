"""Shared fixtures: in-memory storage, scripted embedding backends and chat models."""
from __future__ import annotations

import re
from typing import Any, Dict, List, Mapping, Sequence

import pytest

from docrag.config import reset_settings_cache
from docrag.embeddings import EmbeddingClient, reset_embedding_client_cache
from docrag.errors import GenerationError
from docrag.llm_provider import reset_chat_model_cache
from docrag.services.rag import get_rag_service
from docrag.storage import InMemoryStorage
from docrag.tasks import InlineTaskRunner

VOCABULARY = ("cat", "dog", "mat", "bone", "contract", "payment")
_WORD_RE = re.compile(r"[a-z]+")


class VocabularyBackend:
    """Counts vocabulary words; the last component is a constant bias."""

    name = "vocabulary"

    def __init__(self, vocabulary: Sequence[str] = VOCABULARY) -> None:
        self.vocabulary = tuple(vocabulary)
        self.calls: List[str] = []

    @property
    def dimension(self) -> int:
        return len(self.vocabulary) + 1

    def embed(self, text: str, model_name: str) -> List[float]:
        self.calls.append(text)
        words = _WORD_RE.findall(text.lower())
        vector = [float(words.count(term)) for term in self.vocabulary]
        vector.append(0.1)
        return vector


class FailingBackend:
    name = "failing"

    def __init__(self, error: Exception | None = None) -> None:
        self.error = error or ConnectionError("embedding service unreachable")
        self.calls = 0

    def embed(self, text: str, model_name: str) -> List[float]:
        self.calls += 1
        raise self.error


class RecordingChatModel:
    def __init__(self, reply: str = "Generated answer.") -> None:
        self.reply = reply
        self.calls: List[Dict[str, Any]] = []

    def chat(self, system_prompt: str, user_prompt: str, model: str, options: Mapping[str, Any]) -> str:
        self.calls.append(
            {
                "system_prompt": system_prompt,
                "user_prompt": user_prompt,
                "model": model,
                "options": dict(options),
            }
        )
        return self.reply


class FailingChatModel:
    def __init__(self) -> None:
        self.calls = 0

    def chat(self, system_prompt: str, user_prompt: str, model: str, options: Mapping[str, Any]) -> str:
        self.calls += 1
        raise GenerationError("model crashed")


@pytest.fixture(autouse=True)
def _reset_caches(monkeypatch: pytest.MonkeyPatch):
    for name in ("EMBEDDING_BACKEND", "EMBEDDING_DIMENSION", "DOCRAG_DEFAULT_OWNER_ID", "DOCRAG_MAX_UPLOAD_BYTES"):
        monkeypatch.delenv(name, raising=False)
    reset_settings_cache()
    reset_embedding_client_cache()
    reset_chat_model_cache()
    get_rag_service.cache_clear()
    yield
    reset_settings_cache()
    reset_embedding_client_cache()
    reset_chat_model_cache()
    get_rag_service.cache_clear()


@pytest.fixture()
def storage() -> InMemoryStorage:
    return InMemoryStorage()


@pytest.fixture()
def vocabulary_backend() -> VocabularyBackend:
    return VocabularyBackend()


@pytest.fixture()
def embedding_client(vocabulary_backend: VocabularyBackend) -> EmbeddingClient:
    return EmbeddingClient(
        vocabulary_backend,
        model_name="test-embed",
        dimension=vocabulary_backend.dimension,
    )


@pytest.fixture()
def failing_embedding_client() -> EmbeddingClient:
    return EmbeddingClient(FailingBackend(), model_name="test-embed", dimension=len(VOCABULARY) + 1)


@pytest.fixture()
def inline_runner() -> InlineTaskRunner:
    return InlineTaskRunner()


@pytest.fixture()
def chat_model() -> RecordingChatModel:
    return RecordingChatModel()
