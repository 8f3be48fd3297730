"""Embedding client with a deterministic fallback for unreachable models."""
from __future__ import annotations

import hashlib
import logging
import random
import time
from dataclasses import dataclass
from functools import lru_cache
from typing import Any, List, Optional, Protocol, Sequence

import httpx
import numpy as np

from docrag.config import Settings, get_settings
from docrag.errors import EmbeddingError
from docrag.telemetry import emit_embeddings_event

LOGGER = logging.getLogger(__name__)


class EmbeddingBackend(Protocol):
    """Anything that can turn one text into a raw vector using a named model."""

    name: str

    def embed(self, text: str, model_name: str) -> Sequence[float]:
        ...


class OllamaEmbeddingBackend:
    """Calls the Ollama ``/api/embed`` endpoint."""

    name = "ollama"

    def __init__(
        self,
        base_url: str,
        *,
        timeout: float = 30.0,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        self._client = httpx.Client(base_url=base_url, timeout=timeout, transport=transport)

    def embed(self, text: str, model_name: str) -> List[float]:
        response = self._client.post("/api/embed", json={"model": model_name, "input": [text]})
        response.raise_for_status()
        payload = response.json()
        embeddings = payload.get("embeddings") if isinstance(payload, dict) else None
        if not embeddings or not embeddings[0]:
            raise EmbeddingError(
                f"Ollama response does not contain embeddings (keys: {sorted(payload or {})})"
            )
        return [float(value) for value in embeddings[0]]

    def close(self) -> None:
        self._client.close()


class SentenceTransformerBackend:
    """Runs a local sentence-transformers model, loaded on first use."""

    name = "sentence-transformers"

    def __init__(self, device: Optional[str] = None) -> None:
        self._device = device
        self._models: dict[str, Any] = {}

    def embed(self, text: str, model_name: str) -> List[float]:
        model = self._models.get(model_name)
        if model is None:
            from sentence_transformers import SentenceTransformer

            model = SentenceTransformer(model_name, device=self._device)
            self._models[model_name] = model
        vectors = model.encode([text], convert_to_numpy=True, show_progress_bar=False)
        return [float(value) for value in vectors[0]]


class DisabledEmbeddingBackend:
    """Backend used when no model is configured; every call fails."""

    name = "disabled"

    def embed(self, text: str, model_name: str) -> List[float]:
        raise EmbeddingError("Embedding backend is disabled")


@dataclass(slots=True, frozen=True)
class EmbeddingOutcome:
    vector: List[float]
    fallback: bool


def _l2_normalize(vector: Sequence[float]) -> List[float]:
    array = np.asarray(vector, dtype=np.float64)
    norm = float(np.linalg.norm(array))
    if norm == 0.0 or not np.isfinite(norm):
        raise EmbeddingError("Embedding vector has no usable magnitude")
    return (array / norm).tolist()


class EmbeddingClient:
    """Embed texts with the configured model, degrading to seeded vectors.

    ``embed`` never raises: when the model is unreachable or answers with
    something unusable, a reproducible pseudo-random unit vector derived from
    the text is returned instead and the event is logged as a fallback.
    Those vectors keep the pipeline moving but carry no meaning.
    ``embed_query`` is the strict variant used at query time.
    """

    def __init__(self, backend: EmbeddingBackend, *, model_name: str, dimension: int) -> None:
        if dimension <= 0:
            raise ValueError("dimension must be a positive integer")
        self._backend = backend
        self.model_name = model_name
        self.dimension = dimension

    def embed(self, text: str) -> EmbeddingOutcome:
        try:
            return EmbeddingOutcome(vector=self._embed_with_model(text), fallback=False)
        except Exception as error:
            emit_embeddings_event(
                model=self.model_name,
                backend=self._backend.name,
                count=1,
                duration_ms=0.0,
                fallback=True,
                errors=[str(error)],
            )
            return EmbeddingOutcome(vector=self.fallback_vector(text), fallback=True)

    def embed_query(self, text: str) -> List[float]:
        try:
            return self._embed_with_model(text)
        except EmbeddingError:
            raise
        except Exception as error:
            raise EmbeddingError("Failed to embed query", cause=error) from error

    def close(self) -> None:
        close = getattr(self._backend, "close", None)
        if close is not None:
            close()

    def fallback_vector(self, text: str) -> List[float]:
        seed = int.from_bytes(hashlib.sha256(text.encode("utf-8")).digest(), "big")
        rng = random.Random(seed)
        return _l2_normalize([rng.uniform(-1.0, 1.0) for _ in range(self.dimension)])

    def _embed_with_model(self, text: str) -> List[float]:
        started = time.perf_counter()
        raw = self._backend.embed(text, self.model_name)
        if len(raw) != self.dimension:
            raise EmbeddingError(
                f"Model {self.model_name} returned {len(raw)} dimensions, expected {self.dimension}"
            )
        vector = _l2_normalize(raw)
        emit_embeddings_event(
            model=self.model_name,
            backend=self._backend.name,
            count=1,
            duration_ms=(time.perf_counter() - started) * 1000.0,
        )
        return vector


def build_embedding_backend(settings: Settings) -> EmbeddingBackend:
    backend = settings.embedding_backend
    if backend == "ollama":
        return OllamaEmbeddingBackend(settings.ollama_base_url, timeout=settings.ollama_timeout)
    if backend == "sentence-transformers":
        return SentenceTransformerBackend()
    if backend == "disabled":
        LOGGER.info("EMBEDDING_BACKEND is disabled; all embeddings use the deterministic fallback.")
        return DisabledEmbeddingBackend()
    raise ValueError(f"Unsupported EMBEDDING_BACKEND: {backend!r}")


@lru_cache()
def get_embedding_client() -> EmbeddingClient:
    """Return a cached embedding client built from the current settings."""

    settings = get_settings()
    return EmbeddingClient(
        build_embedding_backend(settings),
        model_name=settings.embedding_model,
        dimension=settings.embedding_dimension,
    )


def reset_embedding_client_cache() -> None:
    """Clear the cached embedding client (primarily for testing)."""

    get_embedding_client.cache_clear()  # type: ignore[attr-defined]
