"""Generation model access for answering questions over retrieved context."""

from __future__ import annotations

import logging
from functools import lru_cache
from typing import Any, Mapping, Optional, Protocol

import httpx

from docrag.config import get_settings
from docrag.errors import GenerationError

LOGGER = logging.getLogger(__name__)

DEFAULT_SYSTEM_PROMPT = (
    "You are a helpful assistant. Answer the question using only the provided document "
    "context. If the context does not contain the answer, say that you could not find it "
    "in the uploaded documents."
)


class ChatModel(Protocol):
    """Common interface exposed by generation model implementations."""

    def chat(
        self,
        system_prompt: str,
        user_prompt: str,
        model: str,
        options: Mapping[str, Any],
    ) -> str:
        ...


class OllamaChatModel:
    """Non-streaming client for the Ollama ``/api/chat`` endpoint."""

    def __init__(
        self,
        base_url: str,
        *,
        timeout: float = 120.0,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        self._client = httpx.Client(base_url=base_url, timeout=timeout, transport=transport)

    def chat(
        self,
        system_prompt: str,
        user_prompt: str,
        model: str,
        options: Mapping[str, Any],
    ) -> str:
        payload = {
            "model": model,
            "messages": [
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_prompt},
            ],
            "stream": False,
            "options": {key: value for key, value in options.items() if value is not None},
        }
        try:
            response = self._client.post("/api/chat", json=payload)
            response.raise_for_status()
            data = response.json()
        except (httpx.HTTPError, ValueError) as error:
            raise GenerationError(f"Chat request to model {model!r} failed: {error}", cause=error) from error

        message = data.get("message") if isinstance(data, dict) else None
        content = message.get("content") if isinstance(message, dict) else None
        if not isinstance(content, str):
            keys = sorted(data) if isinstance(data, dict) else []
            raise GenerationError(f"Ollama chat response does not contain a message (keys: {keys})")
        return content

    def close(self) -> None:
        self._client.close()


def build_user_prompt(question: str, context: str) -> str:
    """Combine the retrieved context and the question into one user turn."""

    cleaned_question = question.strip()
    return f"Context:\n{context}\n\nQuestion: {cleaned_question}\n\nAnswer:"


@lru_cache()
def get_chat_model() -> ChatModel:
    """Return the shared generation client built from the current settings."""

    settings = get_settings()
    LOGGER.info("Using Ollama chat model at %s", settings.ollama_base_url)
    return OllamaChatModel(settings.ollama_base_url, timeout=max(settings.ollama_timeout, 60.0))


def reset_chat_model_cache() -> None:
    """Clear the cached chat model (primarily for testing)."""

    get_chat_model.cache_clear()  # type: ignore[attr-defined]
