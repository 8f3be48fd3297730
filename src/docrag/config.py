"""Runtime settings resolved from environment variables."""
from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from functools import lru_cache

LOGGER = logging.getLogger(__name__)

DEFAULT_EMBEDDING_MODEL = "nomic-embed-text"
DEFAULT_EMBEDDING_DIMENSION = 768
DEFAULT_LLM_MODEL = "llama3.1:8b"


def _str_from_env(name: str, default: str) -> str:
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    return value.strip()


def _int_from_env(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None:
        return default
    try:
        return int(value)
    except ValueError:
        LOGGER.warning("Invalid integer for %s: %s; using default %s", name, value, default)
        return default


def _float_from_env(name: str, default: float) -> float:
    value = os.getenv(name)
    if value is None:
        return default
    try:
        return float(value)
    except ValueError:
        LOGGER.warning("Invalid float for %s: %s; using default %s", name, value, default)
        return default


@dataclass(slots=True, frozen=True)
class Settings:
    max_chunk_chars: int = 1000
    max_context_chars: int = 4000
    retrieval_limit: int = 5
    embedding_backend: str = "ollama"
    embedding_model: str = DEFAULT_EMBEDDING_MODEL
    embedding_dimension: int = DEFAULT_EMBEDDING_DIMENSION
    ollama_base_url: str = "http://localhost:11434"
    ollama_timeout: float = 30.0
    llm_model: str = DEFAULT_LLM_MODEL
    llm_temperature: float = 0.7
    llm_max_tokens: int = 512
    ingest_workers: int = 4
    default_owner_id: int = 1
    max_upload_bytes: int = 50 * 1024 * 1024


def load_settings() -> Settings:
    """Build :class:`Settings` from the process environment."""

    defaults = Settings()
    return Settings(
        max_chunk_chars=_int_from_env("DOCRAG_MAX_CHUNK_CHARS", defaults.max_chunk_chars),
        max_context_chars=_int_from_env("DOCRAG_MAX_CONTEXT_CHARS", defaults.max_context_chars),
        retrieval_limit=_int_from_env("DOCRAG_RETRIEVAL_LIMIT", defaults.retrieval_limit),
        embedding_backend=_str_from_env("EMBEDDING_BACKEND", defaults.embedding_backend).lower(),
        embedding_model=_str_from_env("EMBEDDING_MODEL", defaults.embedding_model),
        embedding_dimension=_int_from_env("EMBEDDING_DIMENSION", defaults.embedding_dimension),
        ollama_base_url=_str_from_env("OLLAMA_BASE_URL", defaults.ollama_base_url).rstrip("/"),
        ollama_timeout=_float_from_env("OLLAMA_TIMEOUT", defaults.ollama_timeout),
        llm_model=_str_from_env("LLM_MODEL", defaults.llm_model),
        llm_temperature=_float_from_env("LLM_TEMPERATURE", defaults.llm_temperature),
        llm_max_tokens=_int_from_env("LLM_MAX_TOKENS", defaults.llm_max_tokens),
        ingest_workers=max(1, _int_from_env("DOCRAG_INGEST_WORKERS", defaults.ingest_workers)),
        default_owner_id=_int_from_env("DOCRAG_DEFAULT_OWNER_ID", defaults.default_owner_id),
        max_upload_bytes=_int_from_env("DOCRAG_MAX_UPLOAD_BYTES", defaults.max_upload_bytes),
    )


@lru_cache()
def get_settings() -> Settings:
    """Return the cached process-wide settings."""

    return load_settings()


def reset_settings_cache() -> None:
    """Clear the cached settings (primarily for testing)."""

    get_settings.cache_clear()  # type: ignore[attr-defined]
