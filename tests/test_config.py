from __future__ import annotations

from datetime import datetime, timezone

import pytest

from docrag.config import get_settings, load_settings, reset_settings_cache
from docrag.uploads import generate_stored_filename, sanitize_filename


def test_defaults(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in ("DOCRAG_MAX_CHUNK_CHARS", "EMBEDDING_MODEL", "LLM_MODEL", "OLLAMA_BASE_URL"):
        monkeypatch.delenv(name, raising=False)

    settings = load_settings()

    assert settings.max_chunk_chars == 1000
    assert settings.max_context_chars == 4000
    assert settings.embedding_model == "nomic-embed-text"
    assert settings.embedding_dimension == 768
    assert settings.llm_model == "llama3.1:8b"
    assert settings.ollama_base_url == "http://localhost:11434"


def test_environment_overrides(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("DOCRAG_MAX_CHUNK_CHARS", "250")
    monkeypatch.setenv("EMBEDDING_BACKEND", "Disabled")
    monkeypatch.setenv("LLM_TEMPERATURE", "0.1")
    monkeypatch.setenv("OLLAMA_BASE_URL", "http://ollama:11434/")

    settings = load_settings()

    assert settings.max_chunk_chars == 250
    assert settings.embedding_backend == "disabled"
    assert settings.llm_temperature == 0.1
    assert settings.ollama_base_url == "http://ollama:11434"


def test_invalid_numbers_fall_back_to_defaults(monkeypatch: pytest.MonkeyPatch, caplog) -> None:
    monkeypatch.setenv("DOCRAG_RETRIEVAL_LIMIT", "many")
    monkeypatch.setenv("OLLAMA_TIMEOUT", "soon")

    with caplog.at_level("WARNING"):
        settings = load_settings()

    assert settings.retrieval_limit == 5
    assert settings.ollama_timeout == 30.0
    assert "DOCRAG_RETRIEVAL_LIMIT" in caplog.text


def test_settings_are_cached_until_reset(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("DOCRAG_DEFAULT_OWNER_ID", "7")
    first = get_settings()
    monkeypatch.setenv("DOCRAG_DEFAULT_OWNER_ID", "8")

    assert get_settings() is first
    reset_settings_cache()
    assert get_settings().default_owner_id == 8


@pytest.mark.parametrize(
    "name, expected",
    [
        ("report.pdf", "report.pdf"),
        ("../../etc/passwd", "passwd"),
        ("my notes (final).txt", "my_notes_final_.txt"),
        ("C:\\Users\\me\\doc.txt", "doc.txt"),
        ("", "upload"),
    ],
)
def test_sanitize_filename(name: str, expected: str) -> None:
    assert sanitize_filename(name) == expected


def test_stored_filename_is_timestamp_prefixed() -> None:
    moment = datetime(2024, 1, 2, 3, 4, 5, tzinfo=timezone.utc)

    assert generate_stored_filename("a b.txt", now=moment) == f"{int(moment.timestamp() * 1000)}_a_b.txt"
