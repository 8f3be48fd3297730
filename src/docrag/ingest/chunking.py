"""Sentence-bounded chunking of extracted document text."""
from __future__ import annotations

import bisect
import logging
import re
from dataclasses import dataclass
from typing import Iterable, Iterator, List, Optional, Sequence, Tuple

from .models import PageContent

LOGGER = logging.getLogger(__name__)

DEFAULT_MAX_CHUNK_CHARS = 1000

# A unit is any run of text closed by one or more terminators, or the
# trailing run of text that has no terminator at all.
_SENTENCE_RE = re.compile(r"[^.!?]*[.!?]+|[^.!?]+")
_TERMINATORS = ".!?"


@dataclass(slots=True)
class ChunkingConfig:
    max_chunk_chars: int = DEFAULT_MAX_CHUNK_CHARS


@dataclass(slots=True, frozen=True)
class TextChunk:
    """Chunk text with the character span and pages it was drawn from."""

    content: str
    char_start: int
    char_end: int
    start_page: Optional[int] = None
    end_page: Optional[int] = None


def split_sentences(text: str) -> List[Tuple[str, int, int]]:
    """Return ``(sentence, start, end)`` triples for every non-empty sentence.

    Terminators stay attached to their sentence. Units that are empty once
    whitespace and terminators are removed are dropped.
    """

    sentences: List[Tuple[str, int, int]] = []
    for match in _SENTENCE_RE.finditer(text):
        raw = match.group(0)
        sentence = raw.strip()
        if not sentence.rstrip(_TERMINATORS).strip():
            continue
        leading = len(raw) - len(raw.lstrip())
        start = match.start() + leading
        sentences.append((sentence, start, start + len(sentence)))
    return sentences


class SentenceChunker:
    """Greedily pack whole sentences into chunks of bounded length."""

    def __init__(self, config: Optional[ChunkingConfig] = None) -> None:
        self.config = config or ChunkingConfig()
        if self.config.max_chunk_chars <= 0:
            raise ValueError("max_chunk_chars must be a positive integer")

    def chunk(self, text: str) -> List[str]:
        return [chunk.content for chunk in self._pack(split_sentences(text))]

    def chunk_pages(self, pages: Sequence[PageContent]) -> List[TextChunk]:
        """Chunk multi-page text, recording the page span of every chunk."""

        if not pages:
            return []
        text = "\n".join(page.text for page in pages)
        page_starts: List[int] = []
        offset = 0
        for page in pages:
            page_starts.append(offset)
            offset += len(page.text) + 1

        def page_at(position: int) -> int:
            return pages[bisect.bisect_right(page_starts, position) - 1].page_number

        chunks: List[TextChunk] = []
        for chunk in self._pack(split_sentences(text)):
            chunks.append(
                TextChunk(
                    content=chunk.content,
                    char_start=chunk.char_start,
                    char_end=chunk.char_end,
                    start_page=page_at(chunk.char_start),
                    end_page=page_at(max(chunk.char_end - 1, chunk.char_start)),
                )
            )
        return chunks

    def _pack(self, sentences: Iterable[Tuple[str, int, int]]) -> Iterator[TextChunk]:
        limit = self.config.max_chunk_chars
        current: List[str] = []
        current_len = 0
        start = end = 0
        for sentence, sentence_start, sentence_end in sentences:
            if current and current_len + 1 + len(sentence) > limit:
                yield TextChunk(content=" ".join(current), char_start=start, char_end=end)
                current = []
                current_len = 0
            if not current:
                start = sentence_start
                current_len = len(sentence)
                if current_len > limit:
                    LOGGER.debug("Keeping oversized sentence of %s chars as one chunk", current_len)
            else:
                current_len += 1 + len(sentence)
            current.append(sentence)
            end = sentence_end
        if current:
            yield TextChunk(content=" ".join(current), char_start=start, char_end=end)


def chunk_text(text: str, max_chunk_chars: int = DEFAULT_MAX_CHUNK_CHARS) -> List[str]:
    """Split *text* into sentence-aligned chunks of at most *max_chunk_chars*.

    A single sentence longer than the limit is kept intact as its own chunk.
    """

    return SentenceChunker(ChunkingConfig(max_chunk_chars=max_chunk_chars)).chunk(text)
