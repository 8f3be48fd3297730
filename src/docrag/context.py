"""Bounded prompt context assembled from retrieved sources."""
from __future__ import annotations

from typing import Iterable

from docrag.models import Source

DEFAULT_MAX_CONTEXT_CHARS = 4000
SEPARATOR = "\n\n"


def assemble_context(sources: Iterable[Source], max_length: int = DEFAULT_MAX_CONTEXT_CHARS) -> str:
    """Join source excerpts in rank order and cut the result at *max_length* characters."""

    if max_length <= 0:
        return ""
    context = SEPARATOR.join(source.excerpt for source in sources)
    return context[:max_length]
