"""Cleanup applied to extracted text before it is chunked and stored."""
from __future__ import annotations

import re
import unicodedata
from typing import Callable, List

_STRAY_CONTROL_RE = re.compile(r"[\x00-\x08\x0b\x0c\x0e-\x1f\x7f]")
_HORIZONTAL_SPACE_RE = re.compile(r"[ \t\u00a0]+")
_SPACE_AROUND_NEWLINE_RE = re.compile(r" *\n *")
_BLANK_LINE_RUN_RE = re.compile(r"\n{3,}")


def _unify_newlines(text: str) -> str:
    return text.replace("\r\n", "\n").replace("\r", "\n")


_STEPS: List[Callable[[str], str]] = [
    lambda text: unicodedata.normalize("NFC", text),
    _unify_newlines,
    lambda text: _STRAY_CONTROL_RE.sub("", text),
    lambda text: _HORIZONTAL_SPACE_RE.sub(" ", text),
    lambda text: _SPACE_AROUND_NEWLINE_RE.sub("\n", text),
    lambda text: _BLANK_LINE_RUN_RE.sub("\n\n", text),
]


def normalize_text(text: str) -> str:
    """Return *text* in NFC with unified newlines and collapsed spacing.

    Control characters that PDF extraction tends to leave behind are dropped,
    runs of spaces become one space and at most one blank line is kept.
    """

    for step in _STEPS:
        text = step(text)
    return text.strip()
