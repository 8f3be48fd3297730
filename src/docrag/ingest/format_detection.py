"""Utilities for deciding how an upload should be extracted."""
from __future__ import annotations

import mimetypes
from enum import Enum
from typing import Optional

from docrag.errors import UnsupportedContentTypeError


class DocumentFormat(str, Enum):
    """Supported document formats."""

    PDF = "pdf"
    TXT = "txt"


_GENERIC_MIME_TYPES = {"", "application/octet-stream", "binary/octet-stream"}


class DocumentFormatDetector:
    """Maps an upload's MIME type (or, failing that, its name) to a format."""

    _MIME_MAP = {
        "application/pdf": DocumentFormat.PDF,
        "text/plain": DocumentFormat.TXT,
    }

    @classmethod
    def detect(cls, file_name: str, mime_type: Optional[str] = None) -> DocumentFormat:
        """Return the detected document format.

        An explicit MIME type decides on its own. The file name is only
        consulted when the client sent no type or a generic binary one.
        """

        normalized = (mime_type or "").split(";", 1)[0].strip().lower()
        if normalized in cls._MIME_MAP:
            return cls._MIME_MAP[normalized]
        if normalized not in _GENERIC_MIME_TYPES:
            raise UnsupportedContentTypeError(mime_type)

        guessed_type, _ = mimetypes.guess_type(file_name)
        if guessed_type and guessed_type in cls._MIME_MAP:
            return cls._MIME_MAP[guessed_type]
        raise UnsupportedContentTypeError(mime_type or guessed_type)

    @classmethod
    def mime_type_for(cls, document_format: DocumentFormat) -> str:
        for mime_type, candidate in cls._MIME_MAP.items():
            if candidate is document_format:
                return mime_type
        raise ValueError(f"No MIME type registered for {document_format}")
