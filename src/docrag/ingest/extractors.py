"""Extractors for supported document types."""
from __future__ import annotations

import io
import logging
from typing import Any, List, Optional

from pypdf import PdfReader
from pypdf.errors import PdfReadError

from docrag.errors import ExtractionError

from .format_detection import DocumentFormat, DocumentFormatDetector
from .language import LanguageDetector
from .models import ExtractedContent, PageContent
from .normalization import normalize_text

LOGGER = logging.getLogger(__name__)


class PDFExtractor:
    """Extract per-page text and document info from PDF bytes."""

    def extract(self, data: bytes) -> ExtractedContent:
        try:
            reader = PdfReader(io.BytesIO(data))
        except (PdfReadError, ValueError, OSError) as error:
            raise ExtractionError("Failed to read PDF document", cause=error) from error

        pages: List[PageContent] = []
        for index, page in enumerate(reader.pages, start=1):
            try:
                text = page.extract_text() or ""
            except Exception as error:  # pragma: no cover - depends on pdf internals
                LOGGER.warning("Failed to extract text from PDF page %s: %s", index, error)
                text = ""
            pages.append(PageContent(page_number=index, text=text))

        return ExtractedContent(pages=pages, metadata={"pages": len(pages), "info": self._info(reader)})

    @staticmethod
    def _info(reader: PdfReader) -> dict[str, Any]:
        try:
            info = reader.metadata
        except Exception as error:  # pragma: no cover - depends on pdf internals
            LOGGER.debug("PDF metadata unavailable: %s", error)
            return {}
        if not info:
            return {}
        return {str(key).lstrip("/"): str(value) for key, value in info.items()}


class TextExtractor:
    """Extract text from plaintext documents."""

    def extract(self, data: bytes, encoding: str = "utf-8") -> ExtractedContent:
        try:
            text = data.decode(encoding)
        except UnicodeDecodeError:
            LOGGER.warning("Upload is not valid %s; decoding as latin-1", encoding)
            text = data.decode("latin-1")
        return ExtractedContent(pages=[PageContent(page_number=1, text=text)], metadata={"pages": 1})


class ContentExtractor:
    """Dispatch uploads to the extractor matching their MIME type."""

    def __init__(
        self,
        pdf_extractor: Optional[PDFExtractor] = None,
        text_extractor: Optional[TextExtractor] = None,
        language_detector: Optional[LanguageDetector] = None,
    ) -> None:
        self.pdf_extractor = pdf_extractor or PDFExtractor()
        self.text_extractor = text_extractor or TextExtractor()
        self.language_detector = language_detector or LanguageDetector()

    def extract(self, data: bytes, mime_type: Optional[str], file_name: str = "") -> ExtractedContent:
        """Return normalised page text plus metadata for an upload.

        Raises :class:`UnsupportedContentTypeError` for unknown types and
        :class:`ExtractionError` when a supported file cannot be read.
        """

        document_format = DocumentFormatDetector.detect(file_name, mime_type)
        LOGGER.info("Extracting %s as %s", file_name or "upload", document_format.value)

        if document_format is DocumentFormat.PDF:
            extracted = self.pdf_extractor.extract(data)
        else:
            extracted = self.text_extractor.extract(data)

        pages = [
            PageContent(page_number=page.page_number, text=normalize_text(page.text))
            for page in extracted.pages
        ]
        metadata = dict(extracted.metadata)
        metadata["format"] = document_format.value
        metadata["language"] = self.language_detector.detect("\n".join(page.text for page in pages))
        return ExtractedContent(pages=pages, metadata=metadata)
