from __future__ import annotations

import io

import pytest
from pypdf import PdfWriter

from docrag.errors import ExtractionError, UnsupportedContentTypeError
from docrag.ingest.extractors import ContentExtractor, PDFExtractor, TextExtractor
from docrag.ingest.format_detection import DocumentFormat, DocumentFormatDetector
from docrag.ingest.language import LanguageDetector
from docrag.ingest.normalization import normalize_text


def _blank_pdf(title: str = "Blank") -> bytes:
    writer = PdfWriter()
    writer.add_blank_page(width=72, height=72)
    writer.add_metadata({"/Title": title})
    buffer = io.BytesIO()
    writer.write(buffer)
    return buffer.getvalue()


@pytest.mark.parametrize(
    "file_name, mime_type, expected",
    [
        ("notes.txt", "text/plain", DocumentFormat.TXT),
        ("notes.txt", "text/plain; charset=utf-8", DocumentFormat.TXT),
        ("report.bin", "application/pdf", DocumentFormat.PDF),
        ("report.pdf", None, DocumentFormat.PDF),
        ("notes.txt", "application/octet-stream", DocumentFormat.TXT),
    ],
)
def test_format_detection(file_name, mime_type, expected):
    assert DocumentFormatDetector.detect(file_name, mime_type) is expected


def test_explicit_unknown_mime_type_is_not_overridden_by_name():
    with pytest.raises(UnsupportedContentTypeError) as excinfo:
        DocumentFormatDetector.detect("looks-like.txt", "image/png")

    assert "image/png" in str(excinfo.value)


def test_unknown_name_without_mime_type_is_rejected():
    with pytest.raises(UnsupportedContentTypeError):
        DocumentFormatDetector.detect("archive.zip", None)


def test_text_extractor_decodes_utf8_and_latin1():
    assert TextExtractor().extract("Grüße.".encode("utf-8")).text == "Grüße."
    assert TextExtractor().extract("Café.".encode("latin-1")).text == "Café."


def test_pdf_extractor_reads_pages_and_info():
    extracted = PDFExtractor().extract(_blank_pdf("Quarterly"))

    assert extracted.page_count == 1
    assert extracted.metadata["pages"] == 1
    assert extracted.metadata["info"]["Title"] == "Quarterly"


def test_pdf_extractor_wraps_read_errors():
    with pytest.raises(ExtractionError):
        PDFExtractor().extract(b"definitely not a pdf")


def test_content_extractor_normalises_and_tags_metadata():
    data = b"The contract  was signed\r\nin March.\x00"

    extracted = ContentExtractor().extract(data, "text/plain", "contract.txt")

    assert extracted.text == "The contract was signed\nin March."
    assert extracted.metadata["format"] == "txt"
    assert "language" in extracted.metadata


def test_normalize_text_collapses_whitespace():
    assert normalize_text("  a\t\tb  \n\n\n\nc ") == "a b\n\nc"


def test_language_detector_handles_empty_text():
    assert LanguageDetector().detect("   ") is None
    assert LanguageDetector().detect("This is a fairly ordinary English sentence about contracts.") == "en"
