"""Best-effort language tagging of extracted documents."""
from __future__ import annotations

import logging
from typing import Optional

from langdetect import DetectorFactory, LangDetectException, detect

LOGGER = logging.getLogger(__name__)

# langdetect is probabilistic; a fixed seed keeps document metadata stable.
DetectorFactory.seed = 0


class LanguageDetector:
    """Tag a document with an ISO 639-1 code, or ``None`` when undecidable."""

    def __init__(self, sample_chars: int = 5000) -> None:
        self.sample_chars = sample_chars

    def detect(self, text: str) -> Optional[str]:
        sample = text.strip()[: self.sample_chars]
        if not sample:
            return None
        try:
            return detect(sample)
        except LangDetectException as error:
            LOGGER.debug("Language detection skipped for %s chars: %s", len(sample), error)
            return None
