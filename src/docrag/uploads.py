"""Naming helpers for uploaded files."""
from __future__ import annotations

import re
from datetime import datetime, timezone
from pathlib import Path
from typing import Final, Optional

_FILENAME_SAFE_CHARS_RE: Final[re.Pattern[str]] = re.compile(r"[^A-Za-z0-9.-]+")


def sanitize_filename(filename: str) -> str:
    """Return a filesystem-safe filename preserving the extension when possible."""
    if not filename:
        filename = "upload"
    # Remove any path components and replace disallowed characters.
    sanitized = Path(filename.replace("\\", "/")).name
    sanitized = _FILENAME_SAFE_CHARS_RE.sub("_", sanitized)
    sanitized = sanitized.strip("._") or "upload"
    return sanitized


def generate_stored_filename(original_name: str, now: Optional[datetime] = None) -> str:
    """Build the stored name: a millisecond timestamp prefix plus the sanitized name."""
    moment = now or datetime.now(timezone.utc)
    return f"{int(moment.timestamp() * 1000)}_{sanitize_filename(original_name)}"
