"""Request-scoped dependencies shared by the API routers."""
from __future__ import annotations

from typing import Optional

from fastapi import Header

from docrag.config import get_settings


def get_owner_id(x_owner_id: Optional[int] = Header(None, description="Owner of the documents.")) -> int:
    """Resolve the acting owner from ``X-Owner-Id`` or the configured default."""

    if x_owner_id is None:
        return get_settings().default_owner_id
    return x_owner_id
