"""Persistence capability for documents and chunks."""

from .base import Storage
from .memory import InMemoryStorage

__all__ = ["InMemoryStorage", "Storage"]
