"""Background task submission for fire-and-forget ingestion runs."""
from __future__ import annotations

import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Any, Callable, Optional, Protocol

from docrag.telemetry import emit_exception

LOGGER = logging.getLogger(__name__)


class TaskRunner(Protocol):
    """Accepts work to be executed independently of the caller."""

    def submit(self, fn: Callable[..., Any], *args: Any, **kwargs: Any) -> None:
        ...


class InlineTaskRunner:
    """Runs submitted work immediately in the calling thread."""

    def submit(self, fn: Callable[..., Any], *args: Any, **kwargs: Any) -> None:
        fn(*args, **kwargs)


class ThreadPoolTaskRunner:
    """Runs submitted work on a bounded pool of worker threads."""

    def __init__(self, max_workers: int = 4, *, thread_name_prefix: str = "docrag-ingest") -> None:
        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix=thread_name_prefix)
        self._pending: set[Future] = set()
        self._lock = threading.Lock()

    def submit(self, fn: Callable[..., Any], *args: Any, **kwargs: Any) -> None:
        future = self._executor.submit(fn, *args, **kwargs)
        with self._lock:
            self._pending.add(future)
        future.add_done_callback(self._on_done)

    def wait(self, timeout: Optional[float] = None) -> None:
        """Block until every task submitted so far has finished."""

        with self._lock:
            pending = list(self._pending)
        for future in pending:
            future.exception(timeout=timeout)

    def shutdown(self, wait: bool = True) -> None:
        self._executor.shutdown(wait=wait)

    def _on_done(self, future: Future) -> None:
        with self._lock:
            self._pending.discard(future)
        error = future.exception()
        if error is not None:
            emit_exception(module=f"{__name__}.worker", error=error)
