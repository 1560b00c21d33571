"""Runs fetches on a worker pool, sharing results between callers of the same resource."""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass
from typing import Any

logger = logging.getLogger(__name__)

_CACHE_SECONDS = 30.0


@dataclass(frozen=True)
class WorkRequest:
    id: str
    metadata: Any = None


@dataclass
class _Entry:
    future: Future | None = None
    expires_at: float | None = None  # None while the work is in progress


class ResourceHandler:
    """Deduplicates work by resource id and caches completed results briefly."""

    def __init__(
        self,
        workers: int,
        fetch_fn: Callable[[WorkRequest], Any],
        *,
        clock: Callable[[], float] = time.monotonic,
        cache_seconds: float = _CACHE_SECONDS,
    ) -> None:
        self._fetch_fn = fetch_fn
        self._pool = ThreadPoolExecutor(max_workers=workers)
        self._clock = clock
        self._cache_seconds = cache_seconds
        self._cache: dict[str, _Entry] = {}
        self._lock = threading.Lock()

    def __enter__(self) -> ResourceHandler:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def close(self) -> None:
        """Stop the worker pool, waiting for running work to finish."""
        logger.warning("Closing resource handler: %s", type(self).__name__)
        self._pool.shutdown(wait=True)

    def get_resource(self, resource_id: str, metadata: Any = None) -> Future:
        """Return a future for the resource, starting the fetch only if none is cached."""
        with self._lock:
            now = self._clock()
            self._drop_expired(now)
            entry = self._cache.get(resource_id)
            if entry is not None and entry.future is not None:
                if entry.expires_at is not None:
                    logger.warning(
                        "Returning cached reply from resource handler for resource ID %s",
                        resource_id,
                    )
                return entry.future

            entry = _Entry()
            request = WorkRequest(resource_id, metadata)
            entry.future = self._pool.submit(self._work, entry, request)
            self._cache[resource_id] = entry
            return entry.future

    def _work(self, entry: _Entry, request: WorkRequest) -> Any:
        try:
            return self._fetch_fn(request)
        finally:
            with self._lock:
                entry.expires_at = self._clock() + self._cache_seconds

    def _drop_expired(self, now: float) -> None:
        expired = [
            key
            for key, entry in self._cache.items()
            if entry.expires_at is not None and now > entry.expires_at
        ]
        for key in expired:
            del self._cache[key]