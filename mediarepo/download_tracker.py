"""Counts recent downloads of media records in per-minute buckets that expire."""

from __future__ import annotations

import threading
from collections import deque
from collections.abc import Callable
from dataclasses import dataclass, field

from .util import now_millis

_MINUTE_MS = 60_000


@dataclass
class _Bucket:
    ts: int
    downloads: int


@dataclass
class _Record:
    buckets: deque[_Bucket] = field(default_factory=deque)
    downloads: int = 0


class DownloadTracker:
    """Tracks how many times each record was downloaded in the last ``max_age_minutes``.

    A record's history is forgotten entirely once it has not been updated
    for ``max_age_minutes``. ``clock`` returns the current time in milliseconds.
    """

    def __init__(self, max_age_minutes: int, clock: Callable[[], int] | None = None) -> None:
        self._max_age = max_age_minutes
        self._ttl_ms = max_age_minutes * _MINUTE_MS if max_age_minutes > 0 else None
        self._clock = clock or now_millis
        self._cache: dict[str, tuple[_Record, int | None]] = {}
        self._lock = threading.Lock()
        self._last_prune = self._clock()

    def reset(self) -> None:
        """Forget every record."""
        with self._lock:
            self._cache.clear()

    def num_downloads(self, record_id: str) -> int:
        """Return the number of recent downloads of ``record_id``."""
        with self._lock:
            now = self._clock()
            record = self._lookup(record_id, now)
            if record is None:
                return 0
            return self._recount(record, record_id, now)

    def increment(self, record_id: str) -> int:
        """Count one download of ``record_id`` and return the new recent total."""
        with self._lock:
            now = self._clock()
            record = self._lookup(record_id, now) or _Record()
            bucket_ts = now // _MINUTE_MS
            if record.buckets and record.buckets[0].ts == bucket_ts:
                record.buckets[0].downloads += 1
            else:
                record.buckets.appendleft(_Bucket(ts=bucket_ts, downloads=1))
            return self._recount(record, record_id, now)

    def _lookup(self, record_id: str, now: int) -> _Record | None:
        entry = self._cache.get(record_id)
        if entry is None:
            return None
        record, expires_at = entry
        if expires_at is not None and now > expires_at:
            del self._cache[record_id]
            return None
        return record

    def _store(self, record_id: str, record: _Record, now: int) -> None:
        expires_at = now + self._ttl_ms if self._ttl_ms is not None else None
        self._cache[record_id] = (record, expires_at)
        self._prune(now)

    def _prune(self, now: int) -> None:
        if self._ttl_ms is None or now - self._last_prune < 2 * self._ttl_ms:
            return
        self._last_prune = now
        expired = [
            key
            for key, (_, expires_at) in self._cache.items()
            if expires_at is not None and now > expires_at
        ]
        for key in expired:
            del self._cache[key]

    def _recount(self, record: _Record, record_id: str, now: int) -> int:
        current_bucket = now // _MINUTE_MS
        changed = False
        while record.buckets and current_bucket - record.buckets[-1].ts > self._max_age:
            record.buckets.pop()
            changed = True

        downloads = sum(bucket.downloads for bucket in record.buckets)
        if changed or downloads != record.downloads:
            record.downloads = downloads
            self._store(record_id, record, now)
        return downloads