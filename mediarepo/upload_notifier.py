"""Lets requests wait for an upload of a given media item to finish."""

from __future__ import annotations

import threading
from datetime import timedelta

_lock = threading.Lock()
_waiters: dict[str, set[threading.Event]] = {}


def wait_for_upload(origin: str, media_id: str, timeout: float | timedelta) -> bool:
    """Block until the upload is announced or ``timeout`` (seconds) passes."""
    if isinstance(timeout, timedelta):
        timeout = timeout.total_seconds()
    key = origin + media_id
    event = threading.Event()

    with _lock:
        waiting = _waiters.setdefault(key, set())
        waiting.add(event)

    try:
        return event.wait(timeout)
    finally:
        with _lock:
            waiting.discard(event)
            if not waiting and _waiters.get(key) is waiting:
                del _waiters[key]


def notify_upload(origin: str, media_id: str) -> None:
    """Wake every request currently waiting on this media item."""
    with _lock:
        for event in _waiters.get(origin + media_id, ()):
            event.set()