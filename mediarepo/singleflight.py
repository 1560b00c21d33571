"""Collapses concurrent calls for the same key into one, counting the callers."""

from __future__ import annotations

import threading
from collections.abc import Callable
from typing import Any

Postprocess = Callable[[Any, int, "BaseException | None"], "list[Any] | None"]


class _Call:
    def __init__(self) -> None:
        self.done = threading.Event()
        self.lock = threading.Lock()
        self.next_index = 0
        self.vals: list[Any] | None = None
        self.val: Any = None
        self.err: BaseException | None = None
        self.count = 1

    def next_val(self) -> Any:
        with self.lock:
            if self.vals is not None and len(self.vals) >= self.count:
                val = self.vals[self.next_index]
                self.next_index += 1
                return val
            return self.val


class Group:
    """A set of keyed calls in flight."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._calls: dict[str, _Call] = {}

    def do_without_post(self, key: str, fn: Callable[[], Any]) -> tuple[Any, int]:
        """Like :meth:`do` with a postprocessor that hands everyone the same value."""
        return self.do(key, fn, lambda value, total, error: None)

    def do(
        self,
        key: str,
        fn: Callable[[], Any],
        postprocess: Postprocess | None = None,
    ) -> tuple[Any, int]:
        """Run ``fn`` once for all concurrent callers of ``key``.

        Returns the value and the number of callers that shared the call. If
        ``postprocess`` returns a list with at least one item per caller, each
        caller receives its own item in turn. An exception raised by ``fn`` is
        raised to every caller.
        """
        with self._lock:
            call = self._calls.get(key)
            if call is not None:
                call.count += 1
                leader = False
            else:
                call = _Call()
                self._calls[key] = call
                leader = True

        if not leader:
            call.done.wait()
            return self._result(call)

        try:
            try:
                call.val = fn()
            except Exception as exc:
                call.err = exc

            with self._lock:
                del self._calls[key]

            call.vals = None
            if postprocess is not None:
                try:
                    call.vals = postprocess(call.val, call.count, call.err)
                except Exception as exc:
                    call.err = exc
        finally:
            call.done.set()

        return self._result(call)

    @staticmethod
    def _result(call: _Call) -> tuple[Any, int]:
        if call.err is not None:
            raise call.err
        return call.next_val(), call.count