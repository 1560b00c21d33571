import threading

import pytest

from mediarepo.resource_handler import ResourceHandler, WorkRequest


class FakeClock:
    def __init__(self):
        self.now = 0.0

    def __call__(self):
        return self.now


def test_fetch_receives_work_request():
    seen = []

    def fetch(request):
        seen.append(request)
        return request.id.upper()

    with ResourceHandler(2, fetch) as handler:
        assert handler.get_resource("abc", {"k": 1}).result(timeout=5) == "ABC"
    assert seen == [WorkRequest("abc", {"k": 1})]


def test_concurrent_requests_share_one_fetch():
    release = threading.Event()
    calls = []

    def fetch(request):
        calls.append(request.id)
        release.wait(5)
        return "done"

    with ResourceHandler(2, fetch) as handler:
        first = handler.get_resource("x")
        second = handler.get_resource("x")
        release.set()
        assert first.result(timeout=5) == "done"
        assert second.result(timeout=5) == "done"
    assert calls == ["x"]


def test_completed_result_is_cached():
    calls = []

    def fetch(request):
        calls.append(request.id)
        return len(calls)

    with ResourceHandler(1, fetch, clock=FakeClock()) as handler:
        assert handler.get_resource("x").result(timeout=5) == 1
        assert handler.get_resource("x").result(timeout=5) == 1
    assert calls == ["x"]


def test_cache_expires():
    clock = FakeClock()
    calls = []

    def fetch(request):
        calls.append(request.id)
        return len(calls)

    with ResourceHandler(1, fetch, clock=clock) as handler:
        assert handler.get_resource("x").result(timeout=5) == 1
        clock.now += 31
        assert handler.get_resource("x").result(timeout=5) == 2
    assert calls == ["x", "x"]


def test_different_ids_fetch_separately():
    with ResourceHandler(2, lambda request: request.id) as handler:
        assert handler.get_resource("a").result(timeout=5) == "a"
        assert handler.get_resource("b").result(timeout=5) == "b"


def test_fetch_error_is_delivered():
    def fetch(request):
        raise ValueError("fetch failed")

    with ResourceHandler(1, fetch) as handler:
        with pytest.raises(ValueError, match="fetch failed"):
            handler.get_resource("x").result(timeout=5)


def test_closed_handler_rejects_new_work():
    handler = ResourceHandler(1, lambda request: request.id)
    handler.close()
    with pytest.raises(RuntimeError):
        handler.get_resource("x")