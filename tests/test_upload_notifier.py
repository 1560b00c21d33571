import threading
import time
from concurrent.futures import ThreadPoolExecutor
from datetime import timedelta

from mediarepo import upload_notifier


def _notify_later(origin, media_id, delay=0.1):
    timer = threading.Timer(delay, upload_notifier.notify_upload, args=(origin, media_id))
    timer.start()
    return timer


def test_wait_returns_true_when_notified():
    timer = _notify_later("example.org", "media1")
    try:
        assert upload_notifier.wait_for_upload("example.org", "media1", 5) is True
    finally:
        timer.cancel()


def test_wait_times_out():
    start = time.monotonic()
    assert upload_notifier.wait_for_upload("example.org", "nothing", 0.05) is False
    assert time.monotonic() - start >= 0.04


def test_wait_accepts_timedelta():
    assert upload_notifier.wait_for_upload("example.org", "td", timedelta(milliseconds=20)) is False


def test_notification_before_wait_is_not_remembered():
    upload_notifier.notify_upload("example.org", "early")
    assert upload_notifier.wait_for_upload("example.org", "early", 0.05) is False


def test_other_media_not_woken():
    timer = _notify_later("example.org", "other", 0.02)
    try:
        assert upload_notifier.wait_for_upload("example.org", "mine", 0.2) is False
    finally:
        timer.cancel()


def test_all_waiters_woken():
    with ThreadPoolExecutor(max_workers=2) as executor:
        futures = [
            executor.submit(upload_notifier.wait_for_upload, "example.org", "shared", 5)
            for _ in range(2)
        ]
        time.sleep(0.1)
        timer = _notify_later("example.org", "shared", 0.1)
        try:
            main_result = upload_notifier.wait_for_upload("example.org", "shared", 5)
        finally:
            timer.cancel()
        background_results = [future.result(timeout=5) for future in futures]
    assert main_result is True
    assert background_results == [True, True]