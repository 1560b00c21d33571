import sqlite3

import pytest

from mediarepo.stores.media_store import RecordNotFound
from mediarepo.stores.url_store import UrlStore, get_bucket_ts
from mediarepo.types import CachedUrlPreview, UrlPreview

SCHEMA = """
CREATE TABLE url_previews (
    url TEXT, error_code TEXT, bucket_ts INTEGER, site_url TEXT, site_name TEXT,
    resource_type TEXT, description TEXT, title TEXT, image_mxc TEXT, image_type TEXT,
    image_size INTEGER, image_width INTEGER, image_height INTEGER, language_header TEXT
);
"""

HOUR = 3600000


@pytest.fixture
def connection():
    conn = sqlite3.connect(":memory:")
    conn.executescript(SCHEMA)
    yield conn
    conn.close()


@pytest.fixture
def store(connection):
    return UrlStore(connection)


def make_record(fetched_ts, url="https://example.com/page", language="en"):
    return CachedUrlPreview(
        preview=UrlPreview(
            url="https://example.com/canonical",
            site_name="Example",
            type="website",
            description="A page",
            title="Title",
            image_mxc="mxc://example.org/img",
            image_type="image/png",
            image_size=1234,
            image_width=64,
            image_height=32,
            language_header=language,
        ),
        search_url=url,
        error_code="",
        fetched_ts=fetched_ts,
    )


def test_bucket_ts_boundaries():
    assert get_bucket_ts(0) == 0
    assert get_bucket_ts(HOUR - 1) == 0
    assert get_bucket_ts(HOUR) == HOUR


def test_bucket_ts_is_idempotent_and_not_after_input():
    for ts in (1, HOUR + 5, 7 * HOUR + HOUR - 1):
        bucket = get_bucket_ts(ts)
        assert bucket <= ts
        assert get_bucket_ts(bucket) == bucket
        assert ts - bucket < HOUR


def test_insert_and_get_within_same_bucket(store):
    record = make_record(3 * HOUR + 10)
    store.insert_preview(record)
    found = store.get_preview("https://example.com/page", 3 * HOUR + 999, "en")
    assert found.preview == record.preview
    assert found.search_url == record.search_url
    assert found.fetched_ts == get_bucket_ts(record.fetched_ts)


def test_get_in_other_bucket_raises(store):
    store.insert_preview(make_record(3 * HOUR + 10))
    with pytest.raises(RecordNotFound):
        store.get_preview("https://example.com/page", 4 * HOUR, "en")


def test_get_with_other_language_raises(store):
    store.insert_preview(make_record(3 * HOUR))
    with pytest.raises(RecordNotFound):
        store.get_preview("https://example.com/page", 3 * HOUR, "de")


def test_insert_preview_error_uses_clock(connection):
    now = 5 * HOUR + 123
    store = UrlStore(connection, clock=lambda: now)
    store.insert_preview_error("https://example.com/broken", "NOT_FOUND")
    found = store.get_preview("https://example.com/broken", now, "")
    assert found.error_code == "NOT_FOUND"
    assert found.fetched_ts == get_bucket_ts(now)
    assert found.preview == UrlPreview()


def test_delete_older_than_is_inclusive(store):
    store.insert_preview(make_record(1 * HOUR, url="https://example.com/a"))
    store.insert_preview(make_record(2 * HOUR, url="https://example.com/b"))
    store.insert_preview(make_record(3 * HOUR, url="https://example.com/c"))
    store.delete_older_than(2 * HOUR)
    with pytest.raises(RecordNotFound):
        store.get_preview("https://example.com/a", 1 * HOUR, "en")
    with pytest.raises(RecordNotFound):
        store.get_preview("https://example.com/b", 2 * HOUR, "en")
    assert store.get_preview("https://example.com/c", 3 * HOUR, "en").search_url == (
        "https://example.com/c"
    )