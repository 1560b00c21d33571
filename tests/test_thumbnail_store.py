import sqlite3

import pytest

from mediarepo.stores.media_store import RecordNotFound
from mediarepo.stores.thumbnail_store import ThumbnailStore
from mediarepo.types import Thumbnail

SCHEMA = """
CREATE TABLE thumbnails (
    origin TEXT, media_id TEXT, width INTEGER, height INTEGER, method TEXT,
    animated BOOLEAN, content_type TEXT, size_bytes INTEGER, datastore_id TEXT,
    location TEXT, creation_ts INTEGER, sha256_hash TEXT
);
"""


@pytest.fixture
def store():
    connection = sqlite3.connect(":memory:")
    connection.executescript(SCHEMA)
    yield ThumbnailStore(connection)
    connection.close()


def make_thumb(**overrides):
    values = dict(
        origin="example.org",
        media_id="abc",
        width=320,
        height=240,
        method="scale",
        animated=False,
        content_type="image/png",
        size_bytes=1000,
        datastore_id="ds1",
        location="aa/bb/cc",
        creation_ts=100,
        sha256_hash="hash1",
    )
    values.update(overrides)
    return Thumbnail(**values)


def test_insert_and_get_round_trip(store):
    thumb = make_thumb(animated=True)
    store.insert(thumb)
    assert store.get("example.org", "abc", 320, 240, "scale", True) == thumb


def test_get_missing_raises(store):
    store.insert(make_thumb())
    with pytest.raises(RecordNotFound):
        store.get("example.org", "abc", 320, 240, "crop", False)


def test_update_hash(store):
    thumb = make_thumb(sha256_hash="")
    store.insert(thumb)
    thumb.sha256_hash = "newhash"
    store.update_hash(thumb)
    assert store.get("example.org", "abc", 320, 240, "scale", False).sha256_hash == "newhash"


def test_update_datastore_and_location(store):
    thumb = make_thumb()
    store.insert(thumb)
    thumb.datastore_id = "ds2"
    thumb.location = "new/place"
    store.update_datastore_and_location(thumb)
    found = store.get("example.org", "abc", 320, 240, "scale", False)
    assert (found.datastore_id, found.location) == ("ds2", "new/place")


def test_get_all_without_hash_and_datastore(store):
    store.insert(make_thumb(media_id="a", sha256_hash=""))
    store.insert(make_thumb(media_id="b", datastore_id=""))
    store.insert(make_thumb(media_id="c"))
    assert [t.media_id for t in store.get_all_without_hash()] == ["a"]
    assert [t.media_id for t in store.get_all_without_datastore()] == ["b"]


def test_get_and_delete_all_for_media(store):
    store.insert(make_thumb(width=100))
    store.insert(make_thumb(width=200))
    store.insert(make_thumb(media_id="other"))
    assert sorted(t.width for t in store.get_all_for_media("example.org", "abc")) == [100, 200]
    store.delete_all_for_media("example.org", "abc")
    assert store.get_all_for_media("example.org", "abc") == []
    assert len(store.get_all_for_media("example.org", "other")) == 1


def test_get_old_thumbnails_is_strictly_before(store):
    store.insert(make_thumb(media_id="old", creation_ts=10))
    store.insert(make_thumb(media_id="edge", creation_ts=50))
    store.insert(make_thumb(media_id="new", creation_ts=90))
    assert [t.media_id for t in store.get_old_thumbnails(50)] == ["old"]


def test_delete_with_hash(store):
    store.insert(make_thumb(media_id="a", sha256_hash="x"))
    store.insert(make_thumb(media_id="b", sha256_hash="x"))
    store.insert(make_thumb(media_id="c", sha256_hash="y"))
    store.delete_with_hash("x")
    assert [t.media_id for t in store.get_old_thumbnails(1000)] == ["c"]


def test_unknown_paramstyle_rejected():
    with pytest.raises(ValueError):
        ThumbnailStore(sqlite3.connect(":memory:"), paramstyle="named")