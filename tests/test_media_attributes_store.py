import sqlite3

import pytest

from mediarepo.stores.media_attributes_store import MediaAttributesStore
from mediarepo.stores.media_store import RecordNotFound
from mediarepo.types import PURPOSE_NONE, PURPOSE_PINNED, MediaAttributes

SCHEMA = """
CREATE TABLE media_attributes (
    origin TEXT NOT NULL, media_id TEXT NOT NULL, purpose TEXT NOT NULL,
    PRIMARY KEY (origin, media_id)
);
"""


@pytest.fixture
def store():
    connection = sqlite3.connect(":memory:")
    connection.executescript(SCHEMA)
    yield MediaAttributesStore(connection)
    connection.close()


def test_get_missing_raises(store):
    with pytest.raises(RecordNotFound):
        store.get_attributes("example.org", "abc")


def test_defaulted_returns_none_purpose(store):
    assert store.get_attributes_defaulted("example.org", "abc") == MediaAttributes(
        "example.org", "abc", PURPOSE_NONE
    )


def test_upsert_inserts_then_updates(store):
    store.upsert_purpose("example.org", "abc", PURPOSE_PINNED)
    assert store.get_attributes("example.org", "abc").purpose == PURPOSE_PINNED
    store.upsert_purpose("example.org", "abc", PURPOSE_NONE)
    assert store.get_attributes("example.org", "abc") == MediaAttributes(
        "example.org", "abc", PURPOSE_NONE
    )


def test_defaulted_returns_stored_value(store):
    store.upsert_purpose("example.org", "abc", PURPOSE_PINNED)
    assert store.get_attributes_defaulted("example.org", "abc").purpose == PURPOSE_PINNED
    assert store.get_attributes_defaulted("example.org", "other").purpose == PURPOSE_NONE


def test_unknown_paramstyle_rejected():
    with pytest.raises(ValueError):
        MediaAttributesStore(sqlite3.connect(":memory:"), paramstyle="pyformat")