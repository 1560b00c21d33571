"""Looks up datastore records, creating them on first use."""

from __future__ import annotations

import logging

from .stores.media_store import MediaStore, RecordNotFound
from .types import Datastore
from .util import generate_random_string

logger = logging.getLogger(__name__)


def get_or_create_datastore_of_type(
    media_store: MediaStore, ds_type: str, ds_uri: str
) -> Datastore:
    """Return the datastore recorded for ``ds_uri``, recording a new one of ``ds_type`` if needed."""
    try:
        return media_store.get_datastore_by_uri(ds_uri)
    except RecordNotFound:
        pass

    datastore = Datastore(datastore_id=generate_random_string(32), type=ds_type, uri=ds_uri)
    try:
        media_store.insert_datastore(datastore)
    except Exception:
        logger.exception("Error creating datastore for URI %s", ds_uri)
        raise
    return datastore


def get_or_create_file_datastore(media_store: MediaStore, base_path: str) -> Datastore:
    """Return the file datastore for ``base_path``, recording it if needed."""
    try:
        return get_or_create_datastore_of_type(media_store, "file", base_path)
    except RecordNotFound:
        raise
    except Exception:
        logger.exception("Error getting datastore for base path %s", base_path)
        raise