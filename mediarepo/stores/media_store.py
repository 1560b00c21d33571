"""Database access for media records and the datastores that hold them."""

from __future__ import annotations

import threading
from collections.abc import Sequence
from contextlib import closing
from typing import Any

from ..types import Datastore, Media

_MEDIA_COLUMNS = (
    "origin",
    "media_id",
    "upload_name",
    "content_type",
    "user_id",
    "sha256_hash",
    "size_bytes",
    "datastore_id",
    "location",
    "creation_ts",
    "quarantined",
)
_SELECT_MEDIA = "SELECT " + ", ".join(_MEDIA_COLUMNS) + " FROM media"
_SELECT_MEDIA_ALIASED = (
    "SELECT " + ", ".join("m." + column for column in _MEDIA_COLUMNS) + " FROM media AS m"
)
_SELECT_DATASTORE = "SELECT datastore_id, ds_type, uri FROM datastores"

_PLACEHOLDERS = {"qmark": "?", "format": "%s"}


class RecordNotFound(LookupError):
    """The requested record does not exist."""


def _text(value: Any) -> str:
    return "" if value is None else str(value)


def _number(value: Any) -> int:
    return 0 if value is None else int(value)


def _media_from_row(row: Sequence[Any]) -> Media:
    (
        origin,
        media_id,
        upload_name,
        content_type,
        user_id,
        sha256_hash,
        size_bytes,
        datastore_id,
        location,
        creation_ts,
        quarantined,
    ) = row
    return Media(
        origin=_text(origin),
        media_id=_text(media_id),
        upload_name=_text(upload_name),
        content_type=_text(content_type),
        user_id=_text(user_id),
        sha256_hash=_text(sha256_hash),
        size_bytes=_number(size_bytes),
        datastore_id=_text(datastore_id),
        location=_text(location),
        creation_ts=_number(creation_ts),
        quarantined=bool(quarantined),
    )


def _datastore_from_row(row: Sequence[Any]) -> Datastore:
    datastore_id, ds_type, uri = row
    return Datastore(datastore_id=_text(datastore_id), type=_text(ds_type), uri=_text(uri))


def _copy(datastore: Datastore) -> Datastore:
    return Datastore(datastore.datastore_id, datastore.type, datastore.uri)


def _in_list(column: str, count: int) -> str:
    if count == 0:
        return "1 = 0"
    return f"{column} IN ({', '.join('?' * count)})"


class _DatastoreCache:
    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._by_id: dict[str, Datastore] = {}
        self._by_uri: dict[str, Datastore] = {}

    def by_id(self, datastore_id: str) -> Datastore | None:
        with self._lock:
            found = self._by_id.get(datastore_id)
            return _copy(found) if found else None

    def by_uri(self, uri: str) -> Datastore | None:
        with self._lock:
            found = self._by_uri.get(uri)
            return _copy(found) if found else None

    def remember(self, datastore: Datastore) -> None:
        stored = _copy(datastore)
        with self._lock:
            self._by_id[stored.datastore_id] = stored
            self._by_uri[stored.uri] = stored


class MediaStore:
    """Media and datastore queries over a DB-API connection.

    ``paramstyle`` is the driver's placeholder style: ``"qmark"`` or ``"format"``.
    Datastore lookups are cached for the lifetime of the store.
    """

    def __init__(self, connection: Any, paramstyle: str = "qmark") -> None:
        if paramstyle not in _PLACEHOLDERS:
            raise ValueError(f"unsupported paramstyle: {paramstyle}")
        self._connection = connection
        self._placeholder = _PLACEHOLDERS[paramstyle]
        self._datastores = _DatastoreCache()

    def _sql(self, statement: str) -> str:
        if self._placeholder == "?":
            return statement
        return statement.replace("?", self._placeholder)

    def _execute(self, statement: str, params: Sequence[Any] = ()) -> None:
        try:
            with closing(self._connection.cursor()) as cursor:
                cursor.execute(self._sql(statement), tuple(params))
            self._connection.commit()
        except Exception:
            self._connection.rollback()
            raise

    def _fetch_all(self, statement: str, params: Sequence[Any] = ()) -> list[Sequence[Any]]:
        with closing(self._connection.cursor()) as cursor:
            cursor.execute(self._sql(statement), tuple(params))
            return list(cursor.fetchall())

    def _fetch_one(self, statement: str, params: Sequence[Any] = ()) -> Sequence[Any] | None:
        with closing(self._connection.cursor()) as cursor:
            cursor.execute(self._sql(statement), tuple(params))
            return cursor.fetchone()

    def _media(self, statement: str, params: Sequence[Any] = ()) -> list[Media]:
        return [_media_from_row(row) for row in self._fetch_all(statement, params)]

    def insert(self, media: Media) -> None:
        """Insert a new media record."""
        self._execute(
            "INSERT INTO media (" + ", ".join(_MEDIA_COLUMNS) + ") VALUES ("
            + ", ".join("?" * len(_MEDIA_COLUMNS)) + ");",
            (
                media.origin,
                media.media_id,
                media.upload_name,
                media.content_type,
                media.user_id,
                media.sha256_hash,
                media.size_bytes,
                media.datastore_id,
                media.location,
                media.creation_ts,
                media.quarantined,
            ),
        )

    def update(self, media: Media) -> None:
        """Update the name, type, hash, size and storage location of a media record."""
        self._execute(
            "UPDATE media SET upload_name = ?, content_type = ?, sha256_hash = ?, "
            "size_bytes = ?, datastore_id = ?, location = ? WHERE origin = ? AND media_id = ?;",
            (
                media.upload_name,
                media.content_type,
                media.sha256_hash,
                media.size_bytes,
                media.datastore_id,
                media.location,
                media.origin,
                media.media_id,
            ),
        )

    def get_by_hash(self, sha256_hash: str) -> list[Media]:
        """Return all media with the given content hash."""
        return self._media(_SELECT_MEDIA + " WHERE sha256_hash = ?;", (sha256_hash,))

    def get(self, origin: str, media_id: str) -> Media:
        """Return one media record; raises RecordNotFound if there is none."""
        row = self._fetch_one(
            _SELECT_MEDIA + " WHERE origin = ? AND media_id = ?;", (origin, media_id)
        )
        if row is None:
            raise RecordNotFound(f"media not found: {origin}/{media_id}")
        return _media_from_row(row)

    def get_old_media(self, except_origins: Sequence[str], before_ts: int) -> list[Media]:
        """Return media created before ``before_ts`` whose content no newer or excepted media shares.

        A record qualifies only if its origin differs from at least one of
        ``except_origins``; an empty list therefore matches nothing.
        """
        origins = list(except_origins)
        if origins:
            differs = "(" + " OR ".join("m.origin <> ?" for _ in origins) + ")"
        else:
            differs = "1 = 0"
        statement = (
            _SELECT_MEDIA_ALIASED
            + f" WHERE {differs} AND m.creation_ts < ?"
            " AND (SELECT COUNT(*) FROM media AS d"
            " WHERE d.sha256_hash = m.sha256_hash AND d.creation_ts >= ?) = 0"
            " AND (SELECT COUNT(*) FROM media AS d"
            f" WHERE d.sha256_hash = m.sha256_hash AND {_in_list('d.origin', len(origins))}) = 0;"
        )
        return self._media(statement, [*origins, before_ts, before_ts, *origins])

    def get_origins(self) -> list[str]:
        """Return every distinct origin that has media."""
        return [_text(row[0]) for row in self._fetch_all("SELECT DISTINCT origin FROM media;")]

    def delete(self, origin: str, media_id: str) -> None:
        """Delete a media record."""
        self._execute("DELETE FROM media WHERE origin = ? AND media_id = ?;", (origin, media_id))

    def set_quarantined(self, origin: str, media_id: str, is_quarantined: bool) -> None:
        """Set or clear the quarantine flag of a media record."""
        self._execute(
            "UPDATE media SET quarantined = ? WHERE origin = ? AND media_id = ?;",
            (is_quarantined, origin, media_id),
        )

    def update_datastore_and_location(self, media: Media) -> None:
        """Move a media record to a new datastore and location."""
        self._execute(
            "UPDATE media SET location = ?, datastore_id = ? WHERE origin = ? AND media_id = ?;",
            (media.location, media.datastore_id, media.origin, media.media_id),
        )

    def get_datastore(self, datastore_id: str) -> Datastore:
        """Return a datastore by id; raises RecordNotFound if unknown."""
        cached = self._datastores.by_id(datastore_id)
        if cached is not None:
            return cached
        row = self._fetch_one(_SELECT_DATASTORE + " WHERE datastore_id = ?;", (datastore_id,))
        if row is None:
            raise RecordNotFound(f"datastore not found: {datastore_id}")
        datastore = _datastore_from_row(row)
        self._datastores.remember(datastore)
        return _copy(datastore)

    def insert_datastore(self, datastore: Datastore) -> None:
        """Record a new datastore."""
        self._execute(
            "INSERT INTO datastores (datastore_id, ds_type, uri) VALUES (?, ?, ?);",
            (datastore.datastore_id, datastore.type, datastore.uri),
        )
        self._datastores.remember(datastore)

    def get_datastore_by_uri(self, uri: str) -> Datastore:
        """Return a datastore by URI; raises RecordNotFound if unknown."""
        cached = self._datastores.by_uri(uri)
        if cached is not None:
            return cached
        row = self._fetch_one(_SELECT_DATASTORE + " WHERE uri = ?;", (uri,))
        if row is None:
            raise RecordNotFound(f"datastore not found for uri: {uri}")
        datastore = _datastore_from_row(row)
        self._datastores.remember(datastore)
        return _copy(datastore)

    def get_all_without_datastore(self) -> list[Media]:
        """Return media that have no datastore assigned."""
        return self._media(_SELECT_MEDIA + " WHERE datastore_id IS NULL OR datastore_id = '';")

    def get_all_datastores(self) -> list[Datastore]:
        """Return every known datastore."""
        return [_datastore_from_row(row) for row in self._fetch_all(_SELECT_DATASTORE + ";")]

    def get_all_media_for_server(self, server_name: str) -> list[Media]:
        """Return all media of an origin."""
        return self._media(_SELECT_MEDIA + " WHERE origin = ?", (server_name,))

    def get_all_media_for_server_users(
        self, server_name: str, user_ids: Sequence[str]
    ) -> list[Media]:
        """Return media of an origin uploaded by any of ``user_ids``."""
        ids = list(user_ids)
        return self._media(
            _SELECT_MEDIA + f" WHERE origin = ? AND {_in_list('user_id', len(ids))}",
            [server_name, *ids],
        )

    def get_all_media_in_ids(self, server_name: str, media_ids: Sequence[str]) -> list[Media]:
        """Return media of an origin whose ids are among ``media_ids``."""
        ids = list(media_ids)
        return self._media(
            _SELECT_MEDIA + f" WHERE origin = ? AND {_in_list('media_id', len(ids))}",
            [server_name, *ids],
        )

    def get_all_quarantined_media(self) -> list[Media]:
        """Return every quarantined media record."""
        return self._media(_SELECT_MEDIA + " WHERE quarantined = ?;", (True,))

    def get_quarantined_media_for(self, server_name: str) -> list[Media]:
        """Return the quarantined media of an origin."""
        return self._media(
            _SELECT_MEDIA + " WHERE quarantined = ? AND origin = ?;", (True, server_name)
        )

    def get_media_by_user(self, user_id: str) -> list[Media]:
        """Return media uploaded by a user."""
        return self._media(_SELECT_MEDIA + " WHERE user_id = ?", (user_id,))

    def get_media_by_user_before(self, user_id: str, before_ts: int) -> list[Media]:
        """Return media uploaded by a user at or before ``before_ts``."""
        return self._media(
            _SELECT_MEDIA + " WHERE user_id = ? AND creation_ts <= ?", (user_id, before_ts)
        )

    def get_media_by_domain_before(self, server_name: str, before_ts: int) -> list[Media]:
        """Return media of an origin created at or before ``before_ts``."""
        return self._media(
            _SELECT_MEDIA + " WHERE origin = ? AND creation_ts <= ?", (server_name, before_ts)
        )

    def get_media_by_location(self, datastore_id: str, location: str) -> list[Media]:
        """Return media stored at ``location`` in a datastore."""
        return self._media(
            _SELECT_MEDIA + " WHERE datastore_id = ? AND location = ?", (datastore_id, location)
        )

    def is_quarantined(self, sha256_hash: str) -> bool:
        """Return True if any media with this hash is quarantined."""
        row = self._fetch_one(
            "SELECT 1 FROM media WHERE sha256_hash = ? AND quarantined = ? LIMIT 1;",
            (sha256_hash, True),
        )
        return row is not None