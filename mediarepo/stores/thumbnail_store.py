"""Database access for generated thumbnails."""

from __future__ import annotations

from collections.abc import Sequence
from contextlib import closing
from typing import Any

from ..types import Thumbnail
from .media_store import RecordNotFound

_PLACEHOLDERS = {"qmark": "?", "format": "%s"}

_COLUMNS = (
    "origin",
    "media_id",
    "width",
    "height",
    "method",
    "animated",
    "content_type",
    "size_bytes",
    "datastore_id",
    "location",
    "creation_ts",
    "sha256_hash",
)
_SELECT = "SELECT " + ", ".join(_COLUMNS) + " FROM thumbnails"
_KEY = (
    "origin = ? AND media_id = ? AND width = ? AND height = ? "
    "AND method = ? AND animated = ?"
)


def _text(value: Any) -> str:
    return "" if value is None else str(value)


def _number(value: Any) -> int:
    return 0 if value is None else int(value)


def _thumbnail_from_row(row: Sequence[Any]) -> Thumbnail:
    (
        origin,
        media_id,
        width,
        height,
        method,
        animated,
        content_type,
        size_bytes,
        datastore_id,
        location,
        creation_ts,
        sha256_hash,
    ) = row
    return Thumbnail(
        origin=_text(origin),
        media_id=_text(media_id),
        width=_number(width),
        height=_number(height),
        method=_text(method),
        animated=bool(animated),
        content_type=_text(content_type),
        size_bytes=_number(size_bytes),
        datastore_id=_text(datastore_id),
        location=_text(location),
        creation_ts=_number(creation_ts),
        sha256_hash=_text(sha256_hash),
    )


def _key_of(thumbnail: Thumbnail) -> tuple[Any, ...]:
    return (
        thumbnail.origin,
        thumbnail.media_id,
        thumbnail.width,
        thumbnail.height,
        thumbnail.method,
        thumbnail.animated,
    )


class ThumbnailStore:
    """Thumbnail queries over a DB-API connection.

    ``paramstyle`` is the driver's placeholder style: ``"qmark"`` or ``"format"``.
    """

    def __init__(self, connection: Any, paramstyle: str = "qmark") -> None:
        if paramstyle not in _PLACEHOLDERS:
            raise ValueError(f"unsupported paramstyle: {paramstyle}")
        self._connection = connection
        self._placeholder = _PLACEHOLDERS[paramstyle]

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

    def _fetch_all(self, statement: str, params: Sequence[Any] = ()) -> list[Thumbnail]:
        with closing(self._connection.cursor()) as cursor:
            cursor.execute(self._sql(statement), tuple(params))
            return [_thumbnail_from_row(row) for row in cursor.fetchall()]

    def insert(self, thumbnail: Thumbnail) -> None:
        """Insert a new thumbnail record."""
        self._execute(
            "INSERT INTO thumbnails (" + ", ".join(_COLUMNS) + ") VALUES ("
            + ", ".join("?" * len(_COLUMNS)) + ");",
            (
                *_key_of(thumbnail),
                thumbnail.content_type,
                thumbnail.size_bytes,
                thumbnail.datastore_id,
                thumbnail.location,
                thumbnail.creation_ts,
                thumbnail.sha256_hash,
            ),
        )

    def get(
        self,
        origin: str,
        media_id: str,
        width: int,
        height: int,
        method: str,
        animated: bool,
    ) -> Thumbnail:
        """Return one thumbnail; raises RecordNotFound if there is none."""
        with closing(self._connection.cursor()) as cursor:
            cursor.execute(
                self._sql(_SELECT + " WHERE " + _KEY + ";"),
                (origin, media_id, width, height, method, animated),
            )
            row = cursor.fetchone()
        if row is None:
            raise RecordNotFound(
                f"thumbnail not found: {origin}/{media_id} {width}x{height} {method}"
            )
        return _thumbnail_from_row(row)

    def update_hash(self, thumbnail: Thumbnail) -> None:
        """Store the content hash of a thumbnail."""
        self._execute(
            "UPDATE thumbnails SET sha256_hash = ? WHERE " + _KEY + ";",
            (thumbnail.sha256_hash, *_key_of(thumbnail)),
        )

    def update_datastore_and_location(self, thumbnail: Thumbnail) -> None:
        """Move a thumbnail to a new datastore and location."""
        self._execute(
            "UPDATE thumbnails SET location = ?, datastore_id = ? WHERE " + _KEY + ";",
            (thumbnail.location, thumbnail.datastore_id, *_key_of(thumbnail)),
        )

    def get_all_without_hash(self) -> list[Thumbnail]:
        """Return thumbnails that have no content hash recorded."""
        return self._fetch_all(_SELECT + " WHERE sha256_hash IS NULL OR sha256_hash = '';")

    def get_all_without_datastore(self) -> list[Thumbnail]:
        """Return thumbnails that have no datastore assigned."""
        return self._fetch_all(_SELECT + " WHERE datastore_id IS NULL OR datastore_id = '';")

    def get_all_for_media(self, origin: str, media_id: str) -> list[Thumbnail]:
        """Return every thumbnail of a media item."""
        return self._fetch_all(
            _SELECT + " WHERE origin = ? AND media_id = ?;", (origin, media_id)
        )

    def delete_all_for_media(self, origin: str, media_id: str) -> None:
        """Delete every thumbnail record of a media item."""
        self._execute(
            "DELETE FROM thumbnails WHERE origin = ? AND media_id = ?;", (origin, media_id)
        )

    def get_old_thumbnails(self, before_ts: int) -> list[Thumbnail]:
        """Return thumbnails created before ``before_ts``."""
        return self._fetch_all(_SELECT + " WHERE creation_ts < ?;", (before_ts,))

    def delete_with_hash(self, sha256_hash: str) -> None:
        """Delete every thumbnail record with this content hash."""
        self._execute("DELETE FROM thumbnails WHERE sha256_hash = ?;", (sha256_hash,))