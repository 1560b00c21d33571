"""Database access for access times, usage statistics, background tasks and reservations."""

from __future__ import annotations

import json
from collections.abc import Callable, Mapping, Sequence
from contextlib import closing
from typing import Any

from ..types import BackgroundTask, MinimalMediaMetadata, UserStats
from ..util import now_millis
from .media_store import RecordNotFound

_PLACEHOLDERS = {"qmark": "?", "format": "%s"}

_LAST_ACCESSED_COLUMNS = (
    "SELECT m.sha256_hash, m.size_bytes, m.datastore_id, m.location, m.creation_ts, "
    "a.last_access_ts FROM {table} AS m JOIN last_access AS a ON m.sha256_hash = a.sha256_hash"
)
_SELECT_TASK = "SELECT id, task, params, start_ts, end_ts FROM background_tasks"


def _text(value: Any) -> str:
    return "" if value is None else str(value)


def _number(value: Any) -> int:
    return 0 if value is None else int(value)


def _metadata_from_row(row: Sequence[Any]) -> MinimalMediaMetadata:
    sha256_hash, size_bytes, datastore_id, location, creation_ts, last_access_ts = row
    return MinimalMediaMetadata(
        size_bytes=_number(size_bytes),
        sha256_hash=_text(sha256_hash),
        location=_text(location),
        creation_ts=_number(creation_ts),
        last_access_ts=_number(last_access_ts),
        datastore_id=_text(datastore_id),
    )


def _task_from_row(row: Sequence[Any]) -> BackgroundTask:
    task_id, name, params, start_ts, end_ts = row
    decoded = json.loads(params) if params is not None else None
    if decoded is not None and not isinstance(decoded, dict):
        raise ValueError("background task params must be a JSON object")
    return BackgroundTask(
        id=int(task_id),
        name=_text(name),
        params=decoded or {},
        start_ts=_number(start_ts),
        end_ts=_number(end_ts),
    )


class MetadataStore:
    """Metadata queries over a DB-API connection.

    ``paramstyle`` is the driver's placeholder style: ``"qmark"`` or ``"format"``.
    ``clock`` returns the current time in milliseconds.
    """

    def __init__(
        self,
        connection: Any,
        paramstyle: str = "qmark",
        clock: Callable[[], int] | None = None,
    ) -> None:
        if paramstyle not in _PLACEHOLDERS:
            raise ValueError(f"unsupported paramstyle: {paramstyle}")
        self._connection = connection
        self._placeholder = _PLACEHOLDERS[paramstyle]
        self._clock = clock or now_millis

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

    def upsert_last_access(self, sha256_hash: str, timestamp: int) -> None:
        """Record when content with this hash was last accessed."""
        self._execute(
            "INSERT INTO last_access (sha256_hash, last_access_ts) VALUES (?, ?) "
            "ON CONFLICT (sha256_hash) DO UPDATE SET last_access_ts = ?",
            (sha256_hash, timestamp, timestamp),
        )

    def change_datastore_of_hash(self, datastore_id: str, location: str, sha256_hash: str) -> None:
        """Point all media and thumbnails with this hash at a new datastore and location."""
        self._execute(
            "UPDATE media SET datastore_id = ?, location = ? WHERE sha256_hash = ?",
            (datastore_id, location, sha256_hash),
        )
        self._execute(
            "UPDATE thumbnails SET datastore_id = ?, location = ? WHERE sha256_hash = ?",
            (datastore_id, location, sha256_hash),
        )

    def get_estimated_size_of_datastore(self, datastore_id: str) -> int:
        """Return the total bytes of media and thumbnails held in a datastore."""
        row = self._fetch_one(
            "SELECT COALESCE(SUM(size_bytes), 0) + COALESCE((SELECT SUM(size_bytes) "
            "FROM thumbnails WHERE datastore_id = ?), 0) AS size_total "
            "FROM media WHERE datastore_id = ?;",
            (datastore_id, datastore_id),
        )
        return _number(row[0]) if row is not None else 0

    def get_old_media(self, before_ts: int) -> list[MinimalMediaMetadata]:
        """Return media last accessed before ``before_ts``."""
        rows = self._fetch_all(
            _LAST_ACCESSED_COLUMNS.format(table="media") + " WHERE a.last_access_ts < ?;",
            (before_ts,),
        )
        return [_metadata_from_row(row) for row in rows]

    def get_old_media_in_datastore(
        self, datastore_id: str, before_ts: int
    ) -> list[MinimalMediaMetadata]:
        """Return media in a datastore last accessed before ``before_ts``."""
        rows = self._fetch_all(
            _LAST_ACCESSED_COLUMNS.format(table="media")
            + " WHERE a.last_access_ts < ? AND m.datastore_id = ?",
            (before_ts, datastore_id),
        )
        return [_metadata_from_row(row) for row in rows]

    def get_old_thumbnails_in_datastore(
        self, datastore_id: str, before_ts: int
    ) -> list[MinimalMediaMetadata]:
        """Return thumbnails in a datastore last accessed before ``before_ts``."""
        rows = self._fetch_all(
            _LAST_ACCESSED_COLUMNS.format(table="thumbnails")
            + " WHERE a.last_access_ts < ? AND m.datastore_id = ?",
            (before_ts, datastore_id),
        )
        return [_metadata_from_row(row) for row in rows]

    def get_users_for_server(self, server_name: str) -> list[str]:
        """Return the distinct non-empty uploaders of an origin's media."""
        rows = self._fetch_all(
            "SELECT DISTINCT user_id FROM media WHERE origin = ? "
            "AND user_id IS NOT NULL AND LENGTH(user_id) > 0",
            (server_name,),
        )
        return [_text(row[0]) for row in rows]

    def get_byte_usage_for_server(self, server_name: str) -> tuple[int, int]:
        """Return ``(media_bytes, thumbnail_bytes)`` stored for an origin."""
        row = self._fetch_one(
            "SELECT COALESCE((SELECT SUM(size_bytes) FROM media WHERE origin = ?), 0) AS media, "
            "COALESCE((SELECT SUM(size_bytes) FROM thumbnails WHERE origin = ?), 0) AS thumbnails",
            (server_name, server_name),
        )
        if row is None:
            return 0, 0
        return _number(row[0]), _number(row[1])

    def get_count_usage_for_server(self, server_name: str) -> tuple[int, int]:
        """Return ``(media_count, thumbnail_count)`` for an origin."""
        row = self._fetch_one(
            "SELECT COALESCE((SELECT COUNT(origin) FROM media WHERE origin = ?), 0) AS media, "
            "COALESCE((SELECT COUNT(origin) FROM thumbnails WHERE origin = ?), 0) AS thumbnails",
            (server_name, server_name),
        )
        if row is None:
            return 0, 0
        return _number(row[0]), _number(row[1])

    def create_background_task(
        self, name: str, params: Mapping[str, Any] | None
    ) -> BackgroundTask:
        """Record the start of a background task and return it with its new id."""
        now = self._clock()
        encoded = json.dumps(dict(params) if params is not None else None)
        try:
            with closing(self._connection.cursor()) as cursor:
                cursor.execute(
                    self._sql(
                        "INSERT INTO background_tasks (task, params, start_ts) "
                        "VALUES (?, ?, ?) RETURNING id;"
                    ),
                    (name, encoded, now),
                )
                row = cursor.fetchone()
            self._connection.commit()
        except Exception:
            self._connection.rollback()
            raise
        if row is None:
            raise RuntimeError("background task insert returned no id")
        return BackgroundTask(
            id=int(row[0]),
            name=name,
            params=dict(params) if params is not None else {},
            start_ts=now,
            end_ts=0,
        )

    def finished_background_task(self, task_id: int) -> None:
        """Mark a background task as finished now."""
        self._execute(
            "UPDATE background_tasks SET end_ts = ? WHERE id = ?", (self._clock(), task_id)
        )

    def get_background_task(self, task_id: int) -> BackgroundTask:
        """Return a background task; raises RecordNotFound if there is none."""
        row = self._fetch_one(_SELECT_TASK + " WHERE id = ?", (task_id,))
        if row is None:
            raise RecordNotFound(f"background task not found: {task_id}")
        return _task_from_row(row)

    def get_all_background_tasks(self) -> list[BackgroundTask]:
        """Return every background task."""
        return [_task_from_row(row) for row in self._fetch_all(_SELECT_TASK)]

    def reserve_media_id(self, origin: str, media_id: str, reason: str) -> None:
        """Reserve a media id so that it is never used."""
        self._execute(
            "INSERT INTO reserved_media (origin, media_id, reason) VALUES (?, ?, ?);",
            (origin, media_id, reason),
        )

    def is_reserved(self, origin: str, media_id: str) -> bool:
        """Return True if the media id has been reserved."""
        row = self._fetch_one(
            "SELECT origin, media_id, reason FROM reserved_media WHERE origin = ? AND media_id = ?;",
            (origin, media_id),
        )
        return row is not None

    def insert_blurhash(self, sha256_hash: str, blurhash: str) -> None:
        """Store the blurhash computed for content with this hash."""
        self._execute(
            "INSERT INTO blurhashes (sha256_hash, blurhash) VALUES (?, ?);",
            (sha256_hash, blurhash),
        )

    def get_blurhash(self, sha256_hash: str) -> str:
        """Return the stored blurhash for this hash, or an empty string."""
        row = self._fetch_one(
            "SELECT blurhash FROM blurhashes WHERE sha256_hash = ?;", (sha256_hash,)
        )
        return _text(row[0]) if row is not None else ""

    def get_user_stats(self, user_id: str) -> UserStats:
        """Return a user's upload statistics; raises RecordNotFound if there are none."""
        row = self._fetch_one(
            "SELECT user_id, uploaded_bytes FROM user_stats WHERE user_id = ?;", (user_id,)
        )
        if row is None:
            raise RecordNotFound(f"user stats not found: {user_id}")
        return UserStats(user_id=_text(row[0]), uploaded_bytes=_number(row[1]))