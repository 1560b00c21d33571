"""Database access for per-media attributes such as purpose."""

from __future__ import annotations

from collections.abc import Sequence
from contextlib import closing
from typing import Any

from ..types import PURPOSE_NONE, MediaAttributes
from .media_store import RecordNotFound

_PLACEHOLDERS = {"qmark": "?", "format": "%s"}


def _text(value: Any) -> str:
    return "" if value is None else str(value)


class MediaAttributesStore:
    """Media attribute queries over a DB-API connection.

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

    def get_attributes(self, origin: str, media_id: str) -> MediaAttributes:
        """Return the stored attributes; raises RecordNotFound if there are none."""
        with closing(self._connection.cursor()) as cursor:
            cursor.execute(
                self._sql(
                    "SELECT origin, media_id, purpose FROM media_attributes "
                    "WHERE origin = ? AND media_id = ?;"
                ),
                (origin, media_id),
            )
            row = cursor.fetchone()
        if row is None:
            raise RecordNotFound(f"media attributes not found: {origin}/{media_id}")
        return MediaAttributes(origin=_text(row[0]), media_id=_text(row[1]), purpose=_text(row[2]))

    def get_attributes_defaulted(self, origin: str, media_id: str) -> MediaAttributes:
        """Return the stored attributes, or ones with no purpose if none are stored."""
        try:
            return self.get_attributes(origin, media_id)
        except RecordNotFound:
            return MediaAttributes(origin=origin, media_id=media_id, purpose=PURPOSE_NONE)

    def upsert_purpose(self, origin: str, media_id: str, purpose: str) -> None:
        """Set the purpose of a media item, creating its attributes if needed."""
        self._execute(
            "INSERT INTO media_attributes (origin, media_id, purpose) VALUES (?, ?, ?) "
            "ON CONFLICT (origin, media_id) DO UPDATE SET purpose = ?;",
            (origin, media_id, purpose, purpose),
        )