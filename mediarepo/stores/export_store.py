"""Database access for exports and the archive parts that make them up."""

from __future__ import annotations

from collections.abc import Sequence
from contextlib import closing
from typing import Any

from ..types import ExportMetadata, ExportPart
from .media_store import RecordNotFound

_PLACEHOLDERS = {"qmark": "?", "format": "%s"}

_SELECT_PARTS = (
    'SELECT export_id, "index", size_bytes, file_name, datastore_id, location FROM export_parts'
)


def _text(value: Any) -> str:
    return "" if value is None else str(value)


def _number(value: Any) -> int:
    return 0 if value is None else int(value)


def _part_from_row(row: Sequence[Any]) -> ExportPart:
    export_id, index, size_bytes, file_name, datastore_id, location = row
    return ExportPart(
        export_id=_text(export_id),
        index=_number(index),
        file_name=_text(file_name),
        size_bytes=_number(size_bytes),
        datastore_id=_text(datastore_id),
        location=_text(location),
    )


class ExportStore:
    """Export queries over a DB-API connection.

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

    def _fetch_all(self, statement: str, params: Sequence[Any] = ()) -> list[Sequence[Any]]:
        with closing(self._connection.cursor()) as cursor:
            cursor.execute(self._sql(statement), tuple(params))
            return list(cursor.fetchall())

    def _fetch_one(self, statement: str, params: Sequence[Any] = ()) -> Sequence[Any] | None:
        with closing(self._connection.cursor()) as cursor:
            cursor.execute(self._sql(statement), tuple(params))
            return cursor.fetchone()

    def insert_export(self, export_id: str, entity: str) -> None:
        """Record a new export of an entity."""
        self._execute(
            "INSERT INTO exports (export_id, entity) VALUES (?, ?);", (export_id, entity)
        )

    def insert_export_part(
        self,
        export_id: str,
        index: int,
        size: int,
        name: str,
        datastore_id: str,
        location: str,
    ) -> None:
        """Record one archive part of an export."""
        self._execute(
            'INSERT INTO export_parts (export_id, "index", size_bytes, file_name, '
            "datastore_id, location) VALUES (?, ?, ?, ?, ?, ?);",
            (export_id, index, size, name, datastore_id, location),
        )

    def get_export_metadata(self, export_id: str) -> ExportMetadata:
        """Return an export's metadata; raises RecordNotFound if there is none."""
        row = self._fetch_one(
            "SELECT export_id, entity FROM exports WHERE export_id = ?;", (export_id,)
        )
        if row is None:
            raise RecordNotFound(f"export not found: {export_id}")
        return ExportMetadata(export_id=_text(row[0]), entity=_text(row[1]))

    def get_export_parts(self, export_id: str) -> list[ExportPart]:
        """Return every part of an export."""
        rows = self._fetch_all(_SELECT_PARTS + " WHERE export_id = ?;", (export_id,))
        return [_part_from_row(row) for row in rows]

    def get_export_part(self, export_id: str, index: int) -> ExportPart:
        """Return one part of an export; raises RecordNotFound if there is none."""
        row = self._fetch_one(
            _SELECT_PARTS + ' WHERE export_id = ? AND "index" = ?;', (export_id, index)
        )
        if row is None:
            raise RecordNotFound(f"export part not found: {export_id} #{index}")
        return _part_from_row(row)

    def delete_export_and_parts(self, export_id: str) -> None:
        """Delete an export and all of its parts."""
        self._execute("DELETE FROM export_parts WHERE export_id = ?;", (export_id,))
        self._execute("DELETE FROM exports WHERE export_id = ?;", (export_id,))