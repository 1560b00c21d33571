"""Database access for cached URL previews."""

from __future__ import annotations

from collections.abc import Callable, Sequence
from contextlib import closing
from typing import Any

from ..types import CachedUrlPreview, UrlPreview
from ..util import now_millis
from .media_store import RecordNotFound

_PLACEHOLDERS = {"qmark": "?", "format": "%s"}

_BUCKET_MS = 3_600_000  # one hour

_COLUMNS = (
    "url",
    "error_code",
    "bucket_ts",
    "site_url",
    "site_name",
    "resource_type",
    "description",
    "title",
    "image_mxc",
    "image_type",
    "image_size",
    "image_width",
    "image_height",
    "language_header",
)


def _text(value: Any) -> str:
    return "" if value is None else str(value)


def _number(value: Any) -> int:
    return 0 if value is None else int(value)


def get_bucket_ts(ts: int) -> int:
    """Round a millisecond timestamp down (toward zero) to its one-hour bucket."""
    quotient = abs(ts) // _BUCKET_MS
    if ts < 0:
        quotient = -quotient
    return quotient * _BUCKET_MS


def _preview_from_row(row: Sequence[Any]) -> CachedUrlPreview:
    (
        url,
        error_code,
        bucket_ts,
        site_url,
        site_name,
        resource_type,
        description,
        title,
        image_mxc,
        image_type,
        image_size,
        image_width,
        image_height,
        language_header,
    ) = row
    return CachedUrlPreview(
        preview=UrlPreview(
            url=_text(site_url),
            site_name=_text(site_name),
            type=_text(resource_type),
            description=_text(description),
            title=_text(title),
            image_mxc=_text(image_mxc),
            image_type=_text(image_type),
            image_size=_number(image_size),
            image_width=_number(image_width),
            image_height=_number(image_height),
            language_header=_text(language_header),
        ),
        search_url=_text(url),
        error_code=_text(error_code),
        fetched_ts=_number(bucket_ts),
    )


class UrlStore:
    """URL preview queries over a DB-API connection.

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

    def get_preview(self, url: str, ts: int, language_header: str) -> CachedUrlPreview:
        """Return the preview cached for ``url`` in the hour bucket of ``ts``.

        Raises RecordNotFound if none is cached. The returned ``fetched_ts``
        is the start of the bucket.
        """
        with closing(self._connection.cursor()) as cursor:
            cursor.execute(
                self._sql(
                    "SELECT " + ", ".join(_COLUMNS) + " FROM url_previews "
                    "WHERE url = ? AND bucket_ts = ? AND language_header = ?;"
                ),
                (url, get_bucket_ts(ts), language_header),
            )
            row = cursor.fetchone()
        if row is None:
            raise RecordNotFound(f"url preview not found: {url}")
        return _preview_from_row(row)

    def insert_preview(self, record: CachedUrlPreview) -> None:
        """Cache a preview in the hour bucket of its ``fetched_ts``."""
        preview = record.preview
        self._execute(
            "INSERT INTO url_previews (" + ", ".join(_COLUMNS) + ") VALUES ("
            + ", ".join("?" * len(_COLUMNS)) + ");",
            (
                record.search_url,
                record.error_code,
                get_bucket_ts(record.fetched_ts),
                preview.url,
                preview.site_name,
                preview.type,
                preview.description,
                preview.title,
                preview.image_mxc,
                preview.image_type,
                preview.image_size,
                preview.image_width,
                preview.image_height,
                preview.language_header,
            ),
        )

    def insert_preview_error(self, url: str, error_code: str) -> None:
        """Cache a failed preview of ``url`` with an error code, fetched now."""
        self.insert_preview(
            CachedUrlPreview(
                preview=UrlPreview(),
                search_url=url,
                error_code=error_code,
                fetched_ts=self._clock(),
            )
        )

    def delete_older_than(self, before_ts: int) -> None:
        """Delete previews whose bucket starts at or before ``before_ts``."""
        self._execute("DELETE FROM url_previews WHERE bucket_ts <= ?;", (before_ts,))