"""Reads the local media table of a Synapse homeserver database."""

from __future__ import annotations

from typing import Any

from .types import LocalMedia

SELECT_LOCAL_MEDIA = (
    "SELECT media_id, media_type, media_length, created_ts, upload_name, user_id, url_cache "
    "FROM local_media_repository;"
)


def _text(value: Any) -> str:
    return "" if value is None else str(value)


def _number(value: Any) -> int:
    return 0 if value is None else int(value)


class SynapseDatabase:
    """Wraps an open DB-API connection to a Synapse database."""

    def __init__(self, connection: Any) -> None:
        self._connection = connection

    def __enter__(self) -> SynapseDatabase:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def close(self) -> None:
        """Close the underlying connection."""
        self._connection.close()

    def get_all_media(self) -> list[LocalMedia]:
        """Return every local media record; missing values become empty or zero."""
        cursor = self._connection.cursor()
        try:
            cursor.execute(SELECT_LOCAL_MEDIA)
            rows = cursor.fetchall()
        finally:
            cursor.close()

        return [
            LocalMedia(
                media_id=_text(media_id),
                content_type=_text(content_type),
                size_bytes=_number(size_bytes),
                created_ts=_number(created_ts),
                upload_name=_text(upload_name),
                user_id=_text(user_id),
                url_cache=_text(url_cache),
            )
            for media_id, content_type, size_bytes, created_ts, upload_name, user_id, url_cache in rows
        ]