"""Records shared across the media repository: media, thumbnails, datastores, exports."""

from __future__ import annotations

import json
from dataclasses import asdict, dataclass, field
from typing import Any, BinaryIO

PURPOSE_NONE = "none"
PURPOSE_PINNED = "pinned"
ALL_PURPOSES = [PURPOSE_NONE, PURPOSE_PINNED]


@dataclass
class BackgroundTask:
    id: int = 0
    name: str = ""
    params: dict[str, Any] = field(default_factory=dict)
    start_ts: int = 0
    end_ts: int = 0


@dataclass
class Datastore:
    datastore_id: str = ""
    type: str = ""
    uri: str = ""


@dataclass
class DatastoreMigrationEstimate:
    thumbnails_affected: int = 0
    thumbnail_hashes_affected: int = 0
    thumbnail_bytes: int = 0
    media_affected: int = 0
    media_hashes_affected: int = 0
    media_bytes: int = 0
    total_hashes_affected: int = 0
    total_bytes: int = 0

    def to_dict(self) -> dict[str, int]:
        """Return the estimate keyed by its JSON field names."""
        return asdict(self)


@dataclass
class ExportMetadata:
    export_id: str = ""
    entity: str = ""


@dataclass
class ExportPart:
    export_id: str = ""
    index: int = 0
    file_name: str = ""
    size_bytes: int = 0
    datastore_id: str = ""
    location: str = ""


@dataclass(frozen=True)
class MediaRef:
    origin: str = ""
    media_id: str = ""

    def to_bytes(self) -> bytes:
        """Serialize as compact JSON."""
        payload = {"Origin": self.origin, "MediaId": self.media_id}
        return json.dumps(payload, separators=(",", ":")).encode("utf-8")


def media_ref_from_bytes(data: bytes | str) -> MediaRef:
    """Parse the JSON produced by :meth:`MediaRef.to_bytes`; raises ValueError if invalid."""
    decoded = json.loads(data)
    if not isinstance(decoded, dict):
        raise ValueError("media reference must be a JSON object")
    return MediaRef(origin=decoded.get("Origin", ""), media_id=decoded.get("MediaId", ""))


@dataclass
class Media:
    origin: str = ""
    media_id: str = ""
    upload_name: str = ""
    content_type: str = ""
    user_id: str = ""
    sha256_hash: str = ""
    size_bytes: int = 0
    datastore_id: str = ""
    location: str = ""
    creation_ts: int = 0
    quarantined: bool = False

    def mxc_uri(self) -> str:
        """Return the ``mxc://origin/media_id`` URI of this media."""
        return "mxc://" + self.origin + "/" + self.media_id


@dataclass
class MinimalMedia:
    origin: str = ""
    media_id: str = ""
    stream: BinaryIO | None = None
    upload_name: str = ""
    content_type: str = ""
    size_bytes: int = 0
    known_media: Media | None = None
    url: str = ""


@dataclass
class MinimalMediaMetadata:
    size_bytes: int = 0
    sha256_hash: str = ""
    location: str = ""
    creation_ts: int = 0
    last_access_ts: int = 0
    datastore_id: str = ""


@dataclass
class MediaAttributes:
    origin: str = ""
    media_id: str = ""
    purpose: str = ""


@dataclass
class ObjectInfo:
    location: str = ""
    sha256_hash: str = ""
    size_bytes: int = 0


@dataclass
class UserStats:
    user_id: str = ""
    uploaded_bytes: int = 0


@dataclass
class Thumbnail:
    origin: str = ""
    media_id: str = ""
    width: int = 0
    height: int = 0
    method: str = ""  # "crop" or "scale"
    animated: bool = False
    content_type: str = ""
    size_bytes: int = 0
    datastore_id: str = ""
    location: str = ""
    creation_ts: int = 0
    sha256_hash: str = ""


@dataclass
class StreamedOrRedirectedThumbnail:
    thumbnail: Thumbnail | None = None
    stream: BinaryIO | None = None
    redirect_url: str = ""


@dataclass
class UrlPreview:
    url: str = ""
    site_name: str = ""
    type: str = ""
    description: str = ""
    title: str = ""
    image_mxc: str = ""
    image_type: str = ""
    image_size: int = 0
    image_width: int = 0
    image_height: int = 0
    language_header: str = ""


@dataclass
class CachedUrlPreview:
    preview: UrlPreview = field(default_factory=UrlPreview)
    search_url: str = ""
    error_code: str = ""
    fetched_ts: int = 0


@dataclass
class ViewExportPartModel:
    export_id: str = ""
    index: int = 0
    size_bytes: int = 0
    size_bytes_human: str = ""
    file_name: str = ""


@dataclass
class ViewExportModel:
    export_id: str = ""
    entity: str = ""
    export_parts: list[ViewExportPartModel] = field(default_factory=list)


@dataclass
class ExportIndexMediaModel:
    export_id: str = ""
    archived_name: str = ""
    file_name: str = ""
    origin: str = ""
    media_id: str = ""
    size_bytes: int = 0
    size_bytes_human: str = ""
    upload_ts: int = 0
    upload_date_human: str = ""
    sha256_hash: str = ""
    content_type: str = ""
    uploader: str = ""


@dataclass
class ExportIndexModel:
    export_id: str = ""
    entity: str = ""
    media: list[ExportIndexMediaModel] = field(default_factory=list)


@dataclass
class LocalMedia:
    media_id: str = ""
    content_type: str = ""
    size_bytes: int = 0
    created_ts: int = 0
    upload_name: str = ""
    user_id: str = ""
    url_cache: str = ""