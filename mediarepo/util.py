"""General helpers: identifiers, hashing, streams, paths, URLs and text encoding."""

from __future__ import annotations

import codecs
import hashlib
import io
import logging
import os
import posixpath
import queue
import secrets
import threading
import time
from collections.abc import Iterable, Mapping, Sequence
from datetime import datetime, timedelta, timezone
from typing import BinaryIO, Union
from urllib.parse import parse_qs, urlencode

from charset_normalizer import from_bytes

logger = logging.getLogger(__name__)

QueryLike = Union[str, Mapping[str, Union[str, Sequence[str]]]]

_CHUNK_SIZE = 64 * 1024
_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)
_REDACTION_MARKER = "redacted"


def array_contains(a: Iterable[str], v: str) -> bool:
    """Return True if ``v`` is one of the items of ``a``."""
    return v in a


def _charset_from_content_type(data: bytes, content_type: str) -> str | None:
    if data.startswith((codecs.BOM_UTF16_LE, codecs.BOM_UTF16_BE)):
        return "utf-16"
    for param in content_type.split(";")[1:]:
        name, _, value = param.partition("=")
        if name.strip().lower() != "charset":
            continue
        label = value.strip().strip("\"'")
        try:
            return codecs.lookup(label).name
        except LookupError:
            return None
    return None


def to_utf8(data: bytes | str, possible_content_type: str = "") -> str:
    """Decode text of unknown encoding, using the content type's charset or detection."""
    if isinstance(data, str):
        return data
    try:
        return data.decode("utf-8")
    except UnicodeDecodeError:
        pass

    text_charset = None
    if possible_content_type:
        text_charset = _charset_from_content_type(data, possible_content_type)

    if text_charset is None:
        best = from_bytes(data).best()
        if best is None:
            return data.decode("utf-8", errors="replace")
        text_charset = best.encoding

    try:
        return data.decode(text_charset)
    except (UnicodeDecodeError, LookupError):
        return data.decode("utf-8", errors="replace")


def file_exists(path: str | os.PathLike[str]) -> bool:
    """Return whether ``path`` exists; errors other than "not found" are raised."""
    try:
        os.stat(path)
    except FileNotFoundError:
        return False
    return True


def _join(*parts: str) -> str:
    present = [p for p in parts if p]
    if not present:
        return ""
    return posixpath.normpath("/".join(present))


def get_last_segments_of_path(path: str, segments: int) -> str:
    """Return the last ``segments`` components of a slash-separated path."""
    combined = ""
    for _ in range(segments):
        head, tail = posixpath.split(path)
        path = posixpath.normpath(head) if head else "."
        combined = _join(tail, combined)
    return combined


def get_file_hash(file_path: str | os.PathLike[str]) -> str:
    """Return the hex SHA-256 of a file's contents."""
    return get_sha256_hash_of_stream(open(file_path, "rb"))


def _normalize_query(query: QueryLike | None) -> dict[str, list[str]]:
    if query is None:
        return {}
    if isinstance(query, str):
        return parse_qs(query.lstrip("?"), keep_blank_values=True)
    return {
        key: [value] if isinstance(value, str) else list(value)
        for key, value in query.items()
    }


def _first(query: QueryLike | None, key: str) -> str:
    values = _normalize_query(query).get(key)
    return values[0] if values else ""


def get_access_token_from_request(
    headers: Mapping[str, str] | None, query: QueryLike | None
) -> str:
    """Extract the access token from a Bearer Authorization header or the query string."""
    header_value = ""
    for name, value in (headers or {}).items():
        if name.lower() == "authorization":
            header_value = value
            break

    if header_value:
        if not header_value.startswith("Bearer"):
            logger.warning(
                "Invalid Authorization header observed: expected a Bearer token, got something else"
            )
            return ""
        if len(header_value) > 7:
            return header_value[7:]

    return _first(query, "access_token")


def get_appservice_user_id_from_request(query: QueryLike | None) -> str:
    """Return the ``user_id`` query parameter, or an empty string."""
    return _first(query, "user_id")


def get_log_safe_query_string(query: QueryLike | None) -> str:
    """Encode the query string with any access token redacted."""
    values = _normalize_query(query)
    if values.get("access_token") and values["access_token"][0]:
        values["access_token"] = [_REDACTION_MARKER]
    pairs = [(key, value) for key in sorted(values) for value in values[key]]
    return urlencode(pairs)


def split_mxc(mxc: str) -> tuple[str, str]:
    """Split ``mxc://origin/media_id`` into ``(origin, media_id)``."""
    if not mxc.startswith("mxc://"):
        raise ValueError("not a valid mxc uri: missing protocol")
    rest = mxc[6:].split("?")[0]
    parts = rest.split("/")
    if len(parts) != 2:
        raise ValueError("not a valid mxc uri: not in the format of mxc://origin/media_id")
    return parts[0], parts[1]


def split_user_id(user_id: str) -> tuple[str, str]:
    """Split ``@localpart:domain`` into ``(localpart, domain)``."""
    if not user_id.startswith("@"):
        raise ValueError("not a valid user id: missing symbol")
    parts = user_id[1:].split(":")
    if len(parts) < 2:
        raise ValueError("not a valid user id: not enough parts")
    return parts[0], ":".join(parts[1:])


def is_animated_png(data: bytes) -> bool:
    """Return True if an acTL chunk appears before the first IDAT chunk."""
    idat = b"IDAT"
    actl = b"acTL"
    idat_idx = 0
    actl_idx = 0
    for byte in data:
        if byte == idat[idat_idx]:
            idat_idx += 1
            actl_idx = 0
        elif byte == actl[actl_idx]:
            actl_idx += 1
            idat_idx = 0
        else:
            idat_idx = 0
            actl_idx = 0

        if idat_idx == len(idat):
            return False
        if actl_idx == len(actl):
            return True
    return False


def fix_content_type(ct: str) -> str:
    """Strip parameters such as ``; charset=...`` from a content type."""
    return ct.split(";")[0]


def generate_random_bytes(n: int) -> bytes:
    """Return ``n`` cryptographically secure random bytes."""
    return secrets.token_bytes(n)


def generate_random_string(n_bytes: int) -> str:
    """Return the hex SHA-1 of ``n_bytes`` random bytes."""
    return hashlib.sha1(generate_random_bytes(n_bytes)).hexdigest()


def get_sha1_of_string(s: str) -> str:
    """Return the hex SHA-1 of a string's UTF-8 bytes."""
    return hashlib.sha1(s.encode("utf-8")).hexdigest()


def get_sha256_hash_of_stream(stream: BinaryIO) -> str:
    """Return the hex SHA-256 of everything in ``stream``, then close it."""
    hasher = hashlib.sha256()
    try:
        while chunk := stream.read(_CHUNK_SIZE):
            hasher.update(chunk)
    finally:
        dump_and_close_stream(stream)
    return hasher.hexdigest()


class _ChunkReader(io.RawIOBase):
    """Readable stream fed with chunks by a background copier."""

    def __init__(self) -> None:
        super().__init__()
        self._chunks: queue.Queue[bytes | None] = queue.Queue()
        self._pending = b""
        self._eof = False

    def readable(self) -> bool:
        return True

    def feed(self, chunk: bytes | None) -> None:
        self._chunks.put(chunk)

    def readinto(self, buffer) -> int:
        while not self._pending and not self._eof:
            chunk = self._chunks.get()
            if chunk is None:
                self._eof = True
            else:
                self._pending = chunk
        if not self._pending:
            return 0
        n = min(len(buffer), len(self._pending))
        buffer[:n] = self._pending[:n]
        self._pending = self._pending[n:]
        return n


def clone_reader(stream: BinaryIO, num_readers: int) -> list[io.RawIOBase]:
    """Return ``num_readers`` streams that each yield the full contents of ``stream``."""
    readers = [_ChunkReader() for _ in range(num_readers)]

    def copy() -> None:
        try:
            while chunk := stream.read(_CHUNK_SIZE):
                for reader in readers:
                    reader.feed(bytes(chunk))
        except OSError:
            logger.exception("Error while copying stream to clones")
        finally:
            for reader in readers:
                reader.feed(None)

    threading.Thread(target=copy, daemon=True).start()
    return readers


def has_any_prefix(val: str, prefixes: Iterable[str]) -> bool:
    """Return True if ``val`` starts with any of ``prefixes``."""
    return val.startswith(tuple(prefixes))


def now_millis() -> int:
    """Current time in milliseconds since the Unix epoch."""
    return time.time_ns() // 1_000_000


def from_millis(ms: int) -> datetime:
    """Convert milliseconds since the epoch to an aware UTC datetime."""
    return _EPOCH + timedelta(milliseconds=ms)


def make_url(*args: str) -> str:
    """Join URL parts with single slashes between them."""
    result = ""
    for position, part in enumerate(args):
        if not part:
            raise ValueError("url parts must not be empty")
        if part.endswith("/"):
            result += part[:-1]
        elif not part.startswith("/") and position > 0:
            result += "/" + part
        else:
            result += part
    return result


def dump_and_close_stream(stream) -> None:
    """Drain and close a stream, ignoring any errors; ``None`` is accepted."""
    if stream is None:
        return
    try:
        while stream.read(_CHUNK_SIZE):
            pass
    except (OSError, ValueError):
        pass
    try:
        stream.close()
    except (OSError, ValueError):
        pass