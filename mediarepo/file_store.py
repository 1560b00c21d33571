"""Stores media objects as files below a base directory."""

from __future__ import annotations

import hashlib
import logging
import os
import posixpath
from typing import BinaryIO

from .types import ObjectInfo
from .util import dump_and_close_stream, file_exists, generate_random_string

logger = logging.getLogger(__name__)

_CHUNK_SIZE = 64 * 1024
_MAX_ATTEMPTS = 5


def _exists(path: str) -> bool:
    try:
        return bool(file_exists(path))
    except OSError as exc:
        logger.error("Error checking if the file exists: %s", exc)
        return True


def persist_file(base_path: str, stream: BinaryIO) -> ObjectInfo:
    """Write the stream to a new, randomly named file below ``base_path``.

    The stream is drained and closed. Raises FileExistsError if no free
    name is found after a few attempts.
    """
    try:
        for _ in range(_MAX_ATTEMPTS):
            file_id = generate_random_string(64)
            primary, secondary, file_name = file_id[0:2], file_id[2:4], file_id[4:]
            target_dir = os.path.join(base_path, primary, secondary)
            target_file = os.path.join(target_dir, file_name)
            logger.info("Checking if file exists: %s", target_file)
            if not _exists(target_file):
                break
        else:
            raise FileExistsError("failed to find a suitable directory")

        os.makedirs(target_dir, mode=0o755, exist_ok=True)
        size_bytes, sha256_hash = persist_file_at_location(target_file, stream)
    finally:
        dump_and_close_stream(stream)

    return ObjectInfo(
        location=posixpath.join(primary, secondary, file_name),
        sha256_hash=sha256_hash,
        size_bytes=size_bytes,
    )


def persist_file_at_location(target_file: str, stream: BinaryIO) -> tuple[int, str]:
    """Write the stream to ``target_file`` and return ``(size_bytes, sha256_hex)``.

    The stream is drained and closed. If reading the stream fails the
    partly written file is removed.
    """
    hasher = hashlib.sha256()
    size_bytes = 0
    try:
        fd = os.open(target_file, os.O_WRONLY | os.O_CREAT, 0o644)
        with os.fdopen(fd, "wb") as out:
            while True:
                try:
                    chunk = stream.read(_CHUNK_SIZE)
                except Exception:
                    out.close()
                    os.remove(target_file)
                    raise
                if not chunk:
                    break
                hasher.update(chunk)
                out.write(chunk)
                size_bytes += len(chunk)
    finally:
        dump_and_close_stream(stream)

    sha256_hash = hasher.hexdigest()
    logger.info("Wrote %d bytes to file with hash %s", size_bytes, sha256_hash)
    return size_bytes, sha256_hash


def delete_persisted_file(base_path: str, location: str) -> None:
    """Delete a stored file; a file that is already gone is not an error."""
    try:
        os.remove(os.path.join(base_path, location))
    except FileNotFoundError:
        pass