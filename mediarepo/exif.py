"""Reads the EXIF orientation of an image."""

from __future__ import annotations

import struct
from dataclasses import dataclass
from typing import BinaryIO, Iterator

from .util import dump_and_close_stream

_ORIENTATION_TAG = 0x0112
_TYPE_SHORT = 3


class ExifError(ValueError):
    """The EXIF data could not be read or holds an invalid orientation."""


@dataclass(frozen=True)
class ExifOrientation:
    rotate_degrees: int  # 0, 90, 180 or 270
    flip_vertical: bool
    flip_horizontal: bool


class _Malformed(Exception):
    pass


def _tiff_candidates(data: bytes) -> Iterator[int]:
    position = 0
    while True:
        found = [i for i in (data.find(b"II*\x00", position), data.find(b"MM\x00*", position)) if i >= 0]
        if not found:
            return
        start = min(found)
        yield start
        position = start + 1


def _find_orientation(data: bytes, start: int) -> tuple[int, tuple[int, ...]] | None:
    endian = "<" if data[start:start + 2] == b"II" else ">"
    magic, ifd_offset = struct.unpack_from(endian + "HI", data, start + 2)
    if magic != 42 or ifd_offset < 8:
        raise _Malformed
    seen: set[int] = set()
    while ifd_offset and ifd_offset not in seen:
        seen.add(ifd_offset)
        base = start + ifd_offset
        (count,) = struct.unpack_from(endian + "H", data, base)
        for n in range(count):
            entry = base + 2 + 12 * n
            tag, value_type, value_count = struct.unpack_from(endian + "HHI", data, entry)
            if tag != _ORIENTATION_TAG:
                continue
            if value_type != _TYPE_SHORT:
                return value_type, ()
            if value_count * 2 <= 4:
                value_at = entry + 8
            else:
                (offset,) = struct.unpack_from(endian + "I", data, entry + 8)
                value_at = start + offset
            return value_type, struct.unpack_from(f"{endian}{value_count}H", data, value_at)
        (ifd_offset,) = struct.unpack_from(endian + "I", data, base + 2 + 12 * count)
    return None


def get_exif_orientation(stream: BinaryIO) -> ExifOrientation | None:
    """Return the orientation in the stream's EXIF data, or None if it has none.

    The stream is drained and closed.
    """
    try:
        data = stream.read()
    finally:
        dump_and_close_stream(stream)

    for start in _tiff_candidates(data):
        try:
            found = _find_orientation(data, start)
        except (struct.error, _Malformed):
            continue
        break
    else:
        raise ExifError("exif: error reading possible exif data: no exif data found")

    if found is None:
        return None

    value_type, values = found
    if value_type != _TYPE_SHORT or not values:
        raise ExifError("exif: error parsing orientation: parse error (not an int)")
    orientation = values[0]

    # Some devices write 0 when they mean "no orientation".
    if orientation == 0:
        return None
    if not 1 <= orientation <= 8:
        raise ExifError(f"orientation out of range: {orientation}")

    flip_horizontal = orientation < 5 and orientation % 2 == 0
    flip_vertical = orientation > 4 and orientation % 2 != 0
    degrees = {1: 0, 2: 0, 3: 180, 4: 180, 5: 270, 6: 270, 7: 90, 8: 90}[orientation]
    return ExifOrientation(degrees, flip_vertical, flip_horizontal)