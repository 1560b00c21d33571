"""Sizing, framing and orientation of thumbnail images."""

from __future__ import annotations

import io
import logging
import math
import struct

from PIL import Image

from .exif import get_exif_orientation

logger = logging.getLogger(__name__)


def _float32_ratio(numerator: int, denominator: int) -> float:
    if denominator == 0:
        if numerator == 0:
            return math.nan
        return math.inf if numerator > 0 else -math.inf
    return struct.unpack("f", struct.pack("f", numerator / denominator))[0]


def adjust_properties(
    image: Image.Image,
    desired_width: int,
    desired_height: int,
    want_animated: bool,
    can_animate: bool,
    method: str,
) -> tuple[bool, int, int, bool, str]:
    """Decide whether and how to thumbnail ``image``.

    Returns ``(should_thumbnail, width, height, animated, method)``.
    """
    src_width, src_height = image.size

    if _float32_ratio(src_height, src_width) == _float32_ratio(desired_height, desired_width):
        method = "scale"

    if src_width <= desired_width and src_height <= desired_height:
        if want_animated:
            return True, src_width, src_height, True, method
        if can_animate:
            return True, src_width, src_height, False, method
        return False, 0, 0, False, method
    return True, desired_width, desired_height, want_animated, method


def _prepare(src: Image.Image) -> Image.Image:
    if src.mode in ("RGB", "RGBA", "L"):
        return src
    return src.convert("RGBA")


def _resize(src: Image.Image, width: int, height: int) -> Image.Image:
    return _prepare(src).resize((max(1, width), max(1, height)), Image.Resampling.BILINEAR)


def _fit(src: Image.Image, width: int, height: int) -> Image.Image:
    src_width, src_height = src.size
    if src_width <= width and src_height <= height:
        return src.copy()
    src_aspect = src_width / src_height
    if src_aspect > width / height:
        new_width, new_height = width, int(width / src_aspect)
    else:
        new_width, new_height = int(height * src_aspect), height
    return _resize(src, new_width, new_height)


def _fill(src: Image.Image, width: int, height: int) -> Image.Image:
    src_width, src_height = src.size
    if (src_width, src_height) == (width, height):
        return src.copy()
    if src_width / src_height < width / height:
        scaled_height = max(1, math.floor(width * src_height / src_width + 0.5))
        scaled = _resize(src, width, scaled_height)
    else:
        scaled_width = max(1, math.floor(height * src_width / src_height + 0.5))
        scaled = _resize(src, scaled_width, height)
    left = (scaled.width - width) // 2
    top = (scaled.height - height) // 2
    return scaled.crop((left, top, left + width, top + height))


def make_thumbnail(src: Image.Image, method: str, width: int, height: int) -> Image.Image:
    """Scale ``src`` to fit within, or crop it to fill, ``width`` x ``height``.

    Raises ValueError for a method other than ``"scale"`` or ``"crop"``.
    """
    if method not in ("scale", "crop"):
        raise ValueError("unrecognized method: " + method)
    if width <= 0 or height <= 0:
        return Image.new("RGBA", (0, 0))
    if method == "scale":
        return _fit(src, width, height)
    return _fill(src, width, height)


def identify_and_apply_orientation(orig_bytes: bytes, src: Image.Image) -> Image.Image:
    """Rotate and flip ``src`` as the EXIF orientation in ``orig_bytes`` says.

    Unreadable EXIF data is treated as no orientation.
    """
    try:
        orientation = get_exif_orientation(io.BytesIO(orig_bytes))
    except Exception as exc:
        logger.warning("Non-fatal error reading exif headers: %s", exc)
        orientation = None

    result = src
    if orientation is None:
        return result

    rotation = {
        90: Image.Transpose.ROTATE_90,
        180: Image.Transpose.ROTATE_180,
        270: Image.Transpose.ROTATE_270,
    }.get(orientation.rotate_degrees)
    if rotation is not None:
        result = result.transpose(rotation)
    if orientation.flip_horizontal:
        result = result.transpose(Image.Transpose.FLIP_LEFT_RIGHT)
    if orientation.flip_vertical:
        result = result.transpose(Image.Transpose.FLIP_TOP_BOTTOM)
    return result