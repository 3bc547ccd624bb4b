"""Raster header parsing and display scaling.

Dimensions are read straight from the file header (PNG IHDR, JPEG SOF
markers) rather than decoding the image. Anything unreadable yields None and
the caller falls back to a default display size.
"""

from __future__ import annotations

import struct
from pathlib import Path

from md2docx.logging import get_logger

logger = get_logger(__name__)

PNG_SIGNATURE = b"\x89PNG\r\n\x1a\n"

# Start-of-frame markers carrying dimensions (excludes DHT C4, JPG C8, DAC CC)
JPEG_SOF_MARKERS = {0xC0, 0xC1, 0xC2, 0xC3, 0xC5, 0xC6, 0xC7, 0xC9, 0xCA, 0xCB, 0xCD, 0xCE, 0xCF}

SUPPORTED_SUFFIXES = {".png", ".jpg", ".jpeg"}


def png_dimensions(data: bytes) -> tuple[int, int] | None:
    """Width/height from a PNG header: big-endian u32s at offsets 16 and 20."""
    if len(data) < 24 or not data.startswith(PNG_SIGNATURE) or data[12:16] != b"IHDR":
        return None
    width, height = struct.unpack(">II", data[16:24])
    return width, height


def jpeg_dimensions(data: bytes) -> tuple[int, int] | None:
    """Width/height from the first JPEG start-of-frame segment."""
    if len(data) < 4 or data[:2] != b"\xff\xd8":
        return None
    offset = 2
    while offset + 9 <= len(data):
        if data[offset] != 0xFF:
            return None
        marker = data[offset + 1]
        if marker in JPEG_SOF_MARKERS:
            height, width = struct.unpack(">HH", data[offset + 5:offset + 9])
            return width, height
        (segment_length,) = struct.unpack(">H", data[offset + 2:offset + 4])
        offset += 2 + segment_length
    return None


def read_dimensions(path: Path) -> tuple[int, int] | None:
    """Natural pixel size of a PNG or JPEG file, or None if unreadable."""
    try:
        data = Path(path).read_bytes()
    except OSError as exc:
        logger.warning("image.read_failed", path=str(path), error=str(exc))
        return None

    dimensions = png_dimensions(data) or jpeg_dimensions(data)
    if dimensions is None or 0 in dimensions:
        logger.warning("image.header_unparseable", path=str(path))
        return None
    return dimensions


def scale_to_fit(
    natural: tuple[int, int] | None,
    max_width: int,
    max_height: int,
    default: tuple[int, int],
) -> tuple[int, int]:
    """Display size within both caps, preserving aspect ratio.

    Width is capped first; if the height still exceeds its cap the image is
    rescaled from the height cap.

    Examples:
        >>> scale_to_fit((1100, 400), 550, 600, (450, 350))
        (550, 200)
        >>> scale_to_fit((1000, 2000), 550, 600, (450, 350))
        (300, 600)
        >>> scale_to_fit(None, 550, 600, (450, 350))
        (450, 350)
    """
    if natural is None:
        return default

    width, height = natural
    if width > max_width:
        height = height * max_width / width
        width = max_width
    if height > max_height:
        width = width * max_height / height
        height = max_height
    return max(1, round(width)), max(1, round(height))


__all__ = [
    "PNG_SIGNATURE",
    "SUPPORTED_SUFFIXES",
    "png_dimensions",
    "jpeg_dimensions",
    "read_dimensions",
    "scale_to_fit",
]
