"""Pixel formats understood by the converters, and the error they raise."""

from __future__ import annotations

import enum


class PixFormat(enum.Enum):
    """Layout of a source image buffer."""

    RGB565 = "rgb565"
    YUV422 = "yuv422"
    GRAYSCALE = "grayscale"
    JPEG = "jpeg"
    RGB888 = "rgb888"

    @property
    def bytes_per_pixel(self) -> int | None:
        """Bytes one pixel takes in a raw buffer, or None for compressed data."""
        return _BYTES_PER_PIXEL[self]


_BYTES_PER_PIXEL = {
    PixFormat.RGB565: 2,
    PixFormat.YUV422: 2,
    PixFormat.GRAYSCALE: 1,
    PixFormat.JPEG: None,
    PixFormat.RGB888: 3,
}


class ConversionError(Exception):
    """Raised when an image cannot be converted."""