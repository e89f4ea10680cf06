"""Convert raw camera frames to packed BGR pixels or to BMP files."""

from __future__ import annotations

import struct

from camconv.formats import ConversionError, PixFormat
from camconv.yuv import yuv2rgb

BMP_HEADER_LEN = 54
_PIXELS_PER_METRE = 0x0B13  # 72 DPI
_GREY_PALETTE = b"".join(bytes((i, i, i, 0)) for i in range(256))


def bmp_header(width: int, height: int, bits_per_pixel: int, palette_size: int = 0) -> bytes:
    """Return the 54-byte BMP header for a top-down image without row padding."""
    image_size = width * height * (bits_per_pixel // 8)
    return b"BM" + struct.pack(
        "<IIIIiiHHIIIIII",
        image_size + BMP_HEADER_LEN + palette_size,
        0,
        BMP_HEADER_LEN + palette_size,
        40,
        width,
        -height,
        1,
        bits_per_pixel,
        0,
        image_size,
        _PIXELS_PER_METRE,
        _PIXELS_PER_METRE,
        0,
        0,
    )


def _rgb565_to_bgr(data: bytes, count: int) -> bytes:
    out = bytearray()
    for hi, lo in zip(data[0:count * 2:2], data[1:count * 2:2]):
        out += bytes((
            (lo & 0x1F) << 3,
            ((hi & 0x07) << 5) | ((lo & 0xE0) >> 3),
            hi & 0xF8,
        ))
    return bytes(out)


def _yuv422_to_bgr(data: bytes, pairs: int) -> bytes:
    out = bytearray()
    for offset in range(0, pairs * 4, 4):
        y0, u, y1, v = data[offset:offset + 4]
        for luma in (y0, y1):
            r, g, b = yuv2rgb(luma, u, v)
            out += bytes((b, g, r))
    return bytes(out)


def fmt_to_rgb888(src: bytes, fmt: PixFormat) -> bytes:
    """Convert a whole raw buffer to three bytes per pixel (blue, green, red)."""
    src = bytes(src)
    if fmt is PixFormat.RGB888:
        return src
    if fmt is PixFormat.RGB565:
        return _rgb565_to_bgr(src, len(src) // 2)
    if fmt is PixFormat.GRAYSCALE:
        return bytes(value for value in src for _ in range(3))
    if fmt is PixFormat.YUV422:
        return _yuv422_to_bgr(src, len(src) // 4)
    raise ConversionError(f"cannot decode {fmt.name} source")


def _require(src: bytes, needed: int, fmt: PixFormat) -> None:
    if len(src) < needed:
        raise ConversionError(
            f"{fmt.name} source holds {len(src)} bytes, {needed} needed"
        )


def fmt_to_bmp(src: bytes, width: int, height: int, fmt: PixFormat) -> bytes:
    """Return a complete BMP file for a raw frame of the given size."""
    if fmt is PixFormat.JPEG:
        raise ConversionError("cannot decode JPEG source")
    src = bytes(src)
    pix_count = width * height
    grey = fmt is PixFormat.GRAYSCALE
    bpp = 1 if grey else 3
    palette = _GREY_PALETTE if grey else b""

    if fmt is PixFormat.RGB888:
        _require(src, pix_count * 3, fmt)
        pixels = src[:pix_count * 3]
    elif fmt is PixFormat.RGB565:
        _require(src, pix_count * 2, fmt)
        pixels = _rgb565_to_bgr(src, pix_count)
    elif grey:
        _require(src, pix_count, fmt)
        pixels = src[:pix_count]
    elif fmt is PixFormat.YUV422:
        pairs = pix_count // 2
        _require(src, pairs * 4, fmt)
        pixels = _yuv422_to_bgr(src, pairs)
        pixels += bytes(pix_count * 3 - len(pixels))
    else:
        raise ConversionError(f"cannot convert {fmt.name} source to BMP")

    return bmp_header(width, height, bpp * 8, len(palette)) + palette + pixels