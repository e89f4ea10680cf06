"""Encode raw camera frames (RGB565, RGB888, YUV422, grayscale) as JPEG."""

from __future__ import annotations

from collections.abc import Callable

from camconv.formats import ConversionError, PixFormat
from camconv.jpeg_encoder import JpegEncoder, OutputStream, Params, Subsampling
from camconv.yuv import yuv2rgb

DEFAULT_JPEG_BUFFER = 128 * 1024

JpegCallback = Callable[[int, "bytes | None"], int]


class CallbackStream(OutputStream):
    """Hands every chunk to ``callback(index, data)``.

    The callback returns how many bytes it took; that count advances the
    index passed with the next chunk. ``data`` is None once, at the end.
    """

    def __init__(self, callback: JpegCallback) -> None:
        self._callback = callback
        self.size = 0

    def put_buf(self, data: bytes | None) -> bool:
        written = self._callback(self.size, data)
        self.size += written or 0
        return True


class MemoryStream(OutputStream):
    """Collects output in memory, silently dropping what exceeds the capacity."""

    def __init__(self, capacity: int = DEFAULT_JPEG_BUFFER) -> None:
        self.capacity = capacity
        self._buffer = bytearray()

    @property
    def size(self) -> int:
        return len(self._buffer)

    def put_buf(self, data: bytes | None) -> bool:
        if data is None:
            return True
        room = self.capacity - len(self._buffer)
        self._buffer += bytes(data[:room])
        return True

    def getvalue(self) -> bytes:
        """Return everything stored so far."""
        return bytes(self._buffer)


def _require(src: bytes, needed: int, fmt: PixFormat) -> None:
    if len(src) < needed:
        raise ConversionError(
            f"{fmt.name} source holds {len(src)} bytes, {needed} needed"
        )


def convert_line(src: bytes, fmt: PixFormat, width: int, line: int) -> bytes:
    """Return row ``line`` of ``src`` as RGB triplets, or grey bytes for grayscale."""
    src = bytes(src)
    if fmt is PixFormat.GRAYSCALE:
        start = line * width
        _require(src, start + width, fmt)
        return src[start:start + width]

    if fmt is PixFormat.RGB888:
        length = width * 3
        start = length * line
        _require(src, start + length, fmt)
        row = src[start:start + length]
        out = bytearray(length)
        out[0::3] = row[2::3]
        out[1::3] = row[1::3]
        out[2::3] = row[0::3]
        return bytes(out)

    if fmt is PixFormat.RGB565:
        length = width * 2
        start = length * line
        _require(src, start + length, fmt)
        row = src[start:start + length]
        out = bytearray()
        for hi, lo in zip(row[0::2], row[1::2]):
            out += bytes((
                hi & 0xF8,
                ((hi & 0x07) << 5) | ((lo & 0xE0) >> 3),
                (lo & 0x1F) << 3,
            ))
        return bytes(out)

    if fmt is PixFormat.YUV422:
        length = width * 2
        start = length * line
        _require(src, start + (length + 3) // 4 * 4, fmt)
        out = bytearray()
        for offset in range(start, start + length, 4):
            y0, u, y1, v = src[offset:offset + 4]
            out += bytes(yuv2rgb(y0, u, v))
            out += bytes(yuv2rgb(y1, u, v))
        return bytes(out[:width * 3])

    raise ConversionError(f"cannot encode {fmt.name} source to JPEG")


def _convert_image(
    src: bytes,
    width: int,
    height: int,
    fmt: PixFormat,
    quality: int,
    stream: OutputStream,
) -> None:
    channels = 3
    subsampling = Subsampling.H2V2
    if fmt is PixFormat.GRAYSCALE:
        channels = 1
        subsampling = Subsampling.Y_ONLY
    if fmt is PixFormat.JPEG:
        raise ConversionError("source is already JPEG")

    if quality == 0:
        quality = 1
    elif quality > 100:
        quality = 100

    encoder = JpegEncoder(
        stream, width, height, channels, Params(quality=quality, subsampling=subsampling)
    )
    for line in range(height):
        encoder.process_scanline(convert_line(src, fmt, width, line))
    encoder.finish()


def fmt_to_jpeg_cb(
    src: bytes,
    width: int,
    height: int,
    fmt: PixFormat,
    quality: int,
    callback: JpegCallback,
) -> int:
    """Encode ``src`` as JPEG, streaming it to ``callback``; return the byte count."""
    stream = CallbackStream(callback)
    _convert_image(src, width, height, fmt, quality, stream)
    return stream.size


def fmt_to_jpeg(
    src: bytes, width: int, height: int, fmt: PixFormat, quality: int
) -> bytes:
    """Encode ``src`` as JPEG and return the bytes (capped at 128 KiB)."""
    stream = MemoryStream()
    _convert_image(src, width, height, fmt, quality, stream)
    return stream.getvalue()