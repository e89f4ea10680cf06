"""Streaming baseline JPEG encoder.

Scanlines are fed one at a time; compressed bytes are handed to an
:class:`OutputStream` in chunks of at most 512 bytes.
"""

from __future__ import annotations

import abc
import enum
from dataclasses import dataclass

from camconv.formats import ConversionError
from camconv.jpeg_tables import (
    AC_CHROMA_BITS,
    AC_CHROMA_VALUES,
    AC_LUM_BITS,
    AC_LUM_VALUES,
    DC_CHROMA_BITS,
    DC_CHROMA_VALUES,
    DC_LUM_BITS,
    DC_LUM_VALUES,
    STD_CHROMA_QUANT,
    STD_LUM_QUANT,
    HuffmanTable,
    forward_dct,
    huffman_table,
    quant_table,
    quantize,
    rgb_to_y,
    rgb_to_ycc,
    y_to_ycc,
)

_M_SOF0 = 0xC0
_M_DHT = 0xC4
_M_SOI = 0xD8
_M_EOI = 0xD9
_M_SOS = 0xDA
_M_DQT = 0xDB
_M_APP0 = 0xE0

OUT_BUF_SIZE = 512

# Indexed as in the encoder: 0 DC luma, 1 DC chroma, 2 AC luma, 3 AC chroma.
_HUFF_SPECS: tuple[tuple[tuple[int, ...], tuple[int, ...]], ...] = (
    (DC_LUM_BITS, DC_LUM_VALUES),
    (DC_CHROMA_BITS, DC_CHROMA_VALUES),
    (AC_LUM_BITS, AC_LUM_VALUES),
    (AC_CHROMA_BITS, AC_CHROMA_VALUES),
)
_HUFF_TABLES: tuple[HuffmanTable, ...] = tuple(
    huffman_table(bits, values) for bits, values in _HUFF_SPECS
)


class Subsampling(enum.IntEnum):
    """Chroma subsampling layout of the encoded image."""

    Y_ONLY = 0
    H1V1 = 1
    H2V1 = 2
    H2V2 = 3


@dataclass
class Params:
    """Compression parameters: quality 1..100 and a subsampling layout."""

    quality: int = 85
    subsampling: Subsampling = Subsampling.H2V2

    def check(self) -> bool:
        """Return True when the parameters are usable."""
        if not isinstance(self.quality, int) or not 1 <= self.quality <= 100:
            return False
        try:
            Subsampling(self.subsampling)
        except ValueError:
            return False
        return True


class OutputStream(abc.ABC):
    """Destination for compressed bytes."""

    @abc.abstractmethod
    def put_buf(self, data: bytes | None) -> bool:
        """Accept a chunk of output, or None at the end; return False on failure."""


class EncoderError(ConversionError):
    """Raised when the encoder cannot be set up or a stream write fails."""


_LAYOUTS = {
    Subsampling.Y_ONLY: (1, (1, 1), 8, 8),
    Subsampling.H1V1: (3, (1, 1), 8, 8),
    Subsampling.H2V1: (3, (2, 1), 16, 8),
    Subsampling.H2V2: (3, (2, 2), 16, 16),
}


class JpegEncoder:
    """Encodes an image given row by row into a baseline JFIF stream."""

    def __init__(
        self,
        stream: OutputStream,
        width: int,
        height: int,
        channels: int,
        params: Params | None = None,
    ) -> None:
        params = Params() if params is None else params
        if stream is None or width < 1 or height < 1:
            raise EncoderError("invalid stream or image dimensions")
        if channels not in (1, 3, 4):
            raise EncoderError(f"unsupported channel count {channels}")
        if not params.check():
            raise EncoderError("invalid compression parameters")

        self._stream = stream
        self._params = params
        subsampling = Subsampling(params.subsampling)
        components, (h_samp, v_samp), mcu_x, mcu_y = _LAYOUTS[subsampling]
        self._components = components
        self._samp = [(h_samp, v_samp)] + [(1, 1)] * (components - 1)
        self._mcu_x = mcu_x
        self._mcu_y = mcu_y
        self._width = width
        self._height = height
        self._channels = channels
        self._width_mcu = (width + mcu_x - 1) & ~(mcu_x - 1)
        self._mcus_per_row = self._width_mcu // mcu_x
        self._lines: list[bytes] = [b""] * mcu_y
        self._line_ofs = 0

        self._quant = (
            quant_table(params.quality, STD_LUM_QUANT),
            quant_table(params.quality, STD_CHROMA_QUANT),
        )
        self._last_dc = [0, 0, 0]
        self._out = bytearray()
        self._bit_buffer = 0
        self._bits_in = 0
        self._ok = True
        self._finished = False

        self._emit_marker(_M_SOI)
        self._emit_jfif_app0()
        self._emit_dqt()
        self._emit_sof()
        self._emit_dhts()
        self._emit_sos()
        if not self._ok:
            raise EncoderError("stream write failed while writing headers")

    # Output plumbing

    def _flush(self) -> None:
        if self._out and self._ok:
            self._ok = bool(self._stream.put_buf(bytes(self._out)))
        self._out.clear()

    def _emit_byte(self, value: int) -> None:
        self._out.append(value & 0xFF)
        if len(self._out) == OUT_BUF_SIZE:
            self._flush()

    def _emit_bytes(self, values) -> None:
        for value in values:
            self._emit_byte(value)

    def _emit_word(self, value: int) -> None:
        self._emit_byte(value >> 8)
        self._emit_byte(value)

    def _emit_marker(self, marker: int) -> None:
        self._emit_byte(0xFF)
        self._emit_byte(marker)

    def _put_bits(self, bits: int, length: int) -> None:
        self._bits_in += length
        self._bit_buffer = (self._bit_buffer | (bits << (24 - self._bits_in))) & 0xFFFFFFFF
        while self._bits_in >= 8:
            byte = (self._bit_buffer >> 16) & 0xFF
            self._emit_byte(byte)
            if byte == 0xFF:
                self._emit_byte(0)
            self._bit_buffer = (self._bit_buffer << 8) & 0xFFFFFFFF
            self._bits_in -= 8

    # Headers

    def _emit_jfif_app0(self) -> None:
        self._emit_marker(_M_APP0)
        self._emit_word(16)
        self._emit_bytes(b"JFIF\x00")
        self._emit_bytes((1, 1, 0))
        self._emit_word(1)
        self._emit_word(1)
        self._emit_bytes((0, 0))

    def _emit_dqt(self) -> None:
        for index in range(2 if self._components == 3 else 1):
            self._emit_marker(_M_DQT)
            self._emit_word(64 + 1 + 2)
            self._emit_byte(index)
            self._emit_bytes(self._quant[index])

    def _emit_sof(self) -> None:
        self._emit_marker(_M_SOF0)
        self._emit_word(3 * self._components + 8)
        self._emit_byte(8)
        self._emit_word(self._height & 0xFFFF)
        self._emit_word(self._width & 0xFFFF)
        self._emit_byte(self._components)
        for index, (h, v) in enumerate(self._samp):
            self._emit_byte(index + 1)
            self._emit_byte((h << 4) + v)
            self._emit_byte(1 if index > 0 else 0)

    def _emit_dht(self, table: int, index: int, ac: bool) -> None:
        bits, values = _HUFF_SPECS[table]
        count = sum(bits[1:])
        self._emit_marker(_M_DHT)
        self._emit_word(count + 2 + 1 + 16)
        self._emit_byte(index + (16 if ac else 0))
        self._emit_bytes(bits[1:])
        self._emit_bytes(values[:count])

    def _emit_dhts(self) -> None:
        self._emit_dht(0, 0, False)
        self._emit_dht(2, 0, True)
        if self._components == 3:
            self._emit_dht(1, 1, False)
            self._emit_dht(3, 1, True)

    def _emit_sos(self) -> None:
        self._emit_marker(_M_SOS)
        self._emit_word(2 * self._components + 6)
        self._emit_byte(self._components)
        for index in range(self._components):
            self._emit_byte(index + 1)
            self._emit_byte(0x00 if index == 0 else 0x11)
        self._emit_bytes((0, 63, 0))

    # Block loading

    def _block_grey(self, x: int) -> list[int]:
        base = x * 8
        return [v - 128 for i in range(8) for v in self._lines[i][base:base + 8]]

    def _block_8_8(self, x: int, y: int, c: int) -> list[int]:
        base = x * 24 + c
        return [
            v - 128
            for i in range(8)
            for v in self._lines[y * 8 + i][base:base + 24:3]
        ]

    def _block_16_8(self, x: int, c: int) -> list[int]:
        base = x * 48 + c
        out: list[int] = []
        for pair in range(8):
            top = self._lines[2 * pair][base:base + 48:3]
            bottom = self._lines[2 * pair + 1][base:base + 48:3]
            rounding = (0, 2) if pair % 2 == 0 else (2, 0)
            for k in range(8):
                total = top[2 * k] + top[2 * k + 1] + bottom[2 * k] + bottom[2 * k + 1]
                out.append(((total + rounding[k % 2]) >> 2) - 128)
        return out

    def _block_16_8_8(self, x: int, c: int) -> list[int]:
        base = x * 48 + c
        out: list[int] = []
        for i in range(8):
            row = self._lines[i][base:base + 48:3]
            out.extend(((row[2 * k] + row[2 * k + 1]) >> 1) - 128 for k in range(8))
        return out

    # Entropy coding

    def _code_block(self, block: list[int], component: int) -> None:
        coeffs = quantize(forward_dct(block), self._quant[1 if component > 0 else 0])
        dc = _HUFF_TABLES[0 if component == 0 else 1]
        ac = _HUFF_TABLES[2 if component == 0 else 3]

        diff = coeffs[0] - self._last_dc[component]
        self._last_dc[component] = coeffs[0]
        value = diff - 1 if diff < 0 else diff
        nbits = abs(diff).bit_length()
        self._put_bits(dc.codes[nbits], dc.sizes[nbits])
        if nbits:
            self._put_bits(value & ((1 << nbits) - 1), nbits)

        run = 0
        for coeff in coeffs[1:]:
            if coeff == 0:
                run += 1
                continue
            while run >= 16:
                self._put_bits(ac.codes[0xF0], ac.sizes[0xF0])
                run -= 16
            value = coeff - 1 if coeff < 0 else coeff
            nbits = abs(coeff).bit_length()
            symbol = (run << 4) + nbits
            self._put_bits(ac.codes[symbol], ac.sizes[symbol])
            self._put_bits(value & ((1 << nbits) - 1), nbits)
            run = 0
        if run:
            self._put_bits(ac.codes[0], ac.sizes[0])

    def _process_mcu_row(self) -> None:
        h, v = self._samp[0]
        for i in range(self._mcus_per_row):
            if self._components == 1:
                self._code_block(self._block_grey(i), 0)
            elif (h, v) == (1, 1):
                for c in range(3):
                    self._code_block(self._block_8_8(i, 0, c), c)
            elif (h, v) == (2, 1):
                self._code_block(self._block_8_8(i * 2, 0, 0), 0)
                self._code_block(self._block_8_8(i * 2 + 1, 0, 0), 0)
                self._code_block(self._block_16_8_8(i, 1), 1)
                self._code_block(self._block_16_8_8(i, 2), 2)
            else:
                for y in (0, 1):
                    self._code_block(self._block_8_8(i * 2, y, 0), 0)
                    self._code_block(self._block_8_8(i * 2 + 1, y, 0), 0)
                self._code_block(self._block_16_8(i, 1), 1)
                self._code_block(self._block_16_8(i, 2), 2)

    def _load_mcu(self, scanline: bytes) -> None:
        width = self._width
        if self._channels == 3:
            row = scanline[:width * 3]
            row = rgb_to_y(row) if self._components == 1 else rgb_to_ycc(row)
        else:
            row = scanline[:width]
            row = bytes(row) if self._components == 1 else y_to_ycc(row)
        last = row[-self._components:]
        self._lines[self._line_ofs] = row + last * (self._width_mcu - width)
        self._line_ofs += 1
        if self._line_ofs == self._mcu_y:
            self._process_mcu_row()
            self._line_ofs = 0

    # Public interface

    def process_scanline(self, scanline: bytes | None) -> None:
        """Feed one row of width * channels bytes; None finishes the image."""
        if self._finished:
            raise EncoderError("the image has already been finished")
        if scanline is None:
            self.finish()
            return
        if not self._ok:
            raise EncoderError("a previous stream write failed")
        scanline = bytes(scanline)
        needed = self._width * (3 if self._channels == 3 else 1)
        if len(scanline) < needed:
            raise ValueError(f"scanline holds {len(scanline)} bytes, {needed} needed")
        self._load_mcu(scanline)
        if not self._ok:
            raise EncoderError("stream write failed")

    def finish(self) -> None:
        """Flush the last rows, write the end marker and close the stream."""
        if self._finished:
            raise EncoderError("the image has already been finished")
        if not self._ok:
            raise EncoderError("a previous stream write failed")
        if self._line_ofs:
            filler = self._lines[self._line_ofs - 1]
            for i in range(self._line_ofs, self._mcu_y):
                self._lines[i] = filler
            self._process_mcu_row()
        self._put_bits(0x7F, 7)
        self._emit_marker(_M_EOI)
        self._flush()
        if self._ok:
            self._ok = bool(self._stream.put_buf(None))
        self._finished = True
        if not self._ok:
            raise EncoderError("stream write failed")