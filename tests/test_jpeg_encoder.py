import pytest

from camconv.formats import ConversionError
from camconv.jpeg_encoder import (
    EncoderError,
    JpegEncoder,
    OutputStream,
    Params,
    Subsampling,
)
from camconv.jpeg_tables import (
    AC_LUM_BITS,
    AC_LUM_VALUES,
    DC_LUM_BITS,
    DC_LUM_VALUES,
    STD_CHROMA_QUANT,
    STD_LUM_QUANT,
    quant_table,
)


class ListStream(OutputStream):
    def __init__(self, fail=False):
        self.chunks = []
        self.fail = fail

    def put_buf(self, data):
        self.chunks.append(data)
        return not self.fail

    @property
    def data(self):
        return b"".join(c for c in self.chunks if c is not None)


def _pattern_rgb(width, height):
    return [
        bytes(((x * 37 + y * 91 + c * 53) % 256) for x in range(width) for c in range(3))
        for y in range(height)
    ]


def _pattern_grey(width, height):
    return [bytes(((x * 29 + y * 71) % 256) for x in range(width)) for y in range(height)]


def _encode(rows, width, height, channels, params):
    stream = ListStream()
    encoder = JpegEncoder(stream, width, height, channels, params)
    for row in rows:
        encoder.process_scanline(row)
    encoder.finish()
    return stream


def _segments(data):
    assert data[:2] == b"\xff\xd8"
    pos = 2
    segments = []
    while True:
        assert data[pos] == 0xFF
        marker = data[pos + 1]
        length = (data[pos + 2] << 8) | data[pos + 3]
        segments.append((marker, data[pos + 4:pos + 2 + length]))
        pos += 2 + length
        if marker == 0xDA:
            return segments, data[pos:]


def test_params_check():
    assert Params().check()
    assert Params().quality == 85
    assert Params().subsampling is Subsampling.H2V2
    assert not Params(quality=0).check()
    assert not Params(quality=101).check()
    assert not Params(subsampling=7).check()


@pytest.mark.parametrize(
    "args",
    [
        (0, 8, 3, Params()),
        (8, 0, 3, Params()),
        (8, 8, 2, Params()),
        (8, 8, 3, Params(quality=0)),
    ],
)
def test_invalid_setup_raises(args):
    with pytest.raises(EncoderError):
        JpegEncoder(ListStream(), *args)


def test_encoder_error_is_conversion_error():
    with pytest.raises(ConversionError):
        JpegEncoder(None, 8, 8, 3, Params())


@pytest.mark.parametrize("subsampling", list(Subsampling))
def test_stream_structure(subsampling):
    width, height = 21, 13
    stream = _encode(_pattern_rgb(width, height), width, height, 3, Params(75, subsampling))
    data = stream.data
    assert data.endswith(b"\xff\xd9")
    assert stream.chunks[-1] is None
    assert all(len(c) == 512 for c in stream.chunks[:-2])
    assert 0 < len(stream.chunks[-2]) <= 512

    segments, scan = _segments(data)
    markers = [m for m, _ in segments]
    components = 1 if subsampling is Subsampling.Y_ONLY else 3
    assert markers[0] == 0xE0
    assert markers.count(0xDB) == (1 if components == 1 else 2)
    assert markers.count(0xC4) == (2 if components == 1 else 4)
    sof = dict(segments)[0xC0]
    assert (sof[1] << 8 | sof[2]) == height
    assert (sof[3] << 8 | sof[4]) == width
    assert sof[5] == components

    body = scan[:-2]
    for i, byte in enumerate(body):
        if byte == 0xFF:
            assert body[i + 1] == 0


def test_app0_is_jfif():
    stream = _encode(_pattern_grey(8, 8), 8, 8, 1, Params(50, Subsampling.Y_ONLY))
    segments, _ = _segments(stream.data)
    assert segments[0][1][:5] == b"JFIF\x00"


def test_quantisation_tables_follow_quality():
    stream = _encode(_pattern_rgb(16, 16), 16, 16, 3, Params(30, Subsampling.H1V1))
    segments, _ = _segments(stream.data)
    dqts = [payload for marker, payload in segments if marker == 0xDB]
    assert list(dqts[0][1:]) == quant_table(30, STD_LUM_QUANT)
    assert list(dqts[1][1:]) == quant_table(30, STD_CHROMA_QUANT)


def test_huffman_tables_emitted():
    stream = _encode(_pattern_grey(8, 8), 8, 8, 1, Params(50, Subsampling.Y_ONLY))
    segments, _ = _segments(stream.data)
    dhts = [payload for marker, payload in segments if marker == 0xC4]
    assert dhts[0] == bytes((0,)) + bytes(DC_LUM_BITS[1:]) + bytes(DC_LUM_VALUES)
    assert dhts[1] == bytes((0x10,)) + bytes(AC_LUM_BITS[1:]) + bytes(AC_LUM_VALUES)


def test_deterministic_and_quality_affects_size():
    rows = _pattern_rgb(32, 32)
    first = _encode(rows, 32, 32, 3, Params(90)).data
    second = _encode(rows, 32, 32, 3, Params(90)).data
    low = _encode(rows, 32, 32, 3, Params(10)).data
    assert first == second
    assert len(low) < len(first)


def test_grey_and_rgb_sources_agree_for_neutral_image():
    grey_rows = [bytes([100] * 16) for _ in range(16)]
    rgb_rows = [bytes([100] * 48) for _ in range(16)]
    params = Params(80, Subsampling.Y_ONLY)
    assert _encode(grey_rows, 16, 16, 1, params).data == _encode(rgb_rows, 16, 16, 3, params).data


def test_process_scanline_none_finishes():
    stream = ListStream()
    encoder = JpegEncoder(stream, 8, 8, 1, Params(50, Subsampling.Y_ONLY))
    for row in _pattern_grey(8, 8):
        encoder.process_scanline(row)
    encoder.process_scanline(None)
    assert stream.chunks[-1] is None
    assert stream.data.endswith(b"\xff\xd9")
    with pytest.raises(EncoderError):
        encoder.process_scanline(bytes(8))
    with pytest.raises(EncoderError):
        encoder.finish()


def test_short_scanline_rejected():
    encoder = JpegEncoder(ListStream(), 8, 8, 3, Params())
    with pytest.raises(ValueError):
        encoder.process_scanline(bytes(10))


def test_failing_stream_raises():
    with pytest.raises(EncoderError):
        JpegEncoder(ListStream(fail=True), 16, 16, 3, Params())


def test_failing_stream_on_finish():
    stream = ListStream(fail=True)
    encoder = JpegEncoder(stream, 8, 8, 1, Params(50, Subsampling.Y_ONLY))
    with pytest.raises(EncoderError):
        for row in _pattern_grey(8, 8):
            encoder.process_scanline(row)
        encoder.finish()
    assert stream.chunks
    assert None not in stream.chunks