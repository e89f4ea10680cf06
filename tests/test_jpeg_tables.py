import pytest

from camconv.jpeg_tables import (
    AC_CHROMA_BITS,
    AC_CHROMA_VALUES,
    AC_LUM_BITS,
    AC_LUM_VALUES,
    DC_LUM_BITS,
    DC_LUM_VALUES,
    STD_CHROMA_QUANT,
    STD_LUM_QUANT,
    ZIGZAG,
    forward_dct,
    huffman_table,
    quant_table,
    quantize,
    rgb_to_y,
    rgb_to_ycc,
    y_to_ycc,
)


def test_grey_pixels_have_neutral_chroma():
    data = bytes(v for g in range(0, 256, 5) for v in (g, g, g))
    out = rgb_to_ycc(data)
    assert out[0::3] == data[0::3]
    assert set(out[1::3]) == {128}
    assert set(out[2::3]) == {128}


def test_black_and_white():
    assert rgb_to_ycc(bytes([0, 0, 0, 255, 255, 255])) == bytes([0, 128, 128, 255, 128, 128])


def test_rgb_to_y_matches_luma_of_ycc():
    data = bytes((i * 37) % 256 for i in range(3 * 50))
    assert rgb_to_y(data) == rgb_to_ycc(data)[0::3]


def test_rgb_length_must_be_multiple_of_three():
    with pytest.raises(ValueError):
        rgb_to_ycc(b"\x01\x02")
    with pytest.raises(ValueError):
        rgb_to_y(b"\x01\x02\x03\x04")


def test_y_to_ycc_expands():
    assert y_to_ycc(b"\x10\x20") == bytes([16, 128, 128, 32, 128, 128])


def test_dct_of_zero_block():
    assert forward_dct([0] * 64) == [0] * 64


@pytest.mark.parametrize("level", [-128, -1, 1, 50, 127])
def test_dct_of_flat_block_has_only_dc(level):
    out = forward_dct([level] * 64)
    assert out[1:] == [0] * 63
    assert out[0] == 8 * level


def test_dct_of_identical_rows_has_only_first_row():
    row = [-100, -60, -20, 0, 20, 60, 100, 127]
    out = forward_dct(row * 8)
    assert out[8:] == [0] * 56
    assert any(out[1:8])


def test_dct_rejects_wrong_size():
    with pytest.raises(ValueError):
        forward_dct([0] * 63)


def test_dc_luminance_codes():
    table = huffman_table(DC_LUM_BITS, DC_LUM_VALUES)
    assert (table.codes[0], table.sizes[0]) == (0, 2)
    assert sorted(table.sizes[:12]) == sorted(
        length for length in range(1, 17) for _ in range(DC_LUM_BITS[length])
    )
    assert table.sizes[12:] == (0,) * 244


def test_ac_luminance_eob_and_zrl():
    table = huffman_table(AC_LUM_BITS, AC_LUM_VALUES)
    assert (table.codes[0x00], table.sizes[0x00]) == (0b1010, 4)
    assert (table.codes[0xF0], table.sizes[0xF0]) == (0b11111111001, 11)


@pytest.mark.parametrize(
    "bits,values",
    [(AC_LUM_BITS, AC_LUM_VALUES), (AC_CHROMA_BITS, AC_CHROMA_VALUES)],
)
def test_codes_are_prefix_free(bits, values):
    table = huffman_table(bits, values)
    words = [
        format(table.codes[s], f"0{table.sizes[s]}b") for s in values
    ]
    assert len(set(words)) == len(values)
    for a in words:
        for b in words:
            if a != b:
                assert not b.startswith(a)


def test_huffman_rejects_short_values():
    with pytest.raises(ValueError):
        huffman_table(DC_LUM_BITS, DC_LUM_VALUES[:5])
    with pytest.raises(ValueError):
        huffman_table(DC_LUM_BITS[:16], DC_LUM_VALUES)


def test_quality_50_keeps_base_table():
    assert quant_table(50, STD_LUM_QUANT) == list(STD_LUM_QUANT)
    assert quant_table(50, STD_CHROMA_QUANT) == list(STD_CHROMA_QUANT)


def test_quality_100_is_all_ones():
    assert quant_table(100, STD_LUM_QUANT) == [1] * 64


def test_quant_table_bounds_and_monotonic():
    previous = None
    for quality in range(1, 101):
        table = quant_table(quality, STD_LUM_QUANT)
        assert all(1 <= v <= 255 for v in table)
        if previous is not None:
            assert all(a <= b for a, b in zip(table, previous))
        previous = table


@pytest.mark.parametrize("quality", [0, 101, -5])
def test_quant_table_rejects_quality(quality):
    with pytest.raises(ValueError):
        quant_table(quality, STD_LUM_QUANT)


def test_quantize_with_unit_table_is_zigzag():
    block = list(range(64))
    assert quantize(block, [1] * 64) == [block[z] for z in ZIGZAG]


def test_quantize_is_sign_symmetric():
    block = [(i * 53) % 400 - 200 for i in range(64)]
    table = quant_table(75, STD_LUM_QUANT)
    assert quantize([-v for v in block], table) == [-v for v in quantize(block, table)]


def test_quantize_small_values_vanish():
    table = [16] * 64
    assert quantize([7] * 64, table) == [0] * 64
    assert quantize([-7] * 64, table) == [0] * 64
    assert quantize([8] * 64, table) == [1] * 64


def test_quantize_rejects_wrong_size():
    with pytest.raises(ValueError):
        quantize([0] * 64, [1] * 10)