# camconv

Pure-Python conversions for raw camera frames. It takes pixel buffers the way
small image sensors deliver them (RGB565, RGB888, YUV422 or 8-bit greyscale)
and turns them into baseline JPEG files or uncompressed BMP files.

## Installing

```
pip install camconv
```

The package has no runtime dependencies.

## Pixel formats

`camconv.formats.PixFormat` names the source layouts: `RGB565`, `RGB888`,
`YUV422`, `GRAYSCALE` and `JPEG`. Its `bytes_per_pixel` property gives the
size of one pixel in a raw buffer (`None` for `JPEG`).

## Encoding to JPEG

```python
from camconv.formats import PixFormat
from camconv.to_jpg import fmt_to_jpeg

width, height = 64, 48
frame = bytes(width * height * 2)          # RGB565, two bytes per pixel
jpeg = fmt_to_jpeg(frame, width, height, PixFormat.RGB565, quality=80)

with open("frame.jpg", "wb") as fh:
    fh.write(jpeg)
```

Quality runs from 1 to 100; 0 is treated as 1 and anything above 100 as 100.
Greyscale frames produce a single-component JPEG; colour frames use 2x2
chroma subsampling. `fmt_to_jpeg` collects the output in a
`MemoryStream` of 128 KiB; anything beyond that is dropped.

To stream the encoded bytes somewhere instead, use `fmt_to_jpeg_cb`. The
callback is called as `callback(index, data)` with the running offset and a
chunk of at most 512 bytes, and returns how many bytes it took; that count
advances the offset. At the end it is called once more with `data` set to
`None`. The function returns the total count.

```python
from camconv.to_jpg import fmt_to_jpeg_cb

chunks = []

def sink(index, data):
    if data is None:
        return 0
    chunks.append(bytes(data))
    return len(data)

total = fmt_to_jpeg_cb(frame, width, height, PixFormat.RGB565, 80, sink)
```

`convert_line(src, fmt, width, line)` returns one row of a frame as RGB
triplets (or grey bytes for greyscale), in the shape the encoder takes.

For finer control, drive `camconv.jpeg_encoder.JpegEncoder` directly. Give
it an `OutputStream` (anything with `put_buf(data)` returning `True` on
success), the image size, the channel count (1 for grey rows, 3 for RGB
rows) and a `Params` object holding `quality` and a `Subsampling` value
(`Y_ONLY`, `H1V1`, `H2V1`, `H2V2`). Feed rows with `process_scanline`, then
call `finish` (or pass `None` to `process_scanline`).

`camconv.jpeg_tables` holds the standard tables and the per-block steps:
`rgb_to_ycc`, `rgb_to_y`, `y_to_ycc`, `forward_dct`, `huffman_table`,
`quant_table` and `quantize`.

## Converting to BMP

```python
from camconv.to_bmp import fmt_to_bmp

bmp = fmt_to_bmp(frame, width, height, PixFormat.RGB565)
```

The BMP is stored top-down with no row padding. Greyscale input is written
as 8-bit with a 256-entry grey palette; every other format becomes 24-bit.
`bmp_header(width, height, bits_per_pixel, palette_size)` builds the 54-byte
header on its own.

`fmt_to_rgb888(src, fmt)` expands a whole raw buffer into three bytes per
pixel in blue, green, red order (RGB888 input is returned unchanged), and
`camconv.yuv.yuv2rgb(y, u, v)` converts a single YUV sample into an
`(r, g, b)` tuple.

## Errors

Failures are reported by raising `camconv.formats.ConversionError`, for
example when a source buffer is too short. Encoder set-up and stream
problems raise `camconv.jpeg_encoder.EncoderError`, a subclass of it.
`yuv2rgb` raises `ValueError` for components outside 0..255, and
`JpegEncoder.process_scanline` raises `ValueError` for a row that is too
short.

## What it does not do

- It does not decode JPEG. `PixFormat.JPEG` input is rejected by
  `fmt_to_bmp`, `fmt_to_rgb888` and the JPEG encoders.
- It does not talk to cameras or sensors; it only converts buffers you
  already have.
- It has no command-line tool; it is a library.

## Running the tests

```
pip install camconv[test]
pytest
```