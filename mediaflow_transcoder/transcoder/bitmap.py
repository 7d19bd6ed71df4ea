"""
24-bit BMP serializer.

Layout: BITMAPFILEHEADER (14 bytes) + BITMAPINFOHEADER (40 bytes) +
pixel data. Rows are stored bottom-up in BGR order, each padded to a
multiple of 4 bytes.
"""

import struct
from collections.abc import Sequence

_FILE_HEADER_SIZE = 14
_INFO_HEADER_SIZE = 40
_PIXELS_PER_METER = 2835  # 72 DPI


def encode_bmp(width: int, height: int, pixel_rows: Sequence[bytes]) -> bytes:
    """
    Pack top-down RGB24 rows into a BMP file.

    Args:
        width: Image width in pixels.
        height: Image height in pixels.
        pixel_rows: ``height`` rows of at least ``width * 3`` RGB bytes,
            first row at the top. Extra trailing bytes (stride padding)
            are ignored.
    """
    if width <= 0 or height <= 0:
        raise ValueError(f"Invalid image size {width}x{height}")
    if len(pixel_rows) != height:
        raise ValueError(f"Expected {height} rows, got {len(pixel_rows)}")

    row_bytes = width * 3
    padded_row = (row_bytes + 3) & ~3
    image_size = padded_row * height
    file_size = _FILE_HEADER_SIZE + _INFO_HEADER_SIZE + image_size

    out = bytearray()
    out += struct.pack("<2sIHHI", b"BM", file_size, 0, 0, _FILE_HEADER_SIZE + _INFO_HEADER_SIZE)
    out += struct.pack(
        "<IiiHHIIiiII",
        _INFO_HEADER_SIZE,
        width,
        height,  # positive: bottom-up
        1,  # planes
        24,  # bits per pixel
        0,  # BI_RGB
        image_size,
        _PIXELS_PER_METER,
        _PIXELS_PER_METER,
        0,
        0,
    )

    padding = bytes(padded_row - row_bytes)
    for row in reversed(pixel_rows):
        if len(row) < row_bytes:
            raise ValueError(f"Row too short: {len(row)} < {row_bytes}")
        rgb = bytes(row[:row_bytes])
        bgr = bytearray(row_bytes)
        bgr[0::3] = rgb[2::3]
        bgr[1::3] = rgb[1::3]
        bgr[2::3] = rgb[0::3]
        out += bgr
        out += padding
    return bytes(out)
