"""Tests for BMP parsing and writing."""

import struct

import numpy as np
import pytest
from PIL import Image

from clgray.bmp import encode_gray_bmp, parse_bmp, read_bmp, write_gray_bmp
from clgray.errors import FileNotFound, UnsupportedFormat
from clgray.image import ChannelOrder, ResultBuffer


def make_bmp(rows, bits_per_pixel=24, top_down=False, compression=0):
    """Encodes top-to-bottom rows of B,G,R(,A) pixels as a BMP file."""
    height = len(rows)
    width = len(rows[0])
    bytes_per_pixel = bits_per_pixel // 8
    stride = ((bits_per_pixel * width + 31) // 32) * 4

    stored = rows if top_down else rows[::-1]
    pixel_data = b"".join(
        bytes(component for pixel in row for component in pixel).ljust(stride, b"\0")
        for row in stored
    )
    assert all(len(pixel) == bytes_per_pixel for row in rows for pixel in row)

    offset = 54
    file_header = struct.pack("<2sIHHI", b"BM", offset + len(pixel_data), 0, 0, offset)
    info_header = struct.pack(
        "<IiiHHIIiiII",
        40,
        width,
        -height if top_down else height,
        1,
        bits_per_pixel,
        compression,
        len(pixel_data),
        2835,
        2835,
        0,
        0,
    )
    return file_header + info_header + pixel_data


ROWS = [
    [(1, 2, 3), (4, 5, 6), (7, 8, 9)],
    [(10, 11, 12), (13, 14, 15), (16, 17, 18)],
]


class TestParseBmp:
    def test_bottom_up_24_bit(self):
        pixels = parse_bmp(make_bmp(ROWS))

        assert (pixels.width, pixels.height, pixels.channels) == (3, 2, 3)
        assert pixels.order is ChannelOrder.BGR
        assert np.array_equal(pixels.as_array(), np.array(ROWS, dtype=np.uint8))

    def test_top_down(self):
        pixels = parse_bmp(make_bmp(ROWS, top_down=True))
        assert np.array_equal(pixels.as_array(), np.array(ROWS, dtype=np.uint8))

    def test_32_bit(self):
        rows = [[(1, 2, 3, 255), (4, 5, 6, 0)]]
        pixels = parse_bmp(make_bmp(rows, bits_per_pixel=32))

        assert pixels.channels == 4
        assert pixels.pixels.tobytes() == bytes([1, 2, 3, 255, 4, 5, 6, 0])

    def test_not_a_bmp(self):
        with pytest.raises(UnsupportedFormat, match="Not a BMP"):
            parse_bmp(b"\x89PNG" + bytes(100))

    def test_compressed(self):
        with pytest.raises(UnsupportedFormat, match="Compressed"):
            parse_bmp(make_bmp(ROWS, compression=1))

    def test_truncated(self):
        with pytest.raises(UnsupportedFormat, match="truncated"):
            parse_bmp(make_bmp(ROWS)[:-4])

    def test_8_bit_input(self):
        gray = ResultBuffer(np.zeros(4, dtype=np.uint8), 2, 2)
        with pytest.raises(UnsupportedFormat, match="24-bit and 32-bit"):
            parse_bmp(encode_gray_bmp(gray))


class TestReadBmp:
    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFound):
            read_bmp(tmp_path / "missing.bmp")

    def test_read(self, tmp_path):
        path = tmp_path / "in.bmp"
        path.write_bytes(make_bmp(ROWS))
        assert read_bmp(path).descriptor.nbytes == 18


class TestWriteGrayBmp:
    def test_pillow_reads_it_back(self, tmp_path):
        values = np.array([[0, 50, 100], [150, 200, 255]], dtype=np.uint8)
        path = tmp_path / "gray.bmp"

        write_gray_bmp(ResultBuffer(values.reshape(-1), 3, 2), path)

        with Image.open(path) as img:
            assert img.size == (3, 2)
            assert np.array_equal(np.array(img.convert("L")), values)

    def test_header(self):
        data = encode_gray_bmp(ResultBuffer(np.zeros(6, dtype=np.uint8), 3, 2))

        # 4-byte aligned rows of 3 pixels
        assert len(data) == 14 + 40 + 1024 + 2 * 4
        assert struct.unpack_from("<I", data, 2)[0] == len(data)
        assert struct.unpack_from("<H", data, 28)[0] == 8
