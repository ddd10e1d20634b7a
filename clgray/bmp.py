"""
Uncompressed BMP reading and 8-bit grayscale BMP writing.

Pixels come out in file order, which is B, G, R (and A for 32-bit files),
so the kernel has to be built with ChannelOrder.BGR for them.
"""

import struct
from pathlib import Path

import numpy as np

from .errors import FileNotFound, UnsupportedFormat
from .image import ChannelOrder, ImageDescriptor, PixelBuffer

FILE_HEADER_SIZE = 14
INFO_HEADER_SIZE = 40
BI_RGB = 0
GRAY_PALETTE_SIZE = 256 * 4


def _row_stride(width, bits_per_pixel):
    # Rows are padded to a multiple of 4 bytes
    return ((bits_per_pixel * width + 31) // 32) * 4


def parse_bmp(data, path=None):
    if len(data) < FILE_HEADER_SIZE + INFO_HEADER_SIZE or data[:2] != b"BM":
        raise UnsupportedFormat("Not a BMP file", path=path)

    pixel_offset = struct.unpack_from("<I", data, 10)[0]
    header_size = struct.unpack_from("<I", data, 14)[0]
    if header_size < INFO_HEADER_SIZE:
        raise UnsupportedFormat(f"Unsupported BMP header size {header_size}", path=path)

    width, height, planes, bits_per_pixel, compression = struct.unpack_from("<iiHHI", data, 18)

    if planes != 1:
        raise UnsupportedFormat(f"Unsupported BMP plane count {planes}", path=path)
    if compression != BI_RGB:
        raise UnsupportedFormat("Compressed BMP files aren't supported", path=path)
    if bits_per_pixel not in (24, 32):
        raise UnsupportedFormat(
            f"Only 24-bit and 32-bit BMP files are supported, got {bits_per_pixel}-bit",
            path=path,
        )
    if width <= 0 or height == 0:
        raise UnsupportedFormat(f"Invalid BMP size {width}x{height}", path=path)

    # A negative height means the rows are stored top-down
    top_down = height < 0
    height = abs(height)
    channels = bits_per_pixel // 8
    stride = _row_stride(width, bits_per_pixel)

    end = pixel_offset + stride * height
    if end > len(data):
        raise UnsupportedFormat("BMP pixel data is truncated", path=path)

    rows = np.frombuffer(data, dtype=np.uint8, count=stride * height, offset=pixel_offset)
    rows = rows.reshape(height, stride)[:, : width * channels]
    if not top_down:
        rows = rows[::-1]

    return PixelBuffer(
        np.ascontiguousarray(rows),
        ImageDescriptor(width, height, channels),
        ChannelOrder.BGR,
    )


def read_bmp(path):
    path = Path(path)
    if not path.is_file():
        raise FileNotFound(f"Could not find image '{path}'", path=path)
    return parse_bmp(path.read_bytes(), path=path)


def encode_gray_bmp(result):
    """Encodes a ResultBuffer as a bottom-up 8-bit BMP with a gray palette."""
    width = result.width
    height = result.height
    stride = _row_stride(width, 8)

    pixel_offset = FILE_HEADER_SIZE + INFO_HEADER_SIZE + GRAY_PALETTE_SIZE
    image_size = stride * height

    file_header = struct.pack("<2sIHHI", b"BM", pixel_offset + image_size, 0, 0, pixel_offset)
    info_header = struct.pack(
        "<IiiHHIIiiII",
        INFO_HEADER_SIZE,
        width,
        height,
        1,
        8,
        BI_RGB,
        image_size,
        2835,  # 72 DPI
        2835,
        256,
        0,
    )

    levels = np.arange(256, dtype=np.uint8)
    palette = np.stack([levels, levels, levels, np.zeros_like(levels)], axis=1)

    rows = np.zeros((height, stride), dtype=np.uint8)
    rows[:, :width] = result.pixels[::-1]

    return file_header + info_header + palette.tobytes() + rows.tobytes()


def write_gray_bmp(result, path):
    Path(path).write_bytes(encode_gray_bmp(result))
