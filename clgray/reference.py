import numpy as np

from .image import ResultBuffer

# float32 like the kernel's 0.299f, 0.587f and 0.114f literals
RED_WEIGHT = np.float32(0.299)
GREEN_WEIGHT = np.float32(0.587)
BLUE_WEIGHT = np.float32(0.114)


def rgb_to_gray_reference(pixels):
    """
    Computes the same luminance as rgb_to_gray.cl on the CPU with numpy.

    Each pixel is independent, so the whole image is done at once. The
    weighted sum is evaluated in float32 in the kernel's order and then
    truncated to uint8.
    """
    if pixels.channels == 1:
        return ResultBuffer(pixels.pixels.copy(), pixels.width, pixels.height)

    arr = pixels.as_array()
    order = pixels.order

    red = arr[:, :, order.red_offset].astype(np.float32)
    green = arr[:, :, order.green_offset].astype(np.float32)
    blue = arr[:, :, order.blue_offset].astype(np.float32)

    gray = RED_WEIGHT * red + GREEN_WEIGHT * green
    gray = gray + BLUE_WEIGHT * blue

    return ResultBuffer(gray.astype(np.uint8).reshape(-1), pixels.width, pixels.height)


def max_difference(a, b):
    """Largest per-pixel difference between two results."""
    return int(np.max(np.abs(a.pixels.astype(np.int16) - b.pixels.astype(np.int16))))
