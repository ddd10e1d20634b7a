"""
Host-side image data handed between the loaders, the device pipeline and the writers.
"""

from dataclasses import dataclass
from enum import Enum

import numpy as np

SUPPORTED_CHANNELS = (1, 3, 4)


class ChannelOrder(Enum):
    """
    Byte order of the color components inside one interleaved pixel.

    The value is the (red, green, blue) offset of each component, which
    is what the kernel is built with. A fourth alpha byte, if present, is
    never read.
    """

    BGR = (2, 1, 0)
    RGB = (0, 1, 2)
    GRAY = (0, 0, 0)

    @property
    def red_offset(self):
        return self.value[0]

    @property
    def green_offset(self):
        return self.value[1]

    @property
    def blue_offset(self):
        return self.value[2]


@dataclass(frozen=True)
class ImageDescriptor:
    width: int
    height: int
    channels: int

    def __post_init__(self):
        if self.width <= 0 or self.height <= 0:
            raise ValueError(f"Image size must be positive, got {self.width}x{self.height}")
        if self.channels not in SUPPORTED_CHANNELS:
            raise ValueError(
                f"Unsupported channel count {self.channels}, expected one of {SUPPORTED_CHANNELS}"
            )

    @property
    def pixel_count(self):
        return self.width * self.height

    @property
    def nbytes(self):
        return self.width * self.height * self.channels


@dataclass(frozen=True)
class PixelBuffer:
    """Interleaved 8-bit pixels of a fully loaded image."""

    pixels: np.ndarray
    descriptor: ImageDescriptor
    order: ChannelOrder

    def __post_init__(self):
        pixels = np.ascontiguousarray(self.pixels, dtype=np.uint8).reshape(-1)

        if pixels.size != self.descriptor.nbytes:
            raise ValueError(
                f"Pixel data holds {pixels.size} bytes, "
                f"but a {self.descriptor.width}x{self.descriptor.height}x{self.descriptor.channels} "
                f"image needs {self.descriptor.nbytes}"
            )
        if self.descriptor.channels == 1 and self.order is not ChannelOrder.GRAY:
            raise ValueError("Single channel images must use ChannelOrder.GRAY")
        if self.descriptor.channels != 1 and self.order is ChannelOrder.GRAY:
            raise ValueError("ChannelOrder.GRAY needs a single channel image")

        # Read-only from here on, the pipeline only ever uploads it
        pixels.flags.writeable = False
        object.__setattr__(self, "pixels", pixels)

    @classmethod
    def from_array(cls, array, order=None):
        """
        Wraps an (h, w) or (h, w, c) uint8 array, as produced by Pillow or OpenCV.
        """
        array = np.asarray(array)

        if array.ndim == 2:
            height, width = array.shape
            channels = 1
        elif array.ndim == 3:
            height, width, channels = array.shape
        else:
            raise ValueError(f"Expected a 2D or 3D pixel array, got shape {array.shape}")

        if order is None:
            order = ChannelOrder.GRAY if channels == 1 else ChannelOrder.RGB

        return cls(array, ImageDescriptor(width, height, channels), order)

    @property
    def width(self):
        return self.descriptor.width

    @property
    def height(self):
        return self.descriptor.height

    @property
    def channels(self):
        return self.descriptor.channels

    def as_array(self):
        """The pixels as an (h, w, c) array."""
        return self.pixels.reshape(self.height, self.width, self.channels)


@dataclass(frozen=True)
class ResultBuffer:
    """One luminance byte per pixel, row-major."""

    pixels: np.ndarray
    width: int
    height: int

    def __post_init__(self):
        if self.pixels.dtype != np.uint8 or self.pixels.size != self.width * self.height:
            raise ValueError(
                f"Expected {self.width * self.height} uint8 luminance values, "
                f"got {self.pixels.size} of {self.pixels.dtype}"
            )
        object.__setattr__(self, "pixels", self.pixels.reshape(self.height, self.width))

    def __len__(self):
        return self.pixels.size

    def tobytes(self):
        return self.pixels.tobytes()
