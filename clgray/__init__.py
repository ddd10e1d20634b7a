"""Grayscale conversion of color images on an OpenCL device."""

from .convert import convert
from .errors import ClgrayError, ComputeError, ImageIOError
from .image import ChannelOrder, ImageDescriptor, PixelBuffer, ResultBuffer

__version__ = "0.1.0"

__all__ = [
    "ChannelOrder",
    "ClgrayError",
    "ComputeError",
    "ImageDescriptor",
    "ImageIOError",
    "PixelBuffer",
    "ResultBuffer",
    "convert",
]
