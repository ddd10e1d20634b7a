"""
Image loaders and writers around the device pipeline.

Three variants:
    bmp     hand-parsed BMP, B,G,R byte order
    pillow  anything Pillow decodes (JPEG, PNG, ...), forced to 3-channel R,G,B
    opencv  cv2.imread, 3-channel B,G,R (needs the opencv extra)

"auto" uses bmp for .bmp files and pillow for everything else.
"""

from pathlib import Path

import numpy as np
from PIL import Image

from . import bmp
from .errors import FileNotFound, ImageIOError, UnsupportedFormat
from .image import ChannelOrder, PixelBuffer
from .log import get_logger

logger = get_logger(__name__)

LOADERS = ("auto", "bmp", "pillow", "opencv")

JPEG_QUALITY = 90


def _resolve(variant, path):
    if variant == "auto":
        return "bmp" if Path(path).suffix.lower() == ".bmp" else "pillow"
    if variant not in LOADERS:
        raise ValueError(f"Unknown image variant {variant!r}, expected one of {', '.join(LOADERS)}")
    return variant


def _check_exists(path):
    if not Path(path).is_file():
        raise FileNotFound(f"Could not find image '{path}'", path=path)


def load_image(path, loader="auto"):
    """
    Loads the whole image at path into a PixelBuffer.
    """
    loader = _resolve(loader, path)
    logger.debug("Loading %s with the %s loader", path, loader)

    if loader == "bmp":
        try:
            return bmp.read_bmp(path)
        except OSError as e:
            raise ImageIOError(f"Could not read image '{path}': {e}", path=path, original_error=e) from e
    if loader == "pillow":
        return load_with_pillow(path)
    return load_with_opencv(path)


def save_image(result, path, writer="auto"):
    """
    Writes a ResultBuffer as a single channel image.
    """
    writer = _resolve(writer, path)
    logger.debug("Saving %s with the %s writer", path, writer)

    try:
        if writer == "bmp":
            bmp.write_gray_bmp(result, path)
        elif writer == "pillow":
            save_with_pillow(result, path)
        else:
            save_with_opencv(result, path)
    except OSError as e:
        # Missing directory or no permission
        raise ImageIOError(f"Could not write image '{path}': {e}", path=path, original_error=e) from e


def load_with_pillow(path):
    _check_exists(path)

    try:
        with Image.open(path) as img:
            # Always 3 channels, whatever the file stores
            pixels = np.array(img.convert("RGB"))
    except OSError as e:
        # UnidentifiedImageError for unknown formats, plain OSError for truncated data
        raise UnsupportedFormat(f"Could not decode image '{path}'", path=path, original_error=e) from e

    return PixelBuffer.from_array(pixels, ChannelOrder.RGB)


def save_with_pillow(result, path):
    # A 2D uint8 array becomes an "L" image
    img = Image.fromarray(result.pixels)

    options = {}
    if Path(path).suffix.lower() in (".jpg", ".jpeg"):
        options["quality"] = JPEG_QUALITY

    try:
        img.save(path, **options)
    except ValueError as e:
        # Pillow's "unknown file extension"
        raise UnsupportedFormat(f"Could not encode image '{path}'", path=path, original_error=e) from e


def load_with_opencv(path):
    import cv2

    _check_exists(path)

    # IMREAD_COLOR always gives 3-channel BGR
    pixels = cv2.imread(str(path), cv2.IMREAD_COLOR)
    if pixels is None:
        raise UnsupportedFormat(f"Could not decode image '{path}'", path=path)

    return PixelBuffer.from_array(pixels, ChannelOrder.BGR)


def save_with_opencv(result, path):
    import cv2

    if not cv2.imwrite(str(path), result.pixels):
        raise UnsupportedFormat(f"Could not encode image '{path}'", path=path)
