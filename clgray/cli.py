import argparse
import sys
import time
from pathlib import Path

import humanize

from . import log
from .convert import convert
from .device import DEVICE_TYPES, parse_device_type
from .errors import ClgrayError, ProgramBuildFailed
from .image_io import LOADERS, load_image, save_image
from .reference import max_difference, rgb_to_gray_reference

# The kernel truncates in float32; other ports may land one level off
VERIFY_TOLERANCE = 1


def add_parser_arguments(parser):
    parser.add_argument(
        "input_image_path",
        type=Path,
        help="The path to the color image to convert",
    )
    parser.add_argument(
        "output_image_path",
        type=Path,
        help="The path where to save the grayscale image to",
    )
    parser.add_argument(
        "-l",
        "--loader",
        choices=LOADERS,
        default="auto",
        help="How to read the input image: auto uses bmp for .bmp files and pillow otherwise",
    )
    parser.add_argument(
        "-w",
        "--writer",
        choices=LOADERS,
        default="auto",
        help="How to write the output image: auto uses bmp for .bmp files and pillow otherwise",
    )
    parser.add_argument(
        "-d",
        "--device-type",
        choices=tuple(DEVICE_TYPES),
        default="gpu",
        help="The class of OpenCL device to run the kernel on",
    )
    parser.add_argument(
        "-p",
        "--platform-index",
        type=int,
        default=0,
        help="Which OpenCL platform to take the device from",
    )
    parser.add_argument(
        "-t",
        "--timeout",
        type=float,
        default=None,
        help="Seconds each device step may take before giving up; blocks forever if not passed",
    )
    parser.add_argument(
        "-v",
        "--verify",
        action="store_true",
        help="Compare the device's output against the numpy reference before saving",
    )
    parser.add_argument(
        "--log-level",
        choices=tuple(log.LOG_LEVEL_MAP),
        default=log.DEFAULT_LEVEL,
        help="Level of the diagnostics written to stderr",
    )


def run(args):
    start_time = time.time()

    print("Loading input image...")
    pixels = load_image(args.input_image_path, args.loader)
    print(f"width: {pixels.width}, height: {pixels.height}, channels: {pixels.channels}")

    print("Converting on the OpenCL device...")
    result = convert(
        pixels,
        platform_index=args.platform_index,
        device_type=parse_device_type(args.device_type),
        timeout=args.timeout,
    )

    if args.verify:
        print("Verifying against the numpy reference...")
        difference = max_difference(result, rgb_to_gray_reference(pixels))
        if difference > VERIFY_TOLERANCE:
            print(
                f"Error: Device output differs from the reference by up to {difference} levels",
                file=sys.stderr,
            )
            return 1

    print("Saving output image...")
    save_image(result, args.output_image_path, args.writer)

    print("Grayscale image has been generated.")
    print(f"Done in {humanize.precisedelta(time.time() - start_time, minimum_unit='milliseconds')}")

    return 0


def main(argv=None):
    parser = argparse.ArgumentParser(
        prog="clgray",
        description="Convert a color image to grayscale on an OpenCL device",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    add_parser_arguments(parser)
    args = parser.parse_args(argv)

    log.configure(args.log_level)

    try:
        return run(args)
    except ClgrayError as e:
        # The compiler's own diagnostics are the only useful thing on a build failure
        if isinstance(e, ProgramBuildFailed) and e.build_log:
            print(f"Build log:\n{e.build_log}", file=sys.stderr)
        print(e.diagnostic(), file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
