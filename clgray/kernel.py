from pathlib import Path

from .image import ChannelOrder

KERNEL_PATH = Path(__file__).with_name("rgb_to_gray.cl")
KERNEL_NAME = "rgb_to_gray"

# Positional kernel parameters, in order
KERNEL_ARGUMENTS = ("input", "output", "width", "height", "channels")


def get_opencl_code(order=ChannelOrder.BGR):
    opencl_code = KERNEL_PATH.read_text()

    defines = {
        "RED_OFFSET": order.red_offset,
        "GREEN_OFFSET": order.green_offset,
        "BLUE_OFFSET": order.blue_offset,
    }

    defines_str = "\n".join(
        (
            f"#define {define_name} {define_value}"
            for define_name, define_value in defines.items()
        )
    )

    return defines_str + "\n\n" + opencl_code


def build_kernel(compute, order=ChannelOrder.BGR, options=None):
    """
    Builds rgb_to_gray for the channel order the loader produced.
    """
    return compute.build_kernel(get_opencl_code(order), KERNEL_NAME, options=options)
