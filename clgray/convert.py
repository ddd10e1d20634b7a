import pyopencl as cl

from .context import ComputeContext
from .device import select_device
from .dispatch import dispatch
from .kernel import build_kernel


def convert(
    pixels,
    platform_index=0,
    device_type=cl.device_type.GPU,
    timeout=None,
    build_options=None,
):
    """
    Converts a PixelBuffer to grayscale on an OpenCL device, start to finish.

    Any failing step raises its ComputeError; all device resources are
    released before the error leaves this function.
    """
    device = select_device(platform_index, device_type)

    with ComputeContext(device) as compute:
        kernel = build_kernel(compute, pixels.order, options=build_options)
        return dispatch(compute, kernel, pixels, timeout=timeout)
