"""
Moves one image through the device: allocate, upload, bind, launch, read back.

Each step is blocking, so the upload has finished before the kernel runs
and the kernel has finished before the readback starts. Passing a timeout
enqueues the steps without blocking and polls their events instead, since
a hung device would otherwise block the process forever.
"""

import time

import numpy as np
import pyopencl as cl

from .errors import (
    DataTransferFailed,
    DispatchTimeout,
    KernelArgumentBindFailed,
    KernelLaunchFailed,
    ReadbackFailed,
    checked,
)
from .image import ResultBuffer
from .kernel import KERNEL_ARGUMENTS
from .log import get_logger

logger = get_logger(__name__)

POLL_INTERVAL = 0.001


def dispatch(compute, kernel, pixels, timeout=None):
    """
    Runs kernel over pixels and returns the luminance of every pixel.

    Args:
        compute: The entered ComputeContext that owns the buffers.
        kernel: The rgb_to_gray kernel, built by kernel.build_kernel().
        pixels: A PixelBuffer.
        timeout: Seconds each device step may take, or None to block.
    """
    width = pixels.width
    height = pixels.height
    blocking = timeout is None

    mf = cl.mem_flags
    input_buf = compute.create_buffer("input buffer", mf.READ_ONLY, pixels.descriptor.nbytes)
    output_buf = compute.create_buffer("output buffer", mf.WRITE_ONLY, pixels.descriptor.pixel_count)

    step = "Writing to input buffer"
    with checked(step, DataTransferFailed):
        event = cl.enqueue_copy(compute.queue, input_buf, pixels.pixels, is_blocking=blocking)
    _wait(compute, event, step, DataTransferFailed, timeout)

    bind_arguments(
        kernel,
        input_buf,
        output_buf,
        np.int32(width),
        np.int32(height),
        np.int32(pixels.channels),
    )

    # Exactly one work-item per pixel; the runtime picks the work-group size
    global_size = (width, height)
    logger.debug("Launching %s over %s", kernel.function_name, global_size)

    step = "Enqueueing NDRange kernel"
    with checked(step, KernelLaunchFailed):
        event = cl.enqueue_nd_range_kernel(compute.queue, kernel, global_size, None)
    _wait(compute, event, step, KernelLaunchFailed, timeout)

    gray = np.empty(width * height, dtype=np.uint8)

    step = "Reading from output buffer"
    with checked(step, ReadbackFailed):
        event = cl.enqueue_copy(compute.queue, gray, output_buf, is_blocking=blocking)
    _wait(compute, event, step, ReadbackFailed, timeout)

    return ResultBuffer(gray, width, height)


def bind_arguments(kernel, *args):
    """
    Sets the kernel arguments one by one, failing on the first one rejected.
    """
    for index, (name, value) in enumerate(zip(KERNEL_ARGUMENTS, args)):
        step = f"Setting kernel argument {index} ({name})"
        with checked(step, KernelArgumentBindFailed, index=index):
            kernel.set_arg(index, value)


def _wait(compute, event, step, error_class, timeout):
    if timeout is None:
        with checked(step, error_class):
            event.wait()
        return

    # Make sure the command reaches the device before polling it
    with checked(step, error_class):
        compute.queue.flush()

    deadline = time.monotonic() + timeout

    while True:
        with checked(step, error_class):
            status = event.command_execution_status

        if status == cl.command_execution_status.COMPLETE:
            return
        if status < 0:
            raise error_class(step, status)
        if time.monotonic() >= deadline:
            raise DispatchTimeout(step, timeout)

        time.sleep(POLL_INTERVAL)
