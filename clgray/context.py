"""
Scoped ownership of every OpenCL object a conversion run creates.

ComputeContext registers each object on an ExitStack as it's created, so
leaving the with block releases them in reverse creation order, on the
success path and on every error path alike:

    with ComputeContext(device) as compute:
        kernel = compute.build_kernel(source, "rgb_to_gray")
        buf = compute.create_buffer("input buffer", cl.mem_flags.READ_ONLY, size)
        ...
"""

import sys
import time
from contextlib import ExitStack

import humanize
import pyopencl as cl

from .errors import (
    BufferAllocationFailed,
    ComputeError,
    ContextCreationFailed,
    KernelCreationFailed,
    ProgramBuildFailed,
    QueueCreationFailed,
    checked,
)
from .log import get_logger

logger = get_logger(__name__)


class ComputeContext:
    def __init__(self, device):
        self.device = device
        self.context = None
        self.queue = None
        self.program = None
        self.kernel = None

        # Names of the released resources, in release order
        self.released = []

        self._resources = ExitStack()

    def __enter__(self):
        try:
            with checked("Creating context", ContextCreationFailed):
                self.context = cl.Context([self.device])
            self._own("context", "context")

            # No properties means an in-order queue
            with checked("Creating command queue", QueueCreationFailed):
                self.queue = cl.CommandQueue(self.context, self.device)
            self._own("command queue", "queue")
            self._resources.push(self._finish_queue)
        except BaseException:
            self._resources.__exit__(*sys.exc_info())
            raise

        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        return self._resources.__exit__(exc_type, exc_val, exc_tb)

    def close(self):
        self._resources.close()

    def _own(self, name, attribute=None, release=None):
        self._resources.callback(self._release, name, attribute, release)

    def _release(self, name, attribute, release):
        if release is not None:
            release()
        # Dropping the last reference lets pyopencl release the handle
        if attribute is not None:
            setattr(self, attribute, None)
        self.released.append(name)
        logger.debug("Released %s", name)

    def _finish_queue(self, exc_type, exc_val, exc_tb):
        # A failed or timed out step may have left work the device never
        # finishes, so only a clean exit waits for the queue to drain
        if exc_type is None:
            with checked("Finishing command queue", ComputeError):
                self.queue.finish()
        return False

    def build_kernel(self, source, kernel_name, options=None):
        """
        Compiles source for this context's device and returns kernel_name from it.

        A compile failure raises ProgramBuildFailed carrying the device
        compiler's build log.
        """
        with checked("Creating program", ProgramBuildFailed):
            self.program = cl.Program(self.context, source)
        self._own("program", "program")

        start_time = time.time()
        try:
            self.program.build(options=options or [], devices=[self.device])
        except cl.Error as e:
            raise ProgramBuildFailed(
                "Building program",
                e.code,
                build_log=self._build_log(self.program, e),
                original_error=e,
            ) from e
        logger.debug(
            "Built program in %s", humanize.precisedelta(time.time() - start_time, minimum_unit="milliseconds")
        )

        with checked("Creating kernel", KernelCreationFailed):
            self.kernel = cl.Kernel(self.program, kernel_name)
        self._own("kernel", "kernel")

        return self.kernel

    def _build_log(self, program, error):
        try:
            log = program.get_build_info(self.device, cl.program_build_info.LOG)
        except cl.Error:
            log = ""

        # A failed cached build leaves no program object to query, but
        # pyopencl embeds the device's build log in the error message
        if not log.strip():
            log = str(error)

        return log.strip()

    def create_buffer(self, name, flags, size):
        with checked(f"Creating {name}", BufferAllocationFailed):
            buf = cl.Buffer(self.context, flags, size=size)
        logger.debug("Allocated %s of %s", name, humanize.naturalsize(size, binary=True))
        self._own(name, release=buf.release)
        return buf
