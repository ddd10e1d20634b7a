"""
Error taxonomy for a conversion run.

Every step of the OpenCL pipeline raises its own ComputeError subclass,
carrying the name of the step and the OpenCL status code. Nothing in the
library catches these; the command-line driver turns them into the
"Error: <step> (Error code: <n>)" diagnostic and exit status 1.
"""

from contextlib import contextmanager
from typing import Optional

import pyopencl as cl

# Status codes used when the runtime reports "nothing found" by returning
# an empty list instead of raising.
DEVICE_NOT_FOUND = -1
PLATFORM_NOT_FOUND_KHR = -1001


class ClgrayError(Exception):
    """Base exception for clgray."""

    def __init__(self, message: str, original_error: Optional[Exception] = None):
        super().__init__(message)
        self.original_error = original_error

    @property
    def message(self) -> str:
        return self.args[0]

    def diagnostic(self) -> str:
        return f"Error: {self.message}"


class ComputeError(ClgrayError):
    """A failed step of the device pipeline."""

    def __init__(self, step: str, code: int, original_error: Optional[Exception] = None):
        super().__init__(step, original_error=original_error)
        self.step = step
        self.code = code

    def diagnostic(self) -> str:
        return f"Error: {self.step} (Error code: {self.code})"


class DeviceUnavailable(ComputeError):
    pass


class ContextCreationFailed(ComputeError):
    pass


class QueueCreationFailed(ComputeError):
    pass


class ProgramBuildFailed(ComputeError):
    """The device compiler rejected the kernel source."""

    def __init__(self, step: str, code: int, build_log: str = "", **kwargs):
        super().__init__(step, code, **kwargs)
        self.build_log = build_log


class KernelCreationFailed(ComputeError):
    pass


class BufferAllocationFailed(ComputeError):
    pass


class DataTransferFailed(ComputeError):
    pass


class KernelArgumentBindFailed(ComputeError):
    def __init__(self, step: str, code: int, index: int, **kwargs):
        super().__init__(step, code, **kwargs)
        self.index = index


class KernelLaunchFailed(ComputeError):
    pass


class ReadbackFailed(ComputeError):
    pass


class DispatchTimeout(ComputeError):
    """A device operation did not complete before its deadline."""

    def __init__(self, step: str, timeout: float):
        super().__init__(step, cl.status_code.SUCCESS)
        self.timeout = timeout

    def diagnostic(self) -> str:
        return f"Error: {self.step} timed out after {self.timeout:g}s"


class ImageIOError(ClgrayError):
    """Raised by the image loaders and writers."""

    def __init__(self, message: str, path=None, **kwargs):
        super().__init__(message, **kwargs)
        self.path = path


class UnsupportedFormat(ImageIOError):
    pass


class FileNotFound(ImageIOError):
    pass


@contextmanager
def checked(step, error_class, **kwargs):
    """
    Turn a pyopencl error raised inside the block into error_class.

    Example:
        with checked("Creating context", ContextCreationFailed):
            context = cl.Context([device])
    """
    try:
        yield
    except cl.Error as e:
        raise error_class(step, e.code, original_error=e, **kwargs) from e
