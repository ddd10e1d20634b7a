import re

import numpy as np
import pyopencl as cl
import pytest

from clgray.device import device_type_name, select_device
from clgray.errors import DeviceUnavailable
from clgray.image import ChannelOrder, PixelBuffer


def make_cl_error(error_class, code, routine):
    """Builds a pyopencl error the way pyopencl raises them itself."""
    return error_class(cl._cl._ErrorRecord(msg=f"{routine} failed", code=code, routine=routine))


@pytest.fixture
def opencl_device():
    """Any OpenCL device on this machine, GPU or not."""
    try:
        return select_device(device_type=cl.device_type.ALL)
    except DeviceUnavailable:
        pytest.skip("No OpenCL device available")


@pytest.fixture
def solid_bgr():
    """Returns a factory for a width x height BGR image of a single color."""

    def factory(rgb, width=4, height=3):
        red, green, blue = rgb
        arr = np.empty((height, width, 3), dtype=np.uint8)
        arr[:, :] = [blue, green, red]
        return PixelBuffer.from_array(arr, ChannelOrder.BGR)

    return factory


@pytest.fixture
def sample_image_uint8():
    """Returns a 3x2 BGR image with one marker pixel at (x=2, y=1)."""
    img = np.zeros((2, 3, 3), dtype=np.uint8)
    img[1, 2] = [0, 0, 255]  # Red marker, B,G,R order
    return img


# Stand-ins for the pyopencl runtime, for tests that shouldn't need a device


class FakePlatform:
    name = "Fake Platform "

    def __init__(self, device_types):
        self.devices = [FakeDevice(self, device_type) for device_type in device_types]

    def get_devices(self, device_type=cl.device_type.ALL):
        return [device for device in self.devices if device.type & device_type]


class FakeDevice:
    def __init__(self, platform, device_type):
        self.platform = platform
        self.type = device_type
        self.name = f"Fake {device_type_name(device_type)} "


class FakeEvent:
    def __init__(self, status=cl.command_execution_status.COMPLETE):
        self.command_execution_status = status

    def wait(self):
        pass


class FakeRuntime:
    """
    Records what the pipeline does and emulates rgb_to_gray with numpy.
    """

    def __init__(self):
        self.calls = []
        self.launch_status = cl.command_execution_status.COMPLETE
        self.failing_arg = None
        runtime = self

        class Context:
            def __init__(self, devices):
                self.devices = devices
                runtime.calls.append("context")

        class CommandQueue:
            def __init__(self, context, device):
                self.context = context
                self.device = device
                runtime.calls.append("queue")

            def flush(self):
                pass

            def finish(self):
                runtime.calls.append("finish queue")

        class Program:
            def __init__(self, context, source):
                self.source = source
                runtime.calls.append("program")

            def build(self, options=None, devices=None):
                return self

        class Kernel:
            def __init__(self, program, name):
                self.program = program
                self.function_name = name
                self.args = {}
                runtime.calls.append("kernel")

            def set_arg(self, index, value):
                if index == runtime.failing_arg:
                    raise make_cl_error(cl.LogicError, cl.status_code.INVALID_ARG_SIZE, "clSetKernelArg")
                self.args[index] = value

        class Buffer:
            def __init__(self, context, flags, size):
                self.flags = flags
                self.data = np.zeros(size, dtype=np.uint8)
                runtime.calls.append(f"buffer {size}")

            def release(self):
                runtime.calls.append(f"release buffer {self.data.size}")

        self.Context = Context
        self.CommandQueue = CommandQueue
        self.Program = Program
        self.Kernel = Kernel
        self.Buffer = Buffer

    def enqueue_copy(self, queue, dest, src, is_blocking=True):
        if isinstance(dest, self.Buffer):
            dest.data[:] = np.asarray(src).reshape(-1)
            self.calls.append("upload")
        else:
            dest[:] = src.data
            self.calls.append("readback")
        return FakeEvent()

    def enqueue_nd_range_kernel(self, queue, kernel, global_size, local_size):
        self.calls.append(f"launch {global_size}")

        input_buf, output_buf, width, height, channels = (kernel.args[i] for i in range(5))
        assert global_size == (width, height)

        offsets = {
            name: int(value)
            for name, value in re.findall(r"#define (\w+)_OFFSET (\d+)", kernel.program.source)
        }
        pixels = input_buf.data.reshape(height, width, channels).astype(np.float32)

        if channels == 1:
            gray = pixels[:, :, 0]
        else:
            gray = np.float32(0.299) * pixels[:, :, offsets["RED"]]
            gray += np.float32(0.587) * pixels[:, :, offsets["GREEN"]]
            gray += np.float32(0.114) * pixels[:, :, offsets["BLUE"]]
        output_buf.data[:] = gray.astype(np.uint8).reshape(-1)

        return FakeEvent(self.launch_status)


@pytest.fixture
def fake_cl(monkeypatch):
    """Replaces the pyopencl runtime with a FakeRuntime with one fake GPU."""
    runtime = FakeRuntime()
    runtime.platforms = [FakePlatform([cl.device_type.GPU])]

    monkeypatch.setattr(cl, "get_platforms", lambda: runtime.platforms)
    for name in ("Context", "CommandQueue", "Program", "Kernel", "Buffer"):
        monkeypatch.setattr(cl, name, getattr(runtime, name))
    monkeypatch.setattr(cl, "enqueue_copy", runtime.enqueue_copy)
    monkeypatch.setattr(cl, "enqueue_nd_range_kernel", runtime.enqueue_nd_range_kernel)

    return runtime
