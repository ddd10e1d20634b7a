import pyopencl as cl

from .errors import DEVICE_NOT_FOUND, PLATFORM_NOT_FOUND_KHR, DeviceUnavailable, checked
from .log import get_logger

logger = get_logger(__name__)

DEVICE_TYPES = {
    "gpu": cl.device_type.GPU,
    "cpu": cl.device_type.CPU,
    "accelerator": cl.device_type.ACCELERATOR,
    "all": cl.device_type.ALL,
}


def parse_device_type(name):
    try:
        return DEVICE_TYPES[name.lower()]
    except KeyError:
        raise ValueError(
            f"Unknown device type {name!r}, expected one of {', '.join(DEVICE_TYPES)}"
        ) from None


def device_type_name(device_type):
    # ALL has every bit set, so it would match any device
    names = [name.upper() for name, bits in DEVICE_TYPES.items() if name != "all" and device_type & bits]
    return " | ".join(names) or str(device_type)


def describe_device(device):
    return f"{device.name.strip()} ({device_type_name(device.type)}, {device.platform.name.strip()})"


def select_device(platform_index=0, device_type=cl.device_type.GPU):
    """
    Picks the first device of device_type on the platform at platform_index.

    There is no retry: an empty platform or device list means the OpenCL
    runtime isn't set up for this machine.
    """
    # get_platforms() raises PLATFORM_NOT_FOUND_KHR when no ICD is installed
    with checked("Getting platform", DeviceUnavailable):
        platforms = cl.get_platforms()

    if platform_index >= len(platforms) or platform_index < 0:
        logger.debug(
            "Platform index %d requested, %d platform(s) available",
            platform_index,
            len(platforms),
        )
        raise DeviceUnavailable("Getting platform", PLATFORM_NOT_FOUND_KHR)

    platform = platforms[platform_index]
    logger.debug("Using platform %s", platform.name.strip())

    # get_devices() raises DEVICE_NOT_FOUND when the platform has none of the type
    with checked("Getting device", DeviceUnavailable):
        devices = platform.get_devices(device_type=device_type)

    if not devices:
        raise DeviceUnavailable("Getting device", DEVICE_NOT_FOUND)

    device = devices[0]
    logger.info("Selected device %s", describe_device(device))

    return device
