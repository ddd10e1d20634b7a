import logging
import sys

LOG_LEVEL_MAP = {
    "DEBUG": logging.DEBUG,
    "INFO": logging.INFO,
    "WARNING": logging.WARNING,
    "ERROR": logging.ERROR,
    "CRITICAL": logging.CRITICAL,
}

DEFAULT_LEVEL = "WARNING"

log_formatter = logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")

# Diagnostics go to stderr so stdout only carries the progress lines
console_handler = logging.StreamHandler(sys.stderr)
console_handler.setFormatter(log_formatter)

package_logger = logging.getLogger("clgray")


def configure(level=DEFAULT_LEVEL):
    """
    Sets the level of every clgray logger and attaches the console handler once.
    """
    package_logger.setLevel(LOG_LEVEL_MAP.get(str(level).upper(), logging.WARNING))

    if console_handler not in package_logger.handlers:
        package_logger.addHandler(console_handler)

    return package_logger


def get_logger(name):
    """
    Gets a module logger below the clgray package logger.
    """
    if name != "clgray" and not name.startswith("clgray."):
        name = f"clgray.{name}"
    return logging.getLogger(name)
