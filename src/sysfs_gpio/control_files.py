"""Control-file providers for the kernel's sysfs GPIO interface.

The sysfs control tree is process-external mutable state shared with the
kernel. This module hides it behind the ControlFiles interface so the
attribute protocol and pin lifecycle can run against the real tree or an
in-memory stand-in that honours the same token contract.

Control files are addressed by names relative to the GPIO class directory,
for example ``"export"`` or ``"gpio17/direction"``.
"""

import logging
import os
from abc import ABC, abstractmethod
from pathlib import Path
from typing import BinaryIO, Union, cast

logger = logging.getLogger(__name__)

SYSFS_GPIO_ROOT = "/sys/class/gpio"

EXPORT_FILE = "export"
UNEXPORT_FILE = "unexport"

DIRECTION_ATTRIBUTE = "direction"
EDGE_ATTRIBUTE = "edge"
ACTIVE_LOW_ATTRIBUTE = "active_low"
VALUE_ATTRIBUTE = "value"


def attribute_name(pin: int, attribute: str) -> str:
    """Return the control-file name of a per-pin attribute.

    Args:
        pin: Kernel GPIO line number
        attribute: Attribute file name (direction, edge, active_low, value)

    Returns:
        Name relative to the GPIO class directory, e.g. "gpio17/value"
    """
    return f"gpio{pin}/{attribute}"


class ControlFiles(ABC):
    """Abstract access to the GPIO control-file tree.

    Implementations raise OSError for any failure so callers can map it to
    the appropriate GPIO error.
    """

    @abstractmethod
    def write(self, name: str, token: str) -> None:
        """Open a control file write-only, write a token and close it.

        Args:
            name: Control-file name (e.g. "export", "gpio17/edge")
            token: Text to write

        Raises:
            OSError: If the file cannot be opened or the write is rejected
        """

    @abstractmethod
    def is_writable(self, name: str) -> bool:
        """Check whether a control file is writable by the current process."""

    @abstractmethod
    def open(self, name: str, writable: bool) -> BinaryIO:
        """Open a control file for unbuffered binary I/O.

        Args:
            name: Control-file name
            writable: Open read-write if True, read-only otherwise

        Returns:
            Open binary file object supporting seek/read/write/close

        Raises:
            OSError: If the file cannot be opened
        """


class SysfsControlFiles(ControlFiles):
    """Control files backed by a real directory, normally /sys/class/gpio."""

    def __init__(self, root: Union[str, Path] = SYSFS_GPIO_ROOT) -> None:
        """Initialize the provider.

        Args:
            root: GPIO class directory (default /sys/class/gpio)
        """
        self._root = Path(root)
        logger.debug("Using sysfs GPIO control files under %s", self._root)

    @property
    def root(self) -> Path:
        """GPIO class directory this provider works on."""
        return self._root

    def path(self, name: str) -> Path:
        """Return the absolute path of a control file."""
        return self._root / name

    def write(self, name: str, token: str) -> None:
        # No O_CREAT: a missing control file must fail, not be created
        fd = os.open(self.path(name), os.O_WRONLY | os.O_TRUNC)
        try:
            os.write(fd, token.encode("ascii"))
        finally:
            os.close(fd)

    def is_writable(self, name: str) -> bool:
        return os.access(self.path(name), os.W_OK)

    def open(self, name: str, writable: bool) -> BinaryIO:
        flags = os.O_RDWR if writable else os.O_RDONLY
        fd = os.open(self.path(name), flags)
        return cast(BinaryIO, os.fdopen(fd, "r+b" if writable else "rb", buffering=0))


def get_control_files(mock: bool = False, root: Union[str, Path] = SYSFS_GPIO_ROOT) -> ControlFiles:
    """Get the appropriate control-file provider.

    Args:
        mock: If True, use the in-memory provider. If False, use sysfs.
        root: GPIO class directory for the sysfs provider

    Returns:
        ControlFiles implementation (InMemoryControlFiles or SysfsControlFiles)
    """
    if mock:
        from sysfs_gpio.in_memory_control_files import (  # pylint: disable=import-outside-toplevel
            InMemoryControlFiles,
        )

        return InMemoryControlFiles()
    return SysfsControlFiles(root)
