"""Attribute protocol for the sysfs GPIO control files.

Stateless operations that write fixed textual tokens into a pin's control
files (export/unexport, direction, edge, active_low) and read or write the
single ASCII digit held by its value file. Each attribute operation is one
open-write-close against a ControlFiles provider; nothing is retained.
"""

import logging
import time
from enum import IntEnum
from typing import BinaryIO, Optional

from sysfs_gpio.control_files import (
    ACTIVE_LOW_ATTRIBUTE,
    DIRECTION_ATTRIBUTE,
    EDGE_ATTRIBUTE,
    EXPORT_FILE,
    UNEXPORT_FILE,
    VALUE_ATTRIBUTE,
    ControlFiles,
    attribute_name,
)
from sysfs_gpio.errors import (
    ExportError,
    ExportTimeoutError,
    InvalidConfigurationError,
    InvalidValueError,
    OpenError,
    ReadError,
    UnexpectedValueEncodingError,
    UnexportError,
    WriteError,
)

logger = logging.getLogger(__name__)

# Upper bound on the wait between export and the direction file becoming writable
EXPORT_TIMEOUT = 1.0
# Interval between writability probes
POLL_INTERVAL = 0.01


class Direction(IntEnum):
    """Pin directions."""

    INPUT = 0
    OUTPUT = 1


class Edge(IntEnum):
    """Edge trigger modes."""

    NONE = 0
    RISING = 1
    FALLING = 2
    BOTH = 3


class LogicLevel(IntEnum):
    """Pin polarity."""

    ACTIVE_HIGH = 0
    ACTIVE_LOW = 1


class Value(IntEnum):
    """Logic values held by a value file."""

    INACTIVE = 0
    ACTIVE = 1


_EDGE_TOKENS = {
    Edge.NONE: "none",
    Edge.RISING: "rising",
    Edge.FALLING: "falling",
    Edge.BOTH: "both",
}

_LOGIC_LEVEL_TOKENS = {
    LogicLevel.ACTIVE_HIGH: "0",
    LogicLevel.ACTIVE_LOW: "1",
}

_VALUE_BYTES = {b"0": Value.INACTIVE, b"1": Value.ACTIVE}


def _is_int(value: object) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def export(files: ControlFiles, pin: int) -> None:
    """Request kernel ownership of a pin.

    The per-pin control files are created asynchronously; call
    wait_until_configurable() before touching them.

    Args:
        files: Control-file provider
        pin: Kernel GPIO line number

    Raises:
        ExportError: If the export file cannot be opened or rejects the write
            (already exported, permission denied, line unavailable)
    """
    try:
        files.write(EXPORT_FILE, str(pin))
    except OSError as e:
        raise ExportError(f"Failed to export pin {pin}: {e}", pin=pin, operation="export") from e
    logger.debug("Exported pin %d", pin)


def wait_until_configurable(
    files: ControlFiles,
    pin: int,
    timeout: float = EXPORT_TIMEOUT,
    interval: float = POLL_INTERVAL,
) -> None:
    """Block until an exported pin's direction file is writable.

    Udev applies permissions to freshly exported pins concurrently with the
    kernel, so the file may exist without being writable for a short while.
    The file is probed every ``interval`` seconds; the thread sleeps between
    probes.

    Args:
        files: Control-file provider
        pin: Kernel GPIO line number
        timeout: Seconds to wait before giving up
        interval: Seconds between probes

    Raises:
        ExportTimeoutError: If the file is still not writable after ``timeout``
        InvalidConfigurationError: If ``interval`` is not positive
    """
    if isinstance(interval, bool) or not isinstance(interval, (int, float)) or interval <= 0:
        raise InvalidConfigurationError(
            f"Invalid poll interval for pin {pin}: {interval!r}", pin=pin, operation="export"
        )
    name = attribute_name(pin, DIRECTION_ATTRIBUTE)
    start = time.monotonic()
    while True:
        if files.is_writable(name):
            logger.debug("Pin %d configurable after %.3fs", pin, time.monotonic() - start)
            return
        elapsed = time.monotonic() - start
        if elapsed >= timeout:
            raise ExportTimeoutError(pin, timeout, elapsed)
        time.sleep(min(interval, timeout - elapsed))


def unexport(files: ControlFiles, pin: int) -> None:
    """Return a pin to the kernel.

    Does not wait for the per-pin files to disappear.

    Raises:
        UnexportError: If the unexport file cannot be opened or rejects the write
    """
    try:
        files.write(UNEXPORT_FILE, str(pin))
    except OSError as e:
        raise UnexportError(
            f"Failed to unexport pin {pin}: {e}", pin=pin, operation="unexport"
        ) from e
    logger.debug("Unexported pin %d", pin)


def _write_attribute(
    files: ControlFiles, pin: int, attribute: str, token: str, operation: str
) -> None:
    try:
        files.write(attribute_name(pin, attribute), token)
    except OSError as e:
        raise WriteError(
            f"Failed to write {token!r} to pin {pin} {attribute} file: {e}",
            pin=pin,
            operation=operation,
        ) from e
    logger.debug("Pin %d %s set to %s", pin, attribute, token)


def set_direction(
    files: ControlFiles, pin: int, direction: Direction, initial_value: int = 0
) -> None:
    """Configure a pin's direction.

    Outputs are configured with "low" or "high" so the kernel sets the
    direction and the initial level in one step and the line never floats.

    Args:
        files: Control-file provider
        pin: Kernel GPIO line number
        direction: Direction.INPUT or Direction.OUTPUT
        initial_value: Initial output level, 0 or 1 (ignored for inputs)

    Raises:
        InvalidConfigurationError: For any other direction/value combination
        WriteError: If the direction file cannot be written
    """
    if direction == Direction.INPUT:
        token = "in"
    elif direction == Direction.OUTPUT and initial_value in (0, 1):
        token = "high" if initial_value == 1 else "low"
    else:
        raise InvalidConfigurationError(
            f"Invalid direction or initial value for pin {pin}: {direction!r}, {initial_value!r}",
            pin=pin,
            operation="set direction",
        )
    _write_attribute(files, pin, DIRECTION_ATTRIBUTE, token, "set direction")


def set_edge_trigger(files: ControlFiles, pin: int, edge: Edge) -> None:
    """Select which transitions on an input pin are reported as events.

    Raises:
        InvalidConfigurationError: If ``edge`` is not an Edge
        WriteError: If the edge file cannot be written
    """
    token = _EDGE_TOKENS.get(edge) if _is_int(edge) else None
    if token is None:
        raise InvalidConfigurationError(
            f"Invalid edge for pin {pin}: {edge!r}", pin=pin, operation="set edge"
        )
    _write_attribute(files, pin, EDGE_ATTRIBUTE, token, "set edge")


def set_logic_level(files: ControlFiles, pin: int, level: LogicLevel) -> None:
    """Set a pin's polarity.

    With LogicLevel.ACTIVE_LOW the kernel inverts every subsequent read and
    write of the value file.

    Raises:
        InvalidConfigurationError: If ``level`` is not a LogicLevel
        WriteError: If the active_low file cannot be written
    """
    token = _LOGIC_LEVEL_TOKENS.get(level) if _is_int(level) else None
    if token is None:
        raise InvalidConfigurationError(
            f"Invalid logic level for pin {pin}: {level!r}", pin=pin, operation="set logic level"
        )
    _write_attribute(files, pin, ACTIVE_LOW_ATTRIBUTE, token, "set logic level")


def open_value_handle(files: ControlFiles, pin: int, writable: bool) -> BinaryIO:
    """Open a pin's value file.

    Args:
        files: Control-file provider
        pin: Kernel GPIO line number
        writable: Open read-write for outputs, read-only otherwise

    Returns:
        Unbuffered binary file object owned by the caller

    Raises:
        OpenError: If the value file cannot be opened
    """
    try:
        handle = files.open(attribute_name(pin, VALUE_ATTRIBUTE), writable)
    except OSError as e:
        raise OpenError(
            f"Failed to open pin {pin} value file: {e}", pin=pin, operation="open"
        ) from e
    logger.debug("Opened pin %d value file (%s)", pin, "read-write" if writable else "read-only")
    return handle


def read_value(handle: BinaryIO, pin: Optional[int] = None) -> Value:
    """Read the logic value from an open value file.

    Seeks to the start of the file and reads exactly one byte.

    Args:
        handle: Open value file
        pin: Pin number, used for error context only

    Returns:
        Value.INACTIVE or Value.ACTIVE

    Raises:
        ReadError: If the read fails
        UnexpectedValueEncodingError: If the byte is not '0' or '1'
    """
    try:
        handle.seek(0)
        raw = handle.read(1)
    except (OSError, ValueError) as e:
        raise ReadError(f"Failed to read pin {pin} value: {e}", pin=pin, operation="read") from e
    value = _VALUE_BYTES.get(raw or b"")
    if value is None:
        raise UnexpectedValueEncodingError(pin, raw or b"")
    return value


def write_value(handle: BinaryIO, value: int, pin: Optional[int] = None) -> None:
    """Write a logic value to an open value file.

    Args:
        handle: Value file opened read-write
        value: 0 or 1
        pin: Pin number, used for error context only

    Raises:
        InvalidValueError: If ``value`` is not 0 or 1
        WriteError: If the write fails
    """
    if value not in (0, 1):
        raise InvalidValueError(
            f"Invalid output value for pin {pin}: {value!r}", pin=pin, operation="write"
        )
    try:
        handle.seek(0)
        handle.write(b"1" if value == 1 else b"0")
    except (OSError, ValueError) as e:
        raise WriteError(f"Failed to write pin {pin} value: {e}", pin=pin, operation="write") from e
