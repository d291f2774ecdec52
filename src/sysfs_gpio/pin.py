"""Pin lifecycle management on top of the sysfs attribute protocol.

A Pin owns one exported GPIO line, its direction and an open handle to its
value file. Pins are built with Pin.new_input() or Pin.new_output(), which
export the line, wait for udev to make it configurable, set the direction
and open the value file. close() releases the handle; cleanup() also
returns the line to the kernel.

A Pin is not thread-safe. Use one thread (or one lock) per physical pin.
"""

import logging
from types import TracebackType
from typing import BinaryIO, Optional, Type

from sysfs_gpio import attributes
from sysfs_gpio.attributes import EXPORT_TIMEOUT, POLL_INTERVAL, Direction, Edge, LogicLevel, Value
from sysfs_gpio.control_files import ControlFiles, SysfsControlFiles
from sysfs_gpio.errors import (
    InvalidConfigurationError,
    ReadError,
    UnexportError,
    WriteError,
    WrongDirectionError,
)

logger = logging.getLogger(__name__)


class Pin:
    """A single exported GPIO pin, used either for reading or for writing."""

    def __init__(self, number: int, direction: Direction, files: ControlFiles) -> None:
        """Initialize an unopened pin.

        Use new_input() or new_output() instead of calling this directly.

        Args:
            number: Kernel GPIO line number
            direction: Direction the pin is configured with
            files: Control-file provider the pin talks to
        """
        self._number = number
        self._direction = direction
        self._files = files
        self._value_file: Optional[BinaryIO] = None

    @classmethod
    def new_input(
        cls,
        number: int,
        files: Optional[ControlFiles] = None,
        timeout: float = EXPORT_TIMEOUT,
        poll_interval: float = POLL_INTERVAL,
    ) -> "Pin":
        """Export a pin and open it for reading.

        Args:
            number: Kernel GPIO line number
            files: Control-file provider (default: /sys/class/gpio)
            timeout: Seconds to wait for the exported pin to become configurable
            poll_interval: Seconds between configurability probes

        Returns:
            Pin ready for read()

        Raises:
            GpioError: If any construction step fails. The pin is unexported
                again if the export itself succeeded.
        """
        return cls._construct(number, Direction.INPUT, 0, files, timeout, poll_interval)

    @classmethod
    def new_output(
        cls,
        number: int,
        init_high: bool,
        files: Optional[ControlFiles] = None,
        timeout: float = EXPORT_TIMEOUT,
        poll_interval: float = POLL_INTERVAL,
    ) -> "Pin":
        """Export a pin and open it for writing.

        Args:
            number: Kernel GPIO line number
            init_high: Drive the pin high (True) or low (False) from the start
            files: Control-file provider (default: /sys/class/gpio)
            timeout: Seconds to wait for the exported pin to become configurable
            poll_interval: Seconds between configurability probes

        Returns:
            Pin ready for high() and low()

        Raises:
            GpioError: If any construction step fails. The pin is unexported
                again if the export itself succeeded.
        """
        initial_value = 1 if init_high else 0
        return cls._construct(
            number, Direction.OUTPUT, initial_value, files, timeout, poll_interval
        )

    @classmethod
    def _construct(  # pylint: disable=too-many-arguments,too-many-positional-arguments
        cls,
        number: int,
        direction: Direction,
        initial_value: int,
        files: Optional[ControlFiles],
        timeout: float,
        poll_interval: float,
    ) -> "Pin":
        if isinstance(number, bool) or not isinstance(number, int) or number < 0:
            raise InvalidConfigurationError(f"Invalid pin number: {number!r}", operation="export")
        if files is None:
            files = SysfsControlFiles()

        attributes.export(files, number)
        pin = cls(number, direction, files)
        try:
            attributes.wait_until_configurable(files, number, timeout, poll_interval)
            attributes.set_direction(files, number, direction, initial_value)
            writable = direction == Direction.OUTPUT
            pin._value_file = attributes.open_value_handle(files, number, writable)
        except BaseException:
            # Covers KeyboardInterrupt during the wait and provider-specific errors
            pin._abort_construction()
            raise

        logger.debug("Pin %d ready as %s", number, direction.name.lower())
        return pin

    def _abort_construction(self) -> None:
        """Undo a partially completed construction after export succeeded."""
        self.close()
        try:
            attributes.unexport(self._files, self._number)
        except UnexportError as e:
            logger.warning(
                "Failed to unexport pin %d after aborted construction: %s", self._number, e
            )

    @property
    def number(self) -> int:
        """Kernel GPIO line number."""
        return self._number

    @property
    def direction(self) -> Direction:
        """Direction the pin was constructed with."""
        return self._direction

    @property
    def is_open(self) -> bool:
        """True while the value file handle is held."""
        return self._value_file is not None

    def close(self) -> None:
        """Release the value file handle.

        The pin stays exported; use cleanup() to unexport it. Closing an
        already closed pin does nothing.
        """
        if self._value_file is not None:
            self._value_file.close()
            self._value_file = None
            logger.debug("Closed pin %d", self._number)

    def cleanup(self) -> None:
        """Close the pin and return it to the kernel.

        The pin must not be used afterwards.

        Raises:
            UnexportError: If the unexport write fails
        """
        self.close()
        attributes.unexport(self._files, self._number)

    def read(self) -> Value:
        """Read the value of an input pin as reported by the kernel.

        Raises:
            WrongDirectionError: If the pin is an output
            ReadError: If the pin is closed or the read fails
            UnexpectedValueEncodingError: If the value file holds garbage
        """
        if self._direction != Direction.INPUT:
            raise WrongDirectionError(
                f"Pin {self._number} is not configured for input",
                pin=self._number,
                operation="read",
            )
        if self._value_file is None:
            raise ReadError(f"Pin {self._number} is closed", pin=self._number, operation="read")
        return attributes.read_value(self._value_file, self._number)

    def high(self) -> None:
        """Set an output pin to logic high."""
        self._write(Value.ACTIVE)

    def low(self) -> None:
        """Set an output pin to logic low."""
        self._write(Value.INACTIVE)

    def _write(self, value: Value) -> None:
        if self._direction != Direction.OUTPUT:
            raise WrongDirectionError(
                f"Pin {self._number} is not configured for output",
                pin=self._number,
                operation="write",
            )
        if self._value_file is None:
            raise WriteError(f"Pin {self._number} is closed", pin=self._number, operation="write")
        attributes.write_value(self._value_file, value, self._number)

    def set_logic_level(self, level: LogicLevel) -> None:
        """Set the pin's polarity, either active high or active low.

        Allowed for inputs and outputs alike.
        """
        attributes.set_logic_level(self._files, self._number, level)

    def set_edge_trigger(self, edge: Edge) -> None:
        """Select which transitions on an input pin are reported as events.

        Raises:
            WrongDirectionError: If the pin is an output
        """
        if self._direction != Direction.INPUT:
            raise WrongDirectionError(
                f"Pin {self._number} is not configured for input",
                pin=self._number,
                operation="set edge",
            )
        attributes.set_edge_trigger(self._files, self._number, edge)

    def __enter__(self) -> "Pin":
        return self

    def __exit__(
        self,
        exc_type: Optional[Type[BaseException]],
        exc_value: Optional[BaseException],
        traceback: Optional[TracebackType],
    ) -> None:
        if exc_type is None:
            self.cleanup()
            return
        try:
            self.cleanup()
        except UnexportError as e:
            logger.warning(
                "Failed to unexport pin %d while handling %s: %s",
                self._number,
                exc_type.__name__,
                e,
            )

    def __repr__(self) -> str:
        state = "open" if self.is_open else "closed"
        return f"Pin(number={self._number}, direction={self._direction.name}, {state})"
