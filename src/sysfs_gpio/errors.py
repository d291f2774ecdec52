"""Exceptions raised by the sysfs GPIO layer.

Every exception carries the pin number and the operation that failed so
callers can diagnose a failure without re-deriving state. Underlying OS
errors are chained with ``raise ... from``.
"""

from typing import Optional


class GpioError(Exception):
    """Base class for all GPIO errors."""

    def __init__(
        self, message: str, pin: Optional[int] = None, operation: Optional[str] = None
    ) -> None:
        """Initialize the error.

        Args:
            message: Human readable description
            pin: Pin number the operation targeted, if known
            operation: Name of the attempted operation (e.g. "export")
        """
        super().__init__(message)
        self.pin = pin
        self.operation = operation


class ExportError(GpioError):
    """Raised when the kernel refuses to export a pin."""


class ExportTimeoutError(GpioError):
    """Raised when an exported pin does not become configurable in time."""

    def __init__(self, pin: int, timeout: float, elapsed: float) -> None:
        super().__init__(
            f"Exporting pin {pin} took more than {timeout:.3f}s (waited {elapsed:.3f}s)",
            pin=pin,
            operation="export",
        )
        self.timeout = timeout
        self.elapsed = elapsed


class UnexportError(GpioError):
    """Raised when a pin cannot be returned to the kernel."""


class OpenError(GpioError):
    """Raised when a pin's value file cannot be opened."""


class InvalidConfigurationError(GpioError, ValueError):
    """Raised for a direction, edge, level or value outside the legal token set."""


class InvalidValueError(InvalidConfigurationError):
    """Raised when writing anything other than 0 or 1 to a value file."""


class ReadError(GpioError):
    """Raised when reading a pin's value file fails."""


class WriteError(GpioError):
    """Raised when writing a value or an attribute token fails."""


class UnexpectedValueEncodingError(GpioError):
    """Raised when the value file holds something other than '0' or '1'."""

    def __init__(self, pin: Optional[int], raw: bytes) -> None:
        super().__init__(
            f"Read inconsistent value from pin {pin} value file: {raw!r}", pin=pin, operation="read"
        )
        self.raw = raw


class WrongDirectionError(GpioError):
    """Raised when an operation does not match the pin's configured direction."""
