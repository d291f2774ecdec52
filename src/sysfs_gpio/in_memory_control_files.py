"""In-memory GPIO control files for testing without hardware.

InMemoryControlFiles mimics the kernel side of the sysfs GPIO interface:
exporting creates a line whose attribute files become writable after a
configurable latency, tokens outside each file's vocabulary are rejected
with EINVAL, a second export of the same line fails with EBUSY, and the
value file reports the physical level inverted by active_low.
"""

import errno
import io
import logging
import os
import re
import threading
import time
from typing import BinaryIO, Dict, Iterable, List, Optional, Set, Tuple, cast

from sysfs_gpio.control_files import (
    ACTIVE_LOW_ATTRIBUTE,
    DIRECTION_ATTRIBUTE,
    EDGE_ATTRIBUTE,
    EXPORT_FILE,
    UNEXPORT_FILE,
    VALUE_ATTRIBUTE,
    ControlFiles,
)

logger = logging.getLogger(__name__)

_ATTRIBUTE_NAME = re.compile(r"^gpio(\d+)/(\w+)$")
_DIRECTION_TOKENS = ("in", "out", "low", "high")
_EDGE_TOKENS = ("none", "rising", "falling", "both")
_ATTRIBUTES = (DIRECTION_ATTRIBUTE, EDGE_ATTRIBUTE, ACTIVE_LOW_ATTRIBUTE, VALUE_ATTRIBUTE)


def _os_error(code: int, name: str) -> OSError:
    return OSError(code, os.strerror(code), name)


def _parse_int(token: str, name: str) -> int:
    try:
        return int(token.strip())
    except ValueError as e:
        raise _os_error(errno.EINVAL, name) from e


class _Line:  # pylint: disable=too-few-public-methods
    """State of one exported GPIO line."""

    def __init__(self, configurable_at: float) -> None:
        self.direction = "in"
        self.edge = "none"
        self.active_low = 0
        self.level = 0  # physical electrical level
        self.raw_value: Optional[bytes] = None
        self.configurable_at = configurable_at


class InMemoryControlFiles(ControlFiles):  # pylint: disable=too-many-instance-attributes
    """Mock control-file tree implementing the sysfs GPIO token contract."""

    def __init__(
        self, export_latency: float = 0.0, available_pins: Optional[Iterable[int]] = None
    ) -> None:
        """Initialize the in-memory tree.

        Args:
            export_latency: Seconds between export and the attribute files
                becoming writable
            available_pins: Pins the kernel will export (None means any)
        """
        self._export_latency = export_latency
        self._available: Optional[Set[int]] = (
            set(available_pins) if available_pins is not None else None
        )
        self._lines: Dict[int, _Line] = {}
        self._blocked: Set[int] = set()
        self._open_handles: Dict[int, int] = {}
        self._write_log: List[Tuple[str, str]] = []
        self._lock = threading.Lock()
        logger.info("InMemoryControlFiles initialized - no hardware required")

    # ControlFiles interface

    def write(self, name: str, token: str) -> None:
        with self._lock:
            self._write_log.append((name, token))
            if name == EXPORT_FILE:
                self._export(_parse_int(token, name))
            elif name == UNEXPORT_FILE:
                self._unexport(_parse_int(token, name))
            else:
                pin, attribute = self._parse_name(name)
                self._store(self._configurable_line(pin, name), attribute, token, name)

    def is_writable(self, name: str) -> bool:
        if name in (EXPORT_FILE, UNEXPORT_FILE):
            return True
        match = _ATTRIBUTE_NAME.match(name)
        if match is None or match.group(2) not in _ATTRIBUTES:
            return False
        with self._lock:
            line = self._lines.get(int(match.group(1)))
            return line is not None and self._is_configurable(int(match.group(1)), line)

    def open(self, name: str, writable: bool) -> BinaryIO:
        with self._lock:
            pin, _ = self._parse_name(name)
            self._configurable_line(pin, name)
            self._open_handles[pin] = self._open_handles.get(pin, 0) + 1
        return cast(BinaryIO, _InMemoryFile(self, name, pin, writable))

    # Mock-specific methods for testing

    def block_configuration(self, pin: int) -> None:
        """Keep a pin's attribute files unwritable forever (for testing)."""
        with self._lock:
            self._blocked.add(pin)

    def is_exported(self, pin: int) -> bool:
        """Check whether a pin is currently exported."""
        with self._lock:
            return pin in self._lines

    def set_input(self, pin: int, level: int) -> None:
        """Drive the physical level of an exported pin (for testing).

        This simulates external hardware changing the pin state.
        """
        with self._lock:
            self._exported_line(pin).level = 1 if level else 0

    def set_raw_value(self, pin: int, raw: bytes) -> None:
        """Replace the value file content verbatim (for testing driver anomalies)."""
        with self._lock:
            self._exported_line(pin).raw_value = raw

    def physical_level(self, pin: int) -> int:
        """Get the electrical level of a pin, independent of active_low."""
        with self._lock:
            return self._exported_line(pin).level

    def read_attribute(self, pin: int, attribute: str) -> str:
        """Get the current content of a pin attribute file without a newline."""
        with self._lock:
            return self._content(self._exported_line(pin), attribute).decode("ascii").strip()

    def open_handle_count(self, pin: int) -> int:
        """Get the number of open handles on a pin's attribute files."""
        with self._lock:
            return self._open_handles.get(pin, 0)

    def writes_to(self, name: str) -> List[str]:
        """Get every token written to a control file, in order."""
        with self._lock:
            return [token for written, token in self._write_log if written == name]

    # Internal helpers, called with the lock held unless noted

    def _export(self, pin: int) -> None:
        if pin < 0 or (self._available is not None and pin not in self._available):
            raise _os_error(errno.EINVAL, EXPORT_FILE)
        if pin in self._lines:
            raise _os_error(errno.EBUSY, EXPORT_FILE)
        self._lines[pin] = _Line(time.monotonic() + self._export_latency)
        logger.debug("Mock export: pin=%d", pin)

    def _unexport(self, pin: int) -> None:
        if pin not in self._lines:
            raise _os_error(errno.EINVAL, UNEXPORT_FILE)
        del self._lines[pin]
        logger.debug("Mock unexport: pin=%d", pin)

    def _parse_name(self, name: str) -> Tuple[int, str]:
        match = _ATTRIBUTE_NAME.match(name)
        if match is None or match.group(2) not in _ATTRIBUTES:
            raise _os_error(errno.ENOENT, name)
        return int(match.group(1)), match.group(2)

    def _exported_line(self, pin: int) -> _Line:
        line = self._lines.get(pin)
        if line is None:
            raise RuntimeError(f"Pin {pin} not exported")
        return line

    def _is_configurable(self, pin: int, line: _Line) -> bool:
        return pin not in self._blocked and time.monotonic() >= line.configurable_at

    def _configurable_line(self, pin: int, name: str) -> _Line:
        line = self._lines.get(pin)
        if line is None:
            raise _os_error(errno.ENOENT, name)
        if not self._is_configurable(pin, line):
            raise _os_error(errno.EACCES, name)
        return line

    def _store(self, line: _Line, attribute: str, token: str, name: str) -> None:
        if attribute == DIRECTION_ATTRIBUTE:
            if token not in _DIRECTION_TOKENS:
                raise _os_error(errno.EINVAL, name)
            if token == "in":
                line.direction = "in"
            else:
                line.direction = "out"
                line.level = 1 if token == "high" else 0
        elif attribute == EDGE_ATTRIBUTE:
            if token not in _EDGE_TOKENS:
                raise _os_error(errno.EINVAL, name)
            line.edge = token
        elif attribute == ACTIVE_LOW_ATTRIBUTE:
            line.active_low = 1 if _parse_int(token, name) else 0
        else:
            if line.direction != "out":
                raise _os_error(errno.EPERM, name)
            logical = 1 if _parse_int(token, name) else 0
            line.level = logical ^ line.active_low
            line.raw_value = None

    def _content(self, line: _Line, attribute: str) -> bytes:
        if attribute == DIRECTION_ATTRIBUTE:
            return f"{line.direction}\n".encode("ascii")
        if attribute == EDGE_ATTRIBUTE:
            return f"{line.edge}\n".encode("ascii")
        if attribute == ACTIVE_LOW_ATTRIBUTE:
            return f"{line.active_low}\n".encode("ascii")
        if line.raw_value is not None:
            return line.raw_value
        return f"{line.level ^ line.active_low}\n".encode("ascii")

    def _read_content(self, name: str) -> bytes:
        """Read a whole attribute file (takes the lock)."""
        with self._lock:
            pin, attribute = self._parse_name(name)
            line = self._lines.get(pin)
            if line is None:
                raise _os_error(errno.ENODEV, name)
            return self._content(line, attribute)

    def _release(self, pin: int) -> None:
        """Account for a closed handle (takes the lock)."""
        with self._lock:
            self._open_handles[pin] = max(0, self._open_handles.get(pin, 0) - 1)


class _InMemoryFile(io.RawIOBase):
    """Unbuffered file object over one in-memory attribute file."""

    def __init__(self, owner: InMemoryControlFiles, name: str, pin: int, writable: bool) -> None:
        super().__init__()
        self._owner = owner
        self._name = name
        self._pin = pin
        self._writable = writable
        self._position = 0

    def readable(self) -> bool:
        return True

    def writable(self) -> bool:
        return self._writable

    def seekable(self) -> bool:
        return True

    def seek(self, offset: int, whence: int = io.SEEK_SET) -> int:
        if self.closed:
            raise ValueError("I/O operation on closed file")
        if whence == io.SEEK_SET:
            self._position = offset
        elif whence == io.SEEK_CUR:
            self._position += offset
        else:
            content = self._owner._read_content(self._name)  # pylint: disable=protected-access
            self._position = len(content) + offset
        return self._position

    def tell(self) -> int:
        return self._position

    def readinto(self, buffer) -> int:  # type: ignore[no-untyped-def]
        if self.closed:
            raise ValueError("I/O operation on closed file")
        content = self._owner._read_content(self._name)  # pylint: disable=protected-access
        data = content[self._position :]
        count = min(len(buffer), len(data))
        buffer[:count] = data[:count]
        self._position += count
        return count

    def write(self, data) -> int:  # type: ignore[no-untyped-def]
        if self.closed:
            raise ValueError("I/O operation on closed file")
        if not self._writable:
            raise io.UnsupportedOperation("File not open for writing")
        payload = bytes(data)
        self._owner.write(self._name, payload.decode("ascii"))
        self._position += len(payload)
        return len(payload)

    def close(self) -> None:
        if not self.closed:
            self._owner._release(self._pin)  # pylint: disable=protected-access
        super().close()
