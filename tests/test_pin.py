"""Tests for the pin lifecycle."""

import errno
import logging
import threading
import time
from pathlib import Path
from typing import BinaryIO, List

import pytest

from sysfs_gpio import attributes
from sysfs_gpio.attributes import Direction, Edge, LogicLevel, Value
from sysfs_gpio.control_files import SysfsControlFiles
from sysfs_gpio.errors import (
    ExportError,
    ExportTimeoutError,
    GpioError,
    InvalidConfigurationError,
    OpenError,
    ReadError,
    UnexpectedValueEncodingError,
    UnexportError,
    WriteError,
    WrongDirectionError,
)
from sysfs_gpio.in_memory_control_files import InMemoryControlFiles
from sysfs_gpio.pin import Pin


class FailingDirectionFiles(InMemoryControlFiles):
    """Control files whose direction attribute cannot be written."""

    def __init__(self, fail_unexport: bool = False) -> None:
        super().__init__()
        self.fail_unexport = fail_unexport

    def write(self, name: str, token: str) -> None:
        if name.endswith("/direction"):
            raise OSError(errno.EIO, "Input/output error", name)
        if name == "unexport" and self.fail_unexport:
            raise OSError(errno.EACCES, "Permission denied", name)
        super().write(name, token)


class FailingOpenFiles(InMemoryControlFiles):
    """Control files whose value file cannot be opened."""

    def open(self, name: str, writable: bool) -> BinaryIO:
        raise OSError(errno.EACCES, "Permission denied", name)


class BrokenProbeFiles(InMemoryControlFiles):
    """Control files whose writability probe fails with a non-GPIO error."""

    def is_writable(self, name: str) -> bool:
        raise RuntimeError("probe failed")


def test_new_input(control_files: InMemoryControlFiles) -> None:
    """Test that new_input exports the pin and configures it as input."""
    pin = Pin.new_input(17, files=control_files)

    assert pin.number == 17
    assert pin.direction == Direction.INPUT
    assert pin.is_open
    assert control_files.is_exported(17)
    assert control_files.read_attribute(17, "direction") == "in"
    assert control_files.open_handle_count(17) == 1


@pytest.mark.parametrize("init_high, expected", [(False, Value.INACTIVE), (True, Value.ACTIVE)])
def test_new_output_honours_initial_value(
    control_files: InMemoryControlFiles, init_high: bool, expected: Value
) -> None:
    """Test that the initial level is set before any explicit write."""
    pin = Pin.new_output(23, init_high, files=control_files)

    assert pin.direction == Direction.OUTPUT
    assert control_files.read_attribute(23, "direction") == "out"
    assert control_files.writes_to("gpio23/value") == []

    handle = attributes.open_value_handle(control_files, 23, writable=False)
    try:
        assert attributes.read_value(handle, 23) == expected
    finally:
        handle.close()


def test_high_low_sequence(control_files: InMemoryControlFiles) -> None:
    """Test that high/low writes show up in the value file."""
    pin = Pin.new_output(23, False, files=control_files)
    observed: List[str] = []

    for action in (pin.high, pin.low, pin.high, pin.high):
        action()
        observed.append(control_files.read_attribute(23, "value"))

    assert observed == ["1", "0", "1", "1"]
    assert control_files.writes_to("gpio23/value") == ["1", "0", "1", "1"]


def test_high_low_on_sysfs_tree(sysfs_tree: Path) -> None:
    """Test value writes against real files laid out like sysfs."""
    pin = Pin.new_output(5, False, files=SysfsControlFiles(sysfs_tree))
    value_file = sysfs_tree / "gpio5" / "value"

    pin.high()
    assert value_file.read_bytes()[:1] == b"1"
    pin.low()
    assert value_file.read_bytes()[:1] == b"0"
    pin.high()
    assert value_file.read_bytes()[:1] == b"1"

    assert (sysfs_tree / "export").read_text() == "5"
    assert (sysfs_tree / "gpio5" / "direction").read_text() == "low"

    pin.cleanup()
    assert (sysfs_tree / "unexport").read_text() == "5"


def test_read_input(control_files: InMemoryControlFiles) -> None:
    """Test reading an input pin follows the external level."""
    pin = Pin.new_input(17, files=control_files)

    assert pin.read() == Value.INACTIVE
    control_files.set_input(17, 1)
    assert pin.read() == Value.ACTIVE
    assert pin.read() == 1
    control_files.set_input(17, 0)
    assert pin.read() == Value.INACTIVE


def test_read_unexpected_encoding(control_files: InMemoryControlFiles) -> None:
    """Test that garbage in the value file is surfaced, not coerced."""
    pin = Pin.new_input(17, files=control_files)
    control_files.set_raw_value(17, b"?\n")

    with pytest.raises(UnexpectedValueEncodingError) as exc_info:
        pin.read()

    assert exc_info.value.raw == b"?"


def test_high_low_on_input_fails_without_writing(control_files: InMemoryControlFiles) -> None:
    """Test that output operations on an input pin raise WrongDirectionError."""
    pin = Pin.new_input(3, files=control_files)

    with pytest.raises(WrongDirectionError, match="not configured for output"):
        pin.high()
    with pytest.raises(WrongDirectionError):
        pin.low()

    assert control_files.writes_to("gpio3/value") == []


def test_read_on_output_fails(control_files: InMemoryControlFiles) -> None:
    """Test that reading an output pin raises WrongDirectionError."""
    pin = Pin.new_output(3, True, files=control_files)

    with pytest.raises(WrongDirectionError, match="not configured for input"):
        pin.read()


def test_protocol_read_does_not_disturb_output(control_files: InMemoryControlFiles) -> None:
    """Test that reading an output's value file leaves its state alone."""
    pin = Pin.new_output(3, True, files=control_files)

    handle = attributes.open_value_handle(control_files, 3, writable=False)
    assert attributes.read_value(handle, 3) == Value.ACTIVE
    handle.close()

    assert control_files.read_attribute(3, "direction") == "out"
    assert control_files.read_attribute(3, "value") == "1"
    pin.low()
    assert control_files.read_attribute(3, "value") == "0"


@pytest.mark.parametrize(
    "level, physical",
    [(LogicLevel.ACTIVE_HIGH, 1), (LogicLevel.ACTIVE_LOW, 0)],
)
def test_set_logic_level_inverts_output(
    control_files: InMemoryControlFiles, level: LogicLevel, physical: int
) -> None:
    """Test that active-low inverts the electrical level of a logic high."""
    pin = Pin.new_output(21, False, files=control_files)

    pin.set_logic_level(level)
    pin.high()

    assert control_files.read_attribute(21, "value") == "1"
    assert control_files.physical_level(21) == physical


def test_set_logic_level_on_input(control_files: InMemoryControlFiles) -> None:
    """Test that logic level configuration is allowed for inputs."""
    pin = Pin.new_input(22, files=control_files)
    control_files.set_input(22, 0)

    pin.set_logic_level(LogicLevel.ACTIVE_LOW)

    assert control_files.read_attribute(22, "active_low") == "1"
    assert pin.read() == Value.ACTIVE


def test_set_edge_trigger(control_files: InMemoryControlFiles) -> None:
    """Test configuring the edge trigger of an input pin."""
    pin = Pin.new_input(27, files=control_files)

    pin.set_edge_trigger(Edge.FALLING)

    assert control_files.read_attribute(27, "edge") == "falling"


def test_set_edge_trigger_on_output_fails(control_files: InMemoryControlFiles) -> None:
    """Test that edge triggers are refused for output pins."""
    pin = Pin.new_output(27, False, files=control_files)

    with pytest.raises(WrongDirectionError):
        pin.set_edge_trigger(Edge.BOTH)

    assert control_files.writes_to("gpio27/edge") == []


def test_close_is_idempotent(control_files: InMemoryControlFiles) -> None:
    """Test that closing twice releases the handle once and stays exported."""
    pin = Pin.new_output(23, False, files=control_files)

    pin.close()
    assert not pin.is_open
    assert control_files.open_handle_count(23) == 0

    pin.close()
    assert control_files.open_handle_count(23) == 0
    assert control_files.is_exported(23)
    assert pin.number == 23
    assert pin.direction == Direction.OUTPUT


def test_io_after_close_fails(control_files: InMemoryControlFiles) -> None:
    """Test that a closed pin refuses I/O."""
    output = Pin.new_output(23, False, files=control_files)
    source = Pin.new_input(24, files=control_files)
    output.close()
    source.close()

    with pytest.raises(WriteError, match="closed"):
        output.high()
    with pytest.raises(ReadError, match="closed"):
        source.read()


def test_cleanup_unexports(control_files: InMemoryControlFiles) -> None:
    """Test that cleanup closes and unexports the pin."""
    pin = Pin.new_input(17, files=control_files)

    pin.cleanup()

    assert not pin.is_open
    assert not control_files.is_exported(17)
    assert control_files.open_handle_count(17) == 0
    assert control_files.writes_to("unexport") == ["17"]


def test_cleanup_after_close(control_files: InMemoryControlFiles) -> None:
    """Test that cleanup still unexports an already closed pin."""
    pin = Pin.new_input(17, files=control_files)
    pin.close()

    pin.cleanup()

    assert not control_files.is_exported(17)


def test_cleanup_twice_reports_unexport_error(control_files: InMemoryControlFiles) -> None:
    """Test that a failed unexport is returned to the caller."""
    pin = Pin.new_input(17, files=control_files)
    pin.cleanup()

    with pytest.raises(UnexportError):
        pin.cleanup()


def test_context_manager_cleans_up(control_files: InMemoryControlFiles) -> None:
    """Test that leaving a with block unexports the pin."""
    with Pin.new_output(23, True, files=control_files) as pin:
        pin.low()
        assert control_files.is_exported(23)

    assert not control_files.is_exported(23)
    assert not pin.is_open


def test_repr(control_files: InMemoryControlFiles) -> None:
    """Test the pin representation."""
    pin = Pin.new_input(17, files=control_files)
    assert repr(pin) == "Pin(number=17, direction=INPUT, open)"
    pin.close()
    assert repr(pin) == "Pin(number=17, direction=INPUT, closed)"


@pytest.mark.parametrize("number", [-1, "17", 1.5, True])
def test_invalid_pin_number(control_files: InMemoryControlFiles, number: int) -> None:
    """Test that invalid pin numbers are rejected before exporting."""
    with pytest.raises(InvalidConfigurationError):
        Pin.new_input(number, files=control_files)

    assert control_files.writes_to("export") == []


def test_duplicate_construction_fails(control_files: InMemoryControlFiles) -> None:
    """Test that a second pin for the same number fails and leaves the first intact."""
    first = Pin.new_output(4, True, files=control_files)

    with pytest.raises(ExportError):
        Pin.new_input(4, files=control_files)

    assert control_files.is_exported(4)
    assert first.is_open
    first.low()
    assert control_files.read_attribute(4, "value") == "0"


def test_concurrent_construction_same_number(control_files: InMemoryControlFiles) -> None:
    """Test that only one of two concurrent exports of a pin succeeds."""
    barrier = threading.Barrier(2)
    pins: List[Pin] = []
    errors: List[Exception] = []
    lock = threading.Lock()

    def construct() -> None:
        barrier.wait()
        try:
            pin = Pin.new_output(4, False, files=control_files)
            with lock:
                pins.append(pin)
        except GpioError as e:
            with lock:
                errors.append(e)

    threads = [threading.Thread(target=construct) for _ in range(2)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert len(pins) == 1
    assert len(errors) == 1
    assert isinstance(errors[0], ExportError)
    assert control_files.is_exported(4)


def test_distinct_pins_are_independent(control_files: InMemoryControlFiles) -> None:
    """Test that pins on different numbers can be driven from separate threads."""
    outputs = [Pin.new_output(n, False, files=control_files) for n in range(10, 15)]
    errors: List[Exception] = []

    def toggle(pin: Pin) -> None:
        try:
            for i in range(50):
                if i % 2:
                    pin.high()
                else:
                    pin.low()
        except GpioError as e:
            errors.append(e)

    threads = [threading.Thread(target=toggle, args=(pin,)) for pin in outputs]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert len(errors) == 0
    for n in range(10, 15):
        assert control_files.read_attribute(n, "value") == "1"


def test_construction_waits_for_export_latency() -> None:
    """Test that construction waits until udev has made the pin configurable."""
    files = InMemoryControlFiles(export_latency=0.05)

    start = time.monotonic()
    pin = Pin.new_input(6, files=files)

    assert time.monotonic() - start >= 0.04
    assert pin.is_open


def test_construction_timeout_unexports(control_files: InMemoryControlFiles) -> None:
    """Test that a pin that never becomes configurable is released again."""
    control_files.block_configuration(9)

    start = time.monotonic()
    with pytest.raises(ExportTimeoutError):
        Pin.new_input(9, files=control_files)
    elapsed = time.monotonic() - start

    assert 1.0 <= elapsed < 1.5
    assert not control_files.is_exported(9)
    assert control_files.writes_to("unexport") == ["9"]


def test_construction_custom_timeout(control_files: InMemoryControlFiles) -> None:
    """Test that a shorter timeout bounds the wait."""
    control_files.block_configuration(9)

    start = time.monotonic()
    with pytest.raises(ExportTimeoutError) as exc_info:
        Pin.new_output(9, True, files=control_files, timeout=0.1, poll_interval=0.02)

    assert time.monotonic() - start < 0.5
    assert exc_info.value.timeout == 0.1


def test_direction_failure_unexports() -> None:
    """Test that a failed direction write aborts construction and unexports."""
    files = FailingDirectionFiles()

    with pytest.raises(WriteError) as exc_info:
        Pin.new_input(7, files=files)

    assert exc_info.value.pin == 7
    assert not files.is_exported(7)
    assert files.writes_to("unexport") == ["7"]


def test_rollback_failure_keeps_original_error(caplog: pytest.LogCaptureFixture) -> None:
    """Test that a failed rollback unexport is logged and the first error raised."""
    files = FailingDirectionFiles(fail_unexport=True)

    with caplog.at_level(logging.WARNING, logger="sysfs_gpio.pin"):
        with pytest.raises(WriteError):
            Pin.new_output(7, False, files=files)

    assert "Failed to unexport pin 7" in caplog.text
    assert files.is_exported(7)


def test_export_failure_does_not_unexport() -> None:
    """Test that a refused export does not touch the unexport file."""
    files = InMemoryControlFiles(available_pins=[1, 2])

    with pytest.raises(ExportError):
        Pin.new_input(3, files=files)

    assert files.writes_to("unexport") == []


def test_open_failure_unexports() -> None:
    """Test that a failed value-file open aborts construction and unexports."""
    files = FailingOpenFiles()

    with pytest.raises(OpenError) as exc_info:
        Pin.new_output(7, True, files=files)

    assert exc_info.value.pin == 7
    assert not files.is_exported(7)
    assert files.writes_to("unexport") == ["7"]
    assert files.open_handle_count(7) == 0


def test_non_gpio_error_during_construction_unexports() -> None:
    """Test that any exception after export still releases the pin."""
    files = BrokenProbeFiles()

    with pytest.raises(RuntimeError, match="probe failed"):
        Pin.new_input(8, files=files)

    assert not files.is_exported(8)
    assert files.writes_to("unexport") == ["8"]


def test_invalid_poll_interval_unexports(control_files: InMemoryControlFiles) -> None:
    """Test that a negative poll interval is rejected and the pin released."""
    control_files.block_configuration(9)

    with pytest.raises(InvalidConfigurationError, match="poll interval"):
        Pin.new_input(9, files=control_files, timeout=0.1, poll_interval=-0.01)

    assert not control_files.is_exported(9)
    Pin.new_input(10, files=control_files).cleanup()


def test_context_manager_keeps_body_error(
    control_files: InMemoryControlFiles, caplog: pytest.LogCaptureFixture
) -> None:
    """Test that a failing unexport on exit does not hide the error from the block."""
    with caplog.at_level(logging.WARNING, logger="sysfs_gpio.pin"):
        with pytest.raises(RuntimeError, match="boom"):
            with Pin.new_input(17, files=control_files) as pin:
                pin.cleanup()
                raise RuntimeError("boom")

    assert "Failed to unexport pin 17 while handling RuntimeError" in caplog.text


def test_context_manager_reports_unexport_error(control_files: InMemoryControlFiles) -> None:
    """Test that an unexport failure surfaces when the block itself succeeded."""
    with pytest.raises(UnexportError):
        with Pin.new_input(17, files=control_files) as pin:
            pin.cleanup()
