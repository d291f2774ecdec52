"""Line-level GPIO control through the Linux sysfs interface."""

from .attributes import Direction, Edge, LogicLevel, Value
from .control_files import ControlFiles, SysfsControlFiles, get_control_files
from .errors import (
    ExportError,
    ExportTimeoutError,
    GpioError,
    InvalidConfigurationError,
    InvalidValueError,
    OpenError,
    ReadError,
    UnexpectedValueEncodingError,
    UnexportError,
    WriteError,
    WrongDirectionError,
)
from .in_memory_control_files import InMemoryControlFiles
from .pin import Pin

__all__ = [
    "Pin",
    "Direction",
    "Edge",
    "LogicLevel",
    "Value",
    "ControlFiles",
    "SysfsControlFiles",
    "InMemoryControlFiles",
    "get_control_files",
    "GpioError",
    "ExportError",
    "ExportTimeoutError",
    "UnexportError",
    "OpenError",
    "InvalidConfigurationError",
    "InvalidValueError",
    "ReadError",
    "WriteError",
    "UnexpectedValueEncodingError",
    "WrongDirectionError",
]
