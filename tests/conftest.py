"""Shared pytest fixtures for all tests."""

from pathlib import Path

import pytest

from sysfs_gpio import get_control_files
from sysfs_gpio.in_memory_control_files import InMemoryControlFiles


@pytest.fixture
def control_files() -> InMemoryControlFiles:
    """Provide an in-memory control-file tree for tests.

    Returns:
        InMemoryControlFiles instance with no export latency
    """
    files = get_control_files(mock=True)
    assert isinstance(files, InMemoryControlFiles)
    return files


@pytest.fixture
def sysfs_tree(tmp_path: Path) -> Path:
    """Provide a directory laid out like /sys/class/gpio with pin 5 exported.

    Returns:
        Path to the GPIO class directory
    """
    (tmp_path / "export").write_text("")
    (tmp_path / "unexport").write_text("")
    pin_dir = tmp_path / "gpio5"
    pin_dir.mkdir()
    (pin_dir / "direction").write_text("in\n")
    (pin_dir / "edge").write_text("none\n")
    (pin_dir / "active_low").write_text("0\n")
    (pin_dir / "value").write_text("0\n")
    return tmp_path
