"""Configuration manager for loading and validating config files."""

import logging
from pathlib import Path
from typing import Any, Dict, Optional, TypeVar, Union

import yaml

from sysfs_gpio.attributes import EXPORT_TIMEOUT, POLL_INTERVAL
from sysfs_gpio.control_files import SYSFS_GPIO_ROOT, ControlFiles, get_control_files
from sysfs_gpio.pin import Pin

T = TypeVar("T")


logger = logging.getLogger(__name__)

DEFAULT_GPIO_CONFIG: Dict[str, Any] = {
    "sysfs_root": SYSFS_GPIO_ROOT,
    "export_timeout": EXPORT_TIMEOUT,
    "poll_interval": POLL_INTERVAL,
    "mock": False,
}


class ConfigError(Exception):
    """Raised when configuration is invalid."""


class ConfigManager:
    """Manages loading and accessing GPIO configuration from YAML files."""

    def __init__(self, user_config_path: Optional[str] = None) -> None:
        """Initialize the configuration manager.

        Args:
            user_config_path: Path to user config file. Built-in defaults are
                used when omitted.

        Raises:
            ConfigError: If config file doesn't exist or is invalid
        """
        self._config: Dict[str, Any] = {"gpio": dict(DEFAULT_GPIO_CONFIG)}
        self._user_config_path = user_config_path
        self._control_files: Optional[ControlFiles] = None
        if user_config_path is not None:
            self._load_config()

    def _load_yaml_file(self, path: Path) -> Dict[str, Any]:
        """Load a YAML file and return its contents.

        Args:
            path: Path to YAML file

        Returns:
            Dictionary containing the YAML contents

        Raises:
            ConfigError: If file cannot be read or parsed
        """
        try:
            with open(path, "r", encoding="utf-8") as f:
                content = yaml.safe_load(f)
                return content if content is not None else {}
        except FileNotFoundError as e:
            raise ConfigError(f"Config file not found: {path}") from e
        except yaml.YAMLError as e:
            raise ConfigError(f"Failed to parse YAML file {path}: {e}") from e
        except OSError as e:
            raise ConfigError(f"Failed to load config file {path}: {e}") from e

    def _validate_config(self) -> None:
        """Validate the loaded configuration.

        Raises:
            ConfigError: If configuration is invalid
        """
        gpio = self._config["gpio"]
        if not isinstance(gpio, dict):
            raise ConfigError("'gpio' section must be a dictionary")

        if not isinstance(gpio["sysfs_root"], str) or not gpio["sysfs_root"]:
            raise ConfigError("'sysfs_root' must be a non-empty string")

        # Timing values must be positive numbers (bool is an int, reject it)
        for timing_name in ("export_timeout", "poll_interval"):
            value = gpio[timing_name]
            if isinstance(value, bool) or not isinstance(value, (int, float)):
                raise ConfigError(f"Timing '{timing_name}' must be a number")
            if value <= 0:
                raise ConfigError(f"Timing '{timing_name}' must be positive")

        if gpio["poll_interval"] > gpio["export_timeout"]:
            raise ConfigError("'poll_interval' must not exceed 'export_timeout'")

        if not isinstance(gpio["mock"], bool):
            raise ConfigError("'mock' must be true or false")

    def _load_config(self) -> None:
        """Load configuration from user config file and merge it over defaults.

        Raises:
            ConfigError: If config file doesn't exist or is invalid
        """
        config_path = Path(str(self._user_config_path))

        # Check if file exists first
        if not config_path.exists():
            raise ConfigError(
                f"Configuration file not found: {config_path}\n"
                f"Please create a config file. See config.yml.example for reference."
            )

        logger.info("Loading configuration from: %s", config_path)
        user_config = self._load_yaml_file(config_path)
        if not isinstance(user_config, dict):
            raise ConfigError(f"Config file {config_path} must contain a mapping")

        user_gpio = user_config.get("gpio", {})
        if not isinstance(user_gpio, dict):
            raise ConfigError("'gpio' section must be a dictionary")
        unknown = sorted(set(user_gpio) - set(DEFAULT_GPIO_CONFIG))
        if unknown:
            raise ConfigError(f"Unknown gpio setting(s): {', '.join(unknown)}")

        self._config = dict(user_config)
        self._config["gpio"] = {**DEFAULT_GPIO_CONFIG, **user_gpio}

        # Validate the configuration
        self._validate_config()
        logger.info("Configuration loaded and validated successfully")

    def get(self, key: str, default: Optional[T] = None) -> Union[Any, T]:
        """Get a configuration value by key.

        Supports dot notation for nested values (e.g., 'gpio.export_timeout')

        Args:
            key: Configuration key (supports dot notation)
            default: Default value if key not found

        Returns:
            Configuration value or default (type matches default when provided)
        """
        keys = key.split(".")
        value: Any = self._config

        for k in keys:
            if isinstance(value, dict) and k in value:
                value = value[k]
            else:
                return default  # type: ignore[return-value]

        return value

    def get_sysfs_root(self) -> str:
        """Get the GPIO class directory."""
        root: str = self.get("gpio.sysfs_root", SYSFS_GPIO_ROOT)
        return root

    def get_export_timeout(self) -> float:
        """Get the seconds to wait for an exported pin to become configurable."""
        return float(self.get("gpio.export_timeout", EXPORT_TIMEOUT))

    def get_poll_interval(self) -> float:
        """Get the seconds between configurability probes."""
        return float(self.get("gpio.poll_interval", POLL_INTERVAL))

    def is_mock(self) -> bool:
        """Check whether the in-memory control files should be used."""
        return bool(self.get("gpio.mock", False))

    def create_control_files(self) -> ControlFiles:
        """Get the control-file provider described by this configuration.

        The provider is created on first use and shared afterwards, so pins
        opened through one ConfigManager see the same (possibly in-memory)
        control tree.

        Returns:
            ControlFiles implementation
        """
        if self._control_files is None:
            self._control_files = get_control_files(mock=self.is_mock(), root=self.get_sysfs_root())
        return self._control_files

    def open_input(self, number: int) -> Pin:
        """Export a pin for reading using the configured provider and timing."""
        return Pin.new_input(
            number,
            files=self.create_control_files(),
            timeout=self.get_export_timeout(),
            poll_interval=self.get_poll_interval(),
        )

    def open_output(self, number: int, init_high: bool) -> Pin:
        """Export a pin for writing using the configured provider and timing."""
        return Pin.new_output(
            number,
            init_high,
            files=self.create_control_files(),
            timeout=self.get_export_timeout(),
            poll_interval=self.get_poll_interval(),
        )
