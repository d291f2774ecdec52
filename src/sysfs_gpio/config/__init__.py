"""Configuration loading for sysfs GPIO."""

from .config_manager import ConfigError, ConfigManager

__all__ = ["ConfigManager", "ConfigError"]
