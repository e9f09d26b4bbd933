"""Configuration management using XDG Base Directory Specification.

This module provides centralized configuration for the simctl invocation,
playback pacing and device targeting, stored as an INI file in the XDG
config directory.
"""

import configparser
import os
from pathlib import Path
from typing import Dict, Optional

from simlocation.exceptions import ConfigurationError


class Config:
    """
    Configuration manager using XDG Base Directory Specification.

    Follows Linux standards:
    - Config: ~/.config/simlocation/ (or XDG_CONFIG_HOME)
    - Data: ~/.local/share/simlocation/ (or XDG_DATA_HOME)
    """

    _instance: Optional['Config'] = None

    def __init__(self) -> None:
        """
        Initialize configuration manager.

        Sets up XDG Base Directory paths and loads or creates configuration.
        """
        if Config._instance is not None:
            return

        self.config_home = Path(os.getenv('XDG_CONFIG_HOME', Path.home() / '.config'))
        self.data_home = Path(os.getenv('XDG_DATA_HOME', Path.home() / '.local' / 'share'))

        self.app_name = 'simlocation'
        self.config_dir = self.config_home / self.app_name
        self.data_dir = self.data_home / self.app_name

        self.config_dir.mkdir(parents=True, exist_ok=True)
        self.data_dir.mkdir(parents=True, exist_ok=True)

        self.config_file = self.config_dir / 'config.ini'
        self.config = configparser.ConfigParser()

        self._load_config()

        Config._instance = self

    @classmethod
    def get_instance(cls) -> 'Config':
        """Get the singleton config instance."""
        if cls._instance is None:
            cls._instance = cls()
        return cls._instance

    def _load_config(self) -> None:
        """Load configuration from file or create defaults."""
        self._apply_defaults()
        if self.config_file.exists():
            self.config.read(self.config_file)
        else:
            self.save()

    def _apply_defaults(self) -> None:
        """Populate every section with its default values."""
        self.config['simctl'] = {
            'executable': 'xcrun',
            # Seconds; 0 waits forever for a hung simctl
            'command_timeout': '5.0',
        }

        self.config['playback'] = {
            'default_speed': '1.0',
            'min_speed': '0.1',
            'max_speed': '10.0',
            'min_delay': '0.1',
            'fallback_interval': '1.0',
            'max_consecutive_failures': '0',
        }

        self.config['devices'] = {
            'default_target': 'booted',
        }

    def save(self) -> None:
        """
        Save configuration to file.

        Writes current configuration state to the config file.
        """
        try:
            with open(self.config_file, 'w') as f:
                self.config.write(f)
        except OSError as e:
            from simlocation.logging import get_logger
            logger = get_logger(__name__)
            logger.error("Failed to save config: %s", e, exc_info=True)

    def get(self, section: str, key: str, fallback: Optional[str] = None) -> Optional[str]:
        """Get a configuration value."""
        return self.config.get(section, key, fallback=fallback)

    def set(self, section: str, key: str, value: str) -> None:
        """
        Set a configuration value.

        Args:
            section: Configuration section name
            key: Configuration key name
            value: Value to set (will be converted to string)
        """
        if section not in self.config:
            self.config.add_section(section)
        self.config.set(section, key, str(value))
        self.save()

    def get_int(self, section: str, key: str, fallback: int = 0) -> int:
        """Get an integer configuration value."""
        try:
            return self.config.getint(section, key, fallback=fallback)
        except ValueError as e:
            raise ConfigurationError(f"[{section}] {key} must be an integer") from e

    def get_float(self, section: str, key: str, fallback: float = 0.0) -> float:
        """Get a float configuration value."""
        try:
            return self.config.getfloat(section, key, fallback=fallback)
        except ValueError as e:
            raise ConfigurationError(f"[{section}] {key} must be a number") from e

    # Convenience properties
    @property
    def simctl_executable(self) -> str:
        """Get the launcher used for simctl (normally ``xcrun``)."""
        return self.get('simctl', 'executable', 'xcrun') or 'xcrun'

    @property
    def command_timeout(self) -> Optional[float]:
        """Get the per-command timeout in seconds, or None when disabled."""
        timeout = self.get_float('simctl', 'command_timeout', 5.0)
        if timeout < 0:
            raise ConfigurationError("[simctl] command_timeout must not be negative")
        return timeout or None

    @property
    def default_target(self) -> str:
        """Get the device target used when no device is selected."""
        return self.get('devices', 'default_target', 'booted') or 'booted'

    @property
    def playback_settings(self) -> Dict[str, float]:
        """Get validated pacing settings for the playback engine."""
        settings = {
            'default_speed': self.get_float('playback', 'default_speed', 1.0),
            'min_speed': self.get_float('playback', 'min_speed', 0.1),
            'max_speed': self.get_float('playback', 'max_speed', 10.0),
            'min_delay': self.get_float('playback', 'min_delay', 0.1),
            'fallback_interval': self.get_float('playback', 'fallback_interval', 1.0),
            'max_consecutive_failures': self.get_int('playback', 'max_consecutive_failures', 0),
        }
        if not 0 < settings['min_speed'] <= settings['max_speed']:
            raise ConfigurationError("[playback] requires 0 < min_speed <= max_speed")
        if settings['min_delay'] < 0 or settings['fallback_interval'] <= 0:
            raise ConfigurationError("[playback] delays must be positive")
        if settings['max_consecutive_failures'] < 0:
            raise ConfigurationError("[playback] max_consecutive_failures must not be negative")
        return settings

    @property
    def log_dir(self) -> Path:
        """Get log directory."""
        log_dir = self.data_dir / 'logs'
        log_dir.mkdir(parents=True, exist_ok=True)
        return log_dir


# Convenience function
def get_config() -> Config:
    """Get the configuration instance."""
    return Config.get_instance()
