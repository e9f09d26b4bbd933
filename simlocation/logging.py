"""Linux-native logging for the location toolbox.

Console output carries warnings and errors; a rotating file in the XDG data
directory keeps the full debug trail of every command sent to the simulator.
"""

# ============================================================================
# Standard Library Imports (alphabetical)
# ============================================================================
import logging
import logging.handlers
import os
import sys
from pathlib import Path
from typing import Optional

# ============================================================================
# Third-Party Imports (alphabetical, with version requirements)
# ============================================================================
# None

# ============================================================================
# Local Imports (grouped by package, alphabetical)
# ============================================================================
# None

ROOT_LOGGER_NAME = "simlocation"


class LinuxLogger:
    """
    Linux-native logger with file and console output.

    Supports:
    - File logging to XDG data directory
    - Console output for warnings and errors
    - Environment variable control (SIMLOCATION_DEBUG)
    """

    _instance: Optional["LinuxLogger"] = None
    _initialized: bool = False

    def __init__(self, log_dir: Optional[Path] = None, console_level: int = logging.WARNING):
        """
        Initialize the logger.

        Args:
            log_dir: Directory for log files (defaults to XDG data dir)
            console_level: Minimum level echoed to stderr
        """
        if LinuxLogger._initialized:
            return

        self.logger = logging.getLogger(ROOT_LOGGER_NAME)
        self.logger.setLevel(
            logging.DEBUG if os.getenv("SIMLOCATION_DEBUG") else logging.INFO
        )
        LinuxLogger._instance = self

        # Prevent duplicate handlers
        if self.logger.handlers:
            return

        formatter = logging.Formatter(
            "%(asctime)s [%(levelname)s] %(name)s: %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )

        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setLevel(console_level)
        console_handler.setFormatter(formatter)
        self.logger.addHandler(console_handler)

        if log_dir is None:
            xdg_data = os.getenv("XDG_DATA_HOME", Path.home() / ".local" / "share")
            log_dir = Path(xdg_data) / ROOT_LOGGER_NAME / "logs"

        try:
            log_dir.mkdir(parents=True, exist_ok=True)
            file_handler = logging.handlers.RotatingFileHandler(
                log_dir / "simlocation.log", maxBytes=10 * 1024 * 1024, backupCount=5  # 10MB
            )
        except OSError as e:
            # Read-only home directories still get console logging
            self.logger.warning("File logging disabled (%s): %s", log_dir, e)
        else:
            file_handler.setLevel(logging.DEBUG)
            file_handler.setFormatter(formatter)
            self.logger.addHandler(file_handler)

        LinuxLogger._initialized = True

    @classmethod
    def get_logger(cls, name: str = ROOT_LOGGER_NAME) -> logging.Logger:
        """
        Get a logger instance.

        Loggers are children of the ``simlocation`` logger, so they share its
        handlers once :class:`LinuxLogger` has been set up.
        """
        if name == ROOT_LOGGER_NAME:
            return logging.getLogger(ROOT_LOGGER_NAME)
        if name.startswith(ROOT_LOGGER_NAME + "."):
            return logging.getLogger(name)
        return logging.getLogger(ROOT_LOGGER_NAME).getChild(name)

    @classmethod
    def set_level(cls, level: int) -> None:
        """Set logging level for the application root logger."""
        logging.getLogger(ROOT_LOGGER_NAME).setLevel(level)


# Convenience functions
def get_logger(name: str = ROOT_LOGGER_NAME) -> logging.Logger:
    """Get a logger instance."""
    return LinuxLogger.get_logger(name)
