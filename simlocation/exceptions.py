"""Custom exception hierarchy for the location toolbox.

This module provides a structured exception hierarchy for consistent
error handling across the application.
"""

from typing import Optional, Sequence


class LocationToolboxError(Exception):
    """Base exception for all location toolbox errors."""

    pass


class ParseError(LocationToolboxError):
    """The track document is not well-formed markup."""

    pass


class DeviceListUnavailable(LocationToolboxError):
    """The device listing command failed or returned unusable output."""

    pass


class CommandInvocationFailed(LocationToolboxError):
    """An external command exited nonzero or could not be spawned."""

    def __init__(
        self,
        message: str,
        args: Sequence[str] = (),
        returncode: Optional[int] = None,
        stderr: str = "",
    ):
        super().__init__(message)
        self.command = list(args)
        self.returncode = returncode
        self.stderr = stderr


class NoTrackLoaded(LocationToolboxError):
    """Playback was requested without any track points."""

    pass


class InvalidCoordinate(LocationToolboxError):
    """A custom coordinate is missing, not numeric or out of range."""

    pass


class ConfigurationError(LocationToolboxError):
    """Errors related to configuration."""

    pass
