"""Send a single coordinate to a simulator with ``simctl location``."""

from typing import NamedTuple, Optional

from simlocation.exceptions import CommandInvocationFailed
from simlocation.logging import get_logger
from simlocation.models import ACTIVE_DEVICE, format_coordinate
from simlocation.process import ProcessRunner, SimctlRunner

logger = get_logger(__name__)


class LocationResult(NamedTuple):
    """Outcome of one set-location call. ``error`` is None on success."""

    target: str
    latitude: float
    longitude: float
    error: Optional[CommandInvocationFailed] = None

    @property
    def ok(self) -> bool:
        return self.error is None


class LocationCommand:
    """Stateless adapter: every call spawns exactly one simctl process."""

    def __init__(self, runner: Optional[ProcessRunner] = None):
        self._runner = runner or SimctlRunner()

    def set_location(
        self, target: Optional[str], latitude: float, longitude: float
    ) -> LocationResult:
        """
        Point the target device at the given coordinate.

        Args:
            target: Device UDID, or None / ``"booted"`` for the active device
            latitude: Decimal degrees
            longitude: Decimal degrees

        Returns:
            LocationResult; failures are carried in ``error``, not raised.
        """
        target = target or ACTIVE_DEVICE
        coordinate = format_coordinate(latitude, longitude)
        result = self._runner.run("location", target, "set", coordinate)
        if result.ok:
            logger.debug("Location of %s set to %s", target, coordinate)
            return LocationResult(target, latitude, longitude)

        reason = result.stderr or f"exit status {result.returncode}"
        logger.warning("Failed to set location of %s to %s: %s", target, coordinate, reason)
        error = CommandInvocationFailed(
            f"simctl location failed: {reason}",
            args=result.args,
            returncode=result.returncode,
            stderr=result.stderr,
        )
        return LocationResult(target, latitude, longitude, error)
