"""Value types shared by the parser, device directory and playback engine."""

from datetime import datetime
from enum import Enum
from typing import NamedTuple, Optional, Tuple

# simctl accepts this in place of a UDID and resolves it to the booted device
ACTIVE_DEVICE = "booted"

LATITUDE_RANGE = (-90.0, 90.0)
LONGITUDE_RANGE = (-180.0, 180.0)


def is_valid_coordinate(latitude: float, longitude: float) -> bool:
    """Return True if both values are finite and inside WGS84 bounds."""
    return (
        LATITUDE_RANGE[0] <= latitude <= LATITUDE_RANGE[1]
        and LONGITUDE_RANGE[0] <= longitude <= LONGITUDE_RANGE[1]
    )


def format_coordinate(latitude: float, longitude: float) -> str:
    """Format a coordinate the way ``simctl location set`` expects it."""
    return "%.6f,%.6f" % (latitude, longitude)


class TrackPoint(NamedTuple):
    """One GPX sample. Position in the track list is its temporal order."""

    latitude: float
    longitude: float
    elevation: Optional[float] = None
    timestamp: Optional[datetime] = None

    @property
    def coordinate(self) -> Tuple[float, float]:
        return (self.latitude, self.longitude)

    def format_coordinate(self) -> str:
        return format_coordinate(self.latitude, self.longitude)


class DeviceState(Enum):
    """Simulator boot state as reported by ``simctl list``."""

    BOOTED = "Booted"
    SHUTDOWN = "Shutdown"
    OTHER = "Other"

    @classmethod
    def from_raw(cls, raw: str) -> "DeviceState":
        if raw == cls.BOOTED.value:
            return cls.BOOTED
        if raw == cls.SHUTDOWN.value:
            return cls.SHUTDOWN
        return cls.OTHER


class Device(NamedTuple):
    """A simulator device from ``simctl list devices``.

    ``state`` keeps the raw string (``"Booted"``, ``"Shutdown"``,
    ``"Creating"``...) for display; ``device_state`` folds it into
    :class:`DeviceState`.
    """

    id: str
    name: str
    state: str
    runtime: str

    @property
    def device_state(self) -> DeviceState:
        return DeviceState.from_raw(self.state)

    @property
    def is_booted(self) -> bool:
        return self.device_state is DeviceState.BOOTED

    @property
    def display_name(self) -> str:
        return f"{self.name} ({self.state})"


class PlaybackStatus(Enum):
    """State machine for track playback."""

    IDLE = "idle"
    PLAYING = "playing"
    PAUSED = "paused"
    COMPLETED = "completed"


class LocationMode(Enum):
    """Where start() takes its coordinates from."""

    TRACK = "track"  # Loaded GPX file
    CUSTOM = "custom"  # Single typed-in coordinate


class PlaybackSnapshot(NamedTuple):
    """Immutable view of the engine state for polling presentation layers."""

    status: PlaybackStatus
    current_index: int
    total_points: int
    speed: float
    selected_device_id: Optional[str]
    mode: LocationMode
    file_name: Optional[str]
    status_message: str
    consecutive_failures: int = 0

    @property
    def progress(self) -> float:
        if self.total_points <= 0:
            return 0.0
        return self.current_index / self.total_points

    @property
    def formatted_progress(self) -> str:
        return f"{self.current_index} / {self.total_points}"
