"""Playback engine - paces track points into ``simctl location set``.

All state lives on the GLib main loop: every transition and every pacing
tick runs as a main-context callback, so they are serialized without locks.
A pacing loop is a chain of one-shot ``GLib.timeout_add`` sources owned by a
:class:`PacingToken`; cancelling the token removes the pending source, which
abandons the wait immediately instead of letting it run out.
"""
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Tuple, Union

import gi
gi.require_version("GLib", "2.0")
from gi.repository import GLib

from simlocation.config import get_config
from simlocation.device_directory import DeviceDirectory, pick_default
from simlocation.events import EventBus
from simlocation.exceptions import InvalidCoordinate, NoTrackLoaded, ParseError
from simlocation.gpx_parser import load_gpx_file
from simlocation.location_command import LocationCommand, LocationResult
from simlocation.logging import get_logger
from simlocation.models import (
    Device,
    LocationMode,
    PlaybackSnapshot,
    PlaybackStatus,
    TrackPoint,
    is_valid_coordinate,
)

logger = get_logger(__name__)

# Quick-pick multipliers offered by front-ends
SPEED_PRESETS = (0.5, 1.0, 2.0, 5.0)

DEFAULT_SETTINGS: Dict[str, float] = {
    "default_speed": 1.0,
    "min_speed": 0.1,
    "max_speed": 10.0,
    "min_delay": 0.1,
    "fallback_interval": 1.0,
    "max_consecutive_failures": 0,
}


def compute_delay(
    current: TrackPoint,
    following: Optional[TrackPoint],
    speed: float,
    min_delay: float = 0.1,
    fallback_interval: float = 1.0,
) -> float:
    """
    Seconds to wait after sending ``current`` before moving on.

    Uses the recorded gap to ``following`` when both points carry a
    timestamp, otherwise a fixed interval; either way scaled by ``speed``.
    """
    if following is not None and current.timestamp and following.timestamp:
        gap = (following.timestamp - current.timestamp).total_seconds()
        return max(min_delay, gap / speed)
    return fallback_interval / speed


# GLib timeout intervals are guint milliseconds
MAX_INTERVAL_MS = 2 ** 32 - 1


class PacingToken:
    """Cancellation handle for one pacing loop.

    Waits longer than GLib can express in one source are split into a chain
    of capped sources; the callback only runs once the whole delay is over.
    """

    def __init__(self):
        self.cancelled = False
        self._source_id: Optional[int] = None
        self._remaining_ms = 0
        self._callback = None

    @property
    def pending(self) -> bool:
        return self._source_id is not None

    def schedule(self, delay: float, callback) -> None:
        """Run ``callback(token)`` once after ``delay`` seconds."""
        if self.cancelled:
            return
        self._callback = callback
        self._remaining_ms = max(0, int(round(delay * 1000)))
        self._arm()

    def _arm(self) -> None:
        interval = min(self._remaining_ms, MAX_INTERVAL_MS)
        self._remaining_ms -= interval
        self._source_id = GLib.timeout_add(interval, self._on_timeout)

    def _on_timeout(self) -> bool:
        self._source_id = None
        if self.cancelled:
            return GLib.SOURCE_REMOVE
        if self._remaining_ms > 0:
            self._arm()
            return GLib.SOURCE_REMOVE
        callback, self._callback = self._callback, None
        callback(self)
        return GLib.SOURCE_REMOVE

    def cancel(self) -> None:
        self.cancelled = True
        self._callback = None
        if self._source_id is not None:
            GLib.source_remove(self._source_id)
            self._source_id = None


class PlaybackEngine:
    """Owns the loaded track and drives it into the selected simulator."""

    def __init__(
        self,
        event_bus: Optional[EventBus] = None,
        location_command: Optional[LocationCommand] = None,
        device_directory: Optional[DeviceDirectory] = None,
        settings: Optional[Dict[str, float]] = None,
        default_target: Optional[str] = None,
    ):
        if settings is None or default_target is None:
            config = get_config()
            if settings is None:
                settings = config.playback_settings
            if default_target is None:
                default_target = config.default_target
        self._settings = {**DEFAULT_SETTINGS, **settings}
        self._default_target = default_target

        self._events = event_bus or EventBus()
        self._location = location_command or LocationCommand()
        self._directory = device_directory or DeviceDirectory()

        self._track: List[TrackPoint] = []
        self._file_name: Optional[str] = None
        self._status = PlaybackStatus.IDLE
        self._current_index = 0
        self._speed = self._clamp_speed(self._settings["default_speed"])
        self._mode = LocationMode.TRACK
        self._custom_latitude = ""
        self._custom_longitude = ""
        self._devices: List[Device] = []
        self._selected_device_id: Optional[str] = None
        self._status_message = "Ready"
        self._consecutive_failures = 0
        self._token: Optional[PacingToken] = None

        self._subscriptions = [
            (EventBus.ACTION_START, self._on_action_start),
            (EventBus.ACTION_PAUSE, self._on_action_pause),
            (EventBus.ACTION_STOP, self._on_action_stop),
            (EventBus.ACTION_SET_SPEED, self._on_action_set_speed),
            (EventBus.ACTION_LOAD_TRACK, self._on_action_load_track),
            (EventBus.ACTION_REFRESH_DEVICES, self._on_action_refresh_devices),
            (EventBus.ACTION_SELECT_DEVICE, self._on_action_select_device),
            (EventBus.ACTION_SET_MODE, self._on_action_set_mode),
            (EventBus.ACTION_SET_CUSTOM_LOCATION, self._on_action_set_custom_location),
        ]
        for event, callback in self._subscriptions:
            self._events.subscribe(event, callback)

    # ------------------------------------------------------------------
    # Read-only state
    # ------------------------------------------------------------------
    @property
    def events(self) -> EventBus:
        return self._events

    @property
    def status(self) -> PlaybackStatus:
        return self._status

    @property
    def is_playing(self) -> bool:
        return self._status == PlaybackStatus.PLAYING

    @property
    def current_index(self) -> int:
        return self._current_index

    @property
    def track(self) -> List[TrackPoint]:
        return list(self._track)

    @property
    def speed(self) -> float:
        return self._speed

    @property
    def mode(self) -> LocationMode:
        return self._mode

    @property
    def devices(self) -> List[Device]:
        return list(self._devices)

    @property
    def selected_device_id(self) -> Optional[str]:
        return self._selected_device_id

    @property
    def status_message(self) -> str:
        return self._status_message

    @property
    def target(self) -> str:
        """Device the next command goes to."""
        return self._selected_device_id or self._default_target

    def snapshot(self) -> PlaybackSnapshot:
        return PlaybackSnapshot(
            status=self._status,
            current_index=self._current_index,
            total_points=len(self._track),
            speed=self._speed,
            selected_device_id=self._selected_device_id,
            mode=self._mode,
            file_name=self._file_name,
            status_message=self._status_message,
            consecutive_failures=self._consecutive_failures,
        )

    # ------------------------------------------------------------------
    # State setters (publish on change)
    # ------------------------------------------------------------------
    def _set_status(self, status: PlaybackStatus) -> None:
        if self._status == status:
            return
        self._status = status
        self._events.publish(
            EventBus.PLAYBACK_STATE_CHANGED,
            {"status": status, "snapshot": self.snapshot()},
        )

    def _set_message(self, message: str) -> None:
        self._status_message = message
        logger.debug("Status: %s", message)
        self._events.publish(EventBus.STATUS_MESSAGE, {"message": message})

    def _publish_progress(self) -> None:
        total = len(self._track)
        self._events.publish(
            EventBus.PLAYBACK_PROGRESS,
            {
                "index": self._current_index,
                "total": total,
                "progress": self._current_index / total if total else 0.0,
            },
        )

    def _cancel_loop(self) -> None:
        if self._token is not None:
            self._token.cancel()
            self._token = None

    # ------------------------------------------------------------------
    # Track loading
    # ------------------------------------------------------------------
    def load_track(self, points: Sequence[TrackPoint], file_name: Optional[str] = None) -> None:
        """Replace the track wholesale, discarding any playback in progress."""
        self._cancel_loop()
        self._track = list(points)
        self._file_name = file_name
        self._current_index = 0
        self._consecutive_failures = 0
        self._set_status(PlaybackStatus.IDLE)
        self._events.publish(
            EventBus.TRACK_LOADED, {"points": len(self._track), "file_name": file_name}
        )
        source = f" from {file_name}" if file_name else ""
        self._set_message(f"Loaded {len(self._track)} points{source}")

    def load_track_file(self, path: Union[str, Path]) -> None:
        """
        Parse a GPX file and load it.

        Raises:
            ParseError: The file is unreadable or malformed; the current
                track is left untouched.
        """
        path = Path(path)
        try:
            points = load_gpx_file(path)
        except ParseError as e:
            logger.error("Failed to parse %s: %s", path, e)
            self._set_message("Error: Failed to parse GPX file")
            raise
        self.load_track(points, file_name=path.name)

    # ------------------------------------------------------------------
    # Settings
    # ------------------------------------------------------------------
    def _clamp_speed(self, speed: float) -> float:
        return max(self._settings["min_speed"], min(self._settings["max_speed"], speed))

    def set_speed(self, speed: float) -> float:
        """
        Change the multiplier. Safe while playing: the next delay uses it.

        Returns:
            The clamped speed actually applied.

        Raises:
            ValueError: If ``speed`` is not a positive number
        """
        speed = float(speed)
        if not speed > 0:
            raise ValueError(f"Speed must be positive, got {speed}")
        speed = self._clamp_speed(speed)
        if speed != self._speed:
            self._speed = speed
            self._events.publish(EventBus.SPEED_CHANGED, {"speed": speed})
        return speed

    def set_mode(self, mode: LocationMode) -> None:
        """Switch between track playback and single custom coordinates."""
        mode = LocationMode(mode)
        if mode == self._mode:
            return
        self.stop()
        self._mode = mode
        self._events.publish(EventBus.MODE_CHANGED, {"mode": mode})

    def set_custom_location(self, latitude: Any, longitude: Any) -> None:
        """Store the coordinate text used by start() in custom mode.

        Values are kept as given (for example the strings of a geocoder
        lookup) and only validated when start() is called.
        """
        self._custom_latitude = "" if latitude is None else str(latitude).strip()
        self._custom_longitude = "" if longitude is None else str(longitude).strip()

    # ------------------------------------------------------------------
    # Devices
    # ------------------------------------------------------------------
    def select_device(self, device: Union[Device, str, None]) -> None:
        """Target a device (or its UDID); None targets the booted device."""
        device_id = device.id if isinstance(device, Device) else device
        if device_id == self._selected_device_id:
            return
        self._selected_device_id = device_id
        self._events.publish(EventBus.DEVICE_SELECTED, {"device_id": device_id})

    def refresh_devices(self) -> List[Device]:
        """Re-list simulators and keep a valid selection."""
        self._set_message("Refreshing device list...")
        devices = self._directory.list_available()
        self._devices = devices
        self._events.publish(EventBus.DEVICES_CHANGED, {"devices": list(devices)})

        if self._directory.last_error is not None:
            self._set_message(f"Error refreshing devices: {self._directory.last_error}")
            return list(devices)

        known = {device.id for device in devices}
        if self._selected_device_id is None or self._selected_device_id not in known:
            default = pick_default(devices)
            if default is not None:
                self.select_device(default)
        self._set_message(f"Found {len(devices)} device(s)")
        return list(devices)

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------
    def start(self) -> None:
        """
        Start or resume playback.

        Raises:
            NoTrackLoaded: Track mode with no points
            InvalidCoordinate: Custom mode with a missing or bad coordinate
        """
        if self._mode == LocationMode.CUSTOM:
            self._set_custom()
            return

        if not self._track:
            self._set_message("Error: No track points loaded")
            raise NoTrackLoaded("No track points loaded")

        self._cancel_loop()
        if self._status == PlaybackStatus.COMPLETED or self._current_index >= len(self._track):
            self._current_index = 0
        self._consecutive_failures = 0

        token = PacingToken()
        self._token = token
        self._set_status(PlaybackStatus.PLAYING)
        self._play_current(token)

    def pause(self) -> None:
        """Pause at the current point. No-op unless playing."""
        if self._status != PlaybackStatus.PLAYING:
            return
        self._cancel_loop()
        self._set_status(PlaybackStatus.PAUSED)
        self._set_message(f"Paused at point {self._current_index + 1}")

    def stop(self) -> None:
        """Stop and rewind to the first point. No-op unless playing or paused."""
        if self._status not in (PlaybackStatus.PLAYING, PlaybackStatus.PAUSED):
            return
        self._cancel_loop()
        self._current_index = 0
        self._set_status(PlaybackStatus.IDLE)
        self._publish_progress()
        self._set_message("Stopped")

    def shutdown(self) -> None:
        """Cancel any pending tick and detach from the event bus."""
        self._cancel_loop()
        for event, callback in self._subscriptions:
            self._events.unsubscribe(event, callback)

    # ------------------------------------------------------------------
    # Pacing loop
    # ------------------------------------------------------------------
    def _is_live(self, token: PacingToken) -> bool:
        return (
            not token.cancelled
            and token is self._token
            and self._status == PlaybackStatus.PLAYING
        )

    def _play_current(self, token: PacingToken) -> None:
        """Send the point at the current index, then wait for the next one."""
        index = self._current_index
        total = len(self._track)
        point = self._track[index]
        self._set_message(f"Playing point {index + 1} of {total}")
        self._publish_progress()
        if not self._is_live(token):
            return

        result = self._send(point.latitude, point.longitude)
        if not result.ok:
            self._record_failure(result)
        else:
            self._consecutive_failures = 0

        # A subscriber or the failure limit may have paused/stopped us
        if not self._is_live(token):
            return

        following = self._track[index + 1] if index + 1 < total else None
        delay = compute_delay(
            point,
            following,
            self._speed,
            self._settings["min_delay"],
            self._settings["fallback_interval"],
        )
        logger.debug("Next point in %.3fs", delay)
        token.schedule(delay, self._on_delay_elapsed)

    def _on_delay_elapsed(self, token: PacingToken) -> None:
        if not self._is_live(token):
            return

        self._current_index += 1
        if self._current_index >= len(self._track):
            self._complete()
        else:
            self._play_current(token)

    def _complete(self) -> None:
        self._token = None
        self._publish_progress()
        self._current_index = 0
        self._set_status(PlaybackStatus.COMPLETED)
        self._set_message("Playback completed")
        self._events.publish(EventBus.PLAYBACK_COMPLETED, {"points": len(self._track)})

    def _send(self, latitude: float, longitude: float) -> LocationResult:
        result = self._location.set_location(self.target, latitude, longitude)
        payload = {
            "target": result.target,
            "latitude": latitude,
            "longitude": longitude,
        }
        if result.ok:
            self._events.publish(EventBus.LOCATION_SET, payload)
        else:
            payload["error"] = result.error
            self._events.publish(EventBus.LOCATION_FAILED, payload)
        return result

    def _record_failure(self, result: LocationResult) -> None:
        self._consecutive_failures += 1
        self._set_message(f"Error: {result.error}")
        limit = int(self._settings["max_consecutive_failures"])
        if limit and self._consecutive_failures >= limit and self._status == PlaybackStatus.PLAYING:
            logger.error("Pausing after %d failed location updates", self._consecutive_failures)
            self._cancel_loop()
            self._set_status(PlaybackStatus.PAUSED)
            self._set_message(
                f"Paused after {self._consecutive_failures} failed location updates"
            )

    # ------------------------------------------------------------------
    # Custom location
    # ------------------------------------------------------------------
    def _parse_custom(self) -> Tuple[float, float]:
        try:
            latitude = float(self._custom_latitude)
            longitude = float(self._custom_longitude)
        except ValueError as e:
            raise InvalidCoordinate("Invalid coordinates") from e
        if not is_valid_coordinate(latitude, longitude):
            raise InvalidCoordinate(
                f"Coordinates out of range: {self._custom_latitude}, {self._custom_longitude}"
            )
        return latitude, longitude

    def _set_custom(self) -> None:
        try:
            latitude, longitude = self._parse_custom()
        except InvalidCoordinate as e:
            self._set_message(f"Error: {e}")
            raise

        self._cancel_loop()
        self._set_status(PlaybackStatus.PLAYING)
        self._set_message("Setting custom location...")
        result = self._send(latitude, longitude)
        self._set_status(PlaybackStatus.IDLE)
        if result.ok:
            self._set_message(f"Custom location set: {latitude}, {longitude}")
        else:
            self._set_message(f"Error: {result.error}")

    # ------------------------------------------------------------------
    # Action handlers
    # ------------------------------------------------------------------
    def _on_action_start(self, data: Optional[Dict[str, Any]]) -> None:
        try:
            self.start()
        except (NoTrackLoaded, InvalidCoordinate) as e:
            logger.warning("Cannot start playback: %s", e)

    def _on_action_pause(self, data: Optional[Dict[str, Any]]) -> None:
        self.pause()

    def _on_action_stop(self, data: Optional[Dict[str, Any]]) -> None:
        self.stop()

    def _on_action_set_speed(self, data: Optional[Dict[str, Any]]) -> None:
        if not data or "speed" not in data:
            return
        try:
            self.set_speed(data["speed"])
        except (TypeError, ValueError) as e:
            self._set_message(f"Error: {e}")

    def _on_action_load_track(self, data: Optional[Dict[str, Any]]) -> None:
        if not data or not data.get("path"):
            return
        try:
            self.load_track_file(data["path"])
        except ParseError as e:
            logger.debug("Load request rejected: %s", e)

    def _on_action_refresh_devices(self, data: Optional[Dict[str, Any]]) -> None:
        self.refresh_devices()

    def _on_action_select_device(self, data: Optional[Dict[str, Any]]) -> None:
        if data is None:
            return
        self.select_device(data.get("device_id"))

    def _on_action_set_mode(self, data: Optional[Dict[str, Any]]) -> None:
        if not data or "mode" not in data:
            return
        try:
            self.set_mode(data["mode"])
        except ValueError as e:
            self._set_message(f"Error: {e}")

    def _on_action_set_custom_location(self, data: Optional[Dict[str, Any]]) -> None:
        if not data:
            return
        self.set_custom_location(data.get("latitude"), data.get("longitude"))
