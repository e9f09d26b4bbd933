"""Centralized event bus for decoupled component communication."""

from typing import Any, Callable, Dict, List
from simlocation.logging import get_logger

logger = get_logger(__name__)


class EventBus:
    """Publish-subscribe event system. Components publish/subscribe without knowing each other.

    Event Flow Architecture:
    - Presentation layers (CLI, GUI front-ends) publish ACTION_* events (requests)
    - The PlaybackEngine publishes *_CHANGED and status events (notifications)
    - This separation ensures clear data flow: UI -> Core -> UI
    """

    # =========================================================================
    # Core -> UI: State Change Notifications
    # Published by PlaybackEngine
    # =========================================================================

    # {"status": PlaybackStatus, "snapshot": PlaybackSnapshot}
    PLAYBACK_STATE_CHANGED = "playback.state_changed"
    # {"index": int, "total": int, "progress": float}
    PLAYBACK_PROGRESS = "playback.progress"
    PLAYBACK_COMPLETED = "playback.completed"
    SPEED_CHANGED = "playback.speed_changed"
    MODE_CHANGED = "playback.mode_changed"

    # {"points": int, "file_name": str?}
    TRACK_LOADED = "track.loaded"

    # {"devices": List[Device]} - always the full replacement list
    DEVICES_CHANGED = "devices.changed"
    DEVICE_SELECTED = "device.selected"

    # {"message": str}
    STATUS_MESSAGE = "status.message"

    # {"target": str, "latitude": float, "longitude": float}
    LOCATION_SET = "location.set"
    # Same payload plus {"error": CommandInvocationFailed}
    LOCATION_FAILED = "location.failed"

    # =========================================================================
    # UI -> Core: Action Requests
    # =========================================================================

    ACTION_START = "action.start"
    ACTION_PAUSE = "action.pause"
    ACTION_STOP = "action.stop"
    ACTION_SET_SPEED = "action.set_speed"
    ACTION_LOAD_TRACK = "action.load_track"
    ACTION_REFRESH_DEVICES = "action.refresh_devices"
    ACTION_SELECT_DEVICE = "action.select_device"
    ACTION_SET_MODE = "action.set_mode"
    ACTION_SET_CUSTOM_LOCATION = "action.set_custom_location"

    def __init__(self):
        self._subscribers: Dict[str, List[Callable[[Any], None]]] = {}

    def subscribe(self, event: str, callback: Callable[[Any], None]) -> None:
        if event not in self._subscribers:
            self._subscribers[event] = []
        self._subscribers[event].append(callback)

    def unsubscribe(self, event: str, callback: Callable[[Any], None]) -> None:
        if event in self._subscribers:
            try:
                self._subscribers[event].remove(callback)
            except ValueError:
                pass

    def publish(self, event: str, data: Any = None) -> None:
        # Copy so a callback may unsubscribe itself while we iterate
        for callback in list(self._subscribers.get(event, [])):
            try:
                callback(data)
            except Exception as e:
                logger.error(
                    "Error in event callback for %s: %s", event, e, exc_info=True
                )
