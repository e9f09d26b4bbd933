"""Headless front-end: replay a GPX file or set one coordinate from the shell."""

import argparse
import logging
import signal
import sys
from typing import List, Optional

import gi
gi.require_version("GLib", "2.0")
from gi.repository import GLib

from simlocation import __version__
from simlocation.config import get_config
from simlocation.device_directory import DeviceDirectory
from simlocation.events import EventBus
from simlocation.exceptions import ConfigurationError, InvalidCoordinate, NoTrackLoaded, ParseError
from simlocation.location_command import LocationCommand
from simlocation.logging import LinuxLogger, get_logger
from simlocation.models import LocationMode, PlaybackStatus
from simlocation.playback_engine import SPEED_PRESETS, PlaybackEngine
from simlocation.process import SimctlRunner

logger = get_logger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="simlocation-toolbox",
        description="Drive an iOS Simulator's location from a GPX track or a fixed coordinate.",
    )
    parser.add_argument("gpx", nargs="?", help="GPX file to replay")
    parser.add_argument("--lat", help="Latitude for a single custom location")
    parser.add_argument("--lon", help="Longitude for a single custom location")
    parser.add_argument("--device", help="Simulator UDID (default: booted device)")
    parser.add_argument(
        "--speed",
        type=float,
        help="Playback speed multiplier (common: %s)" % ", ".join(f"{p:g}x" for p in SPEED_PRESETS),
    )
    parser.add_argument("--list-devices", action="store_true", help="List available simulators and exit")
    parser.add_argument("--debug", action="store_true", help="Verbose console logging")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser


def print_devices(directory: DeviceDirectory) -> int:
    devices = directory.list_available()
    if not devices:
        print("No devices found.", file=sys.stderr)
        return 1
    for device in devices:
        marker = "*" if device.is_booted else " "
        print(f"{marker} {device.id}  {device.display_name}  [{device.runtime}]")
    return 0


class ToolboxApp:
    """Wires the engine to a GLib main loop and prints its status messages."""

    def __init__(self, engine: PlaybackEngine):
        self.engine = engine
        self.loop = GLib.MainLoop()
        self.failed = False
        events = engine.events
        events.subscribe(EventBus.STATUS_MESSAGE, self._on_status_message)
        events.subscribe(EventBus.LOCATION_FAILED, self._on_location_failed)
        events.subscribe(EventBus.PLAYBACK_STATE_CHANGED, self._on_state_changed)

    def _on_status_message(self, data):
        print(data["message"], flush=True)

    def _on_location_failed(self, data):
        self.failed = True

    def _on_state_changed(self, data):
        # Paused here only happens when the failure limit is hit
        if data["status"] in (PlaybackStatus.COMPLETED, PlaybackStatus.IDLE, PlaybackStatus.PAUSED):
            if self.loop.is_running():
                self.loop.quit()

    def _on_sigint(self) -> bool:
        logger.info("Interrupted, stopping playback")
        self.engine.stop()
        self.loop.quit()
        return GLib.SOURCE_REMOVE

    def set_custom_location(self, latitude: str, longitude: str) -> int:
        self.engine.set_mode(LocationMode.CUSTOM)
        self.engine.set_custom_location(latitude, longitude)
        try:
            self.engine.start()
        except InvalidCoordinate:
            return 1
        return 1 if self.failed else 0

    def play_track(self, path: str) -> int:
        try:
            self.engine.load_track_file(path)
            self.engine.start()
        except (ParseError, NoTrackLoaded):
            return 1

        GLib.unix_signal_add(GLib.PRIORITY_DEFAULT, signal.SIGINT, self._on_sigint)
        if self.engine.is_playing:
            self.loop.run()
        self.engine.shutdown()
        return 1 if self.failed or self.engine.status is PlaybackStatus.PAUSED else 0


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if (args.lat is None) != (args.lon is None):
        parser.error("--lat and --lon must be given together")
    if not args.list_devices and args.lat is None and not args.gpx:
        parser.error("a GPX file, --lat/--lon or --list-devices is required")

    config = get_config()
    LinuxLogger(
        log_dir=config.log_dir,
        console_level=logging.DEBUG if args.debug else logging.WARNING,
    )
    if args.debug:
        LinuxLogger.set_level(logging.DEBUG)

    try:
        runner = SimctlRunner()
        engine_settings = config.playback_settings
    except ConfigurationError as e:
        parser.error(str(e))
    if not runner.is_available():
        logger.warning("%s not found in PATH; simctl commands will fail", config.simctl_executable)

    directory = DeviceDirectory(runner)
    if args.list_devices:
        return print_devices(directory)

    engine = PlaybackEngine(
        event_bus=EventBus(),
        location_command=LocationCommand(runner),
        device_directory=directory,
        settings=engine_settings,
        default_target=config.default_target,
    )
    app = ToolboxApp(engine)

    if args.speed is not None:
        try:
            engine.set_speed(args.speed)
        except ValueError as e:
            parser.error(str(e))

    if args.device:
        engine.select_device(args.device)
    else:
        engine.refresh_devices()

    if args.lat is not None:
        return app.set_custom_location(args.lat, args.lon)
    return app.play_track(args.gpx)
