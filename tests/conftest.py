"""Pytest configuration and fixtures."""

import pytest
from pathlib import Path
from typing import Dict, List, Optional

# Mock GObject introspection before imports so the suite runs headless
import sys
from unittest.mock import MagicMock

sys.modules['gi'] = MagicMock()
sys.modules['gi.repository'] = MagicMock()
sys.modules['gi.repository.GLib'] = MagicMock()

from simlocation.process import ProcessResult


class FakeGLib:
    """Virtual-clock stand-in for the GLib timeout API used by the engine."""

    SOURCE_REMOVE = False
    SOURCE_CONTINUE = True
    PRIORITY_DEFAULT = 0

    def __init__(self):
        self.now = 0  # milliseconds
        self.scheduled: List[int] = []  # every interval ever requested
        self.removed: List[int] = []
        self._next_id = 1
        self._sources: Dict[int, tuple] = {}

    def timeout_add(self, interval, callback, *args):
        source_id = self._next_id
        self._next_id += 1
        self._sources[source_id] = (self.now + interval, interval, callback, args)
        self.scheduled.append(interval)
        return source_id

    def source_remove(self, source_id):
        self.removed.append(source_id)
        return self._sources.pop(source_id, None) is not None

    @property
    def pending(self) -> int:
        return len(self._sources)

    def next_interval(self) -> Optional[int]:
        if not self._sources:
            return None
        due, _, _, _ = min(self._sources.values(), key=lambda source: source[0])
        return due - self.now

    def advance(self, milliseconds: int) -> None:
        """Move the clock forward, firing every source that falls due."""
        target = self.now + milliseconds
        while True:
            due = [(entry[0], source_id) for source_id, entry in self._sources.items() if entry[0] <= target]
            if not due:
                break
            when, source_id = min(due)
            _, interval, callback, args = self._sources.pop(source_id)
            self.now = when
            if callback(*args):
                self._sources[source_id] = (self.now + interval, interval, callback, args)
        self.now = target

    def run_until_idle(self, max_steps: int = 10000) -> None:
        steps = 0
        while self._sources and steps < max_steps:
            self.advance(self.next_interval())
            steps += 1


class FakeRunner:
    """Records simctl invocations and replays canned results."""

    def __init__(self):
        self.calls: List[tuple] = []
        self.returncode = 0
        self.stdout = b""
        self.stderr = ""
        self.failures: List[int] = []  # call numbers (1-based) that fail
        self.on_run = None

    def run(self, *args):
        self.calls.append(args)
        if self.on_run is not None:
            self.on_run(args)
        returncode = self.returncode
        if len(self.calls) in self.failures:
            returncode = 1
        stderr = self.stderr if returncode else ""
        if returncode and not stderr:
            stderr = "Invalid device"
        return ProcessResult(["xcrun", "simctl", *args], returncode, self.stdout, stderr)

    @property
    def location_calls(self) -> List[tuple]:
        return [call for call in self.calls if call and call[0] == "location"]


@pytest.fixture(autouse=True)
def isolated_config(monkeypatch, tmp_path):
    """Point XDG directories at a temporary location and reset the singleton."""
    from simlocation.config import Config

    monkeypatch.setenv('XDG_CONFIG_HOME', str(tmp_path / 'config'))
    monkeypatch.setenv('XDG_DATA_HOME', str(tmp_path / 'data'))
    monkeypatch.setattr(Config, '_instance', None)
    yield
    Config._instance = None


@pytest.fixture
def temp_dir(tmp_path):
    """Create a temporary directory for tests."""
    return Path(tmp_path)


@pytest.fixture
def fake_glib(monkeypatch):
    fake = FakeGLib()
    monkeypatch.setattr('simlocation.playback_engine.GLib', fake)
    return fake


@pytest.fixture
def fake_runner():
    return FakeRunner()


@pytest.fixture
def event_log():
    """Collects (event, data) pairs published on an EventBus."""

    class EventLog(list):
        def attach(self, bus, *events):
            for event in events:
                bus.subscribe(event, lambda data, event=event: self.append((event, data)))
            return self

        def of(self, event):
            return [data for name, data in self if name == event]

    return EventLog()


def make_gpx(points, namespace="http://www.topografix.com/GPX/1/1"):
    """
    Build a GPX document.

    Args:
        points: Iterable of dicts with optional lat, lon, ele, time keys
    """
    body = []
    for point in points:
        attrs = "".join(
            f' {key}="{point[key]}"' for key in ("lat", "lon") if key in point
        )
        children = ""
        if "ele" in point:
            children += f"<ele>{point['ele']}</ele>"
        if "time" in point:
            children += f"<time>{point['time']}</time>"
        body.append(f"<trkpt{attrs}>{children}</trkpt>")
    xmlns = f' xmlns="{namespace}"' if namespace else ""
    return (
        '<?xml version="1.0" encoding="UTF-8"?>'
        f'<gpx version="1.1" creator="tests"{xmlns}>'
        "<trk><name>Test</name><trkseg>"
        + "".join(body)
        + "</trkseg></trk></gpx>"
    ).encode("utf-8")


@pytest.fixture
def gpx_builder():
    return make_gpx
