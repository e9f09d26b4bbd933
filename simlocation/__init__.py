"""Replay GPX tracks and custom coordinates into simulator location."""

__version__ = "0.3.0"
