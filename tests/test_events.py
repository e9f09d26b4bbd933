"""Tests for the event bus."""

from simlocation.events import EventBus


class TestEventBus:
    """Test EventBus class."""

    def test_publish_subscribe(self):
        """Test subscribers receive published data."""
        bus = EventBus()
        received = []
        bus.subscribe(EventBus.STATUS_MESSAGE, received.append)
        bus.publish(EventBus.STATUS_MESSAGE, {"message": "Ready"})
        assert received == [{"message": "Ready"}]

    def test_unsubscribe(self):
        """Test unsubscribed callbacks are not called."""
        bus = EventBus()
        received = []
        bus.subscribe(EventBus.STATUS_MESSAGE, received.append)
        bus.unsubscribe(EventBus.STATUS_MESSAGE, received.append)
        bus.unsubscribe(EventBus.STATUS_MESSAGE, received.append)
        bus.publish(EventBus.STATUS_MESSAGE, {})
        assert received == []

    def test_failing_callback_isolated(self):
        """Test one broken subscriber does not stop the others."""
        bus = EventBus()
        received = []

        def broken(data):
            raise RuntimeError("boom")

        bus.subscribe(EventBus.PLAYBACK_PROGRESS, broken)
        bus.subscribe(EventBus.PLAYBACK_PROGRESS, received.append)
        bus.publish(EventBus.PLAYBACK_PROGRESS, {"index": 1})
        assert received == [{"index": 1}]
