"""Unit tests for progress event sinks."""

import logging

from navmap.events import CallbackEventSink, EventSink, LoggingEventSink


class TestEventSinks:
    """Tests for the event sink implementations."""

    def test_default_sink_drops_events(self):
        """Test that the base sink accepts any event."""
        EventSink().emit("anything", value=1)

    def test_logging_sink(self, caplog):
        """Test that events are written to the log."""
        sink = LoggingEventSink(logging.getLogger("navmap.test"), logging.INFO)

        with caplog.at_level(logging.INFO, logger="navmap.test"):
            sink.emit("strategy_done", strategy="aria", confidence=0.9)

        assert "[strategy_done] strategy=aria, confidence=0.9" in caplog.text

    def test_callback_sink(self):
        """Test that events reach the callback with their data."""
        received = []
        CallbackEventSink(lambda event, data: received.append((event, data))).emit("x", a=1)

        assert received == [("x", {"a": 1})]

    def test_failing_callback_is_contained(self, caplog):
        """Test that a broken callback does not propagate."""
        def explode(event, data):
            raise RuntimeError("listener gone")

        with caplog.at_level(logging.WARNING, logger="navmap.events"):
            CallbackEventSink(explode).emit("tree_node_explored", url="https://shop.example.com/")

        assert "listener gone" in caplog.text
