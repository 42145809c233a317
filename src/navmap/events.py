"""Progress event sinks.

Discovery emits coarse stage events; where they go (log, queue, socket)
is up to the sink the caller injects.
"""

import logging
from typing import Any, Callable

logger = logging.getLogger(__name__)

STRATEGY_DONE = "strategy_done"
TREE_NODE_EXPLORED = "tree_node_explored"
CLASSIFICATION_DONE = "classification_done"


class EventSink:
    """Sink that drops every event."""

    def emit(self, event: str, **data: Any) -> None:
        pass


class LoggingEventSink(EventSink):
    """Writes events to a logger."""

    def __init__(self, log: logging.Logger = logger, level: int = logging.INFO):
        self._log = log
        self._level = level

    def emit(self, event: str, **data: Any) -> None:
        details = ", ".join(f"{k}={v}" for k, v in data.items())
        self._log.log(self._level, f"[{event}] {details}")


class CallbackEventSink(EventSink):
    """Forwards events to a callable as ``callback(event, data)``.

    A failing callback is logged and never interrupts discovery.
    """

    def __init__(self, callback: Callable[[str, dict[str, Any]], Any]):
        self._callback = callback

    def emit(self, event: str, **data: Any) -> None:
        try:
            self._callback(event, data)
        except Exception as e:
            logger.warning(f"Event callback failed for {event}: {e}")
