"""
Fire-and-forget analytics events.
"""

import logging
from typing import Any, Protocol

logger = logging.getLogger(__name__)


class TelemetrySink(Protocol):
    def track(self, event: str, **properties: Any) -> None: ...


class LoggingTelemetry:
    """Writes analytics events to the log and counts them per event name."""

    def __init__(self, enabled: bool = True):
        self.enabled = enabled
        self.counts: dict[str, int] = {}

    def track(self, event: str, **properties: Any) -> None:
        if not self.enabled:
            return
        self.counts[event] = self.counts.get(event, 0) + 1
        logger.info(f"event={event} {properties}")


def track_safely(sink: TelemetrySink | None, event: str, **properties: Any) -> None:
    """Report an event; sink failures never reach the game."""
    if sink is None:
        return
    try:
        sink.track(event, **properties)
    except Exception as e:
        logger.error(f"Telemetry sink error for {event}: {e}", exc_info=True)
