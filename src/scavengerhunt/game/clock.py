"""
Session Clock - round countdown for the timed game variant

Ticks once per interval while armed. Each tick decrements the remaining
time; at zero the clock stops itself and fires the expiry callbacks.

Without an event loop the clock is driven manually through tick().
"""

import asyncio
import logging
from typing import Callable

logger = logging.getLogger(__name__)


class SessionClock:
    """Repeating one-second countdown."""

    def __init__(
        self,
        interval: float = 1.0,
        loop: asyncio.AbstractEventLoop | None = None,
    ):
        self.interval = interval
        self._loop = loop
        self._remaining = 0
        self._handle: asyncio.TimerHandle | None = None
        self._armed = False

        self._on_tick_callbacks: list[Callable[[int], None]] = []
        self._on_expired_callbacks: list[Callable[[], None]] = []

    @property
    def remaining(self) -> int:
        """Seconds left in the round."""
        return self._remaining

    @property
    def running(self) -> bool:
        return self._armed

    def attach_loop(self, loop: asyncio.AbstractEventLoop) -> None:
        """Schedule ticks on this event loop from now on."""
        self._loop = loop

    def start(self, duration_seconds: int) -> None:
        """Begin a new countdown, replacing any running one."""
        if duration_seconds <= 0:
            raise ValueError(f"duration must be positive, got {duration_seconds}")
        self.stop()
        self._remaining = int(duration_seconds)
        self._armed = True
        self._schedule()
        logger.debug(f"Clock started: {self._remaining}s")

    def resume(self) -> None:
        """Re-arm with the time that was left when stopped."""
        if self._armed or self._remaining <= 0:
            return
        self._armed = True
        self._schedule()
        logger.debug(f"Clock resumed: {self._remaining}s left")

    def stop(self) -> None:
        """Cancel the repeating tick. Safe to call repeatedly."""
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None
        if self._armed:
            self._armed = False
            logger.debug(f"Clock stopped: {self._remaining}s left")

    def tick(self) -> int:
        """
        Advance the countdown by one interval.

        Returns:
            Remaining seconds after this tick
        """
        if self._remaining <= 0:
            return 0

        self._remaining -= 1
        for callback in self._on_tick_callbacks:
            try:
                callback(self._remaining)
            except Exception as e:
                logger.error(f"Clock tick callback error: {e}", exc_info=True)

        if self._remaining == 0:
            self.stop()
            logger.info("Clock expired")
            for callback in self._on_expired_callbacks:
                try:
                    callback()
                except Exception as e:
                    logger.error(f"Clock expiry callback error: {e}", exc_info=True)

        return self._remaining

    def _schedule(self) -> None:
        if self._loop is None or self._loop.is_closed():
            return
        self._handle = self._loop.call_later(self.interval, self._on_timer)

    def _on_timer(self) -> None:
        self._handle = None
        if not self._armed:
            return
        self.tick()
        # Expiry callbacks may have stopped or restarted the clock
        if self._armed and self._handle is None and self._remaining > 0:
            self._schedule()

    def on_tick(self, callback: Callable[[int], None]) -> None:
        """Register callback receiving the remaining seconds after each tick."""
        self._on_tick_callbacks.append(callback)

    def on_expired(self, callback: Callable[[], None]) -> None:
        """Register callback for when the countdown reaches zero."""
        self._on_expired_callbacks.append(callback)

    def get_status(self) -> dict:
        """Get clock status."""
        return {"remaining": self._remaining, "running": self._armed, "interval": self.interval}
