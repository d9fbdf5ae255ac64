"""
Prediction Loop - continuously classifies camera frames for the session

Self-rescheduling asyncio task. Each cycle:
1. Skip unless the session is RUNNING (saves CPU during view transitions)
2. Capture one frame from the camera
3. Classify it off the event loop thread
4. Hand the ranked predictions to the session, stamped with the epoch
   that was current when the frame was taken

The session drops results whose epoch is stale, so a pause or reset while
a classification is in flight discards that result.

The next cycle is posted after the current one completes, so cycle length
follows device speed rather than a fixed wall-clock period.
"""

import asyncio
import logging
import time
from typing import TYPE_CHECKING

from ..inference.prediction import PredictionFrame

if TYPE_CHECKING:
    from ..camera.camera_service import CameraService
    from ..inference.classifier_engine import ClassifierEngine
    from .session import GameSession

logger = logging.getLogger(__name__)

# Display refresh cadence
DEFAULT_FRAME_INTERVAL = 1.0 / 60


class PredictionLoop:
    """Frame → classifier → session pump."""

    def __init__(
        self,
        session: "GameSession",
        camera: "CameraService",
        classifier: "ClassifierEngine",
        top_k: int = 10,
        frame_interval: float = DEFAULT_FRAME_INTERVAL,
    ):
        self.session = session
        self.camera = camera
        self.classifier = classifier
        self.top_k = top_k
        self.frame_interval = frame_interval

        self._task: asyncio.Task | None = None
        self._stop_requested = False

        # Stats
        self._cycle_count = 0
        self._classified_count = 0
        self._error_count = 0
        self._total_cycle_time = 0.0
        self._last_frame: PredictionFrame | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    @property
    def last_frame(self) -> PredictionFrame | None:
        """Most recent classification result (debug surface)."""
        return self._last_frame

    def start(self) -> None:
        """Arm the loop on the running event loop. Idempotent."""
        if self.running:
            return
        self._stop_requested = False
        self._task = asyncio.get_running_loop().create_task(
            self._run(), name="prediction_loop"
        )
        logger.info(
            f"Prediction loop started: top_k={self.top_k}, "
            f"interval={self.frame_interval * 1000:.1f}ms"
        )

    async def stop(self) -> None:
        """Request teardown and wait for the current cycle to finish."""
        self._stop_requested = True
        if self._task is None:
            return
        try:
            await self._task
        finally:
            self._task = None
        logger.info("Prediction loop stopped")

    async def _run(self) -> None:
        while not self._stop_requested:
            start = time.perf_counter()
            try:
                await self.run_cycle()
            except Exception as e:
                # One bad frame must not end the game
                self._error_count += 1
                logger.error(f"Prediction cycle error: {e}", exc_info=True)
            self._cycle_count += 1
            self._total_cycle_time += time.perf_counter() - start

            await asyncio.sleep(self.frame_interval)

    async def run_cycle(self) -> bool:
        """
        Run one prediction cycle.

        Returns:
            True if a frame was classified and handed to the session
        """
        if not self.session.is_running:
            return False

        epoch = self.session.epoch
        frame = self.camera.capture_frame()
        if frame is None:
            return False

        result = await self.classifier.classify(frame, self.top_k)
        self._last_frame = result
        self._classified_count += 1

        if self.session.debug:
            logger.debug(
                "Top-K: " + ", ".join(str(p) for p in result.predictions)
            )

        self.session.handle_predictions(result.predictions, epoch)
        return True

    @property
    def average_cycle_ms(self) -> float:
        if self._cycle_count == 0:
            return 0.0
        return self._total_cycle_time / self._cycle_count * 1000

    def get_status(self) -> dict:
        """Get loop status."""
        return {
            "running": self.running,
            "cycles": self._cycle_count,
            "classified": self._classified_count,
            "errors": self._error_count,
            "average_cycle_ms": self.average_cycle_ms,
            "top_k": self.top_k,
            "frame_interval": self.frame_interval,
        }
