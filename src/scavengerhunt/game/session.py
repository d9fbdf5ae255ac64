"""
Game Session - the scavenger hunt state machine

One GameSession per play-through. It is the only component that mutates
session state; the prediction loop, the clock and the command surface all
call into it.

States:
- IDLE: landing view, a fresh target waiting
- LOADING: classifier and camera are being acquired
- RUNNING: frames are classified and matched against the target
- PAUSED: clock and camera stopped, target/score/history kept
- QUIT: paused behind a quit confirmation (resume cancels, reset confirms)
- ITEM_FOUND: round over (matched or time's up), waiting for "next"
- ALL_FOUND: score reached max_items, waiting for reset

Every pause, reset, match and advance bumps the session epoch. Prediction
results carry the epoch of the frame they were computed from; results from
an older epoch, or arriving outside RUNNING, are dropped.
"""

import asyncio
import logging
import random
import time
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum, auto
from typing import TYPE_CHECKING, Callable, Sequence

import numpy as np

from ..inference.match_resolver import ImmediateMatchStrategy, MatchStrategy
from ..inference.prediction import Prediction
from .catalog import Catalog, ExhibitItem
from .clock import SessionClock
from .errors import AcquisitionError, AcquisitionFailure
from .prediction_loop import DEFAULT_FRAME_INTERVAL, PredictionLoop
from .target_pool import GameDifficultySequence, TargetPool
from .telemetry import TelemetrySink, track_safely
from .views import (
    FOUND_ALL_MESSAGE,
    TIME_UP_MESSAGE,
    Field,
    View,
    ViewRenderer,
    ViewStateRenderer,
    found_message,
    seeing_message,
)

if TYPE_CHECKING:
    from ..camera.camera_service import CameraService
    from ..inference.classifier_engine import ClassifierEngine

logger = logging.getLogger(__name__)


class SessionState(Enum):
    """States of the game session."""

    IDLE = auto()
    LOADING = auto()
    RUNNING = auto()
    PAUSED = auto()
    ITEM_FOUND = auto()
    ALL_FOUND = auto()
    QUIT = auto()


class RoundOutcome(Enum):
    """How a round ended."""

    MATCH = auto()
    TIME_UP = auto()


@dataclass
class FoundRecord:
    """A found item, in the order it was found."""

    item: ExhibitItem
    snapshot: np.ndarray | None
    time_to_find: float  # seconds of running time
    outcome: RoundOutcome = RoundOutcome.MATCH
    found_at: datetime = field(default_factory=datetime.now)

    def to_dict(self) -> dict:
        """Convert to dictionary (snapshot pixels excluded)."""
        return {
            "item": self.item.to_dict(),
            "time_to_find": round(self.time_to_find, 2),
            "outcome": self.outcome.name,
            "found_at": self.found_at.isoformat(),
            "has_snapshot": self.snapshot is not None,
        }


class GameSession:
    """
    Orchestrates one play-through.

    Owns the target pool, the difficulty sequence, the match strategy, the
    optional round clock and the prediction loop. The classifier and camera
    are loaded once and kept warm across resets.
    """

    def __init__(
        self,
        catalog: Catalog,
        classifier: "ClassifierEngine",
        camera: "CameraService",
        difficulty: str | Sequence[str] = "1",
        strategy: MatchStrategy | None = None,
        max_items: int = 1,
        round_seconds: int | None = None,
        renderer: ViewRenderer | None = None,
        telemetry: TelemetrySink | None = None,
        top_k: int = 10,
        frame_interval: float = DEFAULT_FRAME_INTERVAL,
        rng: random.Random | None = None,
        debug: bool = False,
    ):
        """
        Initialize the game session.

        Args:
            catalog: Findable items grouped by level
            classifier: Classifier adapter (loaded on first start)
            camera: Camera adapter (acquired on first start)
            difficulty: Level sequence, e.g. "1123445"
            strategy: Match strategy (defaults to top-2 matching)
            max_items: Items to find to win
            round_seconds: Time per target, None for untimed play
            renderer: View intent receiver
            telemetry: Analytics sink
            top_k: Predictions requested per frame
            frame_interval: Pause between prediction cycles
            rng: Random source for draws and narration
            debug: Log every top-K list

        Raises:
            ConfigurationError: If the difficulty sequence or catalog is invalid
        """
        if max_items < 1:
            raise ValueError(f"max_items must be >= 1, got {max_items}")
        if round_seconds is not None and round_seconds <= 0:
            raise ValueError(f"round_seconds must be positive, got {round_seconds}")

        self.catalog = catalog
        self.classifier = classifier
        self.camera = camera
        self.max_items = max_items
        self.round_seconds = round_seconds
        self.renderer = renderer or ViewStateRenderer()
        self.telemetry = telemetry
        self.debug = debug

        self._rng = rng or random.Random()
        self._pool = TargetPool(catalog, self._rng)
        self._difficulty = GameDifficultySequence(difficulty, catalog)
        self._strategy = strategy or ImmediateMatchStrategy()

        # Untimed sessions have no clock at all
        self._clock: SessionClock | None = None
        if round_seconds is not None:
            self._clock = SessionClock()
            self._clock.on_tick(self._handle_clock_tick)
            self._clock.on_expired(self._handle_time_expired)

        self._prediction_loop = PredictionLoop(
            self, camera, classifier, top_k=top_k, frame_interval=frame_interval
        )

        # Session state
        self._state = SessionState.IDLE
        self._score = 0
        self._history: list[FoundRecord] = []
        self._current_target: ExhibitItem | None = None
        self._best_guess: str | None = None
        self._epoch = 0
        self._resources_ready = False
        self._last_error: AcquisitionError | None = None
        self._last_outcome: RoundOutcome | None = None
        self._last_predictions: list[Prediction] = []

        # Running time of the current round, paused time excluded
        self._round_active_time = 0.0
        self._running_since: float | None = None

        # Callbacks
        self._on_state_change_callbacks: list[Callable[[SessionState], None]] = []
        self._on_target_changed_callbacks: list[Callable[[ExhibitItem], None]] = []
        self._on_best_guess_callbacks: list[Callable[[str], None]] = []
        self._on_item_found_callbacks: list[Callable[[FoundRecord], None]] = []
        self._on_all_found_callbacks: list[Callable[[list[FoundRecord]], None]] = []
        self._on_time_expired_callbacks: list[Callable[[ExhibitItem], None]] = []
        self._on_clock_tick_callbacks: list[Callable[[int], None]] = []
        self._on_load_failed_callbacks: list[Callable[[AcquisitionError], None]] = []

        self._draw_target()
        self.renderer.update(Field.SCORE, self._score)

        logger.info(
            f"GameSession initialized: difficulty={self._difficulty.levels}, "
            f"max_items={max_items}, round_seconds={round_seconds}, "
            f"strategy={self._strategy.name}"
        )

    # --- Properties ---

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def score(self) -> int:
        return self._score

    @property
    def history(self) -> list[FoundRecord]:
        """Found items in order (copy)."""
        return list(self._history)

    @property
    def current_target(self) -> ExhibitItem | None:
        return self._current_target

    @property
    def best_guess(self) -> str | None:
        """Top-1 label of the most recent processed cycle."""
        return self._best_guess

    @property
    def epoch(self) -> int:
        return self._epoch

    @property
    def is_running(self) -> bool:
        return self._state == SessionState.RUNNING

    @property
    def resources_ready(self) -> bool:
        """True once classifier and camera have been acquired."""
        return self._resources_ready

    @property
    def last_error(self) -> AcquisitionError | None:
        return self._last_error

    @property
    def last_outcome(self) -> RoundOutcome | None:
        return self._last_outcome

    @property
    def last_predictions(self) -> list[Prediction]:
        return list(self._last_predictions)

    @property
    def clock(self) -> SessionClock | None:
        return self._clock

    @property
    def prediction_loop(self) -> PredictionLoop:
        return self._prediction_loop

    @property
    def strategy(self) -> MatchStrategy:
        return self._strategy

    @property
    def time_remaining(self) -> int | None:
        return self._clock.remaining if self._clock else None

    # --- Commands ---

    async def start_game(self) -> bool:
        """
        Start playing from the landing view.

        The first start acquires the classifier and the camera concurrently.
        Later starts reuse them and go straight to RUNNING.

        Returns:
            True if the session is now RUNNING
        """
        if self._state != SessionState.IDLE:
            logger.debug(f"start_game ignored in state {self._state.name}")
            return False

        if self._resources_ready:
            self._arm_background()
            self._enter_running()
            track_safely(self.telemetry, "game_started", warm=True)
            return True

        self._transition_to(SessionState.LOADING)
        self.renderer.show(View.LOADING)

        results = await asyncio.gather(
            self.classifier.load(),
            self.camera.acquire(),
            return_exceptions=True,
        )
        classifier_result, camera_result = results

        error = None
        # Camera problems are the ones the player can act on
        if isinstance(camera_result, BaseException):
            error = self._to_acquisition_error(camera_result, AcquisitionFailure.NO_CAMERA)
        elif isinstance(classifier_result, BaseException):
            error = self._to_acquisition_error(
                classifier_result, AcquisitionFailure.MODEL_LOAD_FAILED
            )

        if error is not None:
            self._handle_load_failure(error)
            return False

        self._resources_ready = True
        self._last_error = None
        self._arm_background()

        self.renderer.hide(View.LOADING)
        self._enter_running()
        track_safely(self.telemetry, "game_started", warm=False)
        return True

    def pause_game(self) -> bool:
        """Pause a running round. Target, score and history are kept."""
        if self._state != SessionState.RUNNING:
            logger.debug(f"pause_game ignored in state {self._state.name}")
            return False
        self._suspend()
        self._transition_to(SessionState.PAUSED)
        return True

    def quit_game(self) -> bool:
        """Pause and ask the player to confirm quitting."""
        if self._state not in (SessionState.RUNNING, SessionState.PAUSED):
            logger.debug(f"quit_game ignored in state {self._state.name}")
            return False
        if self._state == SessionState.RUNNING:
            self._suspend()
        self._transition_to(SessionState.QUIT)
        self.renderer.show(View.QUIT)
        track_safely(self.telemetry, "quit_requested", score=self._score)
        return True

    def resume_game(self) -> bool:
        """Continue a paused round, or cancel a quit."""
        if self._state not in (SessionState.PAUSED, SessionState.QUIT):
            logger.debug(f"resume_game ignored in state {self._state.name}")
            return False
        if self._state == SessionState.QUIT:
            self.renderer.hide(View.QUIT)

        if self._clock is not None:
            self._clock.resume()
        self.camera.resume()
        self._running_since = time.monotonic()
        self._transition_to(SessionState.RUNNING)
        return True

    def advance_to_next_target(self) -> bool:
        """Leave the found view and start a round with the next target."""
        if self._state != SessionState.ITEM_FOUND:
            logger.debug(f"advance_to_next_target ignored in state {self._state.name}")
            return False
        self.renderer.hide(View.ITEM_FOUND)
        self._draw_target()
        self._enter_running()
        return True

    def reset_game(self) -> bool:
        """
        Back to the landing view with a clean slate.

        Classifier and camera stay loaded. Not allowed while LOADING.
        """
        if self._state == SessionState.LOADING:
            logger.debug("reset_game ignored while loading")
            return False

        self._suspend()
        self._score = 0
        self._history.clear()
        self._best_guess = None
        self._last_outcome = None
        self._last_predictions = []
        self._strategy.reset()
        self._pool.reset()
        self._difficulty.reset()
        self._draw_target()

        self.renderer.update(Field.SCORE, 0)
        self.renderer.update(Field.BEST_GUESS, None)
        self.renderer.update(Field.NARRATION, None)
        if self._clock is not None:
            self.renderer.update(Field.TIME_REMAINING, self.round_seconds)
        self.renderer.show(View.LANDING)

        self._transition_to(SessionState.IDLE)
        track_safely(self.telemetry, "game_reset")
        return True

    async def restart_game(self) -> bool:
        """Reset, then start again."""
        if not self.reset_game():
            return False
        return await self.start_game()

    # --- Prediction handling ---

    def handle_predictions(self, predictions: Sequence[Prediction], epoch: int) -> bool:
        """
        Apply one cycle of ranked classifier output.

        Args:
            predictions: Candidates, descending by confidence
            epoch: Session epoch when the frame was captured

        Returns:
            True if the current target was found
        """
        if epoch != self._epoch or self._state != SessionState.RUNNING:
            logger.debug(
                f"Discarding prediction (epoch {epoch}/{self._epoch}, state {self._state.name})"
            )
            return False

        target = self._current_target
        self._last_predictions = list(predictions)
        result = self._strategy.evaluate(predictions, target)

        if result.best_label is not None:
            self._update_best_guess(result.best_label)

        if result.matched:
            self._item_found()
            return True
        return False

    def _update_best_guess(self, label: str) -> None:
        changed = label != self._best_guess
        self._best_guess = label
        self.renderer.update(Field.BEST_GUESS, label)
        if not changed:
            return

        item = self.catalog.find(label)
        display = item.display_label if item else label
        self.renderer.update(Field.NARRATION, seeing_message(display, self._rng))
        self._emit(self._on_best_guess_callbacks, label)

    def _item_found(self) -> None:
        target = self._current_target
        # Freeze camera and clock before anything else so the snapshot
        # shows the frame that matched
        self._suspend()

        try:
            snapshot = self.camera.snapshot()
        except RuntimeError as e:
            logger.warning(f"No snapshot for found item: {e}")
            snapshot = None

        record = FoundRecord(
            item=target,
            snapshot=snapshot,
            time_to_find=self._round_active_time,
        )
        self._history.append(record)
        self._score = min(self._score + 1, self.max_items)
        self._last_outcome = RoundOutcome.MATCH

        self.renderer.update(Field.SCORE, self._score)
        self.renderer.update(Field.NARRATION, found_message(target.display_label))
        logger.info(
            f"Found '{target.name}' in {record.time_to_find:.1f}s "
            f"(score {self._score}/{self.max_items})"
        )
        track_safely(
            self.telemetry,
            "item_found",
            item=target.name,
            level=target.level,
            time_to_find=round(record.time_to_find, 2),
        )

        if self._score >= self.max_items:
            self._transition_to(SessionState.ALL_FOUND)
            self.renderer.show(View.ALL_FOUND)
            self.renderer.show_message(FOUND_ALL_MESSAGE)
            self._emit(self._on_item_found_callbacks, record)
            self._emit(self._on_all_found_callbacks, self.history)
            track_safely(self.telemetry, "all_found", score=self._score)
        else:
            self._transition_to(SessionState.ITEM_FOUND)
            self.renderer.show(View.ITEM_FOUND)
            self._emit(self._on_item_found_callbacks, record)

    # --- Clock events ---

    def _handle_clock_tick(self, remaining: int) -> None:
        self.renderer.update(Field.TIME_REMAINING, remaining)
        self._emit(self._on_clock_tick_callbacks, remaining)

    def _handle_time_expired(self) -> None:
        if self._state != SessionState.RUNNING:
            return

        target = self._current_target
        self._suspend()
        self._last_outcome = RoundOutcome.TIME_UP

        self.renderer.update(Field.NARRATION, TIME_UP_MESSAGE)
        self._transition_to(SessionState.ITEM_FOUND)
        self.renderer.show(View.ITEM_FOUND)
        logger.info(f"Time up while looking for '{target.name}'")
        track_safely(self.telemetry, "time_up", item=target.name, level=target.level)
        self._emit(self._on_time_expired_callbacks, target)

    # --- Internals ---

    def _draw_target(self) -> ExhibitItem:
        level = self._difficulty.next_level()
        item = self._pool.draw(level)
        self._current_target = item
        self._round_active_time = 0.0
        self.renderer.update(Field.TARGET, item.display_label)
        logger.info(f"New target: '{item.name}' (level {level})")
        self._emit(self._on_target_changed_callbacks, item)
        return item

    def _enter_running(self) -> None:
        """Begin a full round with the current target."""
        self._epoch += 1
        self._strategy.reset()
        self._round_active_time = 0.0

        if self._clock is not None:
            self._clock.start(self.round_seconds)
            self.renderer.update(Field.TIME_REMAINING, self.round_seconds)

        self.camera.resume()
        self._running_since = time.monotonic()
        self._transition_to(SessionState.RUNNING)
        self.renderer.show(View.RUNNING)

    def _arm_background(self) -> None:
        """Bind clock and prediction loop to the running event loop."""
        if self._clock is not None:
            self._clock.attach_loop(asyncio.get_running_loop())
        self._prediction_loop.start()

    def _suspend(self) -> None:
        """Stop clock and camera and invalidate in-flight predictions."""
        self._epoch += 1
        if self._clock is not None:
            self._clock.stop()
        self.camera.pause()
        if self._running_since is not None:
            self._round_active_time += time.monotonic() - self._running_since
            self._running_since = None

    def _handle_load_failure(self, error: AcquisitionError) -> None:
        logger.error(f"Game could not start: {error}")
        # Release whatever was acquired so a retry starts clean
        self.camera.cleanup()
        self.classifier.cleanup()

        self._last_error = error
        self.renderer.hide(View.LOADING)
        self._transition_to(SessionState.IDLE)
        self.renderer.show_message(error.user_message)
        track_safely(self.telemetry, "load_failed", reason=error.reason.value)
        self._emit(self._on_load_failed_callbacks, error)

    @staticmethod
    def _to_acquisition_error(
        exc: BaseException, fallback: AcquisitionFailure
    ) -> AcquisitionError:
        if isinstance(exc, AcquisitionError):
            return exc
        if isinstance(exc, PermissionError):
            return AcquisitionError(AcquisitionFailure.PERMISSION_DENIED, str(exc))
        return AcquisitionError(fallback, f"{type(exc).__name__}: {exc}")

    def _transition_to(self, new_state: SessionState) -> None:
        old_state = self._state
        if old_state == new_state:
            return
        self._state = new_state
        logger.info(f"State: {old_state.name} -> {new_state.name}")
        self._emit(self._on_state_change_callbacks, new_state)

    def _emit(self, callbacks: list[Callable], *args) -> None:
        for callback in list(callbacks):
            try:
                callback(*args)
            except Exception as e:
                logger.error(
                    f"Callback {getattr(callback, '__name__', callback)} error: {e}",
                    exc_info=True,
                )

    # --- Callback registration ---

    def on_state_change(self, callback: Callable[[SessionState], None]) -> None:
        """Register callback for state changes."""
        self._on_state_change_callbacks.append(callback)

    def on_target_changed(self, callback: Callable[[ExhibitItem], None]) -> None:
        """Register callback for a newly drawn target."""
        self._on_target_changed_callbacks.append(callback)

    def on_best_guess(self, callback: Callable[[str], None]) -> None:
        """Register callback for a changed top-1 label."""
        self._on_best_guess_callbacks.append(callback)

    def on_item_found(self, callback: Callable[[FoundRecord], None]) -> None:
        """Register callback for a matched target."""
        self._on_item_found_callbacks.append(callback)

    def on_all_found(self, callback: Callable[[list[FoundRecord]], None]) -> None:
        """Register callback for the winning match."""
        self._on_all_found_callbacks.append(callback)

    def on_time_expired(self, callback: Callable[[ExhibitItem], None]) -> None:
        """Register callback for a round that ran out of time."""
        self._on_time_expired_callbacks.append(callback)

    def on_clock_tick(self, callback: Callable[[int], None]) -> None:
        """Register callback receiving the remaining seconds each tick."""
        self._on_clock_tick_callbacks.append(callback)

    def on_load_failed(self, callback: Callable[[AcquisitionError], None]) -> None:
        """Register callback for a failed classifier/camera acquisition."""
        self._on_load_failed_callbacks.append(callback)

    # --- Status & teardown ---

    def debug_info(self) -> dict:
        """Last top-K list and prediction loop timing."""
        frame = self._prediction_loop.last_frame
        return {
            "debug": self.debug,
            "best_guess": self._best_guess,
            "predictions": [p.to_dict() for p in self._last_predictions],
            "last_frame": frame.to_dict() if frame else None,
            "loop": self._prediction_loop.get_status(),
        }

    def get_status(self) -> dict:
        """Get session status."""
        target = self._current_target
        return {
            "state": self._state.name,
            "score": self._score,
            "max_items": self.max_items,
            "target": target.to_dict() if target else None,
            "best_guess": self._best_guess,
            "time_remaining": self.time_remaining,
            "round_seconds": self.round_seconds,
            "found": len(self._history),
            "last_outcome": self._last_outcome.name if self._last_outcome else None,
            "last_error": self._last_error.to_dict() if self._last_error else None,
            "resources_ready": self._resources_ready,
            "epoch": self._epoch,
            "strategy": self._strategy.name,
            "difficulty": {
                "sequence": self._difficulty.levels,
                "index": self._difficulty.index,
            },
            "pool": self._pool.get_status(),
        }

    async def close(self) -> None:
        """Stop the loop and release classifier and camera."""
        await self._prediction_loop.stop()
        self._suspend()
        self.camera.cleanup()
        self.classifier.cleanup()
        self._resources_ready = False
        logger.info("GameSession closed")
