"""
Scavenger Hunt Main Controller

Builds the game from configuration and runs it:
- Catalog, target pool and difficulty sequence
- Classifier (pluggable backend or mock) and camera
- Game session with its prediction loop and round clock
- REST API server as the command surface

The controller owns every component; there are no global singletons.
"""

import asyncio
import logging
import random
import signal
import sys
from pathlib import Path

from .camera.camera_service import CameraService
from .game.catalog import Catalog, default_catalog, load_catalog
from .game.errors import AcquisitionError, ConfigurationError
from .game.session import FoundRecord, GameSession, SessionState
from .game.telemetry import LoggingTelemetry
from .game.views import ViewStateRenderer
from .inference.classifier_engine import ClassifierEngine, load_backend
from .inference.match_resolver import create_match_strategy

logger = logging.getLogger(__name__)

# Everyday classes the classifier also knows, so not every frame is an exhibit
BACKGROUND_LABELS = ["person", "wall", "chair", "table", "window", "door", "floor"]


def load_labels(path: str | Path) -> list[str]:
    """
    Read classifier labels, one per line.

    Raises:
        ConfigurationError: If the file is missing or empty
    """
    path = Path(path)
    try:
        lines = path.read_text(encoding="utf-8").splitlines()
    except OSError as e:
        raise ConfigurationError(f"Cannot read labels {path}: {e}") from e
    labels = [line.strip() for line in lines if line.strip()]
    if not labels:
        raise ConfigurationError(f"Labels file {path} is empty")
    return labels


def build_session(game_config, classifier_config, camera_config) -> GameSession:
    """
    Build a GameSession and its collaborators from configuration.

    Raises:
        ConfigurationError: Catalog, labels, classifier backend or difficulty
            are invalid
    """
    catalog: Catalog = (
        load_catalog(game_config.catalog_file)
        if game_config.catalog_file
        else default_catalog()
    )

    if classifier_config.labels_file:
        labels = load_labels(classifier_config.labels_file)
        missing = [name for name in catalog.labels() if name not in labels]
        if missing:
            # Such items can never be found
            logger.warning(f"Catalog items unknown to the classifier: {missing}")
    else:
        labels = catalog.labels() + [
            label for label in BACKGROUND_LABELS if label not in catalog.labels()
        ]

    predict_fn = None
    if not classifier_config.use_mock:
        if not classifier_config.backend:
            raise ConfigurationError("Classifier backend required when use_mock is off")
        predict_fn = load_backend(classifier_config.backend)

    classifier = ClassifierEngine(
        labels=labels,
        predict_fn=predict_fn,
        input_size=classifier_config.input_size,
        force_mock=classifier_config.use_mock,
        mock_hit_probability=classifier_config.mock_hit_probability,
        mock_favored_labels=catalog.labels(),
    )
    camera = CameraService(
        device_index=camera_config.device_index,
        resolution=camera_config.resolution,
        hflip=camera_config.hflip,
        vflip=camera_config.vflip,
        force_mock=camera_config.use_mock,
    )
    strategy = create_match_strategy(
        game_config.match_strategy,
        window_cycles=game_config.accumulate_window,
        threshold=game_config.accumulate_threshold,
    )

    return GameSession(
        catalog=catalog,
        classifier=classifier,
        camera=camera,
        difficulty=game_config.difficulty,
        strategy=strategy,
        max_items=game_config.max_items,
        round_seconds=game_config.round_seconds,
        renderer=ViewStateRenderer(),
        telemetry=LoggingTelemetry(enabled=game_config.telemetry_enabled),
        top_k=game_config.top_k,
        frame_interval=game_config.frame_interval,
        rng=random.Random(game_config.seed),
        debug=game_config.debug,
    )


class ScavengerHuntController:
    """
    Main controller owning the game session and the API server.
    """

    def __init__(self):
        """Initialize the controller."""
        self._running = False
        self._session: GameSession | None = None

        # Background async tasks (for proper cancellation on shutdown)
        self._background_tasks: list[asyncio.Task] = []

        logger.info("ScavengerHuntController initialized")

    @property
    def session(self) -> GameSession | None:
        return self._session

    async def start(self) -> None:
        """Start the game service and block until shutdown."""
        logger.info("=== Starting Scavenger Hunt ===")

        from .config import (
            api_config,
            camera_config,
            classifier_config,
            ensure_runtime_dirs,
            game_config,
            setup_logging,
        )

        setup_logging()
        ensure_runtime_dirs()

        self._session = build_session(game_config, classifier_config, camera_config)
        self._register_session_callbacks(self._session)

        self._setup_signal_handlers()
        self._running = True

        if api_config.enabled:
            from .api.server import start_server

            task = asyncio.create_task(
                start_server(self._session, host=api_config.host, port=api_config.port),
                name="api_server",
            )
            self._background_tasks.append(task)
            logger.info(f"API server task started on {api_config.host}:{api_config.port}")
        else:
            # Without a command surface, start playing right away
            await self._session.start_game()

        logger.info("=== Scavenger Hunt Running ===")

        try:
            while self._running:
                await asyncio.sleep(1)
        except asyncio.CancelledError:
            logger.info("Main loop cancelled")

        await self._shutdown()

    def _register_session_callbacks(self, session: GameSession) -> None:
        session.on_state_change(self._handle_state_change)
        session.on_item_found(self._handle_item_found)
        session.on_load_failed(self._handle_load_failed)

    def _handle_state_change(self, state: SessionState) -> None:
        if state == SessionState.ALL_FOUND:
            history = self._session.history
            total = sum(record.time_to_find for record in history)
            logger.info(f"All {len(history)} items found in {total:.1f}s")

    def _handle_item_found(self, record: FoundRecord) -> None:
        logger.info(f"Item found: {record.item.display_label} ({record.time_to_find:.1f}s)")

    def _handle_load_failed(self, error: AcquisitionError) -> None:
        logger.error(f"Game resources unavailable: {error.reason.value}")

    def _setup_signal_handlers(self) -> None:
        """Setup signal handlers for graceful shutdown."""

        def signal_handler(signum, frame):
            logger.info(f"Signal {signum} received, initiating shutdown...")
            self._running = False

        signal.signal(signal.SIGINT, signal_handler)
        signal.signal(signal.SIGTERM, signal_handler)

    async def _shutdown(self) -> None:
        """Clean shutdown of all components."""
        logger.info("Initiating shutdown...")

        if self._background_tasks:
            logger.info(f"Cancelling {len(self._background_tasks)} background tasks...")
            for task in self._background_tasks:
                if not task.done():
                    task.cancel()

            try:
                await asyncio.wait_for(
                    asyncio.gather(*self._background_tasks, return_exceptions=True),
                    timeout=5.0,
                )
                logger.info("Background tasks cancelled successfully")
            except asyncio.TimeoutError:
                logger.warning("Background tasks did not cancel within 5s")
            self._background_tasks.clear()

        if self._session:
            await self._session.close()

        logger.info("Shutdown complete")

    def get_status(self) -> dict:
        """Get full system status."""
        return {
            "running": self._running,
            "session": self._session.get_status() if self._session else None,
        }


# ==================== Entry Point ====================


async def app() -> None:
    """Main application entry point."""
    controller = ScavengerHuntController()
    await controller.start()


def main() -> None:
    """CLI entry point."""
    print("=== Scavenger Hunt ===")
    print("Show the camera the objects on your list")
    print()

    try:
        asyncio.run(app())
    except KeyboardInterrupt:
        print("\nShutdown requested by user")
    except ConfigurationError as e:
        logger.error(f"Configuration error: {e}")
        sys.exit(2)
    except Exception as e:
        logger.error(f"Fatal error: {e}", exc_info=True)
        sys.exit(1)


if __name__ == "__main__":
    main()
