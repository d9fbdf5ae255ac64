"""
FastAPI Server - REST command surface for the game

Provides HTTP endpoints for:
- Game commands (start, pause, resume, quit, reset, restart, next)
- Game status, view state and found-item history
- Found-item snapshots as captioned JPEGs
- System status and debug predictions

Security: Designed for a kiosk on a local network.
Do NOT expose directly to the internet without authentication.
"""

import logging
import time
from datetime import datetime
from typing import Any

import psutil
import uvicorn
from fastapi import FastAPI, HTTPException, Response
from pydantic import BaseModel

from .. import __version__
from ..camera.frame_annotator import found_caption, snapshot_to_jpeg
from ..game.session import GameSession

logger = logging.getLogger(__name__)

_START_TIME = time.monotonic()


class StatusResponse(BaseModel):
    """System status response."""

    timestamp: str
    system: dict[str, Any]
    game: dict[str, Any]
    camera: dict[str, Any] | None
    classifier: dict[str, Any] | None
    prediction_loop: dict[str, Any] | None


class ActionResponse(BaseModel):
    """Command result response."""

    success: bool
    message: str
    state: str
    timestamp: str


def create_app(session: GameSession) -> FastAPI:
    """Create the FastAPI application bound to one game session."""
    app = FastAPI(
        title="Scavenger Hunt API",
        description="Command surface for the camera scavenger hunt game",
        version=__version__,
    )

    def action(success: bool, done: str, ignored: str) -> ActionResponse:
        return ActionResponse(
            success=success,
            message=done if success else ignored,
            state=session.state.name,
            timestamp=datetime.now().isoformat(),
        )

    # ==================== Status Endpoints ====================

    @app.get("/", response_model=dict)
    async def root():
        """Root endpoint - basic health check."""
        return {
            "service": "Scavenger Hunt",
            "version": __version__,
            "status": "running",
            "timestamp": datetime.now().isoformat(),
        }

    @app.get("/health")
    async def health():
        """Health check endpoint."""
        return {"status": "healthy", "timestamp": datetime.now().isoformat()}

    @app.get("/status", response_model=StatusResponse)
    async def get_status():
        """Get full system status."""
        system_status = {
            "cpu_percent": psutil.cpu_percent(),
            "memory_percent": psutil.virtual_memory().percent,
            "uptime_seconds": time.monotonic() - _START_TIME,
        }

        return StatusResponse(
            timestamp=datetime.now().isoformat(),
            system=system_status,
            game=session.get_status(),
            camera=session.camera.get_status(),
            classifier=session.classifier.get_status(),
            prediction_loop=session.prediction_loop.get_status(),
        )

    # ==================== Game Commands ====================

    @app.post("/game/start", response_model=ActionResponse)
    async def start_game():
        """Start the game (loads classifier and camera on first start)."""
        success = await session.start_game()
        if not success and session.last_error is not None:
            return ActionResponse(
                success=False,
                message=session.last_error.user_message,
                state=session.state.name,
                timestamp=datetime.now().isoformat(),
            )
        return action(success, "Game started", "Game can only be started from IDLE")

    @app.post("/game/pause", response_model=ActionResponse)
    async def pause_game():
        """Pause a running round."""
        return action(session.pause_game(), "Game paused", "Game is not running")

    @app.post("/game/resume", response_model=ActionResponse)
    async def resume_game():
        """Resume a paused round or cancel quitting."""
        return action(session.resume_game(), "Game resumed", "Game is not paused")

    @app.post("/game/quit", response_model=ActionResponse)
    async def quit_game():
        """Ask to quit; confirm with reset, cancel with resume."""
        return action(session.quit_game(), "Quit requested", "Nothing to quit")

    @app.post("/game/reset", response_model=ActionResponse)
    async def reset_game():
        """Back to the landing view with a fresh game."""
        return action(session.reset_game(), "Game reset", "Cannot reset while loading")

    @app.post("/game/restart", response_model=ActionResponse)
    async def restart_game():
        """Reset and start again."""
        return action(await session.restart_game(), "Game restarted", "Restart failed")

    @app.post("/game/next", response_model=ActionResponse)
    async def next_target():
        """Continue with the next target after a round ended."""
        return action(
            session.advance_to_next_target(),
            f"Now looking for {session.current_target}",
            "No round to continue from",
        )

    # ==================== Game State ====================

    @app.get("/game/status")
    async def game_status():
        """Get game state, score, target and view state."""
        status = session.get_status()
        to_dict = getattr(session.renderer, "to_dict", None)
        status["view"] = to_dict() if to_dict else None
        return status

    @app.get("/game/history")
    async def game_history():
        """Found items in the order they were found."""
        return {"found": [record.to_dict() for record in session.history]}

    @app.get("/game/history/{index}/snapshot")
    async def history_snapshot(index: int):
        """Captioned photo of a found item."""
        history = session.history
        if index < 0 or index >= len(history):
            raise HTTPException(status_code=404, detail=f"No found item at index {index}")

        record = history[index]
        if record.snapshot is None:
            raise HTTPException(status_code=404, detail="No snapshot for this item")

        image_bytes = snapshot_to_jpeg(
            record.snapshot, found_caption(record.item.display_label)
        )
        return Response(
            content=image_bytes,
            media_type="image/jpeg",
            headers={"Content-Disposition": f'inline; filename="found_{index}.jpg"'},
        )

    # ==================== Debug ====================

    @app.get("/debug/predictions")
    async def debug_predictions():
        """Latest top-K list and prediction loop timing."""
        return session.debug_info()

    return app


async def start_server(
    session: GameSession,
    host: str = "0.0.0.0",
    port: int = 8080,
) -> None:
    """
    Start the API server.

    Args:
        session: Game session to expose
        host: Bind host
        port: Bind port
    """
    app = create_app(session)

    config = uvicorn.Config(
        app,
        host=host,
        port=port,
        log_level="info",
        access_log=True,
    )

    server = uvicorn.Server(config)

    logger.info(f"Starting API server on {host}:{port}")
    await server.serve()
