"""
View intents emitted by the game session.

The session never draws anything itself. It tells a renderer which view
to show or hide and which label to update. ViewStateRenderer is the
default renderer: it keeps the active/previous view and the latest label
values so the API can serve them to a front end.
"""

import logging
import random
from enum import Enum
from typing import Any, Protocol

logger = logging.getLogger(__name__)


class View(Enum):
    """Screens of the game."""

    LANDING = "landing"
    LOADING = "loading"
    RUNNING = "running"
    QUIT = "quit"
    ITEM_FOUND = "item_found"
    ALL_FOUND = "all_found"


class Field(Enum):
    """Data labels the renderer displays."""

    TARGET = "target"
    SCORE = "score"
    TIME_REMAINING = "time_remaining"
    BEST_GUESS = "best_guess"
    NARRATION = "narration"


class ViewRenderer(Protocol):
    """Receiver of view-transition and data-update intents."""

    def show(self, view: View) -> None: ...

    def hide(self, view: View) -> None: ...

    def update(self, field: Field, value: Any) -> None: ...

    def show_message(self, message: str) -> None: ...


# Narration prefixes for the current best guess
SPEAKING_PREFIXES = [
    "Is that a ",
    "Do I see a ",
    "Do I spy a ",
    "Did I just see a ",
    "Was that a ",
    "I think I saw a ",
    "Am I seeing a ",
    "Could that be a ",
    "Did I spot a ",
    "Might I see a ",
]

FOUND_ALL_MESSAGE = "You did it!"
TIME_UP_MESSAGE = "Oh no! Your time is up."


def seeing_message(label: str, rng: random.Random | None = None) -> str:
    """Narration for what the classifier currently sees."""
    prefix = (rng or random).choice(SPEAKING_PREFIXES)
    return f"{prefix}{label} ?"


def found_message(display_label: str) -> str:
    return f"Hey you found the {display_label}!"


class ViewStateRenderer:
    """Tracks the view stack and label values."""

    def __init__(self):
        self.active_view = View.LANDING
        self.prev_active_view = View.LANDING
        self.fields: dict[Field, Any] = {}
        self.message: str | None = None

    def show(self, view: View) -> None:
        if view == self.active_view:
            return
        self.prev_active_view = self.active_view
        self.active_view = view
        logger.debug(f"View: show {view.value} (was {self.prev_active_view.value})")

    def hide(self, view: View) -> None:
        # Hiding a view that is not on top leaves the stack alone
        if view != self.active_view:
            return
        self.active_view = self.prev_active_view
        logger.debug(f"View: hide {view.value} -> {self.active_view.value}")

    def update(self, field: Field, value: Any) -> None:
        self.fields[field] = value

    def show_message(self, message: str) -> None:
        self.message = message
        logger.info(f"Landing message: {message}")

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "active_view": self.active_view.value,
            "prev_active_view": self.prev_active_view.value,
            "fields": {f.value: v for f, v in self.fields.items()},
            "message": self.message,
        }
