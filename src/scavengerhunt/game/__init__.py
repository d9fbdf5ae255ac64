"""
Game module for Scavenger Hunt.

Provides:
- Catalog / ExhibitItem: Findable objects grouped by level
- TargetPool / GameDifficultySequence: Non-repeating leveled target draw
- SessionClock: Round countdown
- GameSession: The session state machine
- PredictionLoop: Frame -> classifier -> session pump
"""

from .catalog import Catalog, ExhibitItem, default_catalog, load_catalog
from .clock import SessionClock
from .errors import (
    AcquisitionError,
    AcquisitionFailure,
    ConfigurationError,
    ScavengerHuntError,
)
from .prediction_loop import PredictionLoop
from .session import FoundRecord, GameSession, RoundOutcome, SessionState
from .target_pool import GameDifficultySequence, TargetPool
from .views import Field, View, ViewStateRenderer

__all__ = [
    "Catalog",
    "ExhibitItem",
    "default_catalog",
    "load_catalog",
    "SessionClock",
    "AcquisitionError",
    "AcquisitionFailure",
    "ConfigurationError",
    "ScavengerHuntError",
    "PredictionLoop",
    "FoundRecord",
    "GameSession",
    "RoundOutcome",
    "SessionState",
    "GameDifficultySequence",
    "TargetPool",
    "Field",
    "View",
    "ViewStateRenderer",
]
