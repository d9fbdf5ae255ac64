"""
Target Pool - leveled, non-repeating target draw

Each level keeps its own draw queue ("lap"). A drawn item is not seen
again until every other item of the level has been drawn; then the queue
is refilled:
- Standard levels: uniformly random permutation of the level catalog
- Demo levels: catalog order, identical every lap

The difficulty sequence (e.g. "1123445") decides which level the next
target comes from and wraps around when exhausted.
"""

import logging
import random
from collections import deque
from typing import Iterable

from .catalog import Catalog, ExhibitItem
from .errors import ConfigurationError

logger = logging.getLogger(__name__)


class TargetPool:
    """Per-level draw queues over a catalog."""

    def __init__(self, catalog: Catalog, rng: random.Random | None = None):
        self.catalog = catalog
        self._rng = rng or random.Random()
        self._queues: dict[str, deque[ExhibitItem]] = {}
        self._laps: dict[str, int] = {}

    def draw(self, level: str) -> ExhibitItem:
        """
        Remove and return the next item of a level.

        Refills the level queue first if the current lap is exhausted.

        Raises:
            ConfigurationError: If the level is unknown to the catalog
        """
        queue = self._queues.get(level)
        if not queue:
            queue = self._refill(level)
        item = queue.popleft()
        logger.debug(f"Drew '{item.name}' from level {level} ({len(queue)} left in lap)")
        return item

    def reset(self, level: str | None = None) -> None:
        """Force an immediate refill of one level, or of every level drawn so far."""
        if level is not None:
            self._refill(level)
            return
        for level_id in list(self._queues):
            self._refill(level_id)

    def remaining(self, level: str) -> int:
        """Items left in the level's current lap."""
        self.catalog.items(level)
        return len(self._queues.get(level, ()))

    def _refill(self, level: str) -> deque[ExhibitItem]:
        items = list(self.catalog.items(level))
        if not self.catalog.is_demo(level):
            self._rng.shuffle(items)
        queue = deque(items)
        self._queues[level] = queue
        self._laps[level] = self._laps.get(level, 0) + 1
        logger.debug(
            f"Level {level} refilled (lap {self._laps[level]}): "
            f"{[item.name for item in items]}"
        )
        return queue

    def get_status(self) -> dict:
        """Get pool status."""
        return {
            "levels": {
                level: {"remaining": len(queue), "lap": self._laps.get(level, 0)}
                for level, queue in self._queues.items()
            }
        }


class GameDifficultySequence:
    """Cyclic sequence of level ids deciding where each target is drawn from."""

    def __init__(self, sequence: str | Iterable[str], catalog: Catalog):
        # A string is read one level id per character ("1123445")
        levels = [str(level) for level in sequence]
        if not levels:
            raise ConfigurationError("Difficulty sequence is empty")
        unknown = [level for level in levels if not catalog.has_level(level)]
        if unknown:
            raise ConfigurationError(
                f"Difficulty sequence references unknown levels: {sorted(set(unknown))}"
            )
        self._levels = levels
        self._index = 0

    @property
    def levels(self) -> list[str]:
        return list(self._levels)

    @property
    def index(self) -> int:
        """Position of the next level to be consumed."""
        return self._index

    def next_level(self) -> str:
        """Consume and return the next level id, wrapping at the end."""
        if self._index >= len(self._levels):
            self._index = 0
        level = self._levels[self._index]
        self._index += 1
        return level

    def reset(self) -> None:
        self._index = 0
