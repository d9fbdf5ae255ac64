"""
Exhibit catalog - the findable objects grouped by difficulty level.

Items are immutable once loaded. A catalog can come from a JSON file:

    {
        "demo_levels": ["demo"],
        "levels": {
            "1": [{"name": "vase", "display_label": "Vase", "asset": "vase.svg"}],
            ...
        }
    }

or from the built-in DEFAULT_LEVELS.
"""

import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable

from .errors import ConfigurationError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ExhibitItem:
    """A single findable object."""

    name: str  # Classifier label, also the stable key
    display_label: str
    asset: str
    level: str

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "name": self.name,
            "display_label": self.display_label,
            "asset": self.asset,
            "level": self.level,
        }

    def __str__(self) -> str:
        return self.display_label


# name -> (display label, asset) per level
DEFAULT_LEVELS: dict[str, list[tuple[str, str, str]]] = {
    "1": [
        ("vase", "Vase", "icons/vase.svg"),
        ("wall clock", "Wall clock", "icons/wall_clock.svg"),
        ("umbrella", "Umbrella", "icons/umbrella.svg"),
    ],
    "2": [
        ("pot", "Flower pot", "icons/pot.svg"),
        ("lampshade", "Lamp", "icons/lampshade.svg"),
        ("bookcase", "Bookcase", "icons/bookcase.svg"),
    ],
    "3": [
        ("harp", "Harp", "icons/harp.svg"),
        ("cello", "Cello", "icons/cello.svg"),
        ("grand piano", "Grand piano", "icons/grand_piano.svg"),
    ],
    "4": [
        ("analog clock", "Clock", "icons/analog_clock.svg"),
        ("globe", "Globe", "icons/globe.svg"),
        ("telescope", "Telescope", "icons/telescope.svg"),
    ],
    "5": [
        ("sundial", "Sundial", "icons/sundial.svg"),
        ("abacus", "Abacus", "icons/abacus.svg"),
        ("hourglass", "Hourglass", "icons/hourglass.svg"),
    ],
    "demo": [
        ("vase", "Vase", "icons/vase.svg"),
        ("globe", "Globe", "icons/globe.svg"),
        ("harp", "Harp", "icons/harp.svg"),
    ],
}

DEFAULT_DEMO_LEVELS = {"demo"}


class Catalog:
    """Read-only mapping of level id to its ordered exhibit items."""

    def __init__(
        self,
        levels: dict[str, Iterable[ExhibitItem]],
        demo_levels: Iterable[str] = (),
    ):
        self._levels: dict[str, tuple[ExhibitItem, ...]] = {}
        for level_id, items in levels.items():
            items = tuple(items)
            if not items:
                raise ConfigurationError(f"Level '{level_id}' has no items")
            self._levels[str(level_id)] = items

        self._demo_levels = frozenset(str(level) for level in demo_levels)
        unknown = self._demo_levels - set(self._levels)
        if unknown:
            raise ConfigurationError(f"Demo levels not in catalog: {sorted(unknown)}")

        logger.info(
            f"Catalog loaded: {len(self._levels)} levels, "
            f"{sum(len(v) for v in self._levels.values())} items, "
            f"demo={sorted(self._demo_levels)}"
        )

    @property
    def level_ids(self) -> list[str]:
        """All known level ids."""
        return list(self._levels)

    def items(self, level: str) -> tuple[ExhibitItem, ...]:
        """Get the ordered items of a level."""
        try:
            return self._levels[level]
        except KeyError:
            raise ConfigurationError(f"Unknown level '{level}'") from None

    def is_demo(self, level: str) -> bool:
        """Demo levels refill in fixed order instead of shuffling."""
        self.items(level)
        return level in self._demo_levels

    def has_level(self, level: str) -> bool:
        return level in self._levels

    def labels(self) -> list[str]:
        """Distinct item names across all levels, in first-seen order."""
        seen: dict[str, None] = {}
        for items in self._levels.values():
            for item in items:
                seen.setdefault(item.name, None)
        return list(seen)

    def find(self, name: str) -> ExhibitItem | None:
        for items in self._levels.values():
            for item in items:
                if item.name == name:
                    return item
        return None

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "demo_levels": sorted(self._demo_levels),
            "levels": {
                level: [item.to_dict() for item in items]
                for level, items in self._levels.items()
            },
        }


def default_catalog() -> Catalog:
    """Build the built-in catalog."""
    levels = {
        level: [
            ExhibitItem(name=name, display_label=label, asset=asset, level=level)
            for name, label, asset in entries
        ]
        for level, entries in DEFAULT_LEVELS.items()
    }
    return Catalog(levels, demo_levels=DEFAULT_DEMO_LEVELS)


def load_catalog(path: str | Path) -> Catalog:
    """
    Load a catalog from a JSON file.

    Args:
        path: Path to the catalog JSON

    Returns:
        Loaded Catalog

    Raises:
        ConfigurationError: If the file is missing or malformed
    """
    path = Path(path)
    try:
        with open(path) as f:
            data = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        raise ConfigurationError(f"Cannot read catalog {path}: {e}") from e

    raw_levels = data.get("levels")
    if not isinstance(raw_levels, dict) or not raw_levels:
        raise ConfigurationError(f"Catalog {path} has no 'levels' mapping")

    levels: dict[str, list[ExhibitItem]] = {}
    for level, entries in raw_levels.items():
        level = str(level)
        try:
            levels[level] = [
                ExhibitItem(
                    name=entry["name"],
                    display_label=entry.get("display_label", entry["name"]),
                    asset=entry.get("asset", ""),
                    level=level,
                )
                for entry in entries
            ]
        except (KeyError, TypeError) as e:
            raise ConfigurationError(f"Malformed item in level '{level}': {e}") from e

    return Catalog(levels, demo_levels=data.get("demo_levels", []))
