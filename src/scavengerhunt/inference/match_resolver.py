"""
Match Resolver - decides whether the classifier has seen the current target

Two strategies, selected by the caller:

1. Immediate (top-2): the target is found when its label is the first OR
   second ranked candidate. Tolerates jitter between two visually similar
   classes. Lower ranks are ignored.
2. Accumulating: confidences of every observed label are collected over a
   window of N cycles. At report time, any label whose average confidence
   exceeds the threshold (0.94) counts as found. Slower to react, but
   robust against single noisy frames.

In both cases the best guess is the top-1 label of the current cycle,
updated every cycle regardless of the match outcome.
"""

import logging
from collections import defaultdict
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Protocol, Sequence

from .prediction import Prediction

if TYPE_CHECKING:
    from ..game.catalog import ExhibitItem

logger = logging.getLogger(__name__)

# Average confidence a label needs in accumulating mode
ACCUMULATED_CONFIDENCE_THRESHOLD = 0.94


@dataclass(frozen=True)
class MatchResult:
    """Outcome of evaluating one prediction cycle against the target."""

    matched: bool
    best_label: str | None
    found_labels: tuple[str, ...] = ()


class MatchResolver:
    """Pure top-2 matching of ranked candidates against a target."""

    MATCH_RANKS = 2

    def resolve(
        self, candidates: Sequence[Prediction], target: "ExhibitItem"
    ) -> MatchResult:
        """
        Match the target against the two highest ranked candidates.

        Args:
            candidates: Classifier output, ordered by descending confidence
            target: Item the player is looking for

        Returns:
            MatchResult with the top-1 label as best guess
        """
        best_label = candidates[0].label if candidates else None
        matched = any(
            candidate.label == target.name
            for candidate in candidates[: self.MATCH_RANKS]
        )
        return MatchResult(matched=matched, best_label=best_label)


class ConfidenceAccumulator:
    """
    Collects per-label confidences over a window of prediction cycles.

    The average is taken over the cycles in the window, so a label missing
    from some cycles is diluted by them.
    """

    def __init__(
        self,
        window_cycles: int,
        threshold: float = ACCUMULATED_CONFIDENCE_THRESHOLD,
    ):
        if window_cycles < 1:
            raise ValueError(f"window_cycles must be >= 1, got {window_cycles}")
        if not 0.0 <= threshold <= 1.0:
            raise ValueError(f"threshold must be 0.0-1.0, got {threshold}")
        self.window_cycles = window_cycles
        self.threshold = threshold
        self._totals: dict[str, float] = defaultdict(float)
        self._cycles = 0

    @property
    def cycles(self) -> int:
        """Cycles observed in the current window."""
        return self._cycles

    @property
    def ready(self) -> bool:
        """True when the window is full and a report is due."""
        return self._cycles >= self.window_cycles

    def observe(self, candidates: Sequence[Prediction]) -> None:
        """Add one cycle of ranked candidates to the window."""
        for candidate in candidates:
            self._totals[candidate.label] += candidate.confidence
        self._cycles += 1

    def averages(self) -> dict[str, float]:
        """Average confidence per label over the observed cycles."""
        if self._cycles == 0:
            return {}
        return {label: total / self._cycles for label, total in self._totals.items()}

    def report(self) -> list[str]:
        """
        Close the window.

        Returns:
            Labels whose average confidence exceeds the threshold, best first
        """
        averages = self.averages()
        found = sorted(
            (label for label, avg in averages.items() if avg > self.threshold),
            key=lambda label: averages[label],
            reverse=True,
        )
        logger.debug(
            f"Accumulator report after {self._cycles} cycles: "
            f"found={found}, threshold={self.threshold}"
        )
        self.reset()
        return found

    def reset(self) -> None:
        self._totals.clear()
        self._cycles = 0


class MatchStrategy(Protocol):
    """How a GameSession turns classifier output into match decisions."""

    name: str

    def evaluate(
        self, candidates: Sequence[Prediction], target: "ExhibitItem"
    ) -> MatchResult: ...

    def reset(self) -> None: ...


class ImmediateMatchStrategy:
    """Per-frame top-2 matching."""

    name = "top2"

    def __init__(self, resolver: MatchResolver | None = None):
        self.resolver = resolver or MatchResolver()

    def evaluate(
        self, candidates: Sequence[Prediction], target: "ExhibitItem"
    ) -> MatchResult:
        return self.resolver.resolve(candidates, target)

    def reset(self) -> None:
        pass


@dataclass
class AccumulatingMatchStrategy:
    """Collect over a window, then match on averaged confidence."""

    window_cycles: int = 10
    threshold: float = ACCUMULATED_CONFIDENCE_THRESHOLD
    resolver: MatchResolver = field(default_factory=MatchResolver)
    name: str = "accumulate"

    def __post_init__(self):
        self.accumulator = ConfidenceAccumulator(self.window_cycles, self.threshold)

    def evaluate(
        self, candidates: Sequence[Prediction], target: "ExhibitItem"
    ) -> MatchResult:
        best_label = self.resolver.resolve(candidates, target).best_label
        self.accumulator.observe(candidates)
        if not self.accumulator.ready:
            return MatchResult(matched=False, best_label=best_label)

        found = tuple(self.accumulator.report())
        return MatchResult(
            matched=target.name in found,
            best_label=best_label,
            found_labels=found,
        )

    def reset(self) -> None:
        self.accumulator.reset()


def create_match_strategy(
    name: str,
    window_cycles: int = 10,
    threshold: float = ACCUMULATED_CONFIDENCE_THRESHOLD,
) -> MatchStrategy:
    """Build a strategy by its config name ("top2" or "accumulate")."""
    if name == ImmediateMatchStrategy.name:
        return ImmediateMatchStrategy()
    if name == "accumulate":
        return AccumulatingMatchStrategy(window_cycles=window_cycles, threshold=threshold)
    raise ValueError(f"Unknown match strategy '{name}'")
