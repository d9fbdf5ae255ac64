"""
Pytest configuration and shared fixtures for Scavenger Hunt tests.
"""

import random
import sys
from datetime import datetime
from pathlib import Path

import numpy as np
import pytest

# Add src to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from scavengerhunt.game.catalog import Catalog, ExhibitItem
from scavengerhunt.game.errors import AcquisitionError, AcquisitionFailure
from scavengerhunt.game.session import GameSession
from scavengerhunt.game.telemetry import LoggingTelemetry
from scavengerhunt.game.views import ViewStateRenderer
from scavengerhunt.inference.prediction import Prediction, PredictionFrame


def make_items(level: str, names: list[str]) -> list[ExhibitItem]:
    return [
        ExhibitItem(name=name, display_label=name.title(), asset=f"{name}.svg", level=level)
        for name in names
    ]


class FakeClassifier:
    """Classifier double returning scripted predictions."""

    def __init__(self, predictions: list[Prediction] | None = None, fail: Exception | None = None):
        self.predictions = predictions or [Prediction("background", 0.9)]
        self.fail = fail
        self.loaded = False
        self.load_calls = 0
        self.classify_calls = 0
        self.cleaned_up = False

    async def load(self) -> None:
        self.load_calls += 1
        if self.fail is not None:
            raise self.fail
        self.loaded = True

    async def classify(self, frame, k):
        self.classify_calls += 1
        return PredictionFrame(timestamp=datetime.now(), predictions=list(self.predictions[:k]))

    def cleanup(self) -> None:
        self.cleaned_up = True
        self.loaded = False

    def get_status(self) -> dict:
        return {"loaded": self.loaded}


class FakeCamera:
    """Camera double delivering a solid frame while not paused."""

    def __init__(self, fail: Exception | None = None):
        self.fail = fail
        self.acquired = False
        self.paused = True
        self.acquire_calls = 0
        self.cleaned_up = False
        self.frame = np.full((48, 64, 3), 128, dtype=np.uint8)
        self._last: np.ndarray | None = None

    async def acquire(self):
        self.acquire_calls += 1
        if self.fail is not None:
            raise self.fail
        self.acquired = True
        return (64, 48)

    def pause(self) -> None:
        self.paused = True

    def resume(self) -> None:
        self.paused = False

    def capture_frame(self):
        if self.paused:
            return None
        self._last = self.frame
        return self.frame

    def snapshot(self) -> np.ndarray:
        if self._last is None:
            raise RuntimeError("No frame available for snapshot")
        return self._last.copy()

    def cleanup(self) -> None:
        self.cleaned_up = True
        self.acquired = False

    def get_status(self) -> dict:
        return {"acquired": self.acquired, "paused": self.paused}


@pytest.fixture
def catalog():
    """Three standard levels plus a fixed-order demo level."""
    return Catalog(
        {
            "1": make_items("1", ["apple", "banana", "cherry"]),
            "2": make_items("2", ["dog", "cat"]),
            "3": make_items("3", ["bird"]),
            "demo": make_items("demo", ["vase", "globe", "harp"]),
        },
        demo_levels=["demo"],
    )


@pytest.fixture
def rng():
    return random.Random(1234)


@pytest.fixture
def fake_classifier():
    return FakeClassifier()


@pytest.fixture
def fake_camera():
    return FakeCamera()


@pytest.fixture
def renderer():
    return ViewStateRenderer()


@pytest.fixture
def telemetry():
    return LoggingTelemetry()


@pytest.fixture
def make_session(catalog, fake_classifier, fake_camera, renderer, telemetry, rng):
    """Factory building a GameSession around the fake collaborators."""

    def _make(**kwargs) -> GameSession:
        options = dict(
            catalog=catalog,
            classifier=fake_classifier,
            camera=fake_camera,
            difficulty="1",
            max_items=2,
            renderer=renderer,
            telemetry=telemetry,
            rng=rng,
            frame_interval=0.001,
        )
        options.update(kwargs)
        return GameSession(**options)

    return _make


@pytest.fixture
def camera_denied():
    return FakeCamera(fail=AcquisitionError(AcquisitionFailure.PERMISSION_DENIED, "denied"))


def hit(label: str, confidence: float = 0.9) -> list[Prediction]:
    """Predictions ranking one label first."""
    return [Prediction(label, confidence), Prediction("background", 1.0 - confidence)]
