"""
Tests for configuration and building a session from it.
"""

import asyncio

import numpy as np
import pytest
from pydantic import ValidationError

from scavengerhunt.config import CameraConfig, ClassifierConfig, GameConfig
from scavengerhunt.game.errors import ConfigurationError
from scavengerhunt.game.session import SessionState
from scavengerhunt.inference.match_resolver import AccumulatingMatchStrategy
from scavengerhunt.main import BACKGROUND_LABELS, build_session, load_labels


class TestConfig:
    """Tests for pydantic-settings validation."""

    def test_defaults(self):
        config = GameConfig()
        assert config.max_items >= 1
        assert config.match_strategy in ("top2", "accumulate")

    def test_env_override(self, monkeypatch):
        monkeypatch.setenv("SCAVENGER_GAME_MAX_ITEMS", "4")
        monkeypatch.setenv("SCAVENGER_GAME_ROUND_SECONDS", "30")
        config = GameConfig()
        assert config.max_items == 4
        assert config.round_seconds == 30

    def test_invalid_strategy(self):
        with pytest.raises(ValidationError):
            GameConfig(match_strategy="vibes")

    def test_invalid_threshold(self):
        with pytest.raises(ValidationError):
            GameConfig(accumulate_threshold=1.5)

    def test_resolution_from_list(self):
        assert CameraConfig(resolution=[320, 240]).resolution == (320, 240)


class TestBuildSession:
    """Tests for assembling the game from configuration."""

    def test_default_catalog_with_background_labels(self):
        session = build_session(
            GameConfig(difficulty="12", max_items=3, seed=1),
            ClassifierConfig(use_mock=True),
            CameraConfig(use_mock=True),
        )
        assert session.state == SessionState.IDLE
        assert session.max_items == 3
        for label in BACKGROUND_LABELS:
            assert label in session.classifier.labels
        assert session.current_target.level == "1"

    def test_accumulate_strategy(self):
        session = build_session(
            GameConfig(match_strategy="accumulate", accumulate_window=4),
            ClassifierConfig(use_mock=True),
            CameraConfig(use_mock=True),
        )
        assert isinstance(session.strategy, AccumulatingMatchStrategy)
        assert session.strategy.window_cycles == 4

    def test_labels_file(self, tmp_path):
        labels = tmp_path / "labels.txt"
        labels.write_text("vase\nglobe\n\nwall\n")
        assert load_labels(labels) == ["vase", "globe", "wall"]

        session = build_session(
            GameConfig(),
            ClassifierConfig(labels_file=str(labels), use_mock=True),
            CameraConfig(use_mock=True),
        )
        assert session.classifier.labels == ["vase", "globe", "wall"]

    def test_empty_labels_file(self, tmp_path):
        labels = tmp_path / "labels.txt"
        labels.write_text("\n")
        with pytest.raises(ConfigurationError):
            load_labels(labels)

    def test_bad_difficulty(self):
        with pytest.raises(ConfigurationError):
            build_session(
                GameConfig(difficulty="9"),
                ClassifierConfig(use_mock=True),
                CameraConfig(use_mock=True),
            )


class TestClassifierBackend:
    """Tests for the configured score function."""

    @pytest.fixture
    def backend_module(self, tmp_path, monkeypatch):
        (tmp_path / "museum_backend.py").write_text(
            "import numpy as np\n"
            "\n"
            "def predict(image):\n"
            "    return np.array([0.1, 0.8, 0.1], dtype=np.float32)\n"
            "\n"
            "NOT_CALLABLE = 3\n"
        )
        monkeypatch.syspath_prepend(str(tmp_path))
        labels = tmp_path / "labels.txt"
        labels.write_text("vase\nglobe\nwall\n")
        return labels

    def test_configured_backend_loads_and_classifies(self, backend_module):
        session = build_session(
            GameConfig(seed=1),
            ClassifierConfig(
                use_mock=False,
                backend="museum_backend:predict",
                labels_file=str(backend_module),
            ),
            CameraConfig(use_mock=True),
        )

        async def scenario():
            started = await session.start_game()
            frame = np.zeros((480, 640, 3), dtype=np.uint8)
            result = await session.classifier.classify(frame, 2)
            await session.close()
            return started, result

        started, result = asyncio.run(scenario())
        assert started is True
        assert session.last_error is None
        assert session.classifier.get_status()["using_mock"] is False
        assert [p.label for p in result.predictions] == ["globe", "vase"]

    def test_real_classifier_needs_backend(self):
        with pytest.raises(ConfigurationError):
            build_session(
                GameConfig(),
                ClassifierConfig(use_mock=False, backend=""),
                CameraConfig(use_mock=True),
            )

    @pytest.mark.parametrize(
        "backend",
        ["museum_backend", "no_such_module_xyz:predict", "museum_backend:missing",
         "museum_backend:NOT_CALLABLE"],
    )
    def test_bad_backend_rejected(self, backend_module, backend):
        with pytest.raises(ConfigurationError):
            build_session(
                GameConfig(),
                ClassifierConfig(use_mock=False, backend=backend),
                CameraConfig(use_mock=True),
            )
