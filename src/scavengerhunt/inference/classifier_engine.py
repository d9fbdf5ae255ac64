"""
Classifier Engine

Wraps an image classifier for the scavenger hunt prediction loop.

The engine provides:
- Model loading (async) and warm-up on a blank image
- Center-crop preprocessing to the model input size
- Score prediction and top-K ranking
- Async classification off the event loop thread

Backends:
- predict_fn: any callable taking a preprocessed (H, W, 3) uint8 image and
  returning one score per label
- MockClassifier: simulated scores for development without a model
"""

import asyncio
import importlib
import logging
import time
from datetime import datetime
from typing import Callable, Sequence

import numpy as np
from PIL import Image

from ..game.errors import AcquisitionError, AcquisitionFailure, ConfigurationError
from .prediction import Prediction, PredictionFrame

logger = logging.getLogger(__name__)

ScoreFunction = Callable[[np.ndarray], np.ndarray]

# Model input is a square crop of this many pixels
DEFAULT_INPUT_SIZE = 224


def load_backend(path: str) -> ScoreFunction:
    """
    Resolve a "package.module:function" path to a score function.

    Raises:
        ConfigurationError: If the module or attribute cannot be found, or
            the attribute is not callable
    """
    module_name, sep, attr = path.partition(":")
    if not sep or not module_name or not attr:
        raise ConfigurationError(f"Classifier backend must be 'module:function', got {path!r}")
    try:
        module = importlib.import_module(module_name)
    except ImportError as e:
        raise ConfigurationError(f"Cannot import classifier backend {module_name}: {e}") from e

    predict_fn = getattr(module, attr, None)
    if not callable(predict_fn):
        raise ConfigurationError(f"Classifier backend {path} is not a callable")
    logger.info(f"Classifier backend resolved: {path}")
    return predict_fn


class MockClassifier:
    """Simulated classifier for development without a trained model."""

    def __init__(
        self,
        labels: Sequence[str],
        hit_probability: float = 0.05,
        seed: int | None = None,
        favored: Sequence[str] | None = None,
    ):
        self.labels = list(labels)
        self.hit_probability = hit_probability
        self._rng = np.random.default_rng(seed)

        # Clear sightings land on these labels (all labels when none match)
        favored_set = set(favored) if favored is not None else set(self.labels)
        self._favored = [i for i, label in enumerate(self.labels) if label in favored_set]
        if not self._favored:
            self._favored = list(range(len(self.labels)))
        logger.info(
            f"[MOCK] Classifier loaded with {len(self.labels)} labels "
            f"({len(self._favored)} favored)"
        )

    def __call__(self, image: np.ndarray) -> np.ndarray:
        """Generate a softmax-like score vector, sometimes peaked on one label."""
        logits = self._rng.normal(0.0, 1.0, len(self.labels))

        # Occasionally "see" something clearly
        if self._rng.random() < self.hit_probability:
            logits[self._favored[self._rng.integers(len(self._favored))]] += 8.0

        exp = np.exp(logits - logits.max())
        return exp / exp.sum()


class ClassifierEngine:
    """
    Image classifier adapter.

    Loads the backend, preprocesses camera frames and ranks label scores.
    """

    def __init__(
        self,
        labels: Sequence[str],
        predict_fn: ScoreFunction | None = None,
        input_size: int = DEFAULT_INPUT_SIZE,
        force_mock: bool = False,
        mock_hit_probability: float = 0.05,
        mock_favored_labels: Sequence[str] | None = None,
    ):
        """
        Initialize the classifier engine.

        Args:
            labels: Class labels, index-aligned with the score vector
            predict_fn: Backend score function (required unless force_mock)
            input_size: Side of the square model input in pixels
            force_mock: Use the simulated classifier
            mock_hit_probability: Chance per frame that the mock sees a label clearly
            mock_favored_labels: Labels the mock sees clearly (default: all)
        """
        if not labels:
            raise ValueError("Classifier needs at least one label")
        self.labels = list(labels)
        self.input_size = input_size
        self._predict_fn = predict_fn
        self._force_mock = force_mock
        self._mock_hit_probability = mock_hit_probability
        self._mock_favored_labels = mock_favored_labels

        # State
        self._loaded = False
        self._frame_count = 0
        self._total_inference_time = 0.0

        logger.info(
            f"ClassifierEngine created: labels={len(self.labels)}, "
            f"input={input_size}px, mock={force_mock}"
        )

    @property
    def loaded(self) -> bool:
        return self._loaded

    async def load(self) -> None:
        """
        Load the backend and warm it up.

        Raises:
            AcquisitionError: If no backend is available or warm-up fails
        """
        if self._loaded:
            return

        if self._force_mock:
            self._predict_fn = MockClassifier(
                self.labels,
                hit_probability=self._mock_hit_probability,
                favored=self._mock_favored_labels,
            )
        elif self._predict_fn is None:
            raise AcquisitionError(
                AcquisitionFailure.MODEL_LOAD_FAILED, "No classifier backend configured"
            )

        loop = asyncio.get_running_loop()
        try:
            await loop.run_in_executor(None, self.warm_up)
        except Exception as e:
            logger.error(f"Classifier warm-up failed: {e}", exc_info=True)
            raise AcquisitionError(AcquisitionFailure.MODEL_LOAD_FAILED, str(e)) from e

        self._loaded = True
        logger.info("Classifier loaded and warmed up")

    def warm_up(self) -> None:
        """Run one prediction on a blank image so the first real one is fast."""
        blank = np.zeros((self.input_size, self.input_size, 3), dtype=np.uint8)
        self.predict(blank)

    def predict(self, image: np.ndarray) -> np.ndarray:
        """
        Score a preprocessed image.

        Args:
            image: (input_size, input_size, 3) uint8 RGB

        Returns:
            One score per label
        """
        if self._predict_fn is None:
            raise RuntimeError("Classifier not loaded")
        scores = np.asarray(self._predict_fn(image), dtype=np.float32).reshape(-1)
        if scores.shape[0] != len(self.labels):
            raise ValueError(
                f"Backend returned {scores.shape[0]} scores for {len(self.labels)} labels"
            )
        return scores

    def top_k(self, scores: np.ndarray, k: int) -> list[Prediction]:
        """
        Rank scores and return the k best.

        Returns:
            min(k, len(labels)) predictions, descending by confidence
        """
        k = min(k, len(self.labels))
        # Stable sort keeps label order on ties
        order = np.argsort(-scores, kind="stable")[:k]
        return [
            Prediction(label=self.labels[i], confidence=float(scores[i])) for i in order
        ]

    def preprocess(self, frame: np.ndarray) -> np.ndarray:
        """
        Cut the centered input_size square out of a camera frame.

        The camera view fills the screen but the model is trained on small
        square images, so only the center region is classified. Frames
        smaller than the input are cropped to a centered square on their
        short side and scaled up instead.
        """
        if frame.dtype != np.uint8:
            frame = np.clip(frame, 0, 255).astype(np.uint8)

        size = self.input_size
        h, w = frame.shape[:2]
        if h < size or w < size:
            side = min(h, w)
            top = (h - side) // 2
            left = (w - side) // 2
            square = np.ascontiguousarray(frame[top : top + side, left : left + side])
            img = Image.fromarray(square)
            img = img.convert("RGB").resize((size, size), Image.BILINEAR)
            return np.array(img, dtype=np.uint8)

        top = (h - size) // 2
        left = (w - size) // 2
        return frame[top : top + size, left : left + size, :3]

    def classify_frame(self, frame: np.ndarray, k: int) -> PredictionFrame:
        """Preprocess, predict and rank one frame (blocking)."""
        start_time = time.perf_counter()
        timestamp = datetime.now()

        scores = self.predict(self.preprocess(frame))
        predictions = self.top_k(scores, k)

        inference_time = (time.perf_counter() - start_time) * 1000  # ms
        self._frame_count += 1
        self._total_inference_time += inference_time

        return PredictionFrame(
            timestamp=timestamp,
            predictions=predictions,
            frame_number=self._frame_count,
            inference_time_ms=inference_time,
        )

    async def classify(self, frame: np.ndarray, k: int) -> PredictionFrame:
        """Classify a frame in the default executor."""
        if not self._loaded:
            raise RuntimeError("Classifier not loaded")
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, self.classify_frame, frame, k)

    @property
    def average_inference_time(self) -> float:
        """Get average inference time in milliseconds."""
        if self._frame_count == 0:
            return 0.0
        return self._total_inference_time / self._frame_count

    @property
    def fps(self) -> float:
        """Get estimated FPS based on average inference time."""
        avg_time = self.average_inference_time
        if avg_time == 0:
            return 0.0
        return 1000.0 / avg_time

    def get_status(self) -> dict:
        """Get engine status."""
        return {
            "loaded": self._loaded,
            "labels": len(self.labels),
            "input_size": self.input_size,
            "frame_count": self._frame_count,
            "average_inference_ms": self.average_inference_time,
            "estimated_fps": self.fps,
            "using_mock": self._force_mock,
        }

    def cleanup(self) -> None:
        """Release the backend."""
        self._predict_fn = None if self._force_mock else self._predict_fn
        self._loaded = False
        logger.info("Classifier engine cleaned up")
