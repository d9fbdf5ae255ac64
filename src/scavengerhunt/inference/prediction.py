"""
Prediction data structures for classifier results.
"""

from dataclasses import dataclass, field
from datetime import datetime


@dataclass(frozen=True)
class Prediction:
    """Single ranked classifier output."""

    label: str
    confidence: float  # 0-1

    def to_dict(self) -> dict:
        """Convert to dictionary for serialization."""
        return {"label": self.label, "confidence": self.confidence}

    def __str__(self) -> str:
        return f"{self.confidence:.5f}: {self.label}"


@dataclass
class PredictionFrame:
    """Top-K predictions from a single classified frame."""

    timestamp: datetime
    predictions: list[Prediction]
    frame_number: int = 0
    inference_time_ms: float = 0.0

    @property
    def top(self) -> Prediction | None:
        """Highest ranked prediction."""
        return self.predictions[0] if self.predictions else None

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "timestamp": self.timestamp.isoformat(),
            "frame_number": self.frame_number,
            "inference_time_ms": self.inference_time_ms,
            "predictions": [p.to_dict() for p in self.predictions],
        }
