"""
Inference module for Scavenger Hunt.

Provides:
- ClassifierEngine: Image classifier adapter (pluggable backend or mock)
- Prediction: Ranked classifier output
- MatchResolver / match strategies: Target matching logic
"""

from .classifier_engine import ClassifierEngine, MockClassifier
from .match_resolver import (
    AccumulatingMatchStrategy,
    ConfidenceAccumulator,
    ImmediateMatchStrategy,
    MatchResolver,
    MatchResult,
    create_match_strategy,
)
from .prediction import Prediction, PredictionFrame

__all__ = [
    "ClassifierEngine",
    "MockClassifier",
    "AccumulatingMatchStrategy",
    "ConfidenceAccumulator",
    "ImmediateMatchStrategy",
    "MatchResolver",
    "MatchResult",
    "create_match_strategy",
    "Prediction",
    "PredictionFrame",
]
