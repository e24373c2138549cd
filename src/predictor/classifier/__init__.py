"""Candle direction classifier -- feature contract and scikit-learn model."""

from predictor.classifier.features import FEATURE_COLUMNS, build_feature_matrix, build_labels
from predictor.classifier.model import CandleClassifier, FittedModel

__all__ = [
    "FEATURE_COLUMNS",
    "CandleClassifier",
    "FittedModel",
    "build_feature_matrix",
    "build_labels",
]
