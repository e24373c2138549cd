"""Feature contract between candles and the classifier.

The classifier sees six raw columns per candle; scaling happens inside the
fitted pipeline so the same transform is applied at predict time.
"""

from collections.abc import Sequence

import numpy as np

from predictor.models import Candle

FEATURE_COLUMNS: tuple[str, ...] = (
    "open",
    "high",
    "low",
    "close",
    "volume",
    "number_of_trades",
)


def candle_features(candle: Candle) -> list[float]:
    """Return one candle's feature row in FEATURE_COLUMNS order."""
    return [float(getattr(candle, column)) for column in FEATURE_COLUMNS]


def build_feature_matrix(candles: Sequence[Candle]) -> np.ndarray:
    """Stack candle features into an (n_candles, n_features) float matrix."""
    if not candles:
        return np.empty((0, len(FEATURE_COLUMNS)), dtype=np.float64)
    return np.array([candle_features(c) for c in candles], dtype=np.float64)


def build_labels(candles: Sequence[Candle]) -> np.ndarray:
    """Binary targets: 1 if the candle closed above its open, else 0."""
    return np.array([1 if c.label else 0 for c in candles], dtype=np.int64)
