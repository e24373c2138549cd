"""Binary up/down candle classifier built on scikit-learn.

Pipeline: StandardScaler -> GradientBoostingClassifier. Every fit is a
full refit on the given candles; a fitted model is never updated in place.

The seed feeds the booster's row subsampling, so refitting the same
candles with a different seed yields a different model as long as
subsample < 1.0.
"""

from collections.abc import Sequence

import numpy as np
from sklearn.ensemble import GradientBoostingClassifier
from sklearn.pipeline import Pipeline
from sklearn.preprocessing import StandardScaler

from predictor.classifier.features import build_feature_matrix, build_labels, candle_features
from predictor.config import ClassifierSettings
from predictor.exceptions import PredictionError, TrainingError
from predictor.models import Candle, Prediction


class FittedModel:
    """Opaque fitted artifact. Owned by exactly one session."""

    def __init__(self, pipeline: Pipeline, sample_count: int, seed: int) -> None:
        self._pipeline = pipeline
        self.sample_count = sample_count
        self.seed = seed

    def predict(self, candle: Candle) -> Prediction:
        """Predict direction for one candle with confidence in that direction.

        Raises:
            PredictionError: If the pipeline fails on the feature row.
        """
        row = np.array([candle_features(candle)], dtype=np.float64)
        try:
            proba = self._pipeline.predict_proba(row)[0]
        except Exception as e:
            raise PredictionError(f"Prediction failed: {e}") from e

        classes = self._pipeline.classes_
        best = int(np.argmax(proba))
        return Prediction(
            predicted_up=bool(classes[best] == 1),
            probability=float(proba[best]),
        )


class CandleClassifier:
    """Factory for fitted models.

    Stateless apart from its settings, so one instance can be shared by
    every session; each call to fit() returns a new FittedModel.

    Args:
        settings: Booster hyperparameters and base seed.
    """

    def __init__(self, settings: ClassifierSettings) -> None:
        self._settings = settings

    def _build_pipeline(self, seed: int) -> Pipeline:
        s = self._settings
        return Pipeline(
            [
                ("scaler", StandardScaler()),
                (
                    "booster",
                    GradientBoostingClassifier(
                        n_estimators=s.n_estimators,
                        learning_rate=s.learning_rate,
                        max_leaf_nodes=s.max_leaf_nodes,
                        min_samples_leaf=s.min_samples_leaf,
                        subsample=s.subsample,
                        random_state=seed,
                    ),
                ),
            ]
        )

    def fit(self, candles: Sequence[Candle], seed: int | None = None) -> FittedModel:
        """Fit a fresh model on the full candle sequence.

        Args:
            candles: Training candles, oldest first.
            seed: Random seed; defaults to the configured base seed.

        Returns:
            A new FittedModel.

        Raises:
            TrainingError: If there are no candles, only one label class, or
                the booster fails.
        """
        if seed is None:
            seed = self._settings.base_seed

        X = build_feature_matrix(candles)
        y = build_labels(candles)

        if len(y) == 0:
            raise TrainingError("Cannot fit on an empty training set")
        if len(np.unique(y)) < 2:
            raise TrainingError(
                f"Training set of {len(y)} candles has a single label class"
            )

        pipeline = self._build_pipeline(seed)
        try:
            pipeline.fit(X, y)
        except Exception as e:
            raise TrainingError(f"Classifier fit failed: {e}") from e

        return FittedModel(pipeline, sample_count=len(y), seed=seed)
