"""Tests for the feature contract and the scikit-learn candle classifier.

Fits run on small synthetic candle sets where volume separates up candles
from down candles, so the booster has something real to learn.
"""

from decimal import Decimal

import numpy as np
import pytest

from predictor.classifier.features import (
    FEATURE_COLUMNS,
    build_feature_matrix,
    build_labels,
    candle_features,
)
from predictor.classifier.model import CandleClassifier, FittedModel
from predictor.config import ClassifierSettings
from predictor.exceptions import TrainingError
from predictor.models import Prediction


@pytest.fixture
def classifier() -> CandleClassifier:
    """Small, fast booster."""
    return CandleClassifier(ClassifierSettings(n_estimators=20, base_seed=3))


@pytest.fixture
def separable_candles(candle_factory) -> list:
    """120 candles: up candles trade heavy volume, down candles light volume."""
    candles = []
    for i in range(120):
        if i % 2 == 0:
            candles.append(
                candle_factory(close="101", open_="100", volume="500", trades=400, open_time=i * 60_000)
            )
        else:
            candles.append(
                candle_factory(close="99", open_="100", volume="5", trades=10, open_time=i * 60_000)
            )
    return candles


class TestFeatures:
    """Feature matrix and label construction."""

    def test_feature_row_order(self, candle_factory) -> None:
        candle = candle_factory(close="101", open_="100", volume="12", trades=34)
        row = candle_features(candle)
        assert len(row) == len(FEATURE_COLUMNS)
        assert row[0] == 100.0  # open
        assert row[3] == 101.0  # close
        assert row[4] == 12.0  # volume
        assert row[5] == 34.0  # number_of_trades

    def test_matrix_shape(self, separable_candles) -> None:
        X = build_feature_matrix(separable_candles)
        assert X.shape == (120, len(FEATURE_COLUMNS))
        assert X.dtype == np.float64

    def test_empty_matrix_shape(self) -> None:
        assert build_feature_matrix([]).shape == (0, len(FEATURE_COLUMNS))

    def test_labels_follow_close_above_open(self, candle_factory) -> None:
        candles = [
            candle_factory(close="101", open_="100"),
            candle_factory(close="99", open_="100"),
            candle_factory(close="100", open_="100"),  # flat candle is not up
        ]
        assert build_labels(candles).tolist() == [1, 0, 0]


class TestCandleClassifier:
    """Fitting and predicting."""

    def test_fit_returns_fitted_model(self, classifier, separable_candles) -> None:
        model = classifier.fit(separable_candles)
        assert isinstance(model, FittedModel)
        assert model.sample_count == 120
        assert model.seed == 3  # base seed by default

    def test_predict_learns_separable_signal(self, classifier, separable_candles) -> None:
        model = classifier.fit(separable_candles)
        up = model.predict(separable_candles[0])
        down = model.predict(separable_candles[1])
        assert isinstance(up, Prediction)
        assert up.predicted_up is True
        assert down.predicted_up is False

    def test_probability_is_confidence_in_predicted_label(
        self, classifier, separable_candles
    ) -> None:
        model = classifier.fit(separable_candles)
        for candle in separable_candles[:10]:
            prediction = model.predict(candle)
            assert 0.5 <= prediction.probability <= 1.0

    def test_explicit_seed_recorded(self, classifier, separable_candles) -> None:
        model = classifier.fit(separable_candles, seed=11)
        assert model.seed == 11

    def test_same_seed_is_deterministic(self, classifier, separable_candles) -> None:
        a = classifier.fit(separable_candles, seed=5).predict(separable_candles[2])
        b = classifier.fit(separable_candles, seed=5).predict(separable_candles[2])
        assert a == b

    def test_each_fit_returns_new_model(self, classifier, separable_candles) -> None:
        first = classifier.fit(separable_candles)
        second = classifier.fit(separable_candles)
        assert first is not second

    def test_empty_training_set_raises(self, classifier) -> None:
        with pytest.raises(TrainingError, match="empty"):
            classifier.fit([])

    def test_single_class_raises(self, classifier, candle_factory) -> None:
        candles = [candle_factory(close="101", open_="100") for _ in range(30)]
        with pytest.raises(TrainingError, match="single label class"):
            classifier.fit(candles)

    def test_decimal_prices_are_accepted(self, classifier, candle_factory) -> None:
        candles = [
            candle_factory(close=Decimal("0.05123"), open_=Decimal("0.05120"), trades=i)
            for i in range(20)
        ] + [
            candle_factory(close=Decimal("0.05110"), open_=Decimal("0.05120"), trades=i)
            for i in range(20)
        ]
        model = classifier.fit(candles)
        assert model.predict(candles[0]).probability <= 1.0
