"""Custom exceptions for the prediction session runner.

Transient market data failures are absorbed by the market data source
(empty batch / missing price). Training and prediction failures propagate
out of a session and are handled by the orchestrator.
"""


class PredictorError(Exception):
    """Base exception for all predictor errors."""


class MarketDataError(PredictorError):
    """Raised when an exchange payload cannot be parsed into candles or a price."""


class TrainingError(PredictorError):
    """Raised when the classifier cannot be fitted on the training set."""


class PredictionError(PredictorError):
    """Raised when a fitted model fails to produce a prediction."""
