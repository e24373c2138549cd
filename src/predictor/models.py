"""Shared data models for the prediction session runner.

CRITICAL: All monetary values use Decimal. Prices only become floats when
they are turned into classifier features (see classifier/features.py).
"""

import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum


class Action(str, Enum):
    """Direction of a simulated bet, as persisted."""

    UP = "Up"
    DOWN = "Down"

    @classmethod
    def from_prediction(cls, predicted_up: bool) -> "Action":
        return cls.UP if predicted_up else cls.DOWN


class SessionPhase(str, Enum):
    """Where a session currently is in its control loop."""

    STARTING = "starting"
    FETCHING = "fetching"
    TRAINING = "training"
    WAITING = "waiting"
    RESOLVING = "resolving"
    STOPPED = "stopped"
    FAILED = "failed"


@dataclass(frozen=True)
class Candle:
    """A single exchange kline.

    Field order follows the exchange kline array. ``label`` is the
    classifier target: did the candle close above its open.
    """

    open_time: int  # Unix milliseconds
    open: Decimal
    high: Decimal
    low: Decimal
    close: Decimal
    volume: Decimal
    close_time: int  # Unix milliseconds
    quote_asset_volume: Decimal = Decimal("0")
    number_of_trades: int = 0
    taker_buy_base_volume: Decimal = Decimal("0")
    taker_buy_quote_volume: Decimal = Decimal("0")
    ignore: str = "0"

    @property
    def label(self) -> bool:
        return self.close > self.open


@dataclass(frozen=True)
class Prediction:
    """Classifier output for one candle.

    ``probability`` is the confidence in ``predicted_up``'s label, not the
    probability of an up move.
    """

    predicted_up: bool
    probability: float


@dataclass
class SessionState:
    """Cross-iteration state of one session. Mutated only by its engine."""

    session_id: int
    balance: Decimal
    start_time: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


@dataclass(frozen=True)
class LogRecord:
    """One resolved bet, written once to the result store."""

    session_number: int
    start_time: datetime
    action: Action
    bet_percentage: Decimal
    balance: Decimal
    prediction_correct: bool


@dataclass(frozen=True)
class IterationOutcome:
    """Everything one resolved iteration produced."""

    prediction: Prediction
    bet_percentage: Decimal
    previous_price: Decimal
    current_price: Decimal | None
    percentage_change: Decimal
    prediction_correct: bool
    balance: Decimal
    persisted: bool
    retrained: bool


@dataclass
class SessionStatus:
    """Health snapshot of one session, exposed through the health API."""

    session_id: int
    balance: Decimal
    phase: SessionPhase = SessionPhase.STARTING
    iterations: int = 0
    wins: int = 0
    losses: int = 0
    fetch_failures: int = 0
    price_failures: int = 0
    persistence_failures: int = 0
    restarts: int = 0
    training_set_size: int = 0
    last_error: str | None = None
    last_persist_ok: bool = True
    updated_at: float = field(default_factory=time.time)

    @property
    def persistence_degraded(self) -> bool:
        return not self.last_persist_ok

    def to_dict(self) -> dict:
        """Serialize for JSON responses (Decimal as string)."""
        return {
            "session_id": self.session_id,
            "phase": self.phase.value,
            "balance": str(self.balance),
            "iterations": self.iterations,
            "wins": self.wins,
            "losses": self.losses,
            "fetch_failures": self.fetch_failures,
            "price_failures": self.price_failures,
            "persistence_failures": self.persistence_failures,
            "persistence_degraded": self.persistence_degraded,
            "restarts": self.restarts,
            "training_set_size": self.training_set_size,
            "last_error": self.last_error,
            "updated_at": self.updated_at,
        }
