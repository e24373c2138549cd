"""Per-session control loop: fetch -> train -> predict -> wait -> resolve.

Each iteration:
  1. FETCH: Pull a batch of recent candles (empty -> pause, retry)
  2. ACCUMULATE: Append the batch to this session's training set
  3. TRAIN: Full refit on the whole training set
  4. PREDICT: Direction and confidence for the most recent candle
  5. SIZE: Map confidence onto the bet-size band
  6. WAIT: Sleep the resolution interval
  7. RESOLVE: Fetch the live price and judge the prediction
  8. UPDATE: Apply leveraged P&L to the balance
  9. LOG: Append a LogRecord to the result store
  10. RETRAIN: On a miss, refit the same training set with the next seed

Every pause is stop-aware: setting the shared stop event wakes the
session immediately and run() returns after the current step.

Training and prediction errors are not caught here. They end run() and
the orchestrator decides whether to restart the session.
"""

from __future__ import annotations

import asyncio
import time
from decimal import Decimal
from typing import TYPE_CHECKING

from predictor.betting import (
    bet_percentage,
    is_prediction_correct,
    percentage_change,
    update_balance,
)
from predictor.config import AppSettings
from predictor.logging import get_logger
from predictor.models import (
    Action,
    Candle,
    IterationOutcome,
    LogRecord,
    SessionPhase,
    SessionState,
    SessionStatus,
)

if TYPE_CHECKING:
    from predictor.classifier.model import CandleClassifier, FittedModel
    from predictor.data.store import ResultStore
    from predictor.market_data.source import MarketDataSource

logger = get_logger(__name__)


async def sleep_unless_stopped(stop_event: asyncio.Event, seconds: float) -> bool:
    """Sleep for ``seconds`` or until ``stop_event`` is set.

    Returns:
        True if the stop event is set (caller should wind down), False if
        the full interval elapsed.
    """
    if stop_event.is_set():
        return True
    try:
        await asyncio.wait_for(stop_event.wait(), timeout=max(seconds, 0.0))
    except asyncio.TimeoutError:
        return False
    return True


class SessionEngine:
    """State machine for one independent trading session.

    Owns its training set, current model and SessionState; nothing here is
    shared with other sessions. The market data source, classifier and
    result store are shared collaborators and must be safe for concurrent
    use.

    Args:
        state: Session id, balance and start time. Mutated only by this engine.
        market_data: Candle and ticker provider.
        classifier: Model factory; each fit returns a new FittedModel.
        store: Result store receiving one LogRecord per resolved bet.
        settings: Application-wide settings.
        stop_event: Shared stop signal, checked at every pause.
        status: Health snapshot to update; created if not given.
    """

    def __init__(
        self,
        state: SessionState,
        market_data: MarketDataSource,
        classifier: CandleClassifier,
        store: ResultStore,
        settings: AppSettings,
        stop_event: asyncio.Event | None = None,
        status: SessionStatus | None = None,
    ) -> None:
        self._state = state
        self._market_data = market_data
        self._classifier = classifier
        self._store = store
        self._session_settings = settings.session
        self._request_timeout = settings.market.request_timeout_seconds
        self._write_timeout = settings.store.write_timeout_seconds
        self._stop_event = stop_event if stop_event is not None else asyncio.Event()
        self._status = status if status is not None else SessionStatus(
            session_id=state.session_id, balance=state.balance
        )

        self._training_set: list[Candle] = []
        self._model: FittedModel | None = None
        self._seed = settings.classifier.base_seed

        self._log = logger.bind(session=state.session_id)

    # ──────────────────────────────────────────────
    # Accessors
    # ──────────────────────────────────────────────

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def status(self) -> SessionStatus:
        return self._status

    @property
    def model(self) -> FittedModel | None:
        return self._model

    @property
    def training_set(self) -> tuple[Candle, ...]:
        """Read-only snapshot of the accumulated candles."""
        return tuple(self._training_set)

    @property
    def seed(self) -> int:
        return self._seed

    # ──────────────────────────────────────────────
    # Control loop
    # ──────────────────────────────────────────────

    async def run(self) -> None:
        """Run iterations until the stop event is set.

        Raises:
            TrainingError, PredictionError: Propagated unchanged; the session
                is marked FAILED first.
        """
        self._log.info(
            "session_started",
            balance=str(self._state.balance),
            start_time=self._state.start_time.isoformat(),
        )
        try:
            while not self._stop_event.is_set():
                await self.run_iteration()
        except Exception as e:
            self._status.last_error = f"{type(e).__name__}: {e}"
            self._set_phase(SessionPhase.FAILED)
            raise

        self._set_phase(SessionPhase.STOPPED)
        self._log.info(
            "session_stopped",
            balance=str(self._state.balance),
            iterations=self._status.iterations,
        )

    async def run_iteration(self) -> IterationOutcome | None:
        """Execute one pass of the state machine.

        Returns:
            The resolved outcome, or None if the iteration ended early (empty
            candle batch, or stop requested while waiting to resolve).
        """
        s = self._session_settings

        # 1. FETCH
        self._set_phase(SessionPhase.FETCHING)
        batch = await self._fetch_candles()
        if not batch:
            self._status.fetch_failures += 1
            self._log.warning(
                "candle_batch_empty",
                retry_in_minutes=s.fetch_retry_interval_minutes,
            )
            await self._pause(s.fetch_retry_interval_minutes * 60)
            return None

        # 2. ACCUMULATE
        self._accumulate(batch)
        latest = batch[-1]
        previous_price = latest.close

        # 3. TRAIN
        self._set_phase(SessionPhase.TRAINING)
        self._model = self._classifier.fit(self._training_set, seed=self._seed)

        # 4. PREDICT
        prediction = self._model.predict(latest)
        action = Action.from_prediction(prediction.predicted_up)

        # 5. SIZE
        bet_pct = bet_percentage(
            prediction.probability, s.min_bet_percentage, s.max_bet_percentage
        )
        self._log.info(
            "prediction_made",
            action=action.value,
            probability=round(prediction.probability, 4),
            bet_percentage=str(bet_pct),
            training_set_size=len(self._training_set),
        )

        # 6. WAIT
        self._set_phase(SessionPhase.WAITING)
        if await self._pause(s.resolution_interval_minutes * 60):
            self._log.info("bet_abandoned_on_stop", action=action.value)
            return None

        # 7. RESOLVE
        self._set_phase(SessionPhase.RESOLVING)
        current_price = await self._fetch_price()
        if current_price is None:
            self._status.price_failures += 1
            change = Decimal("0")
            self._log.warning(
                "price_unavailable_assuming_no_change",
                previous_price=str(previous_price),
            )
        else:
            change = percentage_change(previous_price, current_price)
        correct = is_prediction_correct(prediction.predicted_up, change)

        # 8. UPDATE
        self._state.balance = update_balance(
            self._state.balance,
            bet_pct,
            prediction.predicted_up,
            change,
            s.leverage,
        )
        self._log.info(
            "bet_resolved",
            action=action.value,
            percentage_change=str(change),
            correct=correct,
            balance=str(self._state.balance),
        )

        # 9. LOG
        persisted = await self._persist(
            LogRecord(
                session_number=self._state.session_id,
                start_time=self._state.start_time,
                action=action,
                bet_percentage=bet_pct,
                balance=self._state.balance,
                prediction_correct=correct,
            )
        )

        # 10. RETRAIN on a miss
        retrained = False
        if not correct:
            self._retrain()
            retrained = True

        self._status.iterations += 1
        if correct:
            self._status.wins += 1
        else:
            self._status.losses += 1
        self._status.balance = self._state.balance
        self._status.updated_at = time.time()

        return IterationOutcome(
            prediction=prediction,
            bet_percentage=bet_pct,
            previous_price=previous_price,
            current_price=current_price,
            percentage_change=change,
            prediction_correct=correct,
            balance=self._state.balance,
            persisted=persisted,
            retrained=retrained,
        )

    # ──────────────────────────────────────────────
    # Steps
    # ──────────────────────────────────────────────

    def _accumulate(self, batch: list[Candle]) -> None:
        """Append a batch, dropping the oldest candles past the optional cap."""
        self._training_set.extend(batch)
        cap = self._session_settings.max_training_candles
        if cap is not None and len(self._training_set) > cap:
            del self._training_set[: len(self._training_set) - cap]
        self._status.training_set_size = len(self._training_set)

    def _retrain(self) -> None:
        """Refit the unchanged training set with the next seed."""
        self._seed += 1
        self._model = self._classifier.fit(self._training_set, seed=self._seed)
        self._log.debug("model_retrained_after_miss", seed=self._seed)

    async def _fetch_candles(self) -> list[Candle]:
        try:
            return await asyncio.wait_for(
                self._market_data.fetch_recent_candles(),
                timeout=self._request_timeout,
            )
        except asyncio.TimeoutError:
            self._log.warning("candle_fetch_timeout", timeout=self._request_timeout)
            return []

    async def _fetch_price(self) -> Decimal | None:
        try:
            return await asyncio.wait_for(
                self._market_data.fetch_current_price(),
                timeout=self._request_timeout,
            )
        except asyncio.TimeoutError:
            self._log.warning("price_fetch_timeout", timeout=self._request_timeout)
            return None

    async def _persist(self, record: LogRecord) -> bool:
        """Write the record; a failure is counted and logged, never raised."""
        try:
            ok = await asyncio.wait_for(
                self._store.append(record), timeout=self._write_timeout
            )
        except asyncio.TimeoutError:
            ok = False
        if not ok:
            self._status.persistence_failures += 1
            self._log.warning(
                "result_not_persisted",
                persistence_failures=self._status.persistence_failures,
            )
        self._status.last_persist_ok = ok
        return ok

    async def _pause(self, seconds: float) -> bool:
        return await sleep_unless_stopped(self._stop_event, seconds)

    def _set_phase(self, phase: SessionPhase) -> None:
        self._status.phase = phase
        self._status.updated_at = time.time()
