"""Shared test fixtures for the prediction session runner."""

from collections.abc import Callable
from decimal import Decimal

import pytest

from predictor.config import (
    AppSettings,
    ClassifierSettings,
    MarketDataSettings,
    SessionSettings,
    StoreSettings,
)
from predictor.models import Candle


def make_candle(
    close: str | Decimal,
    open_: str | Decimal = "100",
    open_time: int = 1_700_000_000_000,
    volume: str = "10",
    trades: int = 50,
) -> Candle:
    """Build a one-minute candle with sensible defaults."""
    close_d = Decimal(str(close))
    open_d = Decimal(str(open_))
    return Candle(
        open_time=open_time,
        open=open_d,
        high=max(open_d, close_d) + Decimal("0.5"),
        low=min(open_d, close_d) - Decimal("0.5"),
        close=close_d,
        volume=Decimal(volume),
        close_time=open_time + 59_999,
        quote_asset_volume=Decimal("1000"),
        number_of_trades=trades,
        taker_buy_base_volume=Decimal("5"),
        taker_buy_quote_volume=Decimal("500"),
    )


@pytest.fixture
def candle_factory() -> Callable[..., Candle]:
    """Expose make_candle to tests."""
    return make_candle


@pytest.fixture
def candle_batch() -> list[Candle]:
    """Ten alternating up/down candles whose last close is 100."""
    batch = []
    for i in range(10):
        if i % 2 == 0:
            batch.append(make_candle(close="101", open_="100", open_time=i * 60_000))
        else:
            batch.append(make_candle(close="99", open_="100", open_time=i * 60_000))
    batch[-1] = make_candle(close="100", open_="99.5", open_time=9 * 60_000)
    return batch


@pytest.fixture
def mock_settings() -> AppSettings:
    """Return AppSettings with test defaults (zero-length waits, tiny timeouts)."""
    return AppSettings(
        log_level="DEBUG",
        market=MarketDataSettings(
            symbol="ETH/BTC",
            interval="1m",
            candle_limit=100,
            request_timeout_seconds=1.0,
        ),
        session=SessionSettings(
            count=3,
            stagger_seconds=0.0,
            initial_balance=Decimal("1000"),
            resolution_interval_minutes=0.0,
            fetch_retry_interval_minutes=0.0,
            restart_on_failure=False,
            restart_delay_seconds=0.0,
        ),
        classifier=ClassifierSettings(n_estimators=20, base_seed=7),
        store=StoreSettings(db_path=":memory:", write_timeout_seconds=1.0),
    )
