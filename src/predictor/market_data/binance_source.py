"""Binance market data source via ccxt async.

Wraps a single ccxt.async_support.binance instance shared by every
session for the lifetime of the process. Candles come from the raw
/api/v3/klines endpoint rather than fetch_ohlcv because the unified
OHLCV rows drop the trade count and taker volumes.

Kline row layout (all numerics except times arrive as strings):
    [open_time, open, high, low, close, volume, close_time,
     quote_asset_volume, number_of_trades, taker_buy_base_volume,
     taker_buy_quote_volume, ignore]
"""

from decimal import Decimal, InvalidOperation

import ccxt.async_support as ccxt_async

from predictor.config import MarketDataSettings
from predictor.exceptions import MarketDataError
from predictor.logging import get_logger
from predictor.market_data.source import MarketDataSource
from predictor.models import Candle

logger = get_logger(__name__)

_KLINE_FIELDS = 12


def parse_kline(row: list) -> Candle:
    """Convert one raw Binance kline row into a Candle.

    Raises:
        MarketDataError: If the row is short or holds non-numeric values.
    """
    if len(row) < _KLINE_FIELDS:
        raise MarketDataError(f"Kline row has {len(row)} fields, expected {_KLINE_FIELDS}")
    try:
        return Candle(
            open_time=int(row[0]),
            open=Decimal(str(row[1])),
            high=Decimal(str(row[2])),
            low=Decimal(str(row[3])),
            close=Decimal(str(row[4])),
            volume=Decimal(str(row[5])),
            close_time=int(row[6]),
            quote_asset_volume=Decimal(str(row[7])),
            number_of_trades=int(row[8]),
            taker_buy_base_volume=Decimal(str(row[9])),
            taker_buy_quote_volume=Decimal(str(row[10])),
            ignore=str(row[11]),
        )
    except (InvalidOperation, TypeError, ValueError) as e:
        raise MarketDataError(f"Malformed kline row: {row!r}") from e


class BinanceMarketData(MarketDataSource):
    """Concrete Binance spot market data source using ccxt async."""

    def __init__(self, settings: MarketDataSettings) -> None:
        self._settings = settings
        self._exchange = ccxt_async.binance(
            {
                "enableRateLimit": True,
                "timeout": int(settings.request_timeout_seconds * 1000),
                "options": {"defaultType": "spot"},
            }
        )
        if settings.testnet:
            self._exchange.set_sandbox_mode(True)
        # Binance market id for the raw endpoint, e.g. ETH/BTC -> ETHBTC
        self._market_id = settings.symbol.replace("/", "")

    @property
    def exchange(self) -> ccxt_async.binance:
        """Access the underlying ccxt exchange instance."""
        return self._exchange

    async def connect(self) -> None:
        """Load markets once and resolve the exchange market id."""
        logger.info("connecting_to_binance", symbol=self._settings.symbol)
        markets = await self._exchange.load_markets()
        self._market_id = self._exchange.market_id(self._settings.symbol)
        logger.info(
            "binance_connected",
            market_count=len(markets),
            market_id=self._market_id,
        )

    async def close(self) -> None:
        """Clean up ccxt async resources. CRITICAL: must be called to avoid resource leaks."""
        logger.info("closing_binance_connection")
        await self._exchange.close()
        logger.info("binance_connection_closed")

    async def fetch_recent_candles(self) -> list[Candle]:
        """Fetch the latest ``candle_limit`` klines, oldest first.

        Any network, exchange or parse error is logged and reported as an
        empty batch.
        """
        try:
            raw = await self._exchange.public_get_klines(
                {
                    "symbol": self._market_id,
                    "interval": self._settings.interval,
                    "limit": self._settings.candle_limit,
                }
            )
            candles = [parse_kline(row) for row in raw]
        except Exception as e:
            logger.warning(
                "candle_fetch_failed",
                symbol=self._settings.symbol,
                error=str(e),
            )
            return []

        logger.debug("candles_fetched", symbol=self._settings.symbol, count=len(candles))
        return candles

    async def fetch_current_price(self) -> Decimal | None:
        """Fetch the last traded price. Returns None on any failure."""
        try:
            ticker = await self._exchange.fetch_ticker(self._settings.symbol)
            last = ticker.get("last")
            if last is None:
                raise MarketDataError(f"Ticker for {self._settings.symbol} has no last price")
            return Decimal(str(last))
        except Exception as e:
            logger.warning(
                "price_fetch_failed",
                symbol=self._settings.symbol,
                error=str(e),
            )
            return None
