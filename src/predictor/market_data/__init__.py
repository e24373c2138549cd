"""Market data layer -- candle batches and live ticker prices."""

from predictor.market_data.binance_source import BinanceMarketData, parse_kline
from predictor.market_data.source import MarketDataSource

__all__ = ["BinanceMarketData", "MarketDataSource", "parse_kline"]
