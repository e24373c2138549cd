"""Abstract market data source interface.

Session code depends only on this interface, keeping exchange-specific
details isolated in the concrete implementation.

Both fetch methods fail soft: an empty batch or None price means the
call did not succeed and the caller decides how to recover.
"""

from abc import ABC, abstractmethod
from decimal import Decimal

from predictor.models import Candle


class MarketDataSource(ABC):
    """Abstract base class for candle and ticker providers.

    Implementations must be safe for concurrent use by many sessions.
    """

    @abstractmethod
    async def connect(self) -> None:
        """Initialize the shared client and load markets."""
        ...

    @abstractmethod
    async def close(self) -> None:
        """Release the shared client (CRITICAL for ccxt async)."""
        ...

    @abstractmethod
    async def fetch_recent_candles(self) -> list[Candle]:
        """Return the latest batch of candles, oldest first; [] on failure."""
        ...

    @abstractmethod
    async def fetch_current_price(self) -> Decimal | None:
        """Return the live ticker price; None on failure."""
        ...
