"""Abstract market data provider interface."""

import math
from abc import ABC, abstractmethod
from datetime import datetime

from .models import CoinMarketData, PriceSeries, SentimentScore

SPARKLINE_POINTS = 168  # 7 days of hourly prices


class MarketDataProvider(ABC):
    """Abstract base class for market data providers.

    Providers deliver coin market snapshots (price, 24h change and a 7-day
    sparkline), price histories and, where available, community sentiment.
    Indicator calculation happens elsewhere; providers only fetch and map data.
    """

    @abstractmethod
    async def get_markets(self, coin_ids: list[str]) -> list[CoinMarketData]:
        """Get market snapshots for several coins.

        Args:
            coin_ids: Provider coin identifiers (e.g., 'bitcoin', 'ethereum')

        Returns:
            Market data for each coin that was found, in request order

        Raises:
            RuntimeError: If API request fails
        """
        pass

    @abstractmethod
    async def get_price_history(self, coin_id: str, days: int = 7) -> PriceSeries:
        """Get historical prices for a coin.

        Args:
            coin_id: Provider coin identifier
            days: Number of days of history to fetch

        Returns:
            PriceSeries in chronological order

        Raises:
            ValueError: If coin is unknown or days is not positive
            RuntimeError: If API request fails
        """
        pass

    async def get_coin(self, coin_id: str) -> CoinMarketData:
        """Get the market snapshot for a single coin.

        Raises:
            ValueError: If the coin is not found
        """
        markets = await self.get_markets([coin_id])
        if not markets:
            raise ValueError(f"No market data found for coin: {coin_id}")
        return markets[0]

    async def get_sentiment(self, coin_id: str) -> SentimentScore:
        """Get the community sentiment for a coin.

        Providers without a sentiment source keep this default.

        Raises:
            NotImplementedError: If the provider has no sentiment data
            ValueError: If the coin has no sentiment data
            RuntimeError: If API request fails
        """
        raise NotImplementedError(f"{type(self).__name__} does not provide sentiment")


class MockMarketDataProvider(MarketDataProvider):
    """Mock market data provider for testing.

    Returns deterministic synthetic data for any coin id.
    Useful for unit tests and development without network access.
    """

    KNOWN_COINS = {
        "bitcoin": ("btc", "Bitcoin", 65000.0),
        "ethereum": ("eth", "Ethereum", 3200.0),
        "solana": ("sol", "Solana", 150.0),
        "cardano": ("ada", "Cardano", 0.45),
        "ripple": ("xrp", "XRP", 0.55),
    }

    def __init__(self, unknown_coins: set[str] | None = None) -> None:
        """Initialize mock provider.

        Args:
            unknown_coins: Coin ids to treat as missing from the market listing
        """
        self._unknown = unknown_coins or set()
        self._now = datetime(2024, 1, 8)

    def _describe(self, coin_id: str) -> tuple[str, str, float]:
        if coin_id in self.KNOWN_COINS:
            return self.KNOWN_COINS[coin_id]
        seed = sum(ord(c) for c in coin_id)
        return coin_id[:4].lower(), coin_id.title(), float(10 + seed % 90)

    def _prices(self, coin_id: str, points: int) -> list[float]:
        _, _, base = self._describe(coin_id)
        phase = sum(ord(c) for c in coin_id) % 7
        return [
            round(base * (1 + 0.02 * math.sin((i + phase) / 6) + 0.0005 * i), 6)
            for i in range(points)
        ]

    async def get_markets(self, coin_ids: list[str]) -> list[CoinMarketData]:
        """Return mock market snapshots."""
        markets = []
        for coin_id in coin_ids:
            if coin_id in self._unknown:
                continue
            symbol, name, _ = self._describe(coin_id)
            sparkline = self._prices(coin_id, SPARKLINE_POINTS)
            current = sparkline[-1]
            previous = sparkline[-25]
            markets.append(
                CoinMarketData(
                    id=coin_id,
                    symbol=symbol,
                    name=name,
                    current_price=current,
                    price_change_24h=current - previous,
                    price_change_percentage_24h=(current - previous) / previous * 100,
                    market_cap=current * 19_000_000,
                    total_volume=current * 500_000,
                    sparkline=sparkline,
                    last_updated=self._now,
                )
            )
        return markets

    async def get_price_history(self, coin_id: str, days: int = 7) -> PriceSeries:
        """Return mock hourly price history."""
        if days < 1:
            raise ValueError(f"days must be positive, got {days}")
        if coin_id in self._unknown:
            raise ValueError(f"No price history found for coin: {coin_id}")
        return PriceSeries.of(self._prices(coin_id, days * 24))

    async def get_sentiment(self, coin_id: str) -> SentimentScore:
        """Return a deterministic mock sentiment score."""
        if coin_id in self._unknown:
            raise ValueError(f"No sentiment data found for coin: {coin_id}")
        seed = sum(ord(c) for c in coin_id)
        return SentimentScore(coin_id=coin_id, score=(seed % 21 - 10) / 10, timestamp=self._now)
