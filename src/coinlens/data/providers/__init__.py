"""Data provider implementations."""

from .cached import CachedMarketDataProvider
from .coingecko import CoinGeckoProvider

__all__ = ["CachedMarketDataProvider", "CoinGeckoProvider"]
