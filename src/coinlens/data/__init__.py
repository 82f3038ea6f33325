"""Data layer for market data and indicator result types."""

from .cache import CacheManager
from .models import (
    FIBONACCI_RATIOS,
    BollingerBands,
    CoinMarketData,
    FibonacciLevels,
    MACDResult,
    PriceSeries,
    SentimentScore,
    TechnicalIndicators,
)
from .provider import MarketDataProvider, MockMarketDataProvider
from .providers import CachedMarketDataProvider, CoinGeckoProvider

__all__ = [
    "FIBONACCI_RATIOS",
    "BollingerBands",
    "CacheManager",
    "CachedMarketDataProvider",
    "CoinGeckoProvider",
    "CoinMarketData",
    "FibonacciLevels",
    "MACDResult",
    "MarketDataProvider",
    "MockMarketDataProvider",
    "PriceSeries",
    "SentimentScore",
    "TechnicalIndicators",
]
