"""Caching wrapper around any market data provider."""

from ...utils.logging import get_logger
from ..cache import HISTORY, MARKET, SENTIMENT, CacheManager
from ..models import CoinMarketData, PriceSeries, SentimentScore
from ..provider import MarketDataProvider

logger = get_logger(__name__)


class CachedMarketDataProvider(MarketDataProvider):
    """Serve repeated market requests from a CacheManager.

    Example:
        >>> provider = CachedMarketDataProvider(CoinGeckoProvider(), CacheManager(CacheConfig()))
        >>> markets = await provider.get_markets(["bitcoin"])
    """

    def __init__(self, provider: MarketDataProvider, cache: CacheManager) -> None:
        """Initialize the wrapper.

        Args:
            provider: Provider that performs the actual fetches
            cache: Cache manager holding fetched data
        """
        self.provider = provider
        self.cache = cache

    async def get_markets(self, coin_ids: list[str]) -> list[CoinMarketData]:
        """Get market snapshots, using the cache when possible."""
        key = ",".join(coin_ids)
        markets: list[CoinMarketData] = await self.cache.get_or_fetch(
            MARKET, key, lambda: self.provider.get_markets(coin_ids)
        )
        return markets

    async def get_price_history(self, coin_id: str, days: int = 7) -> PriceSeries:
        """Get price history, using the cache when possible."""
        history: PriceSeries = await self.cache.get_or_fetch(
            HISTORY, f"{coin_id}:{days}", lambda: self.provider.get_price_history(coin_id, days)
        )
        return history

    async def get_sentiment(self, coin_id: str) -> SentimentScore:
        """Get sentiment, using the cache when possible."""
        sentiment: SentimentScore = await self.cache.get_or_fetch(
            SENTIMENT, coin_id, lambda: self.provider.get_sentiment(coin_id)
        )
        return sentiment
