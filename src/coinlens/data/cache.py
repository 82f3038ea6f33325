"""Cache manager for fetched market data."""

from collections.abc import Awaitable, Callable
from typing import Any

from cachetools import TTLCache

from ..config import CacheConfig
from ..utils.logging import get_logger

logger = get_logger(__name__)

MARKET = "market"
HISTORY = "history"
SENTIMENT = "sentiment"


class CacheManager:
    """In-memory TTL cache for market snapshots and price histories.

    Uses cachetools.TTLCache, one per data type, so each type expires on its
    own schedule. Keys look like 'market:bitcoin,ethereum' or 'history:bitcoin:7'.
    Sentiment scores use the history TTL.
    Only fetched market data is cached, never indicator results.
    """

    def __init__(self, config: CacheConfig) -> None:
        """Initialize cache manager.

        Args:
            config: Cache configuration
        """
        self.config = config
        self._caches: dict[str, TTLCache[str, Any]] = {
            MARKET: TTLCache(maxsize=config.max_size, ttl=config.market_ttl),
            HISTORY: TTLCache(maxsize=max(config.max_size // 2, 1), ttl=config.history_ttl),
            SENTIMENT: TTLCache(maxsize=config.max_size, ttl=config.history_ttl),
        }
        self._hits = 0
        self._misses = 0

        logger.info(
            "cache_manager_initialized",
            max_size=config.max_size,
            enabled=config.enabled,
        )

    def _cache_for(self, cache_type: str) -> TTLCache[str, Any]:
        try:
            return self._caches[cache_type]
        except KeyError:
            raise ValueError(f"Unknown cache type: {cache_type}") from None

    async def get(self, cache_type: str, key: str) -> Any | None:
        """Get value from cache.

        Args:
            cache_type: Type of cache ('market', 'history' or 'sentiment')
            key: Cache key within that type

        Returns:
            Cached value or None if not found/expired/disabled
        """
        if not self.config.enabled:
            return None

        value = self._cache_for(cache_type).get(f"{cache_type}:{key}")
        if value is None:
            self._misses += 1
            logger.debug("cache_miss", cache_type=cache_type, key=key)
            return None

        self._hits += 1
        logger.debug("cache_hit", cache_type=cache_type, key=key, hits=self._hits)
        return value

    async def set(self, cache_type: str, key: str, value: Any) -> None:
        """Store a value in the cache (no-op when caching is disabled)."""
        if not self.config.enabled:
            return

        self._cache_for(cache_type)[f"{cache_type}:{key}"] = value
        logger.debug("cache_set", cache_type=cache_type, key=key)

    async def get_or_fetch(
        self,
        cache_type: str,
        key: str,
        fetch_fn: Callable[[], Awaitable[Any]],
    ) -> Any:
        """Get from cache or fetch if not present.

        Args:
            cache_type: Type of cache
            key: Cache key
            fetch_fn: Async function to call on a cache miss

        Returns:
            Cached or freshly fetched value
        """
        cached = await self.get(cache_type, key)
        if cached is not None:
            return cached

        value = await fetch_fn()
        await self.set(cache_type, key, value)
        return value

    def invalidate(self, cache_type: str, key: str | None = None) -> None:
        """Invalidate one key, or the whole cache type when key is None."""
        cache = self._cache_for(cache_type)

        if key is None:
            cache.clear()
            logger.info("cache_cleared", cache_type=cache_type)
        else:
            cache.pop(f"{cache_type}:{key}", None)
            logger.debug("cache_invalidated", cache_type=cache_type, key=key)

    def clear_all(self) -> None:
        """Clear all caches and reset statistics."""
        for cache in self._caches.values():
            cache.clear()
        self._hits = 0
        self._misses = 0
        logger.info("cache_cleared_all")

    def get_stats(self) -> dict[str, Any]:
        """Get cache statistics.

        Returns:
            Dictionary with hits, misses, hit_rate and per-type sizes
        """
        total = self._hits + self._misses
        return {
            "hits": self._hits,
            "misses": self._misses,
            "total_requests": total,
            "hit_rate": self._hits / total if total > 0 else 0.0,
            "cache_sizes": {name: len(cache) for name, cache in self._caches.items()},
        }
