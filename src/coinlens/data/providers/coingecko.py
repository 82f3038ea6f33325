"""CoinGecko market data provider implementation."""

import asyncio
from datetime import datetime
from typing import Any

import aiohttp
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from ...config import DataProviderConfig
from ...utils.logging import get_logger
from ..models import CoinMarketData, PriceSeries, SentimentScore
from ..provider import MarketDataProvider

logger = get_logger(__name__)


def _parse_timestamp(value: str | None) -> datetime | None:
    if not value:
        return None
    return datetime.fromisoformat(value.replace("Z", "+00:00"))


def _optional_float(value: Any) -> float | None:
    return float(value) if value is not None else None


class CoinGeckoProvider(MarketDataProvider):
    """CoinGecko data provider.

    Fetches market snapshots with 7-day sparklines, historical price
    charts and community sentiment from the public CoinGecko API. A demo
    API key is optional and raises the rate limit.
    """

    def __init__(self, config: DataProviderConfig | None = None) -> None:
        """Initialize CoinGecko provider.

        Args:
            config: Data provider configuration (base URL, currency, rate limit)
        """
        self.config = config or DataProviderConfig()
        self.base_url = self.config.base_url.rstrip("/")
        self.vs_currency = self.config.vs_currency
        self.rate_limit_delay = 60.0 / self.config.rate_limit
        self._last_request_time = 0.0

    async def _rate_limit(self) -> None:
        """Apply rate limiting between requests."""
        now = asyncio.get_event_loop().time()
        time_since_last = now - self._last_request_time
        if time_since_last < self.rate_limit_delay:
            await asyncio.sleep(self.rate_limit_delay - time_since_last)
        self._last_request_time = asyncio.get_event_loop().time()

    def _headers(self) -> dict[str, str]:
        headers = {"accept": "application/json"}
        if self.config.api_key:
            headers["x-cg-demo-api-key"] = self.config.api_key
        return headers

    async def _make_request(self, path: str, **params: Any) -> Any:
        """Make an API request to CoinGecko.

        Args:
            path: API path relative to the base URL (e.g., '/coins/markets')
            **params: Query parameters

        Returns:
            Decoded JSON response

        Raises:
            ValueError: If the resource does not exist
            RuntimeError: If API request fails or is rate limited
        """
        await self._rate_limit()

        logger.debug("coingecko_request", path=path, params=params)

        timeout = aiohttp.ClientTimeout(total=self.config.timeout)
        try:
            async with aiohttp.ClientSession(timeout=timeout, headers=self._headers()) as session:
                async with session.get(f"{self.base_url}{path}", params=params) as response:
                    if response.status == 404:
                        raise ValueError(f"CoinGecko resource not found: {path}")

                    if response.status == 429:
                        logger.warning("coingecko_rate_limit", path=path)
                        raise RuntimeError("CoinGecko rate limit reached")

                    if response.status != 200:
                        raise RuntimeError(f"CoinGecko API error: HTTP {response.status}")

                    return await response.json()
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            logger.warning("coingecko_request_failed", path=path, error=str(e))
            raise RuntimeError(f"CoinGecko request failed: {e}") from e

    @retry(
        retry=retry_if_exception_type(RuntimeError),
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=4, max=10),
        reraise=True,
    )
    async def get_markets(self, coin_ids: list[str]) -> list[CoinMarketData]:
        """Get market snapshots with 7-day sparklines from CoinGecko."""
        if not coin_ids:
            return []

        data = await self._make_request(
            "/coins/markets",
            vs_currency=self.vs_currency,
            ids=",".join(coin_ids),
            sparkline="true",
            price_change_percentage="24h",
        )

        if not isinstance(data, list):
            raise ValueError("Unexpected CoinGecko markets payload")

        by_id: dict[str, CoinMarketData] = {}
        for item in data:
            if item.get("current_price") is None:
                logger.warning("coingecko_coin_unpriced", coin_id=item.get("id"))
                continue
            by_id[item["id"]] = self._parse_market(item)

        markets = [by_id[coin_id] for coin_id in coin_ids if coin_id in by_id]

        missing = [coin_id for coin_id in coin_ids if coin_id not in by_id]
        if missing:
            logger.warning("coingecko_coins_missing", coin_ids=missing)

        logger.info("coingecko_markets_fetched", requested=len(coin_ids), found=len(markets))

        return markets

    @retry(
        retry=retry_if_exception_type(RuntimeError),
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=4, max=10),
        reraise=True,
    )
    async def get_price_history(self, coin_id: str, days: int = 7) -> PriceSeries:
        """Get historical prices from the CoinGecko market chart endpoint."""
        if days < 1:
            raise ValueError(f"days must be positive, got {days}")

        data = await self._make_request(
            f"/coins/{coin_id}/market_chart",
            vs_currency=self.vs_currency,
            days=days,
        )

        points = data.get("prices") if isinstance(data, dict) else None
        if not points:
            raise ValueError(f"No price history found for coin: {coin_id}")

        # Each point is [timestamp_ms, price]
        ordered = sorted(points, key=lambda point: point[0])
        series = PriceSeries.of(float(price) for _, price in ordered if price is not None)

        logger.info("coingecko_history_fetched", coin_id=coin_id, days=days, points=len(series))

        return series

    @retry(
        retry=retry_if_exception_type(RuntimeError),
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=4, max=10),
        reraise=True,
    )
    async def get_sentiment(self, coin_id: str) -> SentimentScore:
        """Get community sentiment from the CoinGecko coin endpoint.

        The score is the share of up votes minus the share of down votes,
        so 100% up maps to 1.0 and an even split to 0.0.
        """
        data = await self._make_request(
            f"/coins/{coin_id}",
            localization="false",
            tickers="false",
            market_data="false",
            community_data="false",
            developer_data="false",
        )

        up = data.get("sentiment_votes_up_percentage") if isinstance(data, dict) else None
        down = data.get("sentiment_votes_down_percentage") if isinstance(data, dict) else None
        if up is None or down is None:
            raise ValueError(f"No sentiment data found for coin: {coin_id}")

        score = max(-1.0, min(1.0, (float(up) - float(down)) / 100))

        logger.info("coingecko_sentiment_fetched", coin_id=coin_id, score=score)

        return SentimentScore(coin_id=coin_id, score=score)

    def _parse_market(self, item: dict[str, Any]) -> CoinMarketData:
        """Map a /coins/markets entry to CoinMarketData."""
        sparkline = (item.get("sparkline_in_7d") or {}).get("price") or []
        return CoinMarketData(
            id=item["id"],
            symbol=item["symbol"],
            name=item["name"],
            current_price=float(item["current_price"]),
            price_change_24h=_optional_float(item.get("price_change_24h")),
            price_change_percentage_24h=_optional_float(item.get("price_change_percentage_24h")),
            market_cap=_optional_float(item.get("market_cap")),
            total_volume=_optional_float(item.get("total_volume")),
            sparkline=[float(p) for p in sparkline if p is not None],
            last_updated=_parse_timestamp(item.get("last_updated")),
        )
