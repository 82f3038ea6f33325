"""Market analyzer for batch indicator calculation.

This module provides the MarketAnalyzer class that orchestrates the analysis
pipeline for a set of coins: fetching market snapshots and calculating
technical indicators from each coin's 7-day sparkline, or from a longer price
history when the sparkline is too short.
"""

import asyncio
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from coinlens.analysis.indicators import IndicatorCalculator
from coinlens.data.models import CoinMarketData, PriceSeries, SentimentScore, TechnicalIndicators
from coinlens.data.provider import MarketDataProvider
from coinlens.utils.logging import get_logger

logger = get_logger(__name__, component="MarketAnalyzer")


@dataclass
class AnalysisResult:
    """Result of analyzing a single coin.

    Attributes:
        coin_id: Provider coin identifier
        symbol: Coin ticker symbol (upper case)
        timestamp: When the analysis was performed
        market: Market snapshot the indicators were computed from
        indicators: Calculated technical indicators
        sentiment: Community sentiment, when requested and available
        error: Error message if analysis failed
    """

    coin_id: str
    symbol: str
    timestamp: datetime
    market: CoinMarketData | None = None
    indicators: TechnicalIndicators | None = None
    sentiment: SentimentScore | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        """Whether the coin was analyzed without error."""
        return self.error is None

    def to_dict(self) -> dict[str, Any]:
        """Serialize to a JSON-ready dictionary."""
        market = self.market
        return {
            "coin_id": self.coin_id,
            "symbol": self.symbol,
            "timestamp": self.timestamp.isoformat(),
            "current_price": market.current_price if market else None,
            "price_change_percentage_24h": (
                market.price_change_percentage_24h if market else None
            ),
            "indicators": self.indicators.to_dict() if self.indicators else None,
            "sentiment": (
                {"score": self.sentiment.score, "label": self.sentiment.label}
                if self.sentiment
                else None
            ),
            "error": self.error,
        }


@dataclass
class AnalysisStats:
    """Statistics from an analysis run.

    Attributes:
        total_coins: Number of coins requested
        successful: Number of coins analyzed successfully
        failed: Number of coins that failed or were not found
        start_time: When the run started
        end_time: When the run ended
        duration_seconds: Total duration of the run
    """

    total_coins: int
    successful: int
    failed: int
    start_time: datetime
    end_time: datetime
    duration_seconds: float
    failed_coins: list[str] = field(default_factory=list)

    @property
    def success_rate(self) -> float:
        """Calculate success rate as percentage."""
        if self.total_coins == 0:
            return 0.0
        return (self.successful / self.total_coins) * 100


class MarketAnalyzer:
    """Fetch market data and calculate indicators for many coins.

    Each coin is analyzed independently, so coins are processed concurrently
    up to ``max_concurrent`` at a time. When a coin's sparkline is too short
    for the full indicator set, ``history_days`` of price history are fetched
    from the provider instead. With ``include_sentiment`` each coin also gets
    the provider's community sentiment when it has one. A failure for one
    coin is recorded in its AnalysisResult and never aborts the batch.

    Example:
        >>> analyzer = MarketAnalyzer(CoinGeckoProvider(), max_concurrent=5)
        >>> results, stats = await analyzer.analyze_markets(["bitcoin", "ethereum"])
        >>> for result in results:
        ...     print(result.symbol, result.indicators.rsi)
    """

    def __init__(
        self,
        provider: MarketDataProvider,
        calculator: IndicatorCalculator | None = None,
        max_concurrent: int = 5,
        history_days: int = 7,
        include_sentiment: bool = False,
    ) -> None:
        """Initialize the MarketAnalyzer.

        Args:
            provider: Data provider for fetching market data
            calculator: Indicator calculator (defaults to IndicatorCalculator())
            max_concurrent: Maximum number of coins analyzed at once
            history_days: Days of history to fetch for short sparklines (0 disables)
            include_sentiment: Fetch community sentiment for each coin
        """
        self.provider = provider
        self.calculator = calculator or IndicatorCalculator()
        self.max_concurrent = max_concurrent
        self.history_days = history_days
        self.include_sentiment = include_sentiment
        self._logger = logger
        self._semaphore = asyncio.Semaphore(max_concurrent)

    @property
    def required_points(self) -> int:
        """Prices needed for every indicator, including the MACD signal line."""
        config = self.calculator.config
        return max(
            config.macd_slow + config.macd_signal - 1,
            config.rsi_period + 1,
            config.bollinger_period,
        )

    async def _prices_for(self, coin: CoinMarketData) -> PriceSeries:
        prices = coin.price_series
        if len(prices) >= self.required_points or self.history_days < 1:
            return prices

        self._logger.info(
            "sparkline_too_short",
            coin_id=coin.id,
            data_points=len(prices),
            required=self.required_points,
            history_days=self.history_days,
        )
        history = await self.provider.get_price_history(coin.id, self.history_days)
        return history if len(history) > len(prices) else prices

    async def _sentiment_for(self, coin: CoinMarketData) -> SentimentScore | None:
        if not self.include_sentiment:
            return None
        try:
            return await self.provider.get_sentiment(coin.id)
        except (RuntimeError, ValueError) as e:
            self._logger.warning("sentiment_unavailable", coin_id=coin.id, error=str(e))
            return None

    async def analyze_coin(self, coin: CoinMarketData) -> AnalysisResult:
        """Calculate indicators for one market snapshot.

        Args:
            coin: Market snapshot with sparkline prices

        Returns:
            AnalysisResult with indicators, or with an error message
        """
        async with self._semaphore:
            start_time = datetime.now()
            symbol = coin.symbol.upper()

            try:
                prices = await self._prices_for(coin)
                indicators = self.calculator.calculate(prices, symbol, coin.last_updated)
            except (RuntimeError, ValueError) as e:
                self._logger.warning(
                    "coin_analysis_failed",
                    coin_id=coin.id,
                    error=str(e),
                    error_type=type(e).__name__,
                )
                return AnalysisResult(
                    coin_id=coin.id,
                    symbol=symbol,
                    timestamp=start_time,
                    market=coin,
                    error=f"Analysis error: {e}",
                )

            sentiment = await self._sentiment_for(coin)

            self._logger.info(
                "coin_analysis_complete",
                coin_id=coin.id,
                data_points=indicators.data_points,
                rsi=indicators.rsi,
                macd=indicators.macd,
            )

            return AnalysisResult(
                coin_id=coin.id,
                symbol=symbol,
                timestamp=start_time,
                market=coin,
                indicators=indicators,
                sentiment=sentiment,
            )

    async def analyze_markets(
        self, coin_ids: list[str]
    ) -> tuple[list[AnalysisResult], AnalysisStats]:
        """Fetch and analyze several coins.

        Results are returned in request order. Coins the provider does not
        know get an AnalysisResult with an error.

        Args:
            coin_ids: Provider coin identifiers

        Returns:
            Tuple of (results, statistics)

        Raises:
            RuntimeError: If the market data request itself fails
        """
        start_time = datetime.now()
        self._logger.info("analysis_start", coins=len(coin_ids))

        markets = await self.provider.get_markets(coin_ids)
        by_id = {coin.id: coin for coin in markets}

        analyzed = await asyncio.gather(*(self.analyze_coin(coin) for coin in markets))
        results_by_id = {result.coin_id: result for result in analyzed}

        results = []
        for coin_id in coin_ids:
            if coin_id in by_id:
                results.append(results_by_id[coin_id])
            else:
                results.append(
                    AnalysisResult(
                        coin_id=coin_id,
                        symbol=coin_id.upper(),
                        timestamp=start_time,
                        error=f"No market data found for coin: {coin_id}",
                    )
                )

        end_time = datetime.now()
        failed = [r.coin_id for r in results if not r.ok]
        stats = AnalysisStats(
            total_coins=len(coin_ids),
            successful=len(results) - len(failed),
            failed=len(failed),
            start_time=start_time,
            end_time=end_time,
            duration_seconds=(end_time - start_time).total_seconds(),
            failed_coins=failed,
        )

        self._logger.info(
            "analysis_complete",
            total_coins=stats.total_coins,
            successful=stats.successful,
            failed=stats.failed,
            duration_seconds=stats.duration_seconds,
        )

        return results, stats
