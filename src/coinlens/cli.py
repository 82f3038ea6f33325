"""Command line entry point for coinlens.

Usage:
    coinlens analyze --coins bitcoin,ethereum --provider coingecko
    coinlens indicators --format json 100 102 101 105 107 106 110

Environment Variables:
    DATA_PROVIDER__PROVIDER: Data provider (coingecko or mock)
    DATA_PROVIDER__API_KEY: Optional CoinGecko demo API key
    DATA_PROVIDER__VS_CURRENCY: Quote currency (default: usd)
    LOG_LEVEL: Logging level (default: INFO)
"""

import argparse
import asyncio
import json
import sys
from collections.abc import Sequence
from typing import Any

from pydantic import ValidationError

from coinlens.analysis.indicators import IndicatorCalculator
from coinlens.config import Config
from coinlens.core.analyzer import AnalysisResult, MarketAnalyzer
from coinlens.data.cache import CacheManager
from coinlens.data.models import TechnicalIndicators
from coinlens.data.provider import MarketDataProvider, MockMarketDataProvider
from coinlens.data.providers.cached import CachedMarketDataProvider
from coinlens.data.providers.coingecko import CoinGeckoProvider
from coinlens.utils.logging import get_logger, setup_logging

logger = get_logger(__name__, component="CLI")

EXIT_OK = 0
EXIT_FAILURES = 1
EXIT_USAGE = 2


def get_data_provider(config: Config) -> MarketDataProvider:
    """Get data provider instance based on configuration.

    Args:
        config: Application configuration

    Returns:
        MarketDataProvider instance, wrapped in a cache when caching is enabled
    """
    provider: MarketDataProvider
    if config.data_provider.provider == "mock":
        provider = MockMarketDataProvider()
    else:
        provider = CoinGeckoProvider(config.data_provider)

    if config.cache.enabled:
        return CachedMarketDataProvider(provider, CacheManager(config.cache))
    return provider


def _fmt(value: float | None, digits: int = 2) -> str:
    return "N/A" if value is None else f"{value:,.{digits}f}"


def format_indicators_text(indicators: TechnicalIndicators) -> str:
    """Render an indicator snapshot as human-readable lines."""
    levels = indicators.fibonacci_levels
    lines = [
        f"{indicators.symbol}  last={_fmt(indicators.last_price, 4)}"
        f"  points={indicators.data_points}",
        f"  RSI:        {_fmt(indicators.rsi)}",
        f"  MACD:       {_fmt(indicators.macd, 4)}"
        f"  signal={_fmt(indicators.macd_signal, 4)}"
        f"  histogram={_fmt(indicators.macd_histogram, 4)}",
        f"  Bollinger:  upper={_fmt(indicators.bollinger_upper, 4)}"
        f"  middle={_fmt(indicators.bollinger_middle, 4)}"
        f"  lower={_fmt(indicators.bollinger_lower, 4)}",
        "  Fibonacci:  " + (", ".join(_fmt(level, 4) for level in levels) if levels else "N/A"),
        f"  Prediction: {_fmt(indicators.predicted_price, 4)}",
    ]
    return "\n".join(lines)


def format_result_text(result: AnalysisResult) -> str:
    """Render one analysis result as human-readable text."""
    if result.error or result.indicators is None:
        return f"{result.symbol}  ERROR: {result.error}"
    text = format_indicators_text(result.indicators)
    if result.sentiment:
        text += f"\n  Sentiment:  {result.sentiment.score:+.2f} ({result.sentiment.label})"
    return text


def _emit(payload: Any, text: str, output_format: str) -> None:
    if output_format == "json":
        print(json.dumps(payload, indent=2))
    else:
        print(text)


def run_analyze(args: argparse.Namespace, config: Config) -> int:
    """Fetch market data and print indicators for each requested coin."""
    coins = [c.strip() for c in args.coins.split(",") if c.strip()] if args.coins else []
    coins = coins or config.analyzer.default_coins
    if args.provider:
        config.data_provider.provider = args.provider

    analyzer = MarketAnalyzer(
        provider=get_data_provider(config),
        calculator=IndicatorCalculator(config.indicators),
        max_concurrent=config.analyzer.max_concurrent_requests,
        history_days=config.analyzer.history_days,
        include_sentiment=args.sentiment or config.analyzer.include_sentiment,
    )

    try:
        results, stats = asyncio.run(analyzer.analyze_markets(coins))
    except (RuntimeError, ValueError) as e:
        logger.error("analysis_failed", error=str(e), error_type=type(e).__name__)
        print(f"error: {e}", file=sys.stderr)
        return EXIT_FAILURES

    payload = {
        "results": [r.to_dict() for r in results],
        "stats": {
            "total_coins": stats.total_coins,
            "successful": stats.successful,
            "failed": stats.failed,
            "failed_coins": stats.failed_coins,
            "duration_seconds": stats.duration_seconds,
        },
    }
    _emit(payload, "\n".join(format_result_text(r) for r in results), args.format)

    return EXIT_FAILURES if stats.failed else EXIT_OK


def run_indicators(args: argparse.Namespace, config: Config) -> int:
    """Print indicators for prices given on the command line."""
    calculator = IndicatorCalculator(config.indicators)
    try:
        indicators = calculator.calculate(args.prices, args.symbol)
    except ValueError as e:
        print(f"error: {e}", file=sys.stderr)
        return EXIT_USAGE

    _emit(indicators.to_dict(), format_indicators_text(indicators), args.format)
    return EXIT_OK


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser."""
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument(
        "--log-level", default=None, help="Logging level (default: LOG_LEVEL or INFO)"
    )
    common.add_argument(
        "--format", choices=["json", "text"], default="text", help="Output format"
    )

    parser = argparse.ArgumentParser(
        prog="coinlens", description="Technical indicators for cryptocurrency markets"
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    analyze = subparsers.add_parser(
        "analyze", parents=[common], help="Analyze coins from a market data provider"
    )
    analyze.add_argument(
        "--coins", default="", help="Comma-separated coin ids (e.g. bitcoin,ethereum)"
    )
    analyze.add_argument("--provider", choices=["coingecko", "mock"], default=None)
    analyze.add_argument(
        "--sentiment", action="store_true", help="Include community sentiment per coin"
    )
    analyze.set_defaults(func=run_analyze)

    indicators = subparsers.add_parser(
        "indicators", parents=[common], help="Compute indicators for given prices"
    )
    indicators.add_argument("prices", nargs="+", type=float, help="Prices, oldest first")
    indicators.add_argument("--symbol", default="CUSTOM", help="Symbol label for the output")
    indicators.set_defaults(func=run_indicators)

    return parser


def main(argv: Sequence[str] | None = None) -> int:
    """Run the coinlens command line."""
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        config = Config()
    except ValidationError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return EXIT_USAGE

    setup_logging(level=args.log_level or config.log_level, format_type="text")
    logger.debug("cli_start", command=args.command)

    result: int = args.func(args, config)
    return result


if __name__ == "__main__":
    sys.exit(main())
