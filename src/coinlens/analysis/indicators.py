"""
Technical indicator calculations over price series.

This module provides pure indicator functions (RSI, MACD, Bollinger Bands,
Fibonacci retracement and a linear-trend price forecast) plus the
IndicatorCalculator class, which assembles them into a TechnicalIndicators
snapshot for a single coin.

All indicator functions treat index 0 as the oldest sample. They never mutate
their input and raise InsufficientDataError when a series is shorter than the
indicator's minimum window.
"""

from collections.abc import Callable, Iterable
from datetime import datetime
from typing import TypeVar

import numpy as np
import pandas as pd

from coinlens.config import IndicatorConfig
from coinlens.data.models import (
    FIBONACCI_RATIOS,
    BollingerBands,
    CoinMarketData,
    FibonacciLevels,
    MACDResult,
    PriceSeries,
    TechnicalIndicators,
)
from coinlens.utils.logging import get_logger

logger = get_logger(__name__, component="IndicatorCalculator")

Prices = PriceSeries | Iterable[float]
T = TypeVar("T")


class InsufficientDataError(ValueError):
    """Raised when a series is too short for an indicator's window."""

    def __init__(self, indicator: str, required: int, available: int) -> None:
        """Initialize the error.

        Args:
            indicator: Name of the indicator that could not be computed
            required: Minimum number of data points needed
            available: Number of data points supplied
        """
        self.indicator = indicator
        self.required = required
        self.available = available
        super().__init__(
            f"{indicator} requires at least {required} data points, got {available}"
        )


def _to_series(prices: Prices | pd.Series) -> pd.Series:
    if isinstance(prices, pd.Series):
        return prices.astype("float64").reset_index(drop=True)
    return PriceSeries.of(prices).to_series()


def _check_period(name: str, period: int) -> None:
    if period < 1:
        raise ValueError(f"{name} must be a positive integer, got {period}")


def _require(indicator: str, series: pd.Series, required: int) -> None:
    if len(series) < required:
        raise InsufficientDataError(indicator, required, len(series))


def sma(prices: Prices, period: int) -> float:
    """
    Simple moving average of the trailing ``period`` prices.

    Raises:
        InsufficientDataError: If fewer than ``period`` prices are supplied
    """
    _check_period("period", period)
    series = _to_series(prices)
    _require("SMA", series, period)
    return float(series.iloc[-period:].mean())


def ema_series(values: Prices | pd.Series, period: int) -> pd.Series:
    """
    Exponential moving average over the full series.

    The EMA is seeded with the simple mean of the first ``period`` values at
    index ``period - 1`` and then updated with smoothing factor
    ``2 / (period + 1)``. Positions before the seed are NaN.

    Args:
        values: Input values, oldest first. A pandas Series may contain
            negative values (e.g. a MACD line).
        period: EMA period

    Returns:
        pandas Series aligned with the input positions

    Raises:
        InsufficientDataError: If fewer than ``period`` values are supplied
    """
    _check_period("period", period)
    series = _to_series(values)
    _require("EMA", series, period)

    alpha = 2.0 / (period + 1)
    raw = series.to_numpy()
    result = np.full(len(raw), np.nan)

    current = float(series.iloc[:period].mean())
    result[period - 1] = current
    for i in range(period, len(raw)):
        current = alpha * float(raw[i]) + (1.0 - alpha) * current
        result[i] = current

    return pd.Series(result, index=series.index)


def ema(prices: Prices, period: int) -> float:
    """Latest value of the seeded EMA (see ``ema_series``)."""
    return float(ema_series(prices, period).iloc[-1])


def _wilder_smooth(values: np.ndarray, period: int) -> float:
    # First average is a plain mean, then Wilder's recursive smoothing
    average = float(values[:period].mean())
    for value in values[period:]:
        average = (average * (period - 1) + float(value)) / period
    return average


def rsi(prices: Prices, period: int = 14) -> float:
    """
    Relative Strength Index at the most recent point, using Wilder's smoothing.

    Args:
        prices: Prices, oldest first
        period: RSI period (default 14)

    Returns:
        RSI in [0, 100]. 100 when the average loss is zero, including a flat series.

    Raises:
        InsufficientDataError: If fewer than ``period + 1`` prices are supplied

    Example:
        >>> rsi(range(1, 20))
        100.0
    """
    _check_period("period", period)
    series = _to_series(prices)
    _require("RSI", series, period + 1)

    deltas = series.diff().iloc[1:]
    gains = deltas.clip(lower=0.0).to_numpy()
    losses = (-deltas).clip(lower=0.0).to_numpy()

    avg_gain = _wilder_smooth(gains, period)
    avg_loss = _wilder_smooth(losses, period)

    if avg_loss == 0:
        return 100.0

    relative_strength = avg_gain / avg_loss
    return 100.0 - 100.0 / (1.0 + relative_strength)


def _macd_line(series: pd.Series, fast: int, slow: int) -> pd.Series:
    _check_period("fast", fast)
    _check_period("slow", slow)
    if fast >= slow:
        raise ValueError(f"fast period ({fast}) must be smaller than slow period ({slow})")
    _require("MACD", series, slow)
    return ema_series(series, fast) - ema_series(series, slow)


def macd(prices: Prices, fast: int = 12, slow: int = 26) -> float:
    """
    MACD line (fast EMA minus slow EMA) at the most recent point.

    Raises:
        InsufficientDataError: If fewer than ``slow`` prices are supplied
        ValueError: If ``fast`` is not smaller than ``slow``
    """
    line = _macd_line(_to_series(prices), fast, slow)
    return float(line.iloc[-1])


def macd_detailed(
    prices: Prices, fast: int = 12, slow: int = 26, signal: int = 9
) -> MACDResult:
    """
    MACD line with signal line and histogram.

    The signal line is the EMA of the MACD line starting from the first point
    where both EMAs exist, so it needs ``slow + signal - 1`` prices. With fewer
    prices (but at least ``slow``) the signal and histogram are None.

    Raises:
        InsufficientDataError: If fewer than ``slow`` prices are supplied
    """
    _check_period("signal", signal)
    line = _macd_line(_to_series(prices), fast, slow)
    latest = float(line.iloc[-1])

    defined = line.iloc[slow - 1 :]
    if len(defined) < signal:
        return MACDResult(macd=latest)

    signal_value = float(ema_series(defined, signal).iloc[-1])
    return MACDResult(macd=latest, signal=signal_value, histogram=latest - signal_value)


def bollinger(prices: Prices, period: int = 20, k: float = 2.0) -> BollingerBands:
    """
    Bollinger Bands over the trailing ``period`` prices.

    The middle band is the simple mean of the window and the bands sit ``k``
    population standard deviations above and below it.

    Raises:
        InsufficientDataError: If fewer than ``period`` prices are supplied
        ValueError: If ``k`` is negative
    """
    _check_period("period", period)
    if k < 0:
        raise ValueError(f"k must be non-negative, got {k}")
    series = _to_series(prices)
    _require("Bollinger Bands", series, period)

    window = series.iloc[-period:]

    # Flat window: no spread, bands collapse onto the price itself
    if window.max() == window.min():
        value = float(window.iloc[0])
        return BollingerBands(upper=value, middle=value, lower=value)

    middle = float(window.mean())
    stddev = float(window.std(ddof=0))
    return BollingerBands(upper=middle + k * stddev, middle=middle, lower=middle - k * stddev)


def fibonacci(prices: Prices) -> FibonacciLevels:
    """
    Fibonacci retracement levels between the series high and low.

    Each level is ``high - ratio * (high - low)`` for the ratios
    0, 0.236, 0.382, 0.5, 0.618 and 1.0. The first level is the high and the
    last is the low.

    Raises:
        InsufficientDataError: If the series is empty

    Example:
        >>> fibonacci([100, 102, 101, 105, 107, 106, 110]).levels[3]
        105.0
    """
    series = PriceSeries.of(prices)
    if not len(series):
        raise InsufficientDataError("Fibonacci retracement", 1, 0)

    high = max(series)
    low = min(series)
    span = high - low

    levels = []
    for ratio in FIBONACCI_RATIOS:
        if ratio == 0.0:
            levels.append(high)
        elif ratio == 1.0:
            levels.append(low)
        else:
            levels.append(high - ratio * span)

    return FibonacciLevels(high=high, low=low, levels=tuple(levels))


def predict(prices: Prices) -> float:
    """
    Naive one-step-ahead forecast from a least-squares linear trend.

    Fits ``price = slope * index + intercept`` over indices 0..n-1 and
    evaluates it at index n. This is a heuristic, not a statistical model.

    Raises:
        InsufficientDataError: If fewer than 2 prices are supplied

    Example:
        >>> round(predict([100, 102, 101, 105, 107, 106, 110]), 4)
        110.7143
    """
    series = _to_series(prices)
    _require("Price prediction", series, 2)

    x = np.arange(len(series), dtype="float64")
    slope, intercept = np.polyfit(x, series.to_numpy(), 1)
    return float(slope * len(series) + intercept)


class IndicatorCalculator:
    """
    Calculate a full set of technical indicators for one coin.

    Periods and thresholds come from IndicatorConfig. Indicators that the
    available data cannot support are reported as None instead of failing
    the whole snapshot.

    Example:
        >>> calculator = IndicatorCalculator()
        >>> indicators = calculator.calculate(coin.sparkline, "BTC")
        >>> print(indicators.rsi, indicators.bollinger_upper)
    """

    def __init__(self, config: IndicatorConfig | None = None) -> None:
        """
        Initialize the IndicatorCalculator.

        Args:
            config: Indicator periods and thresholds (defaults to IndicatorConfig())
        """
        self.config = config or IndicatorConfig()
        self._logger = logger

    def calculate(
        self,
        prices: Prices,
        symbol: str,
        timestamp: datetime | None = None,
    ) -> TechnicalIndicators:
        """
        Calculate technical indicators from a price series.

        Args:
            prices: Prices, sorted chronologically (oldest first)
            symbol: Coin symbol for the snapshot
            timestamp: Time of the most recent price (defaults to now)

        Returns:
            TechnicalIndicators with calculated values.
            Indicator values will be None if insufficient data is available.

        Raises:
            ValueError: If the series is empty or contains invalid prices

        Note:
            Minimum data requirements with default periods:
            - RSI-14: 15 data points
            - MACD 12/26: 26 data points (34 for the signal line)
            - Bollinger 20: 20 data points
            - Prediction: 2 data points
        """
        series = PriceSeries.of(prices)
        if not len(series):
            self._logger.warning("empty_price_series", symbol=symbol)
            raise ValueError(f"Cannot calculate indicators for {symbol}: price series is empty")

        cfg = self.config
        data_points = len(series)
        minimum = cfg.macd_slow + cfg.macd_signal - 1

        if data_points < minimum:
            self._logger.info(
                "limited_data_for_indicators",
                symbol=symbol,
                data_points=data_points,
                note=f"Full indicator calculation requires at least {minimum} data points",
            )

        rsi_value = self._optional(symbol, rsi, series, cfg.rsi_period)
        macd_result = self._optional(
            symbol, macd_detailed, series, cfg.macd_fast, cfg.macd_slow, cfg.macd_signal
        )
        bands = self._optional(symbol, bollinger, series, cfg.bollinger_period, cfg.bollinger_k)
        fib = fibonacci(series)
        predicted = self._optional(symbol, predict, series)

        indicators = TechnicalIndicators(
            symbol=symbol,
            timestamp=timestamp or datetime.now(),
            last_price=series.latest,
            data_points=data_points,
            rsi=rsi_value,
            macd=macd_result.macd if macd_result else None,
            macd_signal=macd_result.signal if macd_result else None,
            macd_histogram=macd_result.histogram if macd_result else None,
            bollinger_upper=bands.upper if bands else None,
            bollinger_middle=bands.middle if bands else None,
            bollinger_lower=bands.lower if bands else None,
            fibonacci_levels=list(fib.levels),
            predicted_price=predicted,
        )

        self._logger.debug(
            "indicators_calculated",
            symbol=symbol,
            rsi=indicators.rsi,
            macd=indicators.macd,
            bollinger_middle=indicators.bollinger_middle,
            predicted_price=indicators.predicted_price,
        )

        return indicators

    def calculate_for_coin(self, coin: CoinMarketData) -> TechnicalIndicators:
        """
        Calculate indicators from a coin's 7-day sparkline.

        Args:
            coin: Market snapshot with sparkline prices

        Returns:
            TechnicalIndicators for the coin's symbol
        """
        return self.calculate(coin.sparkline, coin.symbol.upper(), coin.last_updated)

    def _optional(self, symbol: str, func: Callable[..., T], *args: object) -> T | None:
        """Run an indicator function, mapping InsufficientDataError to None."""
        try:
            return func(*args)
        except InsufficientDataError as e:
            self._logger.debug(
                "indicator_skipped",
                symbol=symbol,
                indicator=e.indicator,
                required=e.required,
                available=e.available,
            )
            return None
