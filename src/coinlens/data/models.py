"""Data models for market data and indicator results."""

import math
from collections.abc import Iterable, Iterator
from dataclasses import asdict, dataclass, field
from datetime import datetime
from typing import Any, Literal, overload

import pandas as pd

FIBONACCI_RATIOS: tuple[float, ...] = (0.0, 0.236, 0.382, 0.5, 0.618, 1.0)


@dataclass(frozen=True)
class PriceSeries:
    """Chronologically ordered prices, oldest first.

    Values are stored as an immutable tuple of floats. Every value must be
    finite and non-negative; the order given by the caller is never changed.

    Example:
        >>> series = PriceSeries([100, 102, 101])
        >>> series.latest
        101.0
    """

    values: tuple[float, ...] = ()

    def __post_init__(self) -> None:
        """Coerce values to floats and validate them."""
        values = tuple(float(v) for v in self.values)
        for index, value in enumerate(values):
            if not math.isfinite(value):
                raise ValueError(f"Price at index {index} is not finite: {value}")
            if value < 0:
                raise ValueError(f"Price at index {index} is negative: {value}")
        object.__setattr__(self, "values", values)

    @classmethod
    def of(cls, prices: "PriceSeries | Iterable[float]") -> "PriceSeries":
        """Return ``prices`` unchanged if already a PriceSeries, else wrap it."""
        if isinstance(prices, PriceSeries):
            return prices
        return cls(tuple(prices))

    def __len__(self) -> int:
        return len(self.values)

    def __iter__(self) -> Iterator[float]:
        return iter(self.values)

    @overload
    def __getitem__(self, index: int) -> float: ...

    @overload
    def __getitem__(self, index: slice) -> "PriceSeries": ...

    def __getitem__(self, index: int | slice) -> "float | PriceSeries":
        if isinstance(index, slice):
            return PriceSeries(self.values[index])
        return self.values[index]

    @property
    def latest(self) -> float | None:
        """Most recent price, or None for an empty series."""
        return self.values[-1] if self.values else None

    @property
    def high(self) -> float | None:
        """Highest price in the series."""
        return max(self.values) if self.values else None

    @property
    def low(self) -> float | None:
        """Lowest price in the series."""
        return min(self.values) if self.values else None

    def to_series(self) -> pd.Series:
        """Convert to a float64 pandas Series indexed 0..n-1."""
        return pd.Series(self.values, dtype="float64")


@dataclass(frozen=True)
class BollingerBands:
    """Bollinger Bands at the most recent point of a series."""

    upper: float
    middle: float
    lower: float

    @property
    def width(self) -> float:
        """Distance between the upper and lower band."""
        return self.upper - self.lower


@dataclass(frozen=True)
class MACDResult:
    """MACD line with optional signal line and histogram.

    ``signal`` and ``histogram`` are None when the series is long enough for
    the MACD line but too short for the signal EMA.
    """

    macd: float
    signal: float | None = None
    histogram: float | None = None


@dataclass(frozen=True)
class FibonacciLevels:
    """Retracement levels from the high down to the low.

    Levels follow ``FIBONACCI_RATIOS`` order, so ``levels[0]`` is the high and
    ``levels[-1]`` is the low.
    """

    high: float
    low: float
    levels: tuple[float, ...]
    ratios: tuple[float, ...] = FIBONACCI_RATIOS

    def __len__(self) -> int:
        return len(self.levels)

    def __iter__(self) -> Iterator[float]:
        return iter(self.levels)

    def __getitem__(self, index: int) -> float:
        return self.levels[index]

    def as_dict(self) -> dict[float, float]:
        """Map each ratio to its price level."""
        return dict(zip(self.ratios, self.levels, strict=True))


@dataclass
class TechnicalIndicators:
    """Technical analysis snapshot for a single instrument.

    Any indicator the available data cannot support is None.
    """

    symbol: str
    timestamp: datetime
    last_price: float | None = None
    data_points: int = 0
    rsi: float | None = None
    macd: float | None = None
    macd_signal: float | None = None
    macd_histogram: float | None = None
    bollinger_upper: float | None = None
    bollinger_middle: float | None = None
    bollinger_lower: float | None = None
    fibonacci_levels: list[float] | None = None
    predicted_price: float | None = None

    def is_oversold(self, threshold: float = 30.0) -> bool:
        """Check if RSI indicates oversold condition."""
        return self.rsi is not None and self.rsi < threshold

    def is_overbought(self, threshold: float = 70.0) -> bool:
        """Check if RSI indicates overbought condition."""
        return self.rsi is not None and self.rsi > threshold

    def is_bullish_momentum(self) -> bool:
        """Check if the MACD line is above zero (fast EMA above slow EMA)."""
        return self.macd is not None and self.macd > 0

    def bollinger_position(self) -> Literal["above", "within", "below"] | None:
        """Locate the last price relative to the Bollinger Bands."""
        if (
            self.last_price is None
            or self.bollinger_upper is None
            or self.bollinger_lower is None
        ):
            return None
        if self.last_price > self.bollinger_upper:
            return "above"
        if self.last_price < self.bollinger_lower:
            return "below"
        return "within"

    def predicted_change_percent(self) -> float | None:
        """Percentage move from the last price to the predicted price."""
        if self.predicted_price is None or not self.last_price:
            return None
        return (self.predicted_price - self.last_price) / self.last_price * 100

    def to_dict(self) -> dict[str, Any]:
        """Serialize to a JSON-ready dictionary."""
        data = asdict(self)
        data["timestamp"] = self.timestamp.isoformat()
        return data


@dataclass
class CoinMarketData:
    """Market snapshot for a single coin, as returned by the market data API."""

    id: str
    symbol: str
    name: str
    current_price: float
    price_change_24h: float | None = None
    price_change_percentage_24h: float | None = None
    market_cap: float | None = None
    total_volume: float | None = None
    sparkline: list[float] = field(default_factory=list)
    last_updated: datetime | None = None

    @property
    def price_series(self) -> PriceSeries:
        """The 7-day sparkline as a PriceSeries."""
        return PriceSeries.of(self.sparkline)

    @property
    def is_gaining(self) -> bool:
        """Check if the coin is up over the last 24 hours."""
        return (
            self.price_change_percentage_24h is not None
            and self.price_change_percentage_24h > 0
        )


@dataclass
class SentimentScore:
    """Sentiment score for a coin in the range [-1, 1]."""

    coin_id: str
    score: float
    timestamp: datetime = field(default_factory=datetime.now)

    def __post_init__(self) -> None:
        """Validate the score range."""
        if not -1.0 <= self.score <= 1.0:
            raise ValueError(f"Sentiment score must be within [-1, 1], got {self.score}")

    @property
    def label(self) -> Literal["bearish", "neutral", "bullish"]:
        """Coarse sentiment label."""
        if self.score <= -0.2:
            return "bearish"
        if self.score >= 0.2:
            return "bullish"
        return "neutral"
