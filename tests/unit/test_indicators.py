"""
Unit tests for the indicator engine and the IndicatorCalculator class.

Tests RSI, MACD, Bollinger Bands, Fibonacci retracement and the linear-trend
price prediction, including their short-series and degenerate cases.
"""

import math
from datetime import datetime

import pytest
from coinlens.analysis.indicators import (
    IndicatorCalculator,
    InsufficientDataError,
    bollinger,
    ema,
    ema_series,
    fibonacci,
    macd,
    macd_detailed,
    predict,
    rsi,
    sma,
)
from coinlens.config import IndicatorConfig
from coinlens.data.models import CoinMarketData, PriceSeries

# Closes from the classic 14-period RSI worked example
WILDER_CLOSES = [
    44.0, 44.34, 44.09, 43.61, 44.33, 44.83, 45.10, 45.42,
    45.84, 46.08, 45.89, 46.03, 45.61, 46.28, 46.28, 46.00,
]

SCENARIO = [100, 102, 101, 105, 107, 106, 110]


def linear(count: int, start: float = 100.0, step: float = 2.0) -> list[float]:
    """Build a straight-line price series."""
    return [start + step * i for i in range(count)]


def zigzag(count: int) -> list[float]:
    """Build a choppy series with both gains and losses."""
    return [100 + 5 * math.sin(i / 3) + (i % 4) * 0.7 for i in range(count)]


class TestInsufficientDataError:
    """Tests for the InsufficientDataError type."""

    def test_carries_details(self) -> None:
        """Error exposes indicator name and data point counts."""
        error = InsufficientDataError("RSI", 15, 7)

        assert error.indicator == "RSI"
        assert error.required == 15
        assert error.available == 7
        assert "15" in str(error) and "7" in str(error)

    def test_is_value_error(self) -> None:
        """Callers may catch it as a ValueError."""
        assert issubclass(InsufficientDataError, ValueError)


class TestMovingAverages:
    """Tests for the SMA and EMA helpers."""

    def test_sma_uses_trailing_window(self) -> None:
        """SMA averages only the most recent values."""
        assert sma([1, 2, 3, 4, 5], 3) == pytest.approx(4.0)

    def test_sma_insufficient_data(self) -> None:
        """SMA needs at least ``period`` values."""
        with pytest.raises(InsufficientDataError):
            sma([1, 2], 3)

    def test_ema_seeded_with_simple_mean(self) -> None:
        """First EMA value is the mean of the first ``period`` values."""
        series = ema_series([2, 4, 6, 8], 3)

        assert math.isnan(series.iloc[0])
        assert math.isnan(series.iloc[1])
        assert series.iloc[2] == pytest.approx(4.0)
        # alpha = 0.5 for period 3: 0.5 * 8 + 0.5 * 4
        assert series.iloc[3] == pytest.approx(6.0)

    def test_ema_latest_value(self) -> None:
        """ema() returns the last value of the EMA path."""
        assert ema([2, 4, 6, 8], 3) == pytest.approx(6.0)

    def test_ema_differs_from_sma(self) -> None:
        """EMA weights the latest jump more heavily than SMA."""
        prices = [10, 10, 10, 10, 20]

        assert ema(prices, 3) == pytest.approx(15.0)
        assert sma(prices, 3) == pytest.approx(40 / 3)

    def test_invalid_period(self) -> None:
        """Non-positive periods are rejected."""
        with pytest.raises(ValueError, match="positive"):
            sma([1, 2, 3], 0)
        with pytest.raises(ValueError, match="positive"):
            ema_series([1, 2, 3], -1)


class TestRSI:
    """Tests for the Relative Strength Index."""

    @pytest.mark.parametrize("length", range(15))
    def test_undefined_below_fifteen_points(self, length: int) -> None:
        """RSI-14 needs 15 prices."""
        with pytest.raises(InsufficientDataError) as exc_info:
            rsi(linear(length), 14)

        assert exc_info.value.required == 15
        assert exc_info.value.available == length

    def test_defined_at_fifteen_points(self) -> None:
        """RSI-14 is defined with exactly 15 prices."""
        assert 0 <= rsi(zigzag(15), 14) <= 100

    def test_wilder_first_value(self) -> None:
        """First RSI equals the plain average gain/loss ratio."""
        # 14 differences: gains sum 3.62, losses sum 1.34
        assert rsi(WILDER_CLOSES[:15], 14) == pytest.approx(72.98387, abs=1e-4)

    def test_wilder_smoothing(self) -> None:
        """Later RSI values use Wilder's smoothing."""
        # avg_gain = 47.06 / 196, avg_loss = 21.34 / 196
        assert rsi(WILDER_CLOSES, 14) == pytest.approx(100 * 47.06 / 68.4, abs=1e-6)

    def test_strictly_increasing_is_100(self) -> None:
        """No losses means RSI of 100."""
        assert rsi(linear(30), 14) == 100.0

    def test_strictly_decreasing_is_0(self) -> None:
        """No gains means RSI of 0."""
        assert rsi(linear(30, start=200.0, step=-1.5), 14) == 0.0

    def test_flat_series_is_100(self) -> None:
        """Zero average loss maps to 100 even when there are no gains."""
        assert rsi([50.0] * 20, 14) == 100.0

    def test_in_range(self) -> None:
        """RSI stays within [0, 100] for mixed data."""
        value = rsi(zigzag(120), 14)
        assert 0 < value < 100

    def test_custom_period(self) -> None:
        """Shorter periods need fewer prices."""
        # gains 3 / 5, losses 2 / 5 -> RS 1.5
        assert rsi([1, 2, 1, 2, 1, 2], 5) == pytest.approx(60.0)

    def test_does_not_mutate_input(self) -> None:
        """Input order and values are untouched."""
        prices = zigzag(30)
        snapshot = list(prices)
        rsi(prices, 14)
        assert prices == snapshot


class TestMACD:
    """Tests for MACD."""

    def test_length_25_undefined(self) -> None:
        """MACD 12/26 needs 26 prices."""
        with pytest.raises(InsufficientDataError) as exc_info:
            macd(linear(25))

        assert exc_info.value.required == 26

    def test_length_26_defined(self) -> None:
        """MACD 12/26 is defined with exactly 26 prices."""
        assert macd(linear(26)) == pytest.approx(14.0)

    def test_linear_series(self) -> None:
        """For a straight line the EMA lags are (period - 1) / 2 steps."""
        # slope 2: fast lag 5.5 steps, slow lag 12.5 steps -> 2 * 7
        assert macd(linear(60)) == pytest.approx(14.0)

    def test_falling_series_is_negative(self) -> None:
        """Fast EMA below slow EMA gives a negative MACD."""
        assert macd(linear(60, start=300.0, step=-3.0)) == pytest.approx(-21.0)

    def test_flat_series_is_zero(self) -> None:
        """Both EMAs equal the price on a flat series."""
        assert macd([42.0] * 30) == pytest.approx(0.0, abs=1e-9)

    def test_fast_must_be_smaller_than_slow(self) -> None:
        """fast >= slow is a parameter error."""
        with pytest.raises(ValueError, match="smaller"):
            macd(linear(40), fast=26, slow=12)

    def test_detailed_without_signal(self) -> None:
        """Signal line needs slow + signal - 1 prices."""
        result = macd_detailed(linear(33))

        assert result.macd == pytest.approx(14.0)
        assert result.signal is None
        assert result.histogram is None

    def test_detailed_with_signal(self) -> None:
        """Signal line of a constant MACD line equals the line."""
        result = macd_detailed(linear(34))

        assert result.signal == pytest.approx(14.0)
        assert result.histogram == pytest.approx(0.0, abs=1e-9)

    def test_detailed_matches_plain_macd(self) -> None:
        """Extended result carries the same MACD line value."""
        prices = zigzag(80)
        result = macd_detailed(prices)

        assert result.macd == macd(prices)
        assert result.histogram == pytest.approx(result.macd - result.signal)


class TestBollingerBands:
    """Tests for Bollinger Bands."""

    def test_insufficient_data(self) -> None:
        """Bollinger 20 needs 20 prices."""
        with pytest.raises(InsufficientDataError):
            bollinger(linear(19))

    def test_known_values(self) -> None:
        """Population standard deviation of 1..20 is sqrt(33.25)."""
        bands = bollinger(list(range(1, 21)))
        stddev = math.sqrt(33.25)

        assert bands.middle == pytest.approx(10.5)
        assert bands.upper == pytest.approx(10.5 + 2 * stddev)
        assert bands.lower == pytest.approx(10.5 - 2 * stddev)

    def test_uses_trailing_window(self) -> None:
        """Older prices outside the window are ignored."""
        bands = bollinger([1000.0] * 10 + list(range(1, 21)))
        assert bands.middle == pytest.approx(10.5)

    @pytest.mark.parametrize("value", [100.0, 0.1, 0.0, 63_512.37])
    def test_flat_series_collapses(self, value: float) -> None:
        """A flat series has zero width at exactly the price."""
        bands = bollinger([value] * 25)

        assert bands.upper == bands.middle == bands.lower == value
        assert bands.width == 0.0

    @pytest.mark.parametrize("count", [20, 21, 50, 168])
    def test_band_ordering(self, count: int) -> None:
        """upper >= middle >= lower."""
        bands = bollinger(zigzag(count))
        assert bands.upper >= bands.middle >= bands.lower

    def test_k_scales_width(self) -> None:
        """Band width is proportional to k."""
        prices = zigzag(40)
        narrow = bollinger(prices, k=1.0)
        wide = bollinger(prices, k=3.0)

        assert wide.width == pytest.approx(3 * narrow.width)
        assert bollinger(prices, k=0.0).width == 0.0

    def test_negative_k_rejected(self) -> None:
        """Negative k is a parameter error."""
        with pytest.raises(ValueError, match="non-negative"):
            bollinger(zigzag(40), k=-1.0)


class TestFibonacci:
    """Tests for Fibonacci retracement levels."""

    def test_scenario_levels(self) -> None:
        """High 110, low 100, range 10."""
        levels = fibonacci(SCENARIO)

        assert levels.high == 110
        assert levels.low == 100
        assert list(levels) == pytest.approx([110, 107.64, 106.18, 105, 103.82, 100])

    def test_endpoints_are_exact(self) -> None:
        """First level is the max and last level is the min."""
        prices = [0.3, 0.1, 0.7, 0.2]
        levels = fibonacci(prices)

        assert levels[0] == max(prices)
        assert levels[5] == min(prices)

    def test_six_levels_descending(self) -> None:
        """Levels run from high to low."""
        levels = fibonacci(zigzag(50))

        assert len(levels) == 6
        assert list(levels) == sorted(levels, reverse=True)

    def test_flat_series(self) -> None:
        """A flat series gives six identical levels."""
        assert list(fibonacci([7.25] * 9)) == [7.25] * 6

    def test_single_point(self) -> None:
        """One price is enough for a degenerate retracement."""
        assert list(fibonacci([3.0])) == [3.0] * 6

    def test_empty_series(self) -> None:
        """No prices means no high or low."""
        with pytest.raises(InsufficientDataError):
            fibonacci([])

    def test_as_dict(self) -> None:
        """Levels are keyed by ratio."""
        mapping = fibonacci(SCENARIO).as_dict()

        assert list(mapping) == [0.0, 0.236, 0.382, 0.5, 0.618, 1.0]
        assert mapping[0.5] == pytest.approx(105.0)


class TestPredict:
    """Tests for the linear-trend price prediction."""

    def test_scenario(self) -> None:
        """Least squares over indices 0..6, evaluated at index 7."""
        # slope 11/7, intercept 698/7
        assert predict(SCENARIO) == pytest.approx(775 / 7)

    def test_two_points(self) -> None:
        """Two points define the line exactly."""
        assert predict([1.0, 3.0]) == pytest.approx(5.0)

    def test_exact_line(self) -> None:
        """A straight line is extended by one step."""
        assert predict([10, 20, 30]) == pytest.approx(40.0)

    def test_flat_series(self) -> None:
        """Flat series predicts the same price."""
        assert predict([12.5] * 10) == pytest.approx(12.5)

    @pytest.mark.parametrize("prices", [[], [100.0]])
    def test_insufficient_data(self, prices: list[float]) -> None:
        """A trend needs at least two points."""
        with pytest.raises(InsufficientDataError):
            predict(prices)


class TestDeterminism:
    """Repeated calls give bit-identical results."""

    def test_repeated_calls_identical(self) -> None:
        """No hidden state between calls."""
        prices = zigzag(168)

        assert rsi(prices) == rsi(prices)
        assert macd(prices) == macd(prices)
        assert macd_detailed(prices) == macd_detailed(prices)
        assert bollinger(prices) == bollinger(prices)
        assert fibonacci(prices) == fibonacci(prices)
        assert predict(prices) == predict(prices)

    def test_price_series_and_list_agree(self) -> None:
        """Plain sequences and PriceSeries produce the same values."""
        prices = zigzag(60)
        series = PriceSeries(prices)

        assert rsi(series) == rsi(prices)
        assert macd(series) == macd(prices)
        assert bollinger(series) == bollinger(prices)
        assert predict(series) == predict(prices)

    def test_invalid_prices_rejected(self) -> None:
        """Negative or non-finite prices never reach the math."""
        with pytest.raises(ValueError):
            rsi([1.0, -2.0] * 10)
        with pytest.raises(ValueError):
            predict([1.0, float("nan")])


class TestIndicatorCalculator:
    """Test suite for IndicatorCalculator."""

    @pytest.fixture
    def calculator(self) -> IndicatorCalculator:
        """Create an IndicatorCalculator instance for testing."""
        return IndicatorCalculator()

    @pytest.fixture
    def sparkline(self) -> list[float]:
        """Seven days of hourly prices."""
        return zigzag(168)

    def test_calculate_all_indicators(
        self, calculator: IndicatorCalculator, sparkline: list[float]
    ) -> None:
        """All indicators are present with a full sparkline."""
        indicators = calculator.calculate(sparkline, "BTC")

        assert indicators.symbol == "BTC"
        assert indicators.data_points == 168
        assert indicators.last_price == sparkline[-1]
        assert indicators.rsi is not None
        assert indicators.macd is not None
        assert indicators.macd_signal is not None
        assert indicators.macd_histogram is not None
        assert indicators.bollinger_upper is not None
        assert indicators.bollinger_middle is not None
        assert indicators.bollinger_lower is not None
        assert indicators.fibonacci_levels is not None
        assert len(indicators.fibonacci_levels) == 6
        assert indicators.predicted_price is not None

    def test_values_match_engine(
        self, calculator: IndicatorCalculator, sparkline: list[float]
    ) -> None:
        """Snapshot values are the engine's values."""
        indicators = calculator.calculate(sparkline, "BTC")
        bands = bollinger(sparkline)

        assert indicators.rsi == rsi(sparkline)
        assert indicators.macd == macd(sparkline)
        assert indicators.bollinger_upper == bands.upper
        assert indicators.fibonacci_levels == list(fibonacci(sparkline))
        assert indicators.predicted_price == predict(sparkline)

    def test_short_series_yields_none(self, calculator: IndicatorCalculator) -> None:
        """Indicators the data cannot support are None."""
        indicators = calculator.calculate(zigzag(20), "ETH")

        assert indicators.rsi is not None
        assert indicators.bollinger_middle is not None
        assert indicators.macd is None
        assert indicators.macd_signal is None
        assert indicators.predicted_price is not None

    def test_single_price(self, calculator: IndicatorCalculator) -> None:
        """One price only supports Fibonacci levels."""
        indicators = calculator.calculate([5.0], "ONE")

        assert indicators.last_price == 5.0
        assert indicators.rsi is None
        assert indicators.macd is None
        assert indicators.bollinger_upper is None
        assert indicators.predicted_price is None
        assert indicators.fibonacci_levels == [5.0] * 6

    def test_empty_series_raises(self, calculator: IndicatorCalculator) -> None:
        """Empty series raises ValueError."""
        with pytest.raises(ValueError, match="empty"):
            calculator.calculate([], "BTC")

    def test_config_periods_are_used(self) -> None:
        """Custom periods change the minimum data requirements."""
        config = IndicatorConfig(
            rsi_period=5, macd_fast=3, macd_slow=6, macd_signal=2, bollinger_period=4
        )
        calculator = IndicatorCalculator(config)
        indicators = calculator.calculate(zigzag(8), "SOL")

        assert indicators.rsi == rsi(zigzag(8), 5)
        assert indicators.macd == macd(zigzag(8), 3, 6)
        assert indicators.macd_signal is not None
        assert indicators.bollinger_middle == bollinger(zigzag(8), 4).middle

    def test_timestamp(self, calculator: IndicatorCalculator) -> None:
        """Explicit timestamp is kept."""
        stamp = datetime(2024, 5, 1, 12, 0)
        indicators = calculator.calculate(zigzag(30), "ADA", timestamp=stamp)
        assert indicators.timestamp == stamp

    def test_calculate_for_coin(self, calculator: IndicatorCalculator) -> None:
        """Coin sparkline and metadata feed the snapshot."""
        stamp = datetime(2024, 1, 8, 9, 30)
        coin = CoinMarketData(
            id="bitcoin",
            symbol="btc",
            name="Bitcoin",
            current_price=65000.0,
            sparkline=zigzag(168),
            last_updated=stamp,
        )

        indicators = calculator.calculate_for_coin(coin)

        assert indicators.symbol == "BTC"
        assert indicators.timestamp == stamp
        assert indicators.data_points == 168

    def test_consistent_results_for_same_data(
        self, calculator: IndicatorCalculator, sparkline: list[float]
    ) -> None:
        """Calculations are consistent across multiple calls."""
        stamp = datetime(2024, 1, 1)
        first = calculator.calculate(sparkline, "BTC", timestamp=stamp)
        second = calculator.calculate(sparkline, "BTC", timestamp=stamp)

        assert first == second
