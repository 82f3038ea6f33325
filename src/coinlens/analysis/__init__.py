"""
Technical analysis module for coinlens.

This module provides the indicator engine (RSI, MACD, Bollinger Bands,
Fibonacci retracement and a linear-trend price forecast) and the
IndicatorCalculator that turns a coin's price history into a snapshot.
"""

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

__all__ = [
    "IndicatorCalculator",
    "InsufficientDataError",
    "bollinger",
    "ema",
    "ema_series",
    "fibonacci",
    "macd",
    "macd_detailed",
    "predict",
    "rsi",
    "sma",
]
