"""Configuration models for coinlens.

Settings are read from the environment (and an optional ``.env`` file) using
pydantic-settings. Nested sections use ``__`` as delimiter, for example::

    DATA_PROVIDER__PROVIDER=coingecko
    DATA_PROVIDER__VS_CURRENCY=eur
    INDICATORS__RSI_PERIOD=21
    LOG_LEVEL=DEBUG
"""

from typing import Literal

from pydantic import BaseModel, Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class DataProviderConfig(BaseModel):
    """Market data provider settings."""

    provider: Literal["coingecko", "mock"] = "coingecko"
    api_key: str | None = None
    base_url: str = "https://api.coingecko.com/api/v3"
    vs_currency: str = "usd"
    rate_limit: int = Field(default=30, gt=0, description="Requests per minute")
    timeout: float = Field(default=10.0, gt=0)


class CacheConfig(BaseModel):
    """In-memory cache settings for fetched market data."""

    enabled: bool = True
    max_size: int = Field(default=500, gt=0)
    market_ttl: int = Field(default=60, gt=0, description="Seconds to keep market snapshots")
    history_ttl: int = Field(default=900, gt=0, description="Seconds to keep price history")


class IndicatorConfig(BaseModel):
    """Periods and thresholds used by the indicator calculator."""

    rsi_period: int = Field(default=14, ge=1)
    macd_fast: int = Field(default=12, ge=1)
    macd_slow: int = Field(default=26, ge=1)
    macd_signal: int = Field(default=9, ge=1)
    bollinger_period: int = Field(default=20, ge=1)
    bollinger_k: float = Field(default=2.0, ge=0)
    oversold: float = Field(default=30.0, ge=0, le=100)
    overbought: float = Field(default=70.0, ge=0, le=100)

    @model_validator(mode="after")
    def _check_ordering(self) -> "IndicatorConfig":
        if self.macd_fast >= self.macd_slow:
            raise ValueError("macd_fast must be smaller than macd_slow")
        if self.oversold >= self.overbought:
            raise ValueError("oversold threshold must be below overbought threshold")
        return self


class AnalyzerConfig(BaseModel):
    """Batch market analysis settings."""

    max_concurrent_requests: int = Field(default=5, ge=1)
    history_days: int = Field(
        default=7, ge=0, description="Days of history fetched when a sparkline is too short"
    )
    include_sentiment: bool = Field(
        default=False, description="Fetch community sentiment for each analyzed coin"
    )
    default_coins: list[str] = Field(
        default_factory=lambda: ["bitcoin", "ethereum", "solana", "cardano", "ripple"]
    )


class Config(BaseSettings):
    """Top-level application configuration."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        extra="ignore",
    )

    log_level: str = "INFO"
    data_provider: DataProviderConfig = Field(default_factory=DataProviderConfig)
    cache: CacheConfig = Field(default_factory=CacheConfig)
    indicators: IndicatorConfig = Field(default_factory=IndicatorConfig)
    analyzer: AnalyzerConfig = Field(default_factory=AnalyzerConfig)
