"""Application configuration."""

from functools import lru_cache
from pydantic_settings import BaseSettings, SettingsConfigDict

from core.models import ClassifierConfig, HistoryConfig, IndicatorConfig


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Binance API (public spot market data, no key required)
    binance_base_url: str = "https://api.binance.com"
    request_timeout: float = 30.0

    # Markets
    symbols: list[str] = ["BTCUSDT", "ETHUSDT", "BNBUSDT"]
    intervals: list[str] = ["1m", "3m", "5m"]
    default_symbol: str = "BTCUSDT"
    default_interval: str = "1m"
    kline_limit: int = 100

    # Polling
    poll_interval: float = 5.0  # seconds

    # Indicators / signal rule
    rsi_period: int = 14
    ema_period: int = 20
    min_candles: int = 20
    oversold: float = 30.0
    overbought: float = 70.0

    # Signal history
    debounce_ms: int = 30_000
    max_history: int = 50

    # Commentary (disabled when no key is set)
    openai_api_key: str = ""
    commentary_model: str = "gpt-4o-mini"

    # Server
    host: str = "0.0.0.0"
    port: int = 8000
    debug: bool = False

    def indicator_config(self) -> IndicatorConfig:
        return IndicatorConfig(rsi_period=self.rsi_period, ema_period=self.ema_period)

    def classifier_config(self) -> ClassifierConfig:
        return ClassifierConfig(
            min_candles=self.min_candles,
            oversold=self.oversold,
            overbought=self.overbought,
        )

    def history_config(self) -> HistoryConfig:
        return HistoryConfig(debounce_ms=self.debounce_ms, max_records=self.max_history)


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
