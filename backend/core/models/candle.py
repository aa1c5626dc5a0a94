"""Candle (OHLCV) data models."""

from dataclasses import dataclass, field

from pydantic import BaseModel, ConfigDict


class Candle(BaseModel):
    """One OHLCV sample, optionally enriched with indicator values.

    ``time`` is the candle open time as a Unix timestamp in milliseconds.
    """

    model_config = ConfigDict(frozen=True)

    time: int
    open: float
    high: float
    low: float
    close: float
    volume: float
    rsi: float | None = None
    ema: float | None = None

    @property
    def is_enriched(self) -> bool:
        """Check if indicator values have been attached."""
        return self.rsi is not None and self.ema is not None


@dataclass
class IndicatorSeries:
    """RSI and EMA series, index-aligned with the price sequence."""

    rsi: list[float] = field(default_factory=list)
    ema: list[float] = field(default_factory=list)
