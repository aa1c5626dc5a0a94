"""Technical indicators (pure math, no I/O)."""

from core.indicators.indicators import (
    rsi,
    ema,
    compute_indicators,
    IndicatorCalculator,
)

__all__ = [
    "rsi",
    "ema",
    "compute_indicators",
    "IndicatorCalculator",
]
