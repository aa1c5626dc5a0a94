"""Indicator, classifier and history configuration models."""

from __future__ import annotations

from pydantic import BaseModel


class IndicatorConfig(BaseModel):
    """Indicator periods."""

    rsi_period: int = 14
    ema_period: int = 20


class ClassifierConfig(BaseModel):
    """Signal classification thresholds."""

    # Below this many candles the indicators are considered unreliable
    min_candles: int = 20

    oversold: float = 30.0
    overbought: float = 70.0

    # Neutral values reported when there is not enough history
    default_rsi: float = 50.0
    default_ema: float = 0.0


class HistoryConfig(BaseModel):
    """Signal history bookkeeping."""

    debounce_ms: int = 30_000
    max_records: int = 50
