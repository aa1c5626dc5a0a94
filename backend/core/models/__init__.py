"""Core data models."""

from core.models.candle import Candle, IndicatorSeries
from core.models.signal import (
    MarketStats,
    MarketStatsTable,
    RecordOutcome,
    SignalRecord,
    SignalResult,
    SignalType,
)
from core.models.config import ClassifierConfig, HistoryConfig, IndicatorConfig

__all__ = [
    "Candle",
    "IndicatorSeries",
    "MarketStats",
    "MarketStatsTable",
    "RecordOutcome",
    "SignalRecord",
    "SignalResult",
    "SignalType",
    "ClassifierConfig",
    "HistoryConfig",
    "IndicatorConfig",
]
