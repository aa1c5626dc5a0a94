"""Technical indicators for signal generation.

Pure NumPy implementations of RSI (Wilder smoothing) and EMA. Every
function is a pure function of its full input sequence: the series are
recomputed from scratch on each poll rather than updated incrementally.
"""

from typing import Sequence

import numpy as np

from core.models import Candle, IndicatorConfig, IndicatorSeries


def _rsi_value(avg_gain: float, avg_loss: float) -> float:
    # Zero average loss is treated as a divisor of 1
    divisor = avg_loss if avg_loss != 0 else 1.0
    return 100.0 - 100.0 / (1.0 + avg_gain / divisor)


def rsi(prices: Sequence[float], period: int = 14) -> list[float]:
    """
    Calculate Relative Strength Index.

    The first ``period`` entries are 0.0 placeholders since RSI is not
    defined before enough samples exist.

    Args:
        prices: Sequence of close prices (oldest first)
        period: RSI period

    Returns:
        List of RSI values (same length as input)
    """
    n = len(prices)
    result = np.zeros(n, dtype=np.float64)
    if n <= period:
        return result.tolist()

    arr = np.asarray(prices, dtype=np.float64)
    deltas = np.diff(arr)
    gains = np.where(deltas > 0, deltas, 0.0)
    losses = np.where(deltas < 0, -deltas, 0.0)

    # Seed over deltas 1..period
    avg_gain = float(np.sum(gains[:period])) / period
    avg_loss = float(np.sum(losses[:period])) / period
    result[period] = _rsi_value(avg_gain, avg_loss)

    # Wilder smoothing
    for i in range(period + 1, n):
        avg_gain = (avg_gain * (period - 1) + gains[i - 1]) / period
        avg_loss = (avg_loss * (period - 1) + losses[i - 1]) / period
        result[i] = _rsi_value(avg_gain, avg_loss)

    return result.tolist()


def ema(prices: Sequence[float], period: int = 20) -> list[float]:
    """
    Calculate Exponential Moving Average.

    Seeded with the first price (not an SMA), so every index has a value.

    Args:
        prices: Sequence of close prices (oldest first)
        period: EMA period

    Returns:
        List of EMA values (same length as input, empty for empty input)
    """
    if len(prices) == 0:
        return []

    arr = np.asarray(prices, dtype=np.float64)
    multiplier = 2.0 / (period + 1)

    result = np.empty_like(arr)
    result[0] = arr[0]
    for i in range(1, len(arr)):
        result[i] = arr[i] * multiplier + result[i - 1] * (1 - multiplier)

    return result.tolist()


def compute_indicators(
    prices: Sequence[float],
    config: IndicatorConfig | None = None,
) -> IndicatorSeries:
    """Compute RSI and EMA series for a price sequence."""
    config = config or IndicatorConfig()
    return IndicatorSeries(
        rsi=rsi(prices, config.rsi_period),
        ema=ema(prices, config.ema_period),
    )


class IndicatorCalculator:
    """Attach RSI and EMA values to a candle sequence."""

    def __init__(self, config: IndicatorConfig | None = None):
        self.config = config or IndicatorConfig()

    def calculate(self, candles: Sequence[Candle]) -> IndicatorSeries:
        """Compute indicator series over the close prices."""
        return compute_indicators([c.close for c in candles], self.config)

    def enrich(self, candles: Sequence[Candle]) -> list[Candle]:
        """
        Return new candles carrying their rsi/ema values.

        The input candles are left untouched; the output is index-aligned
        with the input.
        """
        series = self.calculate(candles)
        return [
            candle.model_copy(update={"rsi": series.rsi[i], "ema": series.ema[i]})
            for i, candle in enumerate(candles)
        ]
