"""Signal classifier for the RSI/EMA threshold rule.

This module is pure business logic with no I/O dependencies. It reads the
indicator values already attached to the latest candle and maps them to a
BUY/SELL/WAIT verdict.
"""

import logging
from typing import Sequence

from core.models import Candle, ClassifierConfig, SignalResult, SignalType

logger = logging.getLogger(__name__)


def classify(
    candles: Sequence[Candle],
    config: ClassifierConfig | None = None,
) -> SignalResult:
    """
    Classify the latest candle of an enriched sequence.

    Rules (thresholds do not overlap, so at most one can match):
    - BUY:  RSI < oversold and close > EMA
    - SELL: RSI > overbought and close < EMA
    - WAIT: otherwise

    With fewer than ``min_candles`` candles the indicators are unreliable
    and the neutral default (WAIT, 50, 0) is returned.

    Args:
        candles: Enriched candles, oldest first
        config: Classification thresholds

    Returns:
        SignalResult with the verdict and the RSI/EMA used
    """
    config = config or ClassifierConfig()

    if len(candles) < config.min_candles:
        return SignalResult(
            signal=SignalType.WAIT,
            rsi=config.default_rsi,
            ema=config.default_ema,
        )

    last = candles[-1]
    rsi_value = last.rsi if last.rsi is not None else config.default_rsi
    ema_value = last.ema if last.ema is not None else config.default_ema
    price = last.close

    signal = SignalType.WAIT
    if rsi_value < config.oversold and price > ema_value:
        signal = SignalType.BUY
    elif rsi_value > config.overbought and price < ema_value:
        signal = SignalType.SELL

    if signal != SignalType.WAIT:
        logger.debug(
            f"{signal.value} at {price} (RSI={rsi_value:.2f}, EMA={ema_value:.2f})"
        )

    return SignalResult(signal=signal, rsi=rsi_value, ema=ema_value)
