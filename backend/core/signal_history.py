"""Per-market signal history and accuracy bookkeeping.

The tracker operates on a MarketStatsTable owned by the caller. Records are
only ever appended or evicted from the front; existing records are never
edited.
"""

import logging
from decimal import ROUND_HALF_UP, Decimal
from typing import Sequence

from core.models import (
    HistoryConfig,
    MarketStats,
    MarketStatsTable,
    RecordOutcome,
    SignalRecord,
    SignalType,
)

logger = logging.getLogger(__name__)


def is_debounced(
    log: Sequence[SignalRecord],
    market: str,
    now_ms: int,
    window_ms: int,
) -> bool:
    """
    Check whether a new record for ``market`` falls inside the debounce window.

    Only the most recent record of the same market counts, whatever its
    signal type: a SELL shortly after a logged BUY is suppressed too.
    """
    for record in reversed(log):
        if record.market == market:
            return now_ms - record.timestamp <= window_ms
    return False


def evaluate_correctness(
    signal: SignalType,
    current_price: float,
    previous_price: float,
) -> bool:
    """Check if price moved in the signaled direction over the last interval."""
    if signal == SignalType.BUY:
        return current_price > previous_price
    if signal == SignalType.SELL:
        return current_price < previous_price
    return False


def compute_accuracy(records: Sequence[SignalRecord]) -> float:
    """Percentage of correct records, rounded half-up to 2 decimals (0 when empty)."""
    if not records:
        return 0.0
    correct = sum(1 for r in records if r.is_correct)
    value = correct / len(records) * 100
    return float(Decimal(value).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP))


class SignalHistoryTracker:
    """Maintain a bounded signal log per market and derive accuracy."""

    def __init__(
        self,
        table: MarketStatsTable,
        config: HistoryConfig | None = None,
    ):
        self.table = table
        self.config = config or HistoryConfig()

    def record(
        self,
        market: str,
        interval: str,
        signal: SignalType,
        current_price: float,
        previous_price: float,
        now_ms: int,
    ) -> RecordOutcome:
        """
        Record the outcome of one poll cycle for a market.

        The latest price and update time are refreshed on every call. A
        SignalRecord is appended only for BUY/SELL signals outside the
        debounce window; the log is then trimmed to ``max_records``.

        Returns:
            What happened to the signal (logged or why it was suppressed)
        """
        stats = self.table.get(market)
        stats.current_price = current_price
        stats.last_update = now_ms

        if signal == SignalType.WAIT:
            outcome = RecordOutcome.SUPPRESSED_WAIT
        elif is_debounced(stats.signals, market, now_ms, self.config.debounce_ms):
            outcome = RecordOutcome.SUPPRESSED_DEBOUNCE
            logger.debug(f"{market}: {signal.value} suppressed by debounce")
        else:
            record = SignalRecord(
                market=market,
                interval=interval,
                signal=signal,
                price=current_price,
                timestamp=now_ms,
                is_correct=evaluate_correctness(signal, current_price, previous_price),
            )
            stats.signals.append(record)
            overflow = len(stats.signals) - self.config.max_records
            if overflow > 0:
                del stats.signals[:overflow]
            outcome = RecordOutcome.LOGGED
            logger.info(
                f"{market} {interval}: logged {signal.value} at {current_price} "
                f"(correct={record.is_correct})"
            )

        stats.accuracy = compute_accuracy(stats.signals)
        return outcome

    def get_stats(self, market: str) -> MarketStats:
        """Get a copy of a market's stats (callers cannot mutate the log)."""
        return self.table.get(market).model_copy(deep=True)

    def snapshot(self) -> dict[str, MarketStats]:
        """Get copies of all markets' stats."""
        return {market: self.get_stats(market) for market in self.table.markets()}
