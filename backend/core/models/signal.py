"""Signal and signal history models."""

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class SignalType(str, Enum):
    """Discrete trading signal."""

    BUY = "BUY"
    SELL = "SELL"
    WAIT = "WAIT"


class RecordOutcome(str, Enum):
    """What the history tracker did with an evaluated signal."""

    LOGGED = "logged"
    SUPPRESSED_WAIT = "suppressed_wait"
    SUPPRESSED_DEBOUNCE = "suppressed_debounce"


class SignalResult(BaseModel):
    """Classifier verdict plus the indicator values that produced it."""

    model_config = ConfigDict(frozen=True)

    signal: SignalType
    rsi: float
    ema: float


class SignalRecord(BaseModel):
    """Logged BUY/SELL signal with its immediate correctness."""

    model_config = ConfigDict(frozen=True)

    market: str
    interval: str
    signal: SignalType
    price: float
    timestamp: int  # Unix ms
    is_correct: bool


class MarketStats(BaseModel):
    """Per-market signal log and derived accuracy."""

    signals: list[SignalRecord] = Field(default_factory=list)
    accuracy: float = 0.0
    current_price: float = 0.0
    last_update: int = 0  # Unix ms


class MarketStatsTable:
    """Container of MarketStats keyed by market symbol.

    Owned by the top-level controller and handed to the history tracker,
    so there is no module-level stats state.
    """

    def __init__(self, markets: list[str] | None = None, now_ms: int = 0):
        self._stats: dict[str, MarketStats] = {}
        for market in markets or []:
            self._stats[market] = MarketStats(last_update=now_ms)

    def get(self, market: str) -> MarketStats:
        """Get the stats slot for a market, creating it on first access."""
        if market not in self._stats:
            self._stats[market] = MarketStats()
        return self._stats[market]

    def markets(self) -> list[str]:
        return list(self._stats)
