"""Poll controller for the selected market.

Each poll is one linear cycle:
fetch klines -> enrich with RSI/EMA -> classify -> update history -> publish.

The only suspension point is the network fetch. Everything after it runs
without awaiting, so history for a market is only mutated by a complete
cycle for that market.

Stale results are dropped: every poll is tagged with the selection
(symbol, interval, generation) it targeted, and a result whose generation
no longer matches the current selection is discarded without touching
history.
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Awaitable, Callable

from pydantic import BaseModel

from app.clients import BinanceRestClient, MarketDataError
from app.config import Settings, get_settings
from core.indicators import IndicatorCalculator
from core.models import Candle, MarketStats, RecordOutcome, SignalResult
from core.signal_generator import classify
from core.signal_history import SignalHistoryTracker

logger = logging.getLogger(__name__)

Clock = Callable[[], int]


def _now_ms() -> int:
    return int(time.time() * 1000)


@dataclass(frozen=True)
class MarketSelection:
    """Currently selected market, tagged with a generation counter."""

    symbol: str
    interval: str
    generation: int = 0


class PollSnapshot(BaseModel):
    """Everything the presentation layer needs after one poll."""

    symbol: str
    interval: str
    generation: int
    candles: list[Candle]
    result: SignalResult
    record_outcome: RecordOutcome
    stats: dict[str, MarketStats]
    polled_at: int  # Unix ms

    @property
    def last_candle(self) -> Candle:
        return self.candles[-1]


UpdateCallback = Callable[[PollSnapshot], Awaitable[None]]
ErrorCallback = Callable[[MarketSelection, MarketDataError], Awaitable[None]]


class MarketPoller:
    """
    Periodically poll the selected market and run the signal pipeline.

    - At most one fetch in flight per (symbol, interval) (extra polls are skipped)
    - Market/interval switches bump the generation and trigger an immediate poll
    - Data source failures are caught here, exposed via ``error`` and retried
      on the next tick
    """

    def __init__(
        self,
        client: BinanceRestClient,
        tracker: SignalHistoryTracker,
        settings: Settings | None = None,
        clock: Clock | None = None,
    ):
        self.client = client
        self.tracker = tracker
        self.settings = settings or get_settings()
        self.calculator = IndicatorCalculator(self.settings.indicator_config())
        self.classifier_config = self.settings.classifier_config()
        self._clock = clock or _now_ms

        self._validate(self.settings.default_symbol, self.settings.default_interval)
        self._selection = MarketSelection(
            symbol=self.settings.default_symbol,
            interval=self.settings.default_interval,
        )

        self._in_flight: set[tuple[str, str]] = set()
        self._latest: PollSnapshot | None = None
        self._error: str | None = None

        self._update_callbacks: list[UpdateCallback] = []
        self._error_callbacks: list[ErrorCallback] = []

        self._running = False
        self._task: asyncio.Task | None = None
        self._wakeup = asyncio.Event()

    # ------------------------------------------------------------------
    # Callbacks
    # ------------------------------------------------------------------

    def on_update(self, callback: UpdateCallback) -> None:
        """Register callback for completed polls."""
        if callback not in self._update_callbacks:
            self._update_callbacks.append(callback)

    def on_error(self, callback: ErrorCallback) -> None:
        """Register callback for failed polls."""
        if callback not in self._error_callbacks:
            self._error_callbacks.append(callback)

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def selection(self) -> MarketSelection:
        return self._selection

    @property
    def latest(self) -> PollSnapshot | None:
        """Snapshot of the most recent successful poll."""
        return self._latest

    @property
    def error(self) -> str | None:
        """Message of the last failed poll, cleared by the next success."""
        return self._error

    @property
    def is_polling(self) -> bool:
        return bool(self._in_flight)

    @property
    def is_running(self) -> bool:
        return self._running

    def _validate(self, symbol: str, interval: str) -> None:
        if symbol not in self.settings.symbols:
            raise ValueError(f"Unsupported symbol: {symbol}")
        if interval not in self.settings.intervals:
            raise ValueError(f"Unsupported interval: {interval}")

    def select(self, symbol: str, interval: str) -> MarketSelection:
        """
        Switch the polled market and/or interval.

        Any poll still in flight for the previous selection will have its
        result discarded.

        Raises:
            ValueError: symbol or interval is not in the allowed set
        """
        self._validate(symbol, interval)
        current = self._selection
        if current.symbol == symbol and current.interval == interval:
            return current

        self._selection = MarketSelection(
            symbol=symbol,
            interval=interval,
            generation=current.generation + 1,
        )
        self._error = None
        logger.info(
            f"Selection changed to {symbol} ({interval}), generation {self._selection.generation}"
        )
        self._wakeup.set()
        return self._selection

    def _is_stale(self, selection: MarketSelection) -> bool:
        return selection.generation != self._selection.generation

    # ------------------------------------------------------------------
    # Polling
    # ------------------------------------------------------------------

    async def poll_once(self) -> PollSnapshot | None:
        """
        Run one poll cycle for the current selection.

        At most one fetch per (symbol, interval) is outstanding; a poll for a
        pair that is already being fetched is skipped. After an interval
        switch the new pair polls immediately and the old fetch is discarded
        as stale when it completes.

        Returns:
            The new snapshot, or None if the poll was skipped, failed or
            its result was stale
        """
        selection = self._selection
        symbol, interval = selection.symbol, selection.interval
        key = (symbol, interval)
        if key in self._in_flight:
            logger.debug(f"Poll for {symbol} ({interval}) already in flight, skipping")
            return None

        self._in_flight.add(key)
        logger.debug(f"Syncing {symbol} ({interval})...")
        try:
            raw = await self.client.get_klines(symbol, interval, self.settings.kline_limit)
        except MarketDataError as e:
            if self._is_stale(selection):
                logger.info(f"Ignoring error from stale poll for {symbol} ({interval}): {e}")
                return None
            self._error = str(e)
            logger.warning(f"Poll failed for {symbol} ({interval}): {e}")
            await self._notify_error(selection, e)
            return None
        finally:
            self._in_flight.discard(key)

        if self._is_stale(selection):
            logger.info(
                f"Discarding stale result for {symbol} ({interval}): generation "
                f"{selection.generation}, current {self._selection.generation}"
            )
            return None

        candles = self.calculator.enrich(raw)
        result = classify(candles, self.classifier_config)

        current_price = candles[-1].close
        previous_price = candles[-2].close if len(candles) > 1 else current_price
        now = self._clock()

        outcome = self.tracker.record(
            symbol, interval, result.signal, current_price, previous_price, now
        )

        snapshot = PollSnapshot(
            symbol=symbol,
            interval=interval,
            generation=selection.generation,
            candles=candles,
            result=result,
            record_outcome=outcome,
            stats=self.tracker.snapshot(),
            polled_at=now,
        )
        self._latest = snapshot
        self._error = None

        await self._notify_update(snapshot)
        return snapshot

    async def _notify_update(self, snapshot: PollSnapshot) -> None:
        for callback in self._update_callbacks:
            try:
                await callback(snapshot)
            except Exception as e:
                logger.warning(f"Update callback failed: {e}")

    async def _notify_error(self, selection: MarketSelection, error: MarketDataError) -> None:
        for callback in self._error_callbacks:
            try:
                await callback(selection, error)
            except Exception as e:
                logger.warning(f"Error callback failed: {e}")

    async def _run(self) -> None:
        """Poll loop: one cycle per interval, woken early by selection changes."""
        while self._running:
            try:
                await self.poll_once()
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.exception(f"Unexpected poll error: {e}")

            try:
                await asyncio.wait_for(self._wakeup.wait(), timeout=self.settings.poll_interval)
            except asyncio.TimeoutError:
                pass
            self._wakeup.clear()

    async def start(self) -> None:
        """Start the background poll loop."""
        if self._running:
            return
        self._running = True
        self._task = asyncio.create_task(self._run())
        logger.info(
            f"Market poller started: {self._selection.symbol} ({self._selection.interval}), "
            f"every {self.settings.poll_interval}s"
        )

    async def stop(self) -> None:
        """Stop the background poll loop."""
        self._running = False
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        logger.info("Market poller stopped")
