"""Tests for application wiring callbacks."""

from unittest.mock import AsyncMock, MagicMock, patch

import pytest

import app.main as main
from app.clients import NetworkError
from app.services import MarketSelection, PollSnapshot
from core.models import (
    Candle,
    MarketStats,
    RecordOutcome,
    SignalRecord,
    SignalResult,
    SignalType,
)

T0 = 1_700_000_000_000


def make_snapshot(outcome: RecordOutcome, symbol: str = "BTCUSDT") -> PollSnapshot:
    candles = [
        Candle(time=T0, open=100.0, high=100.0, low=100.0, close=100.0, volume=1.0, rsi=0.0, ema=100.0),
        Candle(time=T0 + 60_000, open=101.0, high=101.0, low=101.0, close=101.0, volume=1.0, rsi=25.0, ema=100.1),
    ]
    signals = []
    if outcome == RecordOutcome.LOGGED:
        signals.append(SignalRecord(
            market=symbol, interval="1m", signal=SignalType.BUY,
            price=101.0, timestamp=T0, is_correct=True,
        ))
    return PollSnapshot(
        symbol=symbol,
        interval="1m",
        generation=0,
        candles=candles,
        result=SignalResult(signal=SignalType.BUY, rsi=25.0, ema=100.1),
        record_outcome=outcome,
        stats={symbol: MarketStats(signals=signals, accuracy=100.0, current_price=101.0, last_update=T0)},
        polled_at=T0,
    )


class TestCallbacks:
    """Tests for poller callbacks wired in app.main."""

    @pytest.fixture
    def manager(self):
        manager = MagicMock()
        manager.send_market_update = AsyncMock()
        manager.send_signal = AsyncMock()
        manager.send_error = AsyncMock()
        with patch.object(main, "manager", manager):
            yield manager

    @pytest.fixture
    def commentary(self):
        commentary = MagicMock()
        commentary.enabled = True
        commentary.request = MagicMock(return_value=MagicMock())
        with patch.object(main, "commentary", commentary), \
                patch.object(main, "_commentary_symbol", None):
            yield commentary

    @pytest.mark.asyncio
    async def test_logged_signal_is_broadcast(self, manager, commentary):
        await main.on_market_update(make_snapshot(RecordOutcome.LOGGED))

        manager.send_market_update.assert_awaited_once()
        manager.send_signal.assert_awaited_once()
        sent = manager.send_signal.await_args.args[0]
        assert sent["signal"] == "BUY"
        assert sent["market"] == "BTCUSDT"

    @pytest.mark.asyncio
    async def test_suppressed_signal_not_broadcast(self, manager, commentary):
        await main.on_market_update(make_snapshot(RecordOutcome.SUPPRESSED_DEBOUNCE))

        manager.send_market_update.assert_awaited_once()
        manager.send_signal.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_commentary_requested_once_per_symbol(self, manager, commentary):
        await main.on_market_update(make_snapshot(RecordOutcome.SUPPRESSED_WAIT))
        await main.on_market_update(make_snapshot(RecordOutcome.SUPPRESSED_WAIT))
        await main.on_market_update(make_snapshot(RecordOutcome.SUPPRESSED_WAIT, "ETHUSDT"))

        symbols = [call.args[0] for call in commentary.request.call_args_list]
        assert symbols == ["BTCUSDT", "ETHUSDT"]

    @pytest.mark.asyncio
    async def test_poll_error_is_broadcast(self, manager):
        await main.on_poll_error(MarketSelection("BTCUSDT", "1m", 3), NetworkError("down"))

        manager.send_error.assert_awaited_once_with("BTCUSDT", "1m", "down")


class TestBuildCommentary:
    def test_disabled_without_key(self):
        settings = MagicMock(openai_api_key="")
        with patch.object(main, "get_settings", return_value=settings):
            service = main.build_commentary()

        assert not service.enabled
