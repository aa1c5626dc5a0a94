"""Tests for the REST and WebSocket API."""

from unittest.mock import AsyncMock, MagicMock

import orjson
import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from app.api import router, websocket_endpoint
from app.api.websocket import ConnectionManager, reply_to
from app.clients import NetworkError
from app.config import get_settings
from app.services import CommentaryService, MarketPoller
from core.models import Candle, MarketStatsTable
from core.signal_history import SignalHistoryTracker

T0 = 1_700_000_000_000


def make_candles(n: int = 30) -> list[Candle]:
    return [
        Candle(time=T0 + i * 60_000, open=100.0 + i, high=101.0 + i,
               low=99.0 + i, close=100.0 + i, volume=5.0)
        for i in range(n)
    ]


@pytest.fixture
def market_client():
    client = MagicMock()
    client.get_klines = AsyncMock(return_value=make_candles())
    return client


@pytest.fixture
def poller(market_client):
    settings = get_settings()
    tracker = SignalHistoryTracker(MarketStatsTable(settings.symbols), settings.history_config())
    return MarketPoller(market_client, tracker, settings, clock=lambda: T0)


@pytest.fixture
def commentary():
    return CommentaryService()


@pytest.fixture
def api(poller, commentary):
    app = FastAPI()
    app.include_router(router, prefix="/api")
    app.websocket("/ws")(websocket_endpoint)
    app.state.poller = poller
    app.state.commentary = commentary
    with TestClient(app) as client:
        yield client


class TestStatusAndMarket:
    """Tests for status and market data endpoints."""

    def test_status_before_first_poll(self, api):
        response = api.get("/api/status")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "running"
        assert data["selected_symbol"] == "BTCUSDT"
        assert data["selected_interval"] == "1m"
        assert data["last_poll"] is None
        assert data["symbols"] == ["BTCUSDT", "ETHUSDT", "BNBUSDT"]

    def test_market_404_before_first_poll(self, api):
        assert api.get("/api/market").status_code == 404
        assert api.get("/api/signal").status_code == 404

    def test_refresh_then_market(self, api):
        response = api.post("/api/refresh")
        assert response.status_code == 200
        assert response.json()["last_poll"] == T0

        market = api.get("/api/market").json()
        assert market["symbol"] == "BTCUSDT"
        assert len(market["candles"]) == 30
        assert market["candles"][-1]["rsi"] is not None
        assert market["result"]["signal"] == "WAIT"
        assert market["stats"]["BTCUSDT"]["current_price"] == 129.0

        signal = api.get("/api/signal").json()
        assert signal["signal"] == "WAIT"
        assert signal["price"] == 129.0

    def test_refresh_failure_reports_error(self, api, market_client):
        market_client.get_klines.side_effect = NetworkError("connection reset")

        data = api.post("/api/refresh").json()

        assert data["status"] == "error"
        assert data["error"] == "connection reset"


class TestStats:
    """Tests for stats endpoints."""

    def test_all_stats(self, api):
        data = api.get("/api/stats").json()

        assert set(data) == {"BTCUSDT", "ETHUSDT", "BNBUSDT"}
        assert data["BTCUSDT"]["signals"] == []
        assert data["BTCUSDT"]["accuracy"] == 0.0

    def test_single_market_stats(self, api):
        api.post("/api/refresh")

        data = api.get("/api/stats/BTCUSDT").json()
        assert data["current_price"] == 129.0

    def test_unknown_market_stats(self, api):
        assert api.get("/api/stats/DOGEUSDT").status_code == 404


class TestSelection:
    """Tests for market selection."""

    def test_change_selection(self, api, poller):
        response = api.put("/api/selection", json={"symbol": "ETHUSDT", "interval": "5m"})

        assert response.status_code == 200
        assert response.json() == {"symbol": "ETHUSDT", "interval": "5m", "generation": 1}
        assert poller.selection.symbol == "ETHUSDT"

    def test_invalid_selection(self, api, poller):
        response = api.put("/api/selection", json={"symbol": "DOGEUSDT", "interval": "1m"})

        assert response.status_code == 400
        assert poller.selection.symbol == "BTCUSDT"


class TestCommentary:
    """Tests for commentary endpoints."""

    def test_commentary_disabled(self, api):
        data = api.get("/api/commentary/BTCUSDT").json()

        assert data == {"symbol": "BTCUSDT", "enabled": False, "pending": False, "text": None}
        assert api.post("/api/commentary/BTCUSDT").status_code == 503

    def test_commentary_requires_current_market(self, api, commentary):
        commentator = MagicMock()
        commentator.summarize = AsyncMock(return_value="Neutral.")
        commentary.commentator = commentator

        assert api.post("/api/commentary/BTCUSDT").status_code == 409

        api.post("/api/refresh")
        assert api.post("/api/commentary/BTCUSDT").status_code == 202
        assert api.post("/api/commentary/ETHUSDT").status_code == 409


class TestWebSocket:
    """Tests for the WebSocket endpoint."""

    def test_connect_and_ping(self, api):
        with api.websocket_connect("/ws") as ws:
            hello = ws.receive_json()
            assert hello["type"] == "connected"

            ws.send_text('{"type": "ping"}')
            assert ws.receive_json()["type"] == "pong"

            ws.send_text("not json")
            assert ws.receive_json()["type"] == "error"

    def test_reply_to_ping(self):
        reply = orjson.loads(reply_to('{"type": "ping"}'))
        assert reply["type"] == "pong"
        assert "timestamp" in reply

    def test_reply_to_invalid_json(self):
        reply = orjson.loads(reply_to("not json"))
        assert reply["type"] == "error"
        assert reply["data"]["message"] == "Invalid JSON"

    def test_reply_to_unknown_type(self):
        reply = orjson.loads(reply_to('{"type": "subscribe"}'))
        assert reply["type"] == "error"
        assert "subscribe" in reply["data"]["message"]

    @pytest.mark.asyncio
    async def test_broadcast_drops_failed_client(self):
        manager = ConnectionManager()
        good = MagicMock()
        good.accept = AsyncMock()
        good.send_text = AsyncMock()
        bad = MagicMock()
        bad.accept = AsyncMock()
        bad.send_text = AsyncMock(side_effect=RuntimeError("closed"))
        await manager.connect(good)
        await manager.connect(bad)

        await manager.send_signal({"symbol": "BTCUSDT", "signal": "BUY"})
        await manager.send_error("BTCUSDT", "1m", "timeout")

        assert good.send_text.await_count == 2
        assert bad.send_text.await_count == 1
        sent = orjson.loads(good.send_text.await_args_list[0].args[0])
        assert sent["type"] == "signal"
        assert sent["data"]["signal"] == "BUY"
