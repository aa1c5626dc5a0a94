"""WebSocket endpoint pushing poll results to dashboard clients.

Server -> client message types:
- connected: sent once after the handshake
- market_update: latest candles, signal and stats after each poll
- signal: a BUY/SELL signal was logged to history
- error: the last poll failed (retried on the next tick)
- pong: reply to a client ``{"type": "ping"}``
"""

import asyncio
import logging
from datetime import datetime, timezone
from typing import Any

import orjson
from fastapi import WebSocket, WebSocketDisconnect

logger = logging.getLogger(__name__)


def encode_message(msg_type: str, data: dict[str, Any] | None = None) -> str:
    """Build the JSON envelope shared by every message."""
    return orjson.dumps(
        {
            "type": msg_type,
            "data": data or {},
            "timestamp": datetime.now(timezone.utc).isoformat(),
        },
        default=str,
    ).decode("utf-8")


class ConnectionManager:
    """Track connected dashboards and fan out poll results."""

    def __init__(self):
        self._connections: list[WebSocket] = []
        self._lock = asyncio.Lock()

    async def connect(self, websocket: WebSocket) -> None:
        await websocket.accept()
        async with self._lock:
            self._connections.append(websocket)
        logger.info(f"WebSocket connected. Total connections: {len(self._connections)}")

    async def disconnect(self, websocket: WebSocket) -> None:
        async with self._lock:
            if websocket in self._connections:
                self._connections.remove(websocket)
        logger.info(f"WebSocket disconnected. Total connections: {len(self._connections)}")

    async def send(self, msg_type: str, data: dict[str, Any]) -> None:
        """Broadcast a typed message, dropping clients that fail to receive it."""
        if not self._connections:
            return

        text = encode_message(msg_type, data)
        async with self._lock:
            for websocket in list(self._connections):
                try:
                    await websocket.send_text(text)
                except Exception as e:
                    logger.warning(f"Dropping WebSocket client: {e}")
                    self._connections.remove(websocket)

    async def send_market_update(self, update_data: dict) -> None:
        await self.send("market_update", update_data)

    async def send_signal(self, signal_data: dict) -> None:
        await self.send("signal", signal_data)

    async def send_error(self, symbol: str, interval: str, message: str) -> None:
        await self.send("error", {"symbol": symbol, "interval": interval, "message": message})


# Global connection manager
manager = ConnectionManager()


def reply_to(raw: str) -> str:
    """Answer one client frame: pong for pings, error for anything else."""
    try:
        message = orjson.loads(raw)
    except orjson.JSONDecodeError:
        return encode_message("error", {"message": "Invalid JSON"})

    msg_type = message.get("type", "") if isinstance(message, dict) else ""
    if msg_type == "ping":
        return encode_message("pong")
    return encode_message("error", {"message": f"Unknown message type: {msg_type}"})


async def websocket_endpoint(websocket: WebSocket):
    """Register the client for broadcasts and answer its pings until it leaves."""
    await manager.connect(websocket)
    try:
        await websocket.send_text(encode_message("connected", {"message": "Connected to CryptoPulse"}))
        while True:
            await websocket.send_text(reply_to(await websocket.receive_text()))
    except WebSocketDisconnect:
        pass
    finally:
        await manager.disconnect(websocket)
