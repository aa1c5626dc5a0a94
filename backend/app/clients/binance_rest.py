"""Binance REST API client for fetching recent klines."""

import logging
from typing import Any

import httpx

from core.models import Candle

logger = logging.getLogger(__name__)


class MarketDataError(Exception):
    """Base class for market data failures (non-fatal, retried next poll)."""


class NetworkError(MarketDataError):
    """Request failed or returned a non-success status."""


class EmptyResponseError(MarketDataError):
    """Source returned zero candles."""


class MalformedDataError(MarketDataError):
    """Payload could not be parsed into candles."""


def parse_kline(item: Any) -> Candle:
    """
    Parse one kline row.

    Binance returns each kline as an array:
    [open_time, open, high, low, close, volume, close_time, ...]
    with prices and volume encoded as strings.
    """
    try:
        return Candle(
            time=int(item[0]),
            open=float(item[1]),
            high=float(item[2]),
            low=float(item[3]),
            close=float(item[4]),
            volume=float(item[5]),
        )
    except (TypeError, ValueError, IndexError, KeyError) as e:
        raise MalformedDataError(f"Unparseable kline row {item!r}: {e}") from e


class BinanceRestClient:
    """Binance Spot REST API client."""

    BASE_URL = "https://api.binance.com"
    MAX_LIMIT = 1000

    def __init__(self, base_url: str = BASE_URL, timeout: float = 30.0):
        self.base_url = base_url
        self.timeout = timeout
        self._client: httpx.AsyncClient | None = None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=self.timeout,
            )
        return self._client

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client and not self._client.is_closed:
            await self._client.aclose()
            self._client = None

    async def _request(
        self, method: str, endpoint: str, params: dict[str, Any] | None = None
    ) -> Any:
        """Make an API request, mapping transport/status failures to NetworkError."""
        client = await self._get_client()
        try:
            response = await client.request(method, endpoint, params=params)
            response.raise_for_status()
        except httpx.HTTPError as e:
            raise NetworkError(f"{method} {endpoint} failed: {e}") from e

        try:
            return response.json()
        except ValueError as e:
            raise MalformedDataError(f"Invalid JSON from {endpoint}: {e}") from e

    async def get_klines(
        self,
        symbol: str,
        interval: str,
        limit: int = 100,
    ) -> list[Candle]:
        """
        Fetch the most recent K-lines from Binance.

        Args:
            symbol: Trading pair (e.g., "BTCUSDT")
            interval: K-line interval (e.g., "1m", "5m")
            limit: Number of K-lines (max 1000)

        Returns:
            List of raw Candle objects, oldest first

        Raises:
            NetworkError: request failed or non-2xx status
            EmptyResponseError: no klines returned
            MalformedDataError: payload could not be parsed
        """
        params: dict[str, Any] = {
            "symbol": symbol,
            "interval": interval,
            "limit": min(limit, self.MAX_LIMIT),
        }

        data = await self._request("GET", "/api/v3/klines", params)

        if not isinstance(data, list):
            raise MalformedDataError(f"Expected a list of klines, got {type(data).__name__}")
        if not data:
            raise EmptyResponseError(f"Empty kline response for {symbol} {interval}")

        candles = [parse_kline(item) for item in data]
        logger.debug(f"Fetched {len(candles)} klines for {symbol} {interval}")
        return candles
