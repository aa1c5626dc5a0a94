"""Exchange clients."""

from app.clients.binance_rest import (
    BinanceRestClient,
    EmptyResponseError,
    MalformedDataError,
    MarketDataError,
    NetworkError,
    parse_kline,
)

__all__ = [
    "BinanceRestClient",
    "EmptyResponseError",
    "MalformedDataError",
    "MarketDataError",
    "NetworkError",
    "parse_kline",
]
