"""REST API routes."""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Request
from pydantic import BaseModel

from app.config import get_settings
from app.services import CommentaryService, MarketPoller, PollSnapshot
from core.models import MarketStats, SignalType

logger = logging.getLogger(__name__)

router = APIRouter()


# Response models
class SystemStatus(BaseModel):
    """System status response."""

    status: str
    version: str
    symbols: list[str]
    intervals: list[str]
    selected_symbol: str
    selected_interval: str
    generation: int
    polling: bool
    error: Optional[str] = None
    last_poll: Optional[int] = None


class SelectionRequest(BaseModel):
    """Market/interval selection."""

    symbol: str
    interval: str


class SelectionResponse(BaseModel):
    """Selection after a change."""

    symbol: str
    interval: str
    generation: int


class SignalSummary(BaseModel):
    """Latest classification for the selected market."""

    symbol: str
    interval: str
    signal: SignalType
    rsi: float
    ema: float
    price: float
    polled_at: int


class CommentaryResponse(BaseModel):
    """Latest commentary text for a symbol."""

    symbol: str
    enabled: bool
    pending: bool
    text: Optional[str] = None


# Dependencies
def get_poller(request: Request) -> MarketPoller:
    return request.app.state.poller


def get_commentary(request: Request) -> CommentaryService:
    return request.app.state.commentary


def _require_symbol(symbol: str) -> None:
    if symbol not in get_settings().symbols:
        raise HTTPException(status_code=404, detail=f"Unknown symbol: {symbol}")


@router.get("/status", response_model=SystemStatus)
async def get_status(poller: MarketPoller = Depends(get_poller)):
    """Get system status."""
    settings = get_settings()
    selection = poller.selection
    latest = poller.latest

    return SystemStatus(
        status="error" if poller.error else "running",
        version="0.1.0",
        symbols=settings.symbols,
        intervals=settings.intervals,
        selected_symbol=selection.symbol,
        selected_interval=selection.interval,
        generation=selection.generation,
        polling=poller.is_polling,
        error=poller.error,
        last_poll=latest.polled_at if latest else None,
    )


@router.get("/market", response_model=PollSnapshot)
async def get_market(poller: MarketPoller = Depends(get_poller)):
    """Get the latest enriched candles, signal and stats."""
    if poller.latest is None:
        raise HTTPException(status_code=404, detail="No market data yet")
    return poller.latest


@router.get("/signal", response_model=SignalSummary)
async def get_signal(poller: MarketPoller = Depends(get_poller)):
    """Get the latest classification only."""
    latest = poller.latest
    if latest is None:
        raise HTTPException(status_code=404, detail="No market data yet")
    return SignalSummary(
        symbol=latest.symbol,
        interval=latest.interval,
        signal=latest.result.signal,
        rsi=latest.result.rsi,
        ema=latest.result.ema,
        price=latest.last_candle.close,
        polled_at=latest.polled_at,
    )


@router.get("/stats", response_model=dict[str, MarketStats])
async def get_all_stats(poller: MarketPoller = Depends(get_poller)):
    """Get signal history and accuracy for every market."""
    return poller.tracker.snapshot()


@router.get("/stats/{symbol}", response_model=MarketStats)
async def get_stats(symbol: str, poller: MarketPoller = Depends(get_poller)):
    """Get signal history and accuracy for one market."""
    _require_symbol(symbol)
    return poller.tracker.get_stats(symbol)


@router.put("/selection", response_model=SelectionResponse)
async def set_selection(
    selection: SelectionRequest,
    poller: MarketPoller = Depends(get_poller),
):
    """Switch the polled market and interval."""
    try:
        current = poller.select(selection.symbol, selection.interval)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    return SelectionResponse(
        symbol=current.symbol,
        interval=current.interval,
        generation=current.generation,
    )


@router.post("/refresh", response_model=SystemStatus)
async def refresh(poller: MarketPoller = Depends(get_poller)):
    """Poll the selected market immediately."""
    await poller.poll_once()
    return await get_status(poller)


@router.get("/commentary/{symbol}", response_model=CommentaryResponse)
async def get_commentary_text(
    symbol: str,
    commentary: CommentaryService = Depends(get_commentary),
):
    """Get the latest commentary for a symbol."""
    _require_symbol(symbol)
    return CommentaryResponse(
        symbol=symbol,
        enabled=commentary.enabled,
        pending=commentary.is_pending(symbol),
        text=commentary.latest(symbol),
    )


@router.post("/commentary/{symbol}", response_model=CommentaryResponse, status_code=202)
async def request_commentary(
    symbol: str,
    poller: MarketPoller = Depends(get_poller),
    commentary: CommentaryService = Depends(get_commentary),
):
    """Request fresh commentary from the latest candles of the selected market."""
    _require_symbol(symbol)
    if not commentary.enabled:
        raise HTTPException(status_code=503, detail="Commentary is not configured")

    latest = poller.latest
    if latest is None or latest.symbol != symbol:
        raise HTTPException(status_code=409, detail=f"No current market data for {symbol}")

    commentary.request(symbol, latest.candles)
    return CommentaryResponse(
        symbol=symbol,
        enabled=True,
        pending=commentary.is_pending(symbol),
        text=commentary.latest(symbol),
    )
