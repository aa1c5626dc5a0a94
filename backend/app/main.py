"""Main application entry point."""

import logging
from contextlib import asynccontextmanager

# Configure logging FIRST, before any other imports
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(levelname)s - %(message)s",
)

# Reduce noise from third-party libraries
logging.getLogger("httpx").setLevel(logging.WARNING)
logging.getLogger("httpcore").setLevel(logging.WARNING)
logging.getLogger("asyncio").setLevel(logging.WARNING)

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.api import router, manager, websocket_endpoint
from app.clients import BinanceRestClient, MarketDataError
from app.config import get_settings
from app.services import CommentaryService, LLMCommentator, MarketPoller, MarketSelection, PollSnapshot
from core.models import MarketStatsTable, RecordOutcome
from core.signal_history import SignalHistoryTracker

logger = logging.getLogger(__name__)

# Global services
poller: MarketPoller | None = None
commentary: CommentaryService | None = None
_commentary_symbol: str | None = None


async def on_market_update(snapshot: PollSnapshot) -> None:
    """Handle a completed poll."""
    global _commentary_symbol

    await manager.send_market_update(snapshot.model_dump(mode="json"))

    if snapshot.record_outcome == RecordOutcome.LOGGED:
        record = snapshot.stats[snapshot.symbol].signals[-1]
        await manager.send_signal(record.model_dump(mode="json"))

    # Fresh commentary whenever the polled market changes
    if commentary and commentary.enabled and snapshot.symbol != _commentary_symbol:
        if commentary.request(snapshot.symbol, snapshot.candles):
            _commentary_symbol = snapshot.symbol


async def on_poll_error(selection: MarketSelection, error: MarketDataError) -> None:
    """Handle a failed poll."""
    await manager.send_error(selection.symbol, selection.interval, str(error))


def build_commentary() -> CommentaryService:
    """Create the commentary service (disabled without an API key)."""
    settings = get_settings()
    if not settings.openai_api_key:
        logger.info("Commentary disabled (no OpenAI API key)")
        return CommentaryService()
    return CommentaryService(
        LLMCommentator(model=settings.commentary_model, api_key=settings.openai_api_key)
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager."""
    global poller, commentary, _commentary_symbol

    logger.info("Starting CryptoPulse signal service...")
    settings = get_settings()

    client = BinanceRestClient(
        base_url=settings.binance_base_url,
        timeout=settings.request_timeout,
    )
    table = MarketStatsTable(settings.symbols)
    tracker = SignalHistoryTracker(table, settings.history_config())

    try:
        poller = MarketPoller(client, tracker, settings)
        commentary = build_commentary()
        _commentary_symbol = None

        poller.on_update(on_market_update)
        poller.on_error(on_poll_error)

        app.state.poller = poller
        app.state.commentary = commentary

        await poller.start()
    except Exception as e:
        logger.error(f"Startup failed: {e}")
        await client.close()
        raise

    yield

    # Shutdown
    logger.info("Shutting down...")
    await poller.stop()
    await commentary.close()
    await client.close()
    logger.info("Shutdown complete")


# Create FastAPI app
app = FastAPI(
    title="CryptoPulse",
    description="RSI/EMA signal monitor for Binance spot markets",
    version="0.1.0",
    lifespan=lifespan,
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include REST routes
app.include_router(router, prefix="/api")

# WebSocket endpoint
app.websocket("/ws")(websocket_endpoint)


@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "name": "CryptoPulse",
        "version": "0.1.0",
        "docs": "/docs",
    }


@app.get("/health")
async def health():
    """Health check endpoint."""
    return {"status": "healthy"}


def main():
    """Run the application."""
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "app.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
    )


if __name__ == "__main__":
    main()
