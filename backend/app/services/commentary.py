"""Best-effort narrative commentary on the latest candle.

Commentary is a side channel: it runs in fire-and-forget tasks and any
failure is replaced by a fixed message, so it can never block or alter the
signal pipeline.
"""

import asyncio
import logging
from typing import Protocol, Sequence

from langchain_core.messages import HumanMessage
from langchain_openai.chat_models import ChatOpenAI

from core.models import Candle

logger = logging.getLogger(__name__)

EMPTY_ANALYSIS = "Unable to generate analysis."
ANALYSIS_UNAVAILABLE = "Deep analysis failed. Please check your connectivity."


class Commentator(Protocol):
    """Anything that can describe the latest market move in prose."""

    async def summarize(self, symbol: str, candle: Candle, previous: Candle) -> str:
        ...


def build_prompt(symbol: str, candle: Candle, previous: Candle) -> str:
    """Build the sentiment prompt for the latest candle and its predecessor."""
    change = 0.0
    if previous.close:
        change = (candle.close - previous.close) / previous.close * 100

    rsi_text = f"{candle.rsi:.2f}" if candle.rsi is not None else "n/a"
    ema_text = f"${candle.ema:.2f}" if candle.ema is not None else "n/a"

    return (
        f"Analyze the following {symbol} market data:\n"
        f"Last Price: ${candle.close}\n"
        f"Price Change (last period): {change:.4f}%\n"
        f"Current RSI: {rsi_text}\n"
        f"Current EMA(20): {ema_text}\n"
        f"Volume: {candle.volume}\n"
        "\n"
        "Provide a concise 2-sentence market sentiment analysis and a likely "
        "short-term direction (Bullish/Bearish/Neutral)."
    )


class LLMCommentator:
    """Commentator backed by an OpenAI chat model."""

    def __init__(
        self,
        model: str = "gpt-4o-mini",
        api_key: str | None = None,
        llm: ChatOpenAI | None = None,
    ):
        self.llm = llm or ChatOpenAI(model=model, api_key=api_key)

    async def summarize(self, symbol: str, candle: Candle, previous: Candle) -> str:
        response = await self.llm.ainvoke(
            [HumanMessage(content=build_prompt(symbol, candle, previous))]
        )
        content = response.content if isinstance(response.content, str) else ""
        return content.strip() or EMPTY_ANALYSIS


class CommentaryService:
    """Schedule commentary requests and keep the latest text per symbol."""

    def __init__(self, commentator: Commentator | None = None):
        self.commentator = commentator
        self._latest: dict[str, str] = {}
        self._pending: dict[str, asyncio.Task] = {}

    @property
    def enabled(self) -> bool:
        return self.commentator is not None

    def latest(self, symbol: str) -> str | None:
        return self._latest.get(symbol)

    def is_pending(self, symbol: str) -> bool:
        task = self._pending.get(symbol)
        return task is not None and not task.done()

    def request(self, symbol: str, candles: Sequence[Candle]) -> asyncio.Task | None:
        """
        Start a commentary task for the latest two candles.

        Returns None when disabled, when fewer than two candles are
        available, or when a request for the symbol is already running.
        """
        if not self.enabled or len(candles) < 2 or self.is_pending(symbol):
            return None

        task = asyncio.create_task(self._summarize(symbol, candles[-1], candles[-2]))
        self._pending[symbol] = task
        return task

    async def _summarize(self, symbol: str, candle: Candle, previous: Candle) -> str:
        try:
            text = await self.commentator.summarize(symbol, candle, previous)
        except Exception as e:
            logger.warning(f"Commentary for {symbol} failed: {e}")
            text = ANALYSIS_UNAVAILABLE
        self._latest[symbol] = text
        return text

    async def close(self) -> None:
        """Cancel outstanding commentary tasks."""
        tasks = [t for t in self._pending.values() if not t.done()]
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        self._pending.clear()
