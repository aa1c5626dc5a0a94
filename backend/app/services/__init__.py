"""Business services."""

from app.services.market_poller import MarketPoller, MarketSelection, PollSnapshot
from app.services.commentary import (
    CommentaryService,
    Commentator,
    LLMCommentator,
    build_prompt,
)

__all__ = [
    "MarketPoller",
    "MarketSelection",
    "PollSnapshot",
    "CommentaryService",
    "Commentator",
    "LLMCommentator",
    "build_prompt",
]
