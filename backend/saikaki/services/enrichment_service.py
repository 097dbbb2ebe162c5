# saikaki/services/enrichment_service.py
"""
Enrichment adapters.
An enricher takes the user's message and the draft reply and returns either
the reply unchanged or the reply with extra material appended at the end.
"""
from __future__ import annotations

import logging
import re
from typing import Optional, Protocol

from starlette.concurrency import run_in_threadpool

from ..clients.pinecone_client import PineconeClient
from ..clients.search_client import WebSearchClient
from ..config import settings

logger = logging.getLogger(__name__)

REAL_TIME_MARKER = "*Real-time info:"

# Questions whose answer goes stale: news, prices, scores, weather, dates.
FRESHNESS_PATTERN = re.compile(
    r"\b("
    r"today|tonight|tomorrow|yesterday|right now|currently|current|latest|recent|news|"
    r"this (?:week|month|year)|weather|forecast|temperature|price|stock|exchange rate|"
    r"score|election|who won|release date|what time|what day|what date"
    r")\b",
    re.IGNORECASE,
)


def needs_live_data(user_text: str) -> bool:
    return bool(FRESHNESS_PATTERN.search(user_text or ""))


class Enricher(Protocol):
    async def enrich(self, user_text: str, reply: str) -> str: ...


class NoopEnricher:
    async def enrich(self, user_text: str, reply: str) -> str:
        return reply


class WebSearchEnricher:
    """Appends a web-search snippet to answers about time-sensitive topics."""

    def __init__(self, search_client: Optional[WebSearchClient] = None):
        self.search = search_client or WebSearchClient()

    async def enrich(self, user_text: str, reply: str) -> str:
        if not needs_live_data(user_text) or REAL_TIME_MARKER in reply:
            return reply
        snippet = await self.search.instant_answer(user_text)
        if snippet is None:
            return reply
        source = f" ({snippet.url})" if snippet.url else ""
        return f"{reply}\n\n{REAL_TIME_MARKER} {snippet.text}{source}*"


class KnowledgeBaseEnricher:
    """Appends related notes from a Pinecone index when they score well enough."""

    def __init__(
        self,
        pinecone_client: Optional[PineconeClient] = None,
        *,
        min_score: Optional[float] = None,
        top_k: int = 3,
    ):
        self.pc = pinecone_client or PineconeClient()
        self.min_score = settings.PINECONE_MIN_SCORE if min_score is None else min_score
        self.top_k = top_k

    async def enrich(self, user_text: str, reply: str) -> str:
        chunks = await run_in_threadpool(self.pc.search, user_text, self.top_k)
        kept = [c for c in chunks if c.content and (c.score or 0.0) >= self.min_score]
        if not kept:
            return reply
        lines = []
        for c in kept:
            preview = " ".join(c.content.split())
            if len(preview) > 160:
                preview = preview[:160].rsplit(" ", 1)[0] + "..."
            lines.append(f"- {preview} ({c.source})")
        return reply + "\n\n*Related notes:*\n" + "\n".join(lines)


def build_enricher(provider: Optional[str] = None) -> Enricher:
    """Enricher selected by ENRICHMENT_PROVIDER."""
    name = (provider or settings.ENRICHMENT_PROVIDER or "none").strip().lower()
    if name == "websearch":
        return WebSearchEnricher()
    if name == "pinecone":
        return KnowledgeBaseEnricher()
    if name not in ("none", ""):
        logger.warning(f"Unknown ENRICHMENT_PROVIDER '{name}', enrichment disabled")
    return NoopEnricher()
