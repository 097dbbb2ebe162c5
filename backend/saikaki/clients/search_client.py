# saikaki/clients/search_client.py
"""
Web search client (DuckDuckGo Instant Answer API).
Returns one short snippet for a query, or None when nothing useful came back.
"""
from __future__ import annotations
from dataclasses import dataclass
from typing import Any, Dict, Optional
import logging

import httpx

from ..config import settings

logger = logging.getLogger(__name__)

MAX_SNIPPET_CHARS = 300


@dataclass(frozen=True)
class SearchSnippet:
    text: str
    url: Optional[str] = None


def _first_topic(data: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    # RelatedTopics mixes plain topics and {"Name", "Topics": [...]} groups
    for topic in data.get("RelatedTopics") or []:
        if not isinstance(topic, dict):
            continue
        if topic.get("Text"):
            return topic
        for sub in topic.get("Topics") or []:
            if isinstance(sub, dict) and sub.get("Text"):
                return sub
    return None


def parse_instant_answer(data: Dict[str, Any]) -> Optional[SearchSnippet]:
    """Pick the most direct answer out of an Instant Answer payload."""
    if data.get("Answer"):
        return SearchSnippet(text=str(data["Answer"]), url=data.get("AbstractURL") or None)
    if data.get("AbstractText"):
        return SearchSnippet(text=data["AbstractText"], url=data.get("AbstractURL") or None)
    if data.get("Definition"):
        return SearchSnippet(text=data["Definition"], url=data.get("DefinitionURL") or None)
    topic = _first_topic(data)
    if topic:
        return SearchSnippet(text=topic["Text"], url=topic.get("FirstURL") or None)
    return None


class WebSearchClient:
    def __init__(
        self,
        base_url: Optional[str] = None,
        timeout_s: Optional[float] = None,
        *,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url or settings.WEB_SEARCH_URL
        self.timeout_s = timeout_s or settings.WEB_SEARCH_TIMEOUT_S
        self._transport = transport

    async def instant_answer(self, query: str) -> Optional[SearchSnippet]:
        params = {"q": query, "format": "json", "no_html": 1, "skip_disambig": 1}
        async with httpx.AsyncClient(timeout=self.timeout_s, transport=self._transport) as c:
            r = await c.get(self.base_url, params=params)
        r.raise_for_status()
        # DuckDuckGo answers with an empty body for some queries
        data = r.json() if r.content else {}
        snippet = parse_instant_answer(data) if isinstance(data, dict) else None
        if snippet is None:
            logger.info(f"No instant answer for query: {query[:80]!r}")
            return None
        text = " ".join(snippet.text.split())
        if len(text) > MAX_SNIPPET_CHARS:
            text = text[:MAX_SNIPPET_CHARS].rsplit(" ", 1)[0] + "..."
        return SearchSnippet(text=text, url=snippet.url)
