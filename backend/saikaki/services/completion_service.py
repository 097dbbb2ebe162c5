# saikaki/services/completion_service.py
"""
Completion provider adapter.
Wraps the text-generation call behind two operations:
- stream(): forwards every fragment to a callback, returns the assembled text
- complete(): blocking call, walked through the provider fallback list
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from functools import partial
from typing import Awaitable, Callable, Dict, List, Optional, Protocol, Sequence

from ..clients.llm_client import LLMClient
from ..config import settings
from .fallback import FallbackResult, non_empty_text, try_in_order

logger = logging.getLogger(__name__)

ChunkCallback = Callable[[str], Awaitable[None]]

SYSTEM_PROMPT = (
    "You are Sai Kaki, a witty and sarcastic AI assistant. "
    "You roast the question a little, then give a genuinely correct and useful answer. "
    "Keep the sarcasm playful, never cruel, and never refuse to help because of it. "
    "Use emojis sparingly. Format longer answers with short paragraphs or lists."
)


@dataclass
class CompletionRequest:
    """Everything a provider needs for one reply."""
    user_text: str
    history: List[Dict[str, str]] = field(default_factory=list)
    locality_hint: Optional[str] = None


def build_system_prompt(locality_hint: Optional[str] = None) -> str:
    if not locality_hint:
        return SYSTEM_PROMPT
    return (
        f"{SYSTEM_PROMPT}\n\n"
        f"Locality hint for location-dependent questions (weather, time, local news): {locality_hint}"
    )


def history_for_prompt(request: CompletionRequest) -> List[Dict[str, str]]:
    """
    Context turns to send before the user prompt.
    The stored history usually already ends with the current user turn; it is
    dropped here so the provider does not see it twice.
    """
    history = [{"role": h["role"], "content": h["content"]} for h in request.history]
    if history and history[-1]["role"] == "user" and history[-1]["content"] == request.user_text:
        history = history[:-1]
    return history


class CompletionProvider(Protocol):
    name: str

    async def complete(self, request: CompletionRequest) -> str: ...

    async def stream(self, request: CompletionRequest, on_chunk: ChunkCallback) -> str: ...


class OpenAICompletionProvider:
    """CompletionProvider over one OpenAI chat model."""

    def __init__(self, llm: LLMClient):
        self.llm = llm
        self.name = llm.model

    async def complete(self, request: CompletionRequest) -> str:
        result = await self.llm.chat(
            build_system_prompt(request.locality_hint),
            request.user_text,
            messages_history=history_for_prompt(request),
        )
        logger.info(f"Completion from {self.name} in {result['latency_ms']:.0f}ms")
        return result["text"]

    async def stream(self, request: CompletionRequest, on_chunk: ChunkCallback) -> str:
        result = await self.llm.stream_chat(
            build_system_prompt(request.locality_hint),
            request.user_text,
            on_delta=on_chunk,
            messages_history=history_for_prompt(request),
        )
        logger.info(f"Streamed completion from {self.name} in {result['latency_ms']:.0f}ms")
        return result["text"]


class CompletionService:
    """
    Ordered set of completion providers.
    Streaming always targets the primary provider; blocking calls fall back
    through the rest of the list.
    """

    def __init__(self, providers: Sequence[CompletionProvider]):
        if not providers:
            raise ValueError("CompletionService needs at least one provider")
        self.providers = list(providers)

    @property
    def primary(self) -> CompletionProvider:
        return self.providers[0]

    async def stream(self, request: CompletionRequest, on_chunk: ChunkCallback) -> str:
        return await self.primary.stream(request, on_chunk)

    async def complete(self, request: CompletionRequest) -> FallbackResult:
        return await try_in_order(
            [(p.name, partial(p.complete, request)) for p in self.providers],
            is_valid=non_empty_text,
        )


def build_completion_service() -> CompletionService:
    providers: List[CompletionProvider] = [OpenAICompletionProvider(LLMClient(settings.OPENAI_MODEL))]
    if settings.OPENAI_FALLBACK_MODEL and settings.OPENAI_FALLBACK_MODEL != settings.OPENAI_MODEL:
        providers.append(OpenAICompletionProvider(LLMClient(settings.OPENAI_FALLBACK_MODEL)))
    return CompletionService(providers)
