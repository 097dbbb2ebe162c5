# saikaki/clients/llm_client.py
"""
OpenAI API client wrapper with latency measurement.
Handles blocking and streamed chat completions for Sai Kaki replies.
"""
from __future__ import annotations
from typing import Any, Awaitable, Callable, Dict, List, Optional
import time
from openai import AsyncOpenAI
from ..config import settings

DeltaCallback = Callable[[str], Awaitable[None]]


class LLMClient:
    def __init__(
        self,
        model: Optional[str] = None,
        temperature: Optional[float] = None,
        *,
        timeout_s: Optional[float] = None,
        client: Optional[AsyncOpenAI] = None,
    ):
        self.model = model or settings.OPENAI_MODEL
        self.temperature = settings.OPENAI_TEMPERATURE if temperature is None else temperature
        if client is None:
            if not settings.OPENAI_API_KEY:
                raise RuntimeError("OPENAI_API_KEY is not set")
            client = AsyncOpenAI(
                api_key=settings.OPENAI_API_KEY,
                timeout=timeout_s or settings.LLM_TIMEOUT_S,
            )
        self.client = client

    @staticmethod
    def _messages(
        system_prompt: str,
        user_prompt: str,
        messages_history: Optional[List[Dict[str, str]]],
    ) -> List[Dict[str, str]]:
        msgs: List[Dict[str, str]] = [{"role": "system", "content": system_prompt}]
        if messages_history:
            msgs.extend(messages_history)
        msgs.append({"role": "user", "content": user_prompt})
        return msgs

    async def chat(
        self,
        system_prompt: str,
        user_prompt: str,
        *,
        messages_history: Optional[List[Dict[str, str]]] = None,
        max_tokens: Optional[int] = None,
    ) -> Dict[str, Any]:
        """
        Returns a dict with: {"text", "model", "tokens_in", "tokens_out", "latency_ms"}
        """
        started = time.time()
        resp = await self.client.chat.completions.create(
            model=self.model,
            temperature=self.temperature,
            max_tokens=max_tokens,
            messages=self._messages(system_prompt, user_prompt, messages_history),
        )

        txt = (resp.choices[0].message.content or "").strip()
        usage = getattr(resp, "usage", None)
        latency_ms = (time.time() - started) * 1000.0

        return {
            "text": txt,
            "model": self.model,
            "tokens_in": getattr(usage, "prompt_tokens", None),
            "tokens_out": getattr(usage, "completion_tokens", None),
            "latency_ms": latency_ms,
        }

    async def stream_chat(
        self,
        system_prompt: str,
        user_prompt: str,
        *,
        on_delta: DeltaCallback,
        messages_history: Optional[List[Dict[str, str]]] = None,
        max_tokens: Optional[int] = None,
    ) -> Dict[str, Any]:
        """
        Stream a completion, awaiting `on_delta` for every non-empty text fragment.
        Fragments are passed through untouched (no stripping) so they
        concatenate to the returned text.
        """
        started = time.time()
        stream = await self.client.chat.completions.create(
            model=self.model,
            temperature=self.temperature,
            max_tokens=max_tokens,
            messages=self._messages(system_prompt, user_prompt, messages_history),
            stream=True,
        )

        parts: List[str] = []
        async for event in stream:
            if not event.choices:
                continue
            delta = event.choices[0].delta.content or ""
            if delta:
                parts.append(delta)
                await on_delta(delta)

        return {
            "text": "".join(parts),
            "model": self.model,
            "latency_ms": (time.time() - started) * 1000.0,
        }
