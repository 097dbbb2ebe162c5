# backend/tests/fakes.py
"""Deterministic stand-ins for the external collaborators."""
import asyncio
from typing import Callable, List, Optional, Sequence

from saikaki.services.completion_service import CompletionRequest


class FakeProvider:
    """Completion provider that streams fixed chunks."""

    def __init__(
        self,
        name: str = "fake-llm",
        chunks: Sequence[str] = ("Oh wow, ", "a question. ", "The answer ", "is 42."),
        *,
        stream_error: Optional[Exception] = None,
        fail_after: Optional[int] = None,
        complete_reply: Optional[str] = None,
        complete_error: Optional[Exception] = None,
        after_chunk: Optional[Callable[[int], None]] = None,
    ):
        self.name = name
        self.chunks = list(chunks)
        self.stream_error = stream_error
        self.fail_after = fail_after
        self.complete_reply = complete_reply
        self.complete_error = complete_error
        self.after_chunk = after_chunk
        self.stream_calls = 0
        self.complete_calls = 0
        self.requests: List[CompletionRequest] = []

    async def stream(self, request, on_chunk):
        self.stream_calls += 1
        self.requests.append(request)
        if self.stream_error is not None and self.fail_after is None:
            raise self.stream_error
        for i, chunk in enumerate(self.chunks):
            if self.fail_after is not None and i == self.fail_after:
                raise self.stream_error or RuntimeError("stream broke")
            await on_chunk(chunk)
            if self.after_chunk is not None:
                self.after_chunk(i + 1)
            await asyncio.sleep(0)
        return "".join(self.chunks)

    async def complete(self, request):
        self.complete_calls += 1
        self.requests.append(request)
        if self.complete_error is not None:
            raise self.complete_error
        if self.complete_reply is not None:
            return self.complete_reply
        return "".join(self.chunks)


class SuffixEnricher:
    def __init__(self, suffix: str = "\n\n*Real-time info: it is sunny*"):
        self.suffix = suffix
        self.calls = 0

    async def enrich(self, user_text, reply):
        self.calls += 1
        return reply + self.suffix


class RewritingEnricher:
    async def enrich(self, user_text, reply):
        return "Something else entirely."


class FailingEnricher:
    async def enrich(self, user_text, reply):
        raise RuntimeError("search backend down")


async def passthrough(text: str) -> str:
    return text
