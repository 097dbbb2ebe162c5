import asyncio
from types import SimpleNamespace

import pytest

from fakes import FakeProvider
from saikaki.clients.llm_client import LLMClient
from saikaki.services.completion_service import (
    SYSTEM_PROMPT,
    CompletionRequest,
    CompletionService,
    OpenAICompletionProvider,
    build_system_prompt,
    history_for_prompt,
)
from saikaki.services.fallback import AllProvidersFailed


class _FakeStream:
    def __init__(self, deltas):
        self._events = [
            SimpleNamespace(choices=[SimpleNamespace(delta=SimpleNamespace(content=d))]) for d in deltas
        ]
        self._events.append(SimpleNamespace(choices=[]))  # trailing usage-only event

    def __aiter__(self):
        self._it = iter(self._events)
        return self

    async def __anext__(self):
        try:
            return next(self._it)
        except StopIteration:
            raise StopAsyncIteration


class _FakeCompletions:
    def __init__(self, deltas=("Hel", "lo", None, " there")):
        self.deltas = deltas
        self.calls = []

    async def create(self, **kwargs):
        self.calls.append(kwargs)
        if kwargs.get("stream"):
            return _FakeStream(self.deltas)
        message = SimpleNamespace(content="  full reply  ")
        usage = SimpleNamespace(prompt_tokens=11, completion_tokens=3)
        return SimpleNamespace(choices=[SimpleNamespace(message=message)], usage=usage)


def _fake_openai(completions):
    return SimpleNamespace(chat=SimpleNamespace(completions=completions))


def test_llm_client_streams_fragments_untouched():
    completions = _FakeCompletions()
    llm = LLMClient("test-model", 0.5, client=_fake_openai(completions))
    seen = []

    async def on_delta(d):
        seen.append(d)

    result = asyncio.run(llm.stream_chat("sys", "hi", on_delta=on_delta, messages_history=[{"role": "user", "content": "x"}]))

    assert seen == ["Hel", "lo", " there"]
    assert result["text"] == "Hello there"
    sent = completions.calls[0]
    assert sent["stream"] is True and sent["model"] == "test-model"
    assert [m["role"] for m in sent["messages"]] == ["system", "user", "user"]


def test_llm_client_blocking_chat():
    llm = LLMClient("test-model", client=_fake_openai(_FakeCompletions()))

    result = asyncio.run(llm.chat("sys", "hi"))

    assert result["text"] == "full reply"
    assert result["tokens_in"] == 11 and result["tokens_out"] == 3


def test_openai_provider_sends_prompt_without_duplicate_user_turn():
    completions = _FakeCompletions()
    provider = OpenAICompletionProvider(LLMClient("test-model", client=_fake_openai(completions)))
    request = CompletionRequest(
        user_text="and now?",
        history=[{"role": "user", "content": "hi"}, {"role": "assistant", "content": "yo"}, {"role": "user", "content": "and now?"}],
        locality_hint="user IP address 1.2.3.4",
    )

    assert asyncio.run(provider.complete(request)) == "full reply"

    messages = completions.calls[0]["messages"]
    assert [m["content"] for m in messages[1:]] == ["hi", "yo", "and now?"]
    assert "1.2.3.4" in messages[0]["content"]


def test_history_for_prompt_keeps_distinct_last_turn():
    request = CompletionRequest(user_text="new", history=[{"role": "user", "content": "old"}])
    assert history_for_prompt(request) == [{"role": "user", "content": "old"}]


def test_system_prompt_without_hint():
    assert build_system_prompt(None) == SYSTEM_PROMPT


def test_service_streams_from_primary_only():
    primary, backup = FakeProvider("primary"), FakeProvider("backup")
    service = CompletionService([primary, backup])

    async def ignore(_):
        pass

    asyncio.run(service.stream(CompletionRequest(user_text="x"), ignore))

    assert primary.stream_calls == 1 and backup.stream_calls == 0


def test_service_blocking_call_rejects_empty_text():
    service = CompletionService([FakeProvider("empty", complete_reply="  "), FakeProvider("ok", complete_reply="fine")])

    result = asyncio.run(service.complete(CompletionRequest(user_text="x")))

    assert (result.provider_name, result.value) == ("ok", "fine")


def test_service_blocking_call_all_fail():
    service = CompletionService([FakeProvider("a", complete_error=RuntimeError("x"))])
    with pytest.raises(AllProvidersFailed):
        asyncio.run(service.complete(CompletionRequest(user_text="x")))


def test_service_needs_a_provider():
    with pytest.raises(ValueError):
        CompletionService([])
