#!/usr/bin/env python3
"""
Smoke test for the service layer:
- Streamed turn (relay events + persistence)
- Non-streaming turn
- Regenerate
- Fallback orchestrator

Set USE_FAKES=0 to hit OpenAI (OPENAI_API_KEY required); fakes are the default.
Runs against DATABASE_URL (tables are created if missing).
"""

import asyncio
import os
import sys
from pathlib import Path

# Make "backend" importable
backend_dir = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(backend_dir))

from saikaki.database import create_all
from saikaki.services.chat_service import ChatService
from saikaki.services.completion_service import CompletionService, build_completion_service
from saikaki.services.enrichment_service import NoopEnricher, build_enricher
from saikaki.services.event_channel import EventChannel
from saikaki.services.fallback import AllProvidersFailed, try_in_order
from saikaki.services.record_store import SqlRecordStore
from saikaki.services.stream_relay import StreamRelay


USE_FAKES = os.getenv("USE_FAKES", "1") == "1"

# ---------- Optional fakes to keep runs local & deterministic ----------
class _FakeProvider:
    name = "fake-llm"

    def __init__(self, reply="Oh, a question. How novel. The answer is 42."):
        self._reply = reply

    async def stream(self, request, on_chunk):
        for word in self._reply.split(" "):
            await on_chunk(word + " ")
        return self._reply

    async def complete(self, request):
        return self._reply

# ---------- Wiring helpers ----------
def make_completion():
    return CompletionService([_FakeProvider()]) if USE_FAKES else build_completion_service()

def make_enricher():
    return NoopEnricher() if USE_FAKES else build_enricher()

# ---------- Checks ----------
async def check_stream_relay(store):
    print("📡 Stream Relay")
    session = await store.create_session(title="Smoke stream")
    relay = StreamRelay(store=store, completion=make_completion(), enricher=make_enricher())
    channel = EventChannel()

    task = relay.start(channel, session.id, "What's the meaning of life?")
    events = [e async for e in channel.events()]
    state = await task

    print(f"  Events : {' → '.join(e['type'] for e in events)}")
    streamed = "".join(e["chunk"] for e in events if e["type"] == "aiChunk")
    messages = await store.list_messages(session.id)
    print(f"  Stored : {len(messages)} messages, title={(await store.get_session(session.id)).title!r}")
    assert events[-1]["type"] == "done", "done must be the last event"
    assert state.assistant_message_id == messages[-1].id
    if streamed:
        assert streamed == messages[-1].content, "chunks must add up to the stored reply"
    print("✅ Relay OK\n")

async def check_chat_service(store):
    print("💬 Chat Service")
    session = await store.create_session(title="Smoke chat")
    chat = ChatService(store=store, completion=make_completion(), enricher=make_enricher())

    user_msg, ai_msg = await chat.handle_user_message(session.id, "Give me one fun fact.")
    print(f"  U: {user_msg.content!r}\n  A: {ai_msg.content[:90]!r}")
    again = await chat.regenerate(session.id)
    print(f"  R: {again.content[:90]!r} (regenerated={again.metadata.get('regenerated')})")
    assert len(await store.list_messages(session.id)) == 3, "regenerate appends a third message"
    print("✅ Chat OK\n")

async def check_fallback():
    print("🔁 Fallback")

    async def down():
        raise RuntimeError("down")

    async def up():
        return "X"

    result = await try_in_order([("p1", down), ("p2", up)])
    print(f"  first success: {result.provider_name} -> {result.value}")
    try:
        await try_in_order([("p1", down), ("p2", down)])
    except AllProvidersFailed as e:
        print(f"  all failed: {e}")
    print("✅ Fallback OK\n")

async def main():
    print("🚀 Smoke testing services (USE_FAKES=%s)" % ("1" if USE_FAKES else "0"))
    print("=" * 52)
    create_all()
    store = SqlRecordStore()
    await check_stream_relay(store)
    await check_chat_service(store)
    await check_fallback()
    print("🎉 All service-layer smoke tests passed!")

if __name__ == "__main__":
    asyncio.run(main())
