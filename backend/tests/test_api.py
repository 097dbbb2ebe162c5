import json

import pytest
from fastapi.testclient import TestClient

from fakes import FakeProvider
from saikaki.deps import get_completion_service, get_enricher, get_vision_service
from saikaki.main import app
from saikaki.services.completion_service import CompletionService
from saikaki.services.enrichment_service import NoopEnricher
from saikaki.services.fallback import FallbackResult
from saikaki.services.turns import ERROR_REPLY
from saikaki.services.vision_service import ImageCandidate


class _FakeVision:
    async def generate_image(self, prompt):
        return FallbackResult("placeholder", ImageCandidate(url=f"data:image/svg+xml;base64,{prompt}", content_type="image/svg+xml"))

    async def analyze_image(self, image):
        return FallbackResult("local", "I can see an uploaded image.")


@pytest.fixture
def provider():
    return FakeProvider(chunks=("Fine. ", "Here ", "you go."), complete_reply="Blocking reply.")


@pytest.fixture
def client(provider):
    app.dependency_overrides[get_completion_service] = lambda: CompletionService([provider])
    app.dependency_overrides[get_enricher] = lambda: NoopEnricher()
    app.dependency_overrides[get_vision_service] = lambda: _FakeVision()
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


def _new_session(client, **body):
    r = client.post("/api/chat/sessions", json=body)
    assert r.status_code == 200
    return r.json()


def _sse_events(response):
    body = "".join(response.iter_text())
    frames = [f for f in body.split("\n\n") if f.strip()]
    assert all(f.startswith("data: ") for f in frames)
    return [json.loads(f[len("data: "):]) for f in frames]


def test_root_and_health(client):
    assert client.get("/").json()["status"] == "ok"
    assert client.get("/healthz").json() == {"status": "ok"}
    assert client.get("/healthz/db").json()["database"] == "ok"


def test_session_crud(client):
    created = _new_session(client, title="Roast me", user_id="u-1")
    assert created["title"] == "Roast me"
    assert created["user_id"] == "u-1"

    assert client.get(f"/api/chat/sessions/{created['id']}").json()["id"] == created["id"]
    listed = client.get("/api/chat/sessions", params={"user_id": "u-1"}).json()
    assert [s["id"] for s in listed] == [created["id"]]
    assert client.get("/api/chat/sessions").json() == []

    assert client.delete(f"/api/chat/sessions/{created['id']}").json() == {"success": True}
    assert client.get(f"/api/chat/sessions/{created['id']}").status_code == 404
    assert client.delete(f"/api/chat/sessions/{created['id']}").status_code == 404


def test_session_created_without_body(client):
    r = client.post("/api/chat/sessions")
    assert r.status_code == 200
    assert r.json()["user_id"] == "anonymous"
    assert r.json()["title"] == "New Chat"


def test_stream_turn_over_sse(client):
    session = _new_session(client)

    with client.stream(
        "POST",
        f"/api/chat/sessions/{session['id']}/messages/stream",
        json={"content": "Tell me a joke about databases", "role": "user"},
    ) as r:
        assert r.status_code == 200
        assert r.headers["content-type"].startswith("text/event-stream")
        assert r.headers["cache-control"] == "no-cache"
        events = _sse_events(r)

    assert [e["type"] for e in events] == ["connected", "userMessage", "aiChunk", "aiChunk", "aiChunk", "aiComplete", "done"]
    streamed = "".join(e["chunk"] for e in events if e["type"] == "aiChunk")

    messages = client.get(f"/api/chat/sessions/{session['id']}/messages").json()
    assert [m["role"] for m in messages] == ["user", "assistant"]
    assert messages[1]["content"] == streamed == "Fine. Here you go."
    assert messages[1]["metadata"]["streamed"] is True

    titled = client.get(f"/api/chat/sessions/{session['id']}").json()
    assert titled["title"] == "Tell me a joke about databases"


def test_stream_for_missing_session_is_404(client):
    r = client.post("/api/chat/sessions/999/messages/stream", json={"content": "hello"})
    assert r.status_code == 404


@pytest.mark.parametrize("body", [{"content": ""}, {"content": "   "}, {"content": "hi", "role": "assistant"}, {}])
def test_malformed_turns_rejected_before_side_effects(client, body):
    session = _new_session(client)

    r = client.post(f"/api/chat/sessions/{session['id']}/messages/stream", json=body)

    assert 400 <= r.status_code < 500
    assert client.get(f"/api/chat/sessions/{session['id']}/messages").json() == []


def test_non_streaming_turn(client):
    session = _new_session(client)

    r = client.post(
        f"/api/chat/sessions/{session['id']}/messages",
        json={"content": "What time is it?", "userLocation": {"lat": 48.85, "lon": 2.35}},
    )

    assert r.status_code == 200
    body = r.json()
    assert body["userMessage"]["content"] == "What time is it?"
    assert body["aiMessage"]["content"] == "Blocking reply."
    assert body["aiMessage"]["metadata"]["streamed"] is False


def test_non_streaming_failure_returns_error_reply(client, provider):
    provider.complete_error = RuntimeError("provider exploded")
    session = _new_session(client)

    r = client.post(f"/api/chat/sessions/{session['id']}/messages", json={"content": "hello there"})

    assert r.status_code == 500
    body = r.json()
    assert body["error"]
    assert body["aiMessage"]["content"] == ERROR_REPLY
    assert body["aiMessage"]["metadata"]["error"] is True


def test_regenerate(client):
    session = _new_session(client)
    assert client.post(f"/api/chat/sessions/{session['id']}/regenerate").status_code == 400

    client.post(f"/api/chat/sessions/{session['id']}/messages", json={"content": "Say something"})
    r = client.post(f"/api/chat/sessions/{session['id']}/regenerate")

    assert r.status_code == 200
    assert r.json()["metadata"]["regenerated"] is True
    messages = client.get(f"/api/chat/sessions/{session['id']}/messages").json()
    assert [m["role"] for m in messages] == ["user", "assistant", "assistant"]


def test_regenerate_missing_session_is_404(client):
    assert client.post("/api/chat/sessions/12345/regenerate").status_code == 404


def test_regenerate_provider_failure_is_500(client, provider):
    session = _new_session(client)
    client.post(f"/api/chat/sessions/{session['id']}/messages", json={"content": "Say something"})
    provider.complete_error = RuntimeError("gone")

    assert client.post(f"/api/chat/sessions/{session['id']}/regenerate").status_code == 500


def test_image_endpoints(client):
    r = client.post("/api/images/generate", json={"prompt": "abc"})
    assert r.json() == {"url": "data:image/svg+xml;base64,abc", "provider": "placeholder"}

    r = client.post("/api/images/analyze", json={"image": "data:image/png;base64,AAAA"})
    assert r.json() == {"description": "I can see an uploaded image.", "provider": "local"}

    assert client.post("/api/images/generate", json={"prompt": ""}).status_code == 422
