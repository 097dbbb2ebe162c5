# saikaki/services/stream_relay.py
"""
Stream relay: runs one streamed user turn end to end.

Event order on the channel:
    connected -> userMessage -> aiChunk* -> aiComplete (or error) -> done

The relay runs as its own asyncio task (see `start`), so a client that drops
the connection only stops the output; whatever persistence is in flight still
completes.
"""
from __future__ import annotations

import asyncio
import logging
import time
import uuid
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Set

from ..config import settings
from ..schemas.common import UserLocation
from ..schemas.message import MessageResponse
from .completion_service import CompletionService
from .enrichment_service import Enricher, NoopEnricher
from .event_channel import ChannelClosedError, Event, EventChannel
from .fallback import ProviderError
from .pii_filter import PersonalInfoFilter
from .record_store import RecordStore
from .turns import (
    ERROR_REPLY,
    TextFilter,
    build_request,
    enrich_reply,
    locality_hint,
    persist_user_turn,
    validate_turn,
)

logger = logging.getLogger(__name__)

# Strong references to running relay tasks; asyncio only keeps weak ones.
_background_tasks: Set["asyncio.Task[Any]"] = set()


def _new_temp_id() -> str:
    return f"temp-{uuid.uuid4().hex}"


def _dump(message: MessageResponse) -> Dict[str, Any]:
    return message.model_dump(mode="json")


@dataclass
class StreamSessionState:
    """Per-turn bookkeeping. Nothing is written to the channel once `terminal` is set."""
    session_id: int
    temp_message_id: str = field(default_factory=_new_temp_id)
    text: str = ""
    terminal: bool = False
    chunks_relayed: int = 0
    user_message_id: Optional[int] = None
    assistant_message_id: Optional[int] = None

    def append(self, chunk: str) -> None:
        self.text += chunk
        self.chunks_relayed += 1


class StreamRelay:
    def __init__(
        self,
        *,
        store: RecordStore,
        completion: CompletionService,
        enricher: Optional[Enricher] = None,
        text_filter: Optional[TextFilter] = None,
        history_limit: Optional[int] = None,
    ):
        self.store = store
        self.completion = completion
        self.enricher = enricher or NoopEnricher()
        self.text_filter = text_filter or PersonalInfoFilter()
        self.history_limit = history_limit or settings.HISTORY_LIMIT

    # ---------- Task management ----------

    def start(
        self,
        channel: EventChannel,
        session_id: int,
        user_text: str,
        **kwargs: Any,
    ) -> "asyncio.Task[StreamSessionState]":
        """Schedule handle_turn on the running loop and keep the task alive until it ends."""
        task = asyncio.create_task(self.handle_turn(channel, session_id, user_text, **kwargs))
        _background_tasks.add(task)
        task.add_done_callback(_background_tasks.discard)
        return task

    # ---------- Turn ----------

    async def handle_turn(
        self,
        channel: EventChannel,
        session_id: int,
        user_text: str,
        *,
        role: str = "user",
        user_location: Optional[UserLocation] = None,
        client_ip: Optional[str] = None,
    ) -> StreamSessionState:
        validate_turn(user_text, role)

        state = StreamSessionState(session_id=session_id)
        self._emit(channel, state, {
            "type": "connected",
            "sessionId": session_id,
            "messageId": state.temp_message_id,
        })
        try:
            await self._run_turn(channel, state, user_text, locality_hint(client_ip, user_location))
        except Exception:
            logger.exception(f"Stream turn failed (session={session_id})")
            await self._fail_turn(channel, state)
        finally:
            self._finish(channel, state)
        return state

    async def _run_turn(
        self,
        channel: EventChannel,
        state: StreamSessionState,
        user_text: str,
        hint: Optional[str],
    ) -> None:
        sid = state.session_id

        user_msg = await persist_user_turn(self.store, self.text_filter, sid, user_text)
        state.user_message_id = user_msg.id
        self._emit(channel, state, {"type": "userMessage", "message": _dump(user_msg)})

        request = await build_request(self.store, sid, user_msg.content, hint, self.history_limit)

        async def on_chunk(fragment: str) -> None:
            if not fragment:
                return
            state.append(fragment)
            self._emit(channel, state, {
                "type": "aiChunk",
                "chunk": fragment,
                "messageId": state.temp_message_id,
            })

        started = time.time()
        provider = self.completion.primary.name
        streamed = True
        try:
            await self.completion.stream(request, on_chunk)
            if not state.text:
                raise ProviderError(f"{provider} streamed no text")
            text = state.text
        except Exception as e:
            if state.chunks_relayed:
                raise
            logger.warning(f"Streaming failed before the first chunk (session={sid}), trying a blocking call: {e}")
            result = await self.completion.complete(request)
            text, provider, streamed = result.value, result.provider_name, False

        suffix = await enrich_reply(self.enricher, user_msg.content, text)
        if suffix:
            if streamed:
                await on_chunk(suffix)
            text += suffix

        ai_msg = await self.store.create_message(
            sid,
            "assistant",
            text,
            {
                "userMessageId": user_msg.id,
                "enhanced": bool(suffix),
                "streamed": streamed,
                "provider": provider,
            },
            model_used=provider,
            latency_ms=(time.time() - started) * 1000.0,
        )
        state.assistant_message_id = ai_msg.id
        await self.store.update_session(sid)

        self._emit(channel, state, {
            "type": "aiComplete",
            "message": _dump(ai_msg),
            "tempId": state.temp_message_id,
        })

    async def _fail_turn(self, channel: EventChannel, state: StreamSessionState) -> None:
        if state.assistant_message_id is not None:
            # reply already stored; only the terminal event is left to send
            return
        # Stored even when the user turn itself never made it in (filter or
        # store failure): userMessageId is then None and the apology is the
        # only trace of the failed turn in the session.
        try:
            err = await self.store.create_message(
                state.session_id,
                "assistant",
                ERROR_REPLY,
                {"error": True, "userMessageId": state.user_message_id},
            )
        except Exception:
            logger.exception(f"Could not store error reply (session={state.session_id})")
            self._emit(channel, state, {"type": "error", "error": "Failed to process message"})
            return
        state.assistant_message_id = err.id
        self._emit(channel, state, {
            "type": "aiComplete",
            "message": _dump(err),
            "tempId": state.temp_message_id,
        })

    # ---------- Channel writes ----------

    def _emit(self, channel: EventChannel, state: StreamSessionState, event: Event) -> bool:
        if state.terminal:
            return False
        try:
            channel.send(event)
        except ChannelClosedError:
            state.terminal = True
            logger.info(
                f"Client disconnected (session={state.session_id}, "
                f"chunks relayed={state.chunks_relayed}); output stopped"
            )
            return False
        return True

    def _finish(self, channel: EventChannel, state: StreamSessionState) -> None:
        if not state.terminal:
            self._emit(channel, state, {"type": "done"})
            state.terminal = True
        channel.close()
