# saikaki/services/chat_service.py
"""
Chat service for non-streaming turns and reply regeneration.
"""
from __future__ import annotations

import logging
import time
from typing import Optional, Tuple

from ..config import settings
from ..schemas.common import UserLocation
from ..schemas.message import MessageResponse
from .completion_service import CompletionRequest, CompletionService
from .enrichment_service import Enricher, NoopEnricher
from .pii_filter import PersonalInfoFilter
from .record_store import RecordStore
from .turns import (
    ERROR_REPLY,
    TextFilter,
    build_request,
    enrich_reply,
    locality_hint,
    persist_user_turn,
    to_prompt_history,
    validate_turn,
)

logger = logging.getLogger(__name__)


class RegenerateError(ValueError):
    """The session has nothing that can be regenerated."""


class TurnFailedError(Exception):
    """
    A non-streaming turn failed after the user message was stored.
    `ai_message` is the stored apology (None if even that could not be written).
    """

    def __init__(self, message: str, ai_message: Optional[MessageResponse] = None):
        super().__init__(message)
        self.ai_message = ai_message


class ChatService:
    """
    Entry point for the JSON chat endpoints.

    Same persistence rules as the stream relay:
    - user message stored first (filtered, titled when first)
    - one assistant message per turn, apology text on failure
    """

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

    async def handle_user_message(
        self,
        session_id: int,
        user_text: str,
        *,
        role: str = "user",
        user_location: Optional[UserLocation] = None,
        client_ip: Optional[str] = None,
    ) -> Tuple[MessageResponse, MessageResponse]:
        """Returns (user message, assistant message)."""
        validate_turn(user_text, role)

        user_msg = await persist_user_turn(self.store, self.text_filter, session_id, user_text)
        ai_msg: Optional[MessageResponse] = None
        try:
            request = await build_request(
                self.store, session_id, user_msg.content,
                locality_hint(client_ip, user_location), self.history_limit,
            )
            started = time.time()
            result = await self.completion.complete(request)
            suffix = await enrich_reply(self.enricher, user_msg.content, result.value)

            ai_msg = await self.store.create_message(
                session_id,
                "assistant",
                result.value + suffix,
                {
                    "userMessageId": user_msg.id,
                    "enhanced": bool(suffix),
                    "streamed": False,
                    "provider": result.provider_name,
                },
                model_used=result.provider_name,
                latency_ms=(time.time() - started) * 1000.0,
            )
            await self.store.update_session(session_id)
            return user_msg, ai_msg
        except Exception as e:
            logger.exception(f"Turn failed (session={session_id})")
            if ai_msg is None:
                ai_msg = await self._store_error_reply(session_id, user_msg.id)
            raise TurnFailedError("Failed to process message", ai_message=ai_msg) from e

    async def _store_error_reply(self, session_id: int, user_message_id: int) -> Optional[MessageResponse]:
        try:
            return await self.store.create_message(
                session_id, "assistant", ERROR_REPLY,
                {"error": True, "userMessageId": user_message_id},
            )
        except Exception:
            logger.exception(f"Could not store error reply (session={session_id})")
            return None

    async def regenerate(self, session_id: int, *, client_ip: Optional[str] = None) -> MessageResponse:
        """
        Produce a fresh reply to the latest user message.
        The new assistant message is appended; earlier replies are left alone.
        """
        messages = await self.store.list_messages(session_id)
        if len(messages) < 2:
            raise RegenerateError("No message to regenerate")

        user_idx = next((i for i in range(len(messages) - 1, -1, -1) if messages[i].role == "user"), None)
        if user_idx is None:
            raise RegenerateError("No user message found")
        last_user = messages[user_idx]

        # context stops before the reply being regenerated
        reply_idx = next(
            (i for i in range(len(messages) - 1, user_idx, -1) if messages[i].role == "assistant"),
            len(messages),
        )
        context = messages[:reply_idx][-self.history_limit:]

        request = CompletionRequest(
            user_text=last_user.content,
            history=to_prompt_history(context),
            locality_hint=locality_hint(client_ip),
        )
        started = time.time()
        result = await self.completion.complete(request)
        suffix = await enrich_reply(self.enricher, last_user.content, result.value)

        return await self.store.create_message(
            session_id,
            "assistant",
            result.value + suffix,
            {
                "regenerated": True,
                "originalMessageId": last_user.id,
                "enhanced": bool(suffix),
                "provider": result.provider_name,
            },
            model_used=result.provider_name,
            latency_ms=(time.time() - started) * 1000.0,
        )
