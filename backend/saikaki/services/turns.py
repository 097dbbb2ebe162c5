# saikaki/services/turns.py
"""
Steps shared by the streaming and non-streaming turn handlers:
validation, user-message persistence, title derivation, context loading and
enrichment diffing.
"""
from __future__ import annotations

import logging
import re
from typing import Awaitable, Callable, Dict, List, Optional

from ..schemas.common import UserLocation
from ..schemas.message import MessageResponse
from .completion_service import CompletionRequest
from .enrichment_service import Enricher
from .record_store import RecordStore

logger = logging.getLogger(__name__)

TextFilter = Callable[[str], Awaitable[str]]

ERROR_REPLY = "Oops! Even I can't fix that mess. My circuits are having a moment. Try again, genius. 🤖💥"

QUICK_CHAT_TITLE = "Quick Chat"
TITLE_MAX_CHARS = 50
TITLE_MIN_CHARS = 10


class TurnValidationError(ValueError):
    """Inbound turn rejected before anything was stored."""


def validate_turn(user_text: Optional[str], role: str = "user") -> None:
    if role != "user":
        raise TurnValidationError(f"Only user messages can be sent, got role '{role}'")
    if not user_text or not user_text.strip():
        raise TurnValidationError("Message content must not be empty")


def derive_title(first_message: str) -> str:
    """
    Session title from the first user message: punctuation stripped, first
    50 characters, capitalized, '...' when cut. Very short text becomes
    "Quick Chat".
    """
    cleaned = re.sub(r"[^\w\s]", "", first_message).strip()
    if len(cleaned) < TITLE_MIN_CHARS:
        return QUICK_CHAT_TITLE
    title = cleaned[:TITLE_MAX_CHARS]
    title = title[0].upper() + title[1:]
    if len(cleaned) >= TITLE_MAX_CHARS:
        title += "..."
    return title


def locality_hint(client_ip: Optional[str], user_location: Optional[UserLocation] = None) -> Optional[str]:
    if user_location is not None:
        return f"user coordinates lat={user_location.lat:.4f}, lon={user_location.lon:.4f}"
    if client_ip:
        return f"user IP address {client_ip}"
    return None


def enrichment_suffix(original: str, enriched: Optional[str]) -> str:
    """
    Text the enricher appended to `original`.
    Anything that is not a pure extension is discarded so streamed chunks keep
    adding up to the stored reply.
    """
    if not enriched or enriched == original:
        return ""
    if not enriched.startswith(original):
        logger.warning("Enrichment rewrote the reply instead of extending it; discarded")
        return ""
    return enriched[len(original):]


async def enrich_reply(enricher: Enricher, user_text: str, reply: str) -> str:
    """Suffix to append to `reply`; enrichment failures are logged and skipped."""
    try:
        enriched = await enricher.enrich(user_text, reply)
    except Exception as e:
        logger.warning(f"Enrichment failed, keeping reply as-is: {e}")
        return ""
    return enrichment_suffix(reply, enriched)


def to_prompt_history(messages: List[MessageResponse]) -> List[Dict[str, str]]:
    return [{"role": m.role, "content": m.content} for m in messages]


async def persist_user_turn(
    store: RecordStore,
    text_filter: TextFilter,
    session_id: int,
    user_text: str,
) -> MessageResponse:
    """Store the (filtered) user message; the first one also names the session."""
    filtered = await text_filter(user_text)
    msg = await store.create_message(session_id, "user", filtered, {"originalLength": len(user_text)})

    session = await store.get_session(session_id)
    if session is not None and session.message_count <= 1:
        title = derive_title(filtered)
        await store.update_session(session_id, title=title)
        logger.info(f"Session {session_id} titled '{title}'")
    return msg


async def build_request(
    store: RecordStore,
    session_id: int,
    user_text: str,
    hint: Optional[str],
    history_limit: int,
) -> CompletionRequest:
    recent = await store.recent_messages(session_id, history_limit)
    return CompletionRequest(user_text=user_text, history=to_prompt_history(recent), locality_hint=hint)
