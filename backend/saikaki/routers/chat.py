# saikaki/routers/chat.py
from __future__ import annotations
import json
import logging
from typing import Any, AsyncIterator, Dict

from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.responses import JSONResponse, StreamingResponse

from ..deps import get_chat_service, get_record_store, get_stream_relay
from ..schemas.message import MessageResponse, TurnRequest, TurnResponse
from ..services.chat_service import ChatService, RegenerateError, TurnFailedError
from ..services.event_channel import EventChannel
from ..services.record_store import RecordStore
from ..services.stream_relay import StreamRelay
from ..services.turns import TurnValidationError, validate_turn
from .sessions import require_session

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/chat/sessions", tags=["chat"])

SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
}


def client_ip(request: Request) -> str:
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else "127.0.0.1"


def sse_frame(event: Dict[str, Any]) -> str:
    return f"data: {json.dumps(event, ensure_ascii=False)}\n\n"


async def relay_events(channel: EventChannel) -> AsyncIterator[str]:
    """SSE body: frames every event until the relay closes the channel."""
    try:
        async for event in channel.events():
            yield sse_frame(event)
    finally:
        # generator closed early: the client went away
        if not channel.closed:
            channel.disconnect()


# ------- Routes -------
@router.post("/{session_id}/messages/stream", summary="Send a message and stream the reply (SSE)")
async def stream_message(
    session_id: int,
    payload: TurnRequest,
    request: Request,
    store: RecordStore = Depends(get_record_store),
    relay: StreamRelay = Depends(get_stream_relay),
):
    await require_session(store, session_id)
    try:
        validate_turn(payload.content, payload.role)
    except TurnValidationError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    channel = EventChannel()
    relay.start(
        channel,
        session_id,
        payload.content,
        role=payload.role,
        user_location=payload.user_location,
        client_ip=client_ip(request),
    )
    return StreamingResponse(relay_events(channel), media_type="text/event-stream", headers=SSE_HEADERS)


@router.post("/{session_id}/messages", response_model=TurnResponse, summary="Send a message (non-streaming)")
async def send_message(
    session_id: int,
    payload: TurnRequest,
    request: Request,
    store: RecordStore = Depends(get_record_store),
    chat_service: ChatService = Depends(get_chat_service),
):
    await require_session(store, session_id)
    try:
        user_msg, ai_msg = await chat_service.handle_user_message(
            session_id,
            payload.content,
            role=payload.role,
            user_location=payload.user_location,
            client_ip=client_ip(request),
        )
    except TurnValidationError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except TurnFailedError as e:
        body: Dict[str, Any] = {"error": str(e)}
        if e.ai_message is not None:
            body["aiMessage"] = e.ai_message.model_dump(mode="json")
        return JSONResponse(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, content=body)
    except Exception:
        logger.exception(f"send_message failed (session={session_id})")
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"error": "Failed to process message"},
        )

    return TurnResponse(user_message=user_msg, ai_message=ai_msg)


@router.post(
    "/{session_id}/regenerate",
    response_model=MessageResponse,
    summary="Generate another reply to the latest user message",
)
async def regenerate(
    session_id: int,
    request: Request,
    store: RecordStore = Depends(get_record_store),
    chat_service: ChatService = Depends(get_chat_service),
):
    await require_session(store, session_id)
    try:
        return await chat_service.regenerate(session_id, client_ip=client_ip(request))
    except RegenerateError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except Exception:
        logger.exception(f"regenerate failed (session={session_id})")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to regenerate response",
        )
