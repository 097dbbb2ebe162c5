# saikaki/routers/sessions.py
from __future__ import annotations
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status

from ..deps import get_record_store
from ..models.chat_session import DEFAULT_USER_ID
from ..schemas.message import MessageResponse
from ..schemas.session import SessionCreate, SessionResponse
from ..services.record_store import RecordStore

router = APIRouter(prefix="/api/chat/sessions", tags=["sessions"])


async def require_session(store: RecordStore, session_id: int) -> SessionResponse:
    s = await store.get_session(session_id)
    if s is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Session not found")
    return s


# ----- Routes -----
@router.post("", response_model=SessionResponse, summary="Create a new chat session")
async def create_session(
    payload: Optional[SessionCreate] = None,
    store: RecordStore = Depends(get_record_store),
):
    payload = payload or SessionCreate()
    return await store.create_session(user_id=payload.user_id, title=payload.title)


@router.get("", response_model=List[SessionResponse], summary="List sessions, most recent first")
async def list_sessions(
    user_id: str = Query(DEFAULT_USER_ID, description="Owner id"),
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=500),
    store: RecordStore = Depends(get_record_store),
):
    return await store.list_sessions(user_id, skip=skip, limit=limit)


@router.get("/{session_id}", response_model=SessionResponse, summary="Get one session")
async def get_session(session_id: int, store: RecordStore = Depends(get_record_store)):
    return await require_session(store, session_id)


@router.delete("/{session_id}", summary="Delete a session and its messages")
async def delete_session(session_id: int, store: RecordStore = Depends(get_record_store)):
    if not await store.delete_session(session_id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Session not found")
    return {"success": True}


@router.get(
    "/{session_id}/messages",
    response_model=List[MessageResponse],
    summary="All messages of a session (oldest → newest)",
)
async def list_messages(session_id: int, store: RecordStore = Depends(get_record_store)):
    await require_session(store, session_id)
    return await store.list_messages(session_id)
