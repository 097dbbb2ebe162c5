# saikaki/services/record_store.py
"""
Async persistence boundary used by the turn handlers.
Every call runs the blocking repository code in the threadpool inside its own
short-lived DB session, so each write is committed independently of the rest
of the turn.
"""
from __future__ import annotations

import logging
from typing import Any, Callable, Dict, List, Optional, Protocol

from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool

from ..database import get_db_context
from ..repositories.message import MessageRepository
from ..repositories.session import ChatSessionRepository
from ..schemas.message import MessageResponse
from ..schemas.session import SessionResponse

logger = logging.getLogger(__name__)


class SessionNotFoundError(LookupError):
    """Raised when an operation targets a chat session that does not exist."""

    def __init__(self, session_id: int):
        self.session_id = session_id
        super().__init__(f"Session {session_id} not found")


class RecordStore(Protocol):
    async def create_session(self, user_id: Optional[str] = None, title: Optional[str] = None) -> SessionResponse: ...
    async def get_session(self, session_id: int) -> Optional[SessionResponse]: ...
    async def list_sessions(self, user_id: str, skip: int = 0, limit: int = 100) -> List[SessionResponse]: ...
    async def update_session(self, session_id: int, *, title: Optional[str] = None) -> SessionResponse: ...
    async def delete_session(self, session_id: int) -> bool: ...
    async def create_message(
        self,
        session_id: int,
        role: str,
        content: str,
        metadata: Optional[Dict[str, Any]] = None,
        *,
        model_used: Optional[str] = None,
        latency_ms: Optional[float] = None,
    ) -> MessageResponse: ...
    async def list_messages(self, session_id: int) -> List[MessageResponse]: ...
    async def recent_messages(self, session_id: int, limit: int) -> List[MessageResponse]: ...


class SqlRecordStore:
    """RecordStore backed by the SQLAlchemy repositories."""

    def __init__(
        self,
        *,
        session_factory: Optional[Callable[[], Session]] = None,
        sess_repo: Optional[ChatSessionRepository] = None,
        msg_repo: Optional[MessageRepository] = None,
    ):
        self.session_factory = session_factory
        self.sess_repo = sess_repo or ChatSessionRepository()
        self.msg_repo = msg_repo or MessageRepository()

    async def _run(self, fn: Callable[..., Any], *args: Any) -> Any:
        return await run_in_threadpool(self._in_session, fn, *args)

    def _in_session(self, fn: Callable[..., Any], *args: Any) -> Any:
        with get_db_context(self.session_factory) as db:
            return fn(db, *args)

    def _require_session(self, db: Session, session_id: int):
        s = self.sess_repo.get(db, session_id)
        if s is None:
            raise SessionNotFoundError(session_id)
        return s

    # ---------- Sessions ----------

    async def create_session(self, user_id: Optional[str] = None, title: Optional[str] = None) -> SessionResponse:
        def op(db: Session) -> SessionResponse:
            s = self.sess_repo.create_session_for_user(db, user_id=user_id, title=title)
            return SessionResponse.model_validate(s)

        return await self._run(op)

    async def get_session(self, session_id: int) -> Optional[SessionResponse]:
        def op(db: Session) -> Optional[SessionResponse]:
            s = self.sess_repo.get(db, session_id)
            return SessionResponse.model_validate(s) if s else None

        return await self._run(op)

    async def list_sessions(self, user_id: str, skip: int = 0, limit: int = 100) -> List[SessionResponse]:
        def op(db: Session) -> List[SessionResponse]:
            rows = self.sess_repo.get_by_user_id(db, user_id, skip=skip, limit=limit)
            return [SessionResponse.model_validate(s) for s in rows]

        return await self._run(op)

    async def update_session(self, session_id: int, *, title: Optional[str] = None) -> SessionResponse:
        """Set the title (when given) and bump the updated timestamp."""
        def op(db: Session) -> SessionResponse:
            self._require_session(db, session_id)
            if title:
                self.sess_repo.set_title(db, session_id, title)
            s = self.sess_repo.touch(db, session_id)
            return SessionResponse.model_validate(s)

        return await self._run(op)

    async def delete_session(self, session_id: int) -> bool:
        return await self._run(self.sess_repo.delete, session_id)

    # ---------- Messages ----------

    async def create_message(
        self,
        session_id: int,
        role: str,
        content: str,
        metadata: Optional[Dict[str, Any]] = None,
        *,
        model_used: Optional[str] = None,
        latency_ms: Optional[float] = None,
    ) -> MessageResponse:
        def op(db: Session) -> MessageResponse:
            self._require_session(db, session_id)
            if role == "user":
                msg = self.msg_repo.create_user_message(db, session_id, content, metadata=metadata)
            elif role == "assistant":
                msg = self.msg_repo.create_assistant_message(
                    db, session_id, content,
                    metadata=metadata, model_used=model_used, latency_ms=latency_ms,
                )
            else:
                raise ValueError(f"Unsupported message role: {role}")
            return MessageResponse.model_validate(msg)

        return await self._run(op)

    async def list_messages(self, session_id: int) -> List[MessageResponse]:
        def op(db: Session) -> List[MessageResponse]:
            return [MessageResponse.model_validate(m) for m in self.msg_repo.get_by_session_id(db, session_id)]

        return await self._run(op)

    async def recent_messages(self, session_id: int, limit: int) -> List[MessageResponse]:
        """Last `limit` messages, oldest first."""
        def op(db: Session) -> List[MessageResponse]:
            rows = self.msg_repo.get_conversation_history(db, session_id, limit=limit)
            return [MessageResponse.model_validate(m) for m in rows]

        return await self._run(op)
