"""
Message repository for managing chat messages.
Handles message storage and conversation-history retrieval.
"""

from typing import Optional, List, Dict, Any
from sqlalchemy.orm import Session
from sqlalchemy import desc
from datetime import datetime
import logging

from .base import BaseRepository
from ..models.message import Message
from ..models.chat_session import ChatSession
from ..schemas.message import MessageCreate

logger = logging.getLogger(__name__)


class MessageRepository(BaseRepository[Message, MessageCreate, MessageCreate]):
    """
    Repository for message operations.
    Messages are insert-only: there is no update path for content or metadata.
    """

    def __init__(self):
        super().__init__(Message)

    # ---------- Helpers (internal) ----------

    def _touch_session_on_new_message(self, db: Session, session_id: int, is_assistant: bool) -> None:
        """Increment counters and bump recency on the parent session."""
        session = db.query(ChatSession).filter(ChatSession.id == session_id).first()
        if not session:
            return
        # increment in SQL so concurrent writers never overwrite each other's counts
        session.message_count = ChatSession.message_count + 1
        if is_assistant:
            session.assistant_message_count = ChatSession.assistant_message_count + 1
        session.last_message_at = datetime.utcnow()
        db.add(session)

    # ---------- Queries ----------

    def get_by_session_id(
        self,
        db: Session,
        chat_session_id: int,
        role: Optional[str] = None,
    ) -> List[Message]:
        """All messages for a session in canonical (creation) order."""
        try:
            q = db.query(Message).filter(Message.chat_session_id == chat_session_id)
            if role:
                q = q.filter(Message.role == role)
            return q.order_by(Message.created_at, Message.id).all()
        except Exception as e:
            logger.error(f"get_by_session_id failed (session={chat_session_id}): {e}")
            raise

    def get_conversation_history(
        self,
        db: Session,
        chat_session_id: int,
        limit: int = 10
    ) -> List[Message]:
        """
        Get the most recent 'limit' messages, returned oldest→newest for prompt assembly.
        """
        try:
            recent = (
                db.query(Message)
                .filter(Message.chat_session_id == chat_session_id)
                .order_by(desc(Message.created_at), desc(Message.id))
                .limit(limit)
                .all()
            )
            return list(reversed(recent))
        except Exception as e:
            logger.error(f"get_conversation_history failed (session={chat_session_id}): {e}")
            raise

    # ---------- Mutations ----------

    def create_user_message(
        self,
        db: Session,
        chat_session_id: int,
        content: str,
        *,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> Message:
        """Create a user message and bump session recency/counters."""
        try:
            msg = self.create(db, MessageCreate(
                content=content,
                chat_session_id=chat_session_id,
                role="user",
                message_metadata=metadata or {},
            ))
            self._touch_session_on_new_message(db, chat_session_id, is_assistant=False)
            db.flush()
            return msg
        except Exception as e:
            logger.error(f"create_user_message failed (session={chat_session_id}): {e}")
            db.rollback()
            raise

    def create_assistant_message(
        self,
        db: Session,
        chat_session_id: int,
        content: str,
        *,
        metadata: Optional[Dict[str, Any]] = None,     # {"userMessageId": 12, "enhanced": false, "streamed": true}
        model_used: Optional[str] = None,              # e.g., "gpt-4o-mini"
        latency_ms: Optional[float] = None,
    ) -> Message:
        """
        Create an assistant message with its metadata in one insert.
        """
        try:
            msg = self.create(db, MessageCreate(
                content=content,
                chat_session_id=chat_session_id,
                role="assistant",
                message_metadata=metadata or {},
                model_used=model_used,
                latency_ms=latency_ms,
            ))
            self._touch_session_on_new_message(db, chat_session_id, is_assistant=True)
            db.flush()
            return msg
        except Exception as e:
            logger.error(f"create_assistant_message failed (session={chat_session_id}): {e}")
            db.rollback()
            raise
