"""
Chat session repository for managing conversation threads.
Handles session creation, title updates, recency and deletion.
"""

from typing import Optional, List
from sqlalchemy.orm import Session
from sqlalchemy import desc
from datetime import datetime
import logging

from .base import BaseRepository
from ..models.chat_session import ChatSession, DEFAULT_TITLE, DEFAULT_USER_ID
from ..schemas.session import SessionCreate, SessionUpdate

logger = logging.getLogger(__name__)


class ChatSessionRepository(BaseRepository[ChatSession, SessionCreate, SessionUpdate]):
    """
    Repository for chat session management operations.
    """

    def __init__(self):
        super().__init__(ChatSession)

    # ---------- Queries ----------
    def get_by_user_id(
        self,
        db: Session,
        user_id: str,
        skip: int = 0,
        limit: int = 100,
    ) -> List[ChatSession]:
        """Get chat sessions for a user, most recently updated first."""
        try:
            return (
                db.query(ChatSession)
                  .filter(ChatSession.user_id == user_id)
                  .order_by(desc(ChatSession.updated_at), desc(ChatSession.id))
                  .offset(skip)
                  .limit(limit)
                  .all()
            )
        except Exception as e:
            logger.error(f"Error getting sessions for user {user_id}: {e}")
            raise

    # ---------- Mutations ----------
    def create_session_for_user(
        self,
        db: Session,
        user_id: Optional[str] = None,
        title: Optional[str] = None,
    ) -> ChatSession:
        """Create a new chat session. last_message_at starts at now()."""
        try:
            session = self.create(db, {
                "user_id": user_id or DEFAULT_USER_ID,
                "title": (title or DEFAULT_TITLE)[:255],
                "last_message_at": datetime.utcnow(),
            })
            return session
        except Exception as e:
            logger.error(f"Error creating session for user {user_id}: {e}")
            db.rollback()
            raise

    def set_title(self, db: Session, session_id: int, title: str) -> ChatSession:
        """Replace the title (used once, after the first user message)."""
        s = self.get(db, session_id)
        if not s:
            raise ValueError(f"Session {session_id} not found")
        return self.update(db, s, SessionUpdate(title=title[:255]))

    def touch(self, db: Session, session_id: int) -> ChatSession:
        """Bump updated_at after a completed turn."""
        s = self.get(db, session_id)
        if not s:
            raise ValueError(f"Session {session_id} not found")
        # explicit assignment: onupdate only fires when some column changes
        s.updated_at = datetime.utcnow()
        db.add(s)
        db.flush()
        db.refresh(s)
        return s
