"""
ChatSession model for representing individual chat conversations.
Each session contains a series of messages between a user and Sai Kaki.
"""
from sqlalchemy import Column, String, Integer, DateTime
from sqlalchemy.orm import relationship
from datetime import datetime
from .base import BaseModel

DEFAULT_USER_ID = "anonymous"
DEFAULT_TITLE = "New Chat"

class ChatSession(BaseModel):
    """
    Chat session entity: one conversation owned by a (possibly anonymous) user.
    """

    __tablename__ = "chat_sessions"

    # Title of the chat session; replaced once from the first user message
    title = Column(String(255), nullable=False, default=DEFAULT_TITLE)

    # Opaque owner identifier supplied by the client ("anonymous" when absent)
    user_id = Column(String(255), nullable=False, default=DEFAULT_USER_ID, index=True)

    # Number of messages in this session
    message_count = Column(Integer, default=0, nullable=False)

    # Assistant-only message count
    assistant_message_count = Column(Integer, default=0, nullable=False)

    last_message_at = Column(DateTime, default=datetime.utcnow, nullable=False, index=True)

    # One chat session has many messages; deleting the session deletes them
    messages = relationship("Message", back_populates="chat_session", cascade="all, delete-orphan")

    def __repr__(self):
        return f"<ChatSession(id={self.id}, title='{self.title}', user_id='{self.user_id}')>"
