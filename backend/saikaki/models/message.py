"""
Message model for storing individual messages in chat sessions.
"""

from sqlalchemy import Column, String, Text, Integer, ForeignKey, JSON, Float
from sqlalchemy.orm import relationship
from .base import BaseModel

class Message(BaseModel):
    """
    Message entity that represents a single message in a chat session.

    `message_metadata` (column "metadata") is written once at creation. Keys in use:
    - user turns: originalLength
    - assistant turns: userMessageId, enhanced, streamed, error,
      regenerated, originalMessageId, provider
    """

    __tablename__ = "messages"

    # Role of the message sender: 'user' or 'assistant'
    role = Column(String(20), nullable=False, index=True)

    # The actual message content
    content = Column(Text, nullable=False)

    chat_session_id = Column(Integer, ForeignKey("chat_sessions.id", ondelete="CASCADE"), nullable=False, index=True)

    chat_session = relationship("ChatSession", back_populates="messages")

    # "metadata" is reserved on declarative classes, hence the attribute name
    message_metadata = Column("metadata", JSON, nullable=False, default=dict)

    # Model usage (assistant only)
    model_used = Column(String(80), nullable=True)         # e.g., "gpt-4o-mini"
    latency_ms = Column(Float, nullable=True)              # end-to-end latency for this turn

    def __repr__(self):
        return f"<Message(id={self.id}, role='{self.role}', chat_session_id={self.chat_session_id})>"

    @property
    def is_user_message(self) -> bool:
        return self.role == "user"

    @property
    def is_assistant_message(self) -> bool:
        return self.role == "assistant"
