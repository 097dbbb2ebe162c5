# Models package for database entities

from .base import Base, BaseModel
from .chat_session import ChatSession
from .message import Message

# Export all models for easy importing
__all__ = ["Base", "BaseModel", "ChatSession", "Message"]
