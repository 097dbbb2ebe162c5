# Repositories package for data access layer

# Base repository
from .base import BaseRepository

# Domain-specific repositories
from .session import ChatSessionRepository
from .message import MessageRepository

__all__ = [
    "BaseRepository",
    "ChatSessionRepository",
    "MessageRepository",
]
