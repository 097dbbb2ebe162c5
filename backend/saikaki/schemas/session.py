"""
Pydantic schemas for ChatSession entity.
"""

from typing import Optional
from datetime import datetime
from pydantic import Field

from .base import BaseSchema, BaseResponseSchema


class SessionCreate(BaseSchema):
    """
    Schema for creating new chat sessions.
    """
    title: Optional[str] = Field(None, max_length=255, description="Optional session title")
    user_id: Optional[str] = Field(None, max_length=255, description="Owner id; 'anonymous' when omitted")


class SessionUpdate(BaseSchema):
    """
    Schema for updating existing chat sessions.
    """
    title: Optional[str] = None
    message_count: Optional[int] = None
    assistant_message_count: Optional[int] = None
    last_message_at: Optional[datetime] = None


class SessionResponse(BaseResponseSchema):
    """
    Complete session data returned to the frontend.
    """
    user_id: str
    title: str

    # Message statistics
    message_count: int = 0
    assistant_message_count: int = 0

    last_message_at: datetime
