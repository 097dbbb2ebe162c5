"""
Pydantic schemas for Message entity.
Aligned with models.message.Message and repositories.message.MessageRepository.
"""

from typing import Optional, Dict, Any, Literal
from pydantic import AliasChoices, ConfigDict, Field, field_validator

from .base import BaseSchema, BaseResponseSchema
from .common import UserLocation

class MessageCreate(BaseSchema):
    """
    Schema for creating new messages.
    """
    # assistant content is stored exactly as relayed
    model_config = ConfigDict(str_strip_whitespace=False)

    role: Literal["user", "assistant"] = Field(..., description="Message author")
    content: str = Field(..., description="Message text content")
    chat_session_id: int = Field(..., description="Parent chat session id")
    message_metadata: Dict[str, Any] = Field(default_factory=dict)
    model_used: Optional[str] = None
    latency_ms: Optional[float] = Field(None, ge=0.0)


class MessageResponse(BaseResponseSchema):
    """
    Message as returned to the frontend and carried in stream events.
    """
    model_config = ConfigDict(str_strip_whitespace=False)

    role: Literal["user", "assistant"]
    content: str
    chat_session_id: int
    metadata: Dict[str, Any] = Field(
        default_factory=dict,
        validation_alias=AliasChoices("message_metadata", "metadata"),
    )
    model_used: Optional[str] = None
    latency_ms: Optional[float] = None

    @field_validator("metadata", mode="before")
    @classmethod
    def _none_to_empty(cls, v):
        return v or {}


class TurnRequest(BaseSchema):
    """
    Inbound user turn, shared by the streaming and non-streaming endpoints.
    """
    model_config = ConfigDict(populate_by_name=True)

    content: str = Field(..., min_length=1, description="User message text")
    role: Literal["user"] = Field("user", description="Only user turns are accepted")
    user_location: Optional[UserLocation] = Field(
        None, alias="userLocation", description="Optional browser coordinates"
    )


class TurnResponse(BaseSchema):
    """Result of a non-streaming turn."""
    model_config = ConfigDict(populate_by_name=True)

    user_message: MessageResponse = Field(..., alias="userMessage")
    ai_message: MessageResponse = Field(..., alias="aiMessage")
