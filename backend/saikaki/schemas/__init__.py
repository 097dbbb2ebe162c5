# Schemas package for API request/response validation

# Base schemas
from .base import BaseSchema, TimestampSchema, IDSchema, BaseResponseSchema

# Common data structures
from .common import UserLocation

# Session schemas
from .session import SessionCreate, SessionUpdate, SessionResponse

# Message schemas
from .message import MessageCreate, MessageResponse, TurnRequest, TurnResponse

# Export all schemas for easy importing
__all__ = [
    # Base
    "BaseSchema", "TimestampSchema", "IDSchema", "BaseResponseSchema",

    # Common
    "UserLocation",

    # Session
    "SessionCreate", "SessionUpdate", "SessionResponse",

    # Message
    "MessageCreate", "MessageResponse", "TurnRequest", "TurnResponse",
]
