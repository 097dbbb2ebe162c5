"""
Common data structures used across multiple schemas.
"""

from pydantic import Field
from .base import BaseSchema


class UserLocation(BaseSchema):
    """Browser-supplied coordinates used as a locality hint for the provider."""
    lat: float = Field(..., ge=-90.0, le=90.0)
    lon: float = Field(..., ge=-180.0, le=180.0)
