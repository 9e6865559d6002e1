"""
Authentication schemas for request/response validation.

This module defines Pydantic models for authentication-related API operations:
- Registration and login credentials
- Token pair responses
- Session listings
"""

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator

from gatekeeper.models.user import UserBase
from gatekeeper.schemas.base import UTCDatetime


class RegisterRequest(BaseModel):
    """Request schema for user registration."""

    email: EmailStr
    password: str = Field(..., min_length=8, max_length=255)
    first_name: str | None = Field(default=None, max_length=100)
    last_name: str | None = Field(default=None, max_length=100)
    username: str | None = Field(default=None, min_length=3, max_length=50)

    @field_validator("first_name", "last_name", "username")
    @classmethod
    def strip_text(cls, v: str | None) -> str | None:
        """Trim whitespace; an all-blank value is treated as absent."""
        if v is None:
            return v
        return v.strip() or None


class LoginRequest(BaseModel):
    """Request schema for user login."""

    email: EmailStr
    password: str = Field(..., min_length=1, max_length=255)


class RefreshRequest(BaseModel):
    """Request schema for token refresh and logout."""

    refresh_token: str = Field(..., min_length=1)


class UserResponse(UserBase):
    """Schema for user response - what API returns (never the password)"""

    model_config = ConfigDict(from_attributes=True)

    id: str
    created_at: UTCDatetime
    updated_at: UTCDatetime


class AuthResponse(BaseModel):
    """Response schema for successful authentication."""

    user: UserResponse
    access_token: str
    refresh_token: str
    token_type: str = "bearer"
    expires_in: int = Field(..., description="Access token expiration time in seconds from now")


class SessionResponse(BaseModel):
    """One logged-in device."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    ip_address: str
    user_agent: str
    device_id: str | None = None
    is_active: bool
    created_at: UTCDatetime
    last_used_at: UTCDatetime
    expires_at: UTCDatetime


class MessageResponse(BaseModel):
    """Generic message response."""

    message: str
