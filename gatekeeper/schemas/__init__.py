"""
Pydantic schemas for API responses and requests
"""
from gatekeeper.models.user import UserBase  # Re-export from models
from gatekeeper.schemas.auth import (
    AuthResponse,
    LoginRequest,
    MessageResponse,
    RefreshRequest,
    RegisterRequest,
    SessionResponse,
    UserResponse,
)

__all__ = [
    # User schemas
    "UserBase",
    "UserResponse",
    # Auth schemas
    "RegisterRequest",
    "LoginRequest",
    "RefreshRequest",
    "AuthResponse",
    "SessionResponse",
    "MessageResponse",
]
