"""
SQLModel-based User models with inheritance for security

UserBase (shared public fields)
    ├─> Users (database table, adds credential and provider fields)
    └─> UserResponse (API schema, defined in gatekeeper/schemas/auth.py)

A user authenticates with a local password, an OAuth provider, or both once a
local account has linked a provider. Users are deactivated, never deleted, by
the authentication flows.
"""

import uuid
from datetime import datetime

from sqlalchemy import Index
from sqlmodel import Field, SQLModel

from gatekeeper.config import AuthProvider, UserRole
from gatekeeper.utils import utcnow


def _uuid_str() -> str:
    return str(uuid.uuid4())


class UserBase(SQLModel):
    """
    Base model with shared public fields for Users.

    These fields are safe to expose via the API and are shared between:
    - The database table (Users)
    - API response schemas (UserResponse)
    """

    email: str = Field(max_length=255)
    username: str | None = Field(default=None, max_length=50)
    first_name: str | None = Field(default=None, max_length=100)
    last_name: str | None = Field(default=None, max_length=100)
    avatar: str | None = Field(default=None, max_length=500)

    role: str = Field(default=UserRole.USER, max_length=20)
    provider: str = Field(default=AuthProvider.LOCAL, max_length=20)

    is_active: bool = Field(default=True)
    is_verified: bool = Field(default=False)


class Users(UserBase, table=True):
    """
    Database table for users with credential fields.

    Internal/sensitive fields (never exposed via the API):
    - password: bcrypt digest, NULL for OAuth-only accounts
    - provider_id: identifier assigned by the OAuth provider
    """

    __tablename__ = "users"

    __table_args__ = (
        Index("idx_users_email", "email", unique=True),
        Index("idx_users_username", "username", unique=True),
        Index("idx_users_provider", "provider", "provider_id"),
    )

    id: str = Field(default_factory=_uuid_str, primary_key=True, max_length=36)

    password: str | None = Field(default=None, max_length=255)
    provider_id: str | None = Field(default=None, max_length=255)

    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow, sa_column_kwargs={"onupdate": utcnow})

    @property
    def has_provider_link(self) -> bool:
        return self.provider != AuthProvider.LOCAL and self.provider_id is not None
