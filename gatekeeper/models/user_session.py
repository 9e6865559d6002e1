"""
SQLModel-based UserSession models

UserSessionBase (shared public fields)
    ├─> UserSessions (database table, adds owner and lifecycle fields)
    └─> SessionResponse (API schema, defined in gatekeeper/schemas/auth.py)

One row per authenticated device or browser. A new row is created on every
login, even from a device that already has one. Terminated sessions stay as
inactive rows until the daily reconciler sweep deletes them.
"""

import uuid
from datetime import datetime

from sqlalchemy import ForeignKeyConstraint, Index
from sqlmodel import Field, SQLModel

from gatekeeper.utils import utcnow


class UserSessionBase(SQLModel):
    """Fields that may be shown to the session's owner."""

    ip_address: str = Field(default="", max_length=45)  # Supports IPv6
    user_agent: str = Field(default="", max_length=500)
    device_id: str | None = Field(default=None, max_length=255)

    is_active: bool = Field(default=True)

    created_at: datetime = Field(default_factory=utcnow)
    last_used_at: datetime = Field(default_factory=utcnow)
    expires_at: datetime


class UserSessions(UserSessionBase, table=True):
    """Database table for device sessions."""

    __tablename__ = "user_sessions"

    __table_args__ = (
        ForeignKeyConstraint(
            ["user_id"],
            ["users.id"],
            ondelete="CASCADE",
            onupdate="CASCADE",
            name="fk_user_sessions_user_id",
        ),
        Index("idx_user_sessions_user_id", "user_id"),
        Index("idx_user_sessions_active_last_used", "is_active", "last_used_at"),
    )

    id: str = Field(default_factory=lambda: str(uuid.uuid4()), primary_key=True, max_length=36)

    user_id: str = Field(max_length=36)
