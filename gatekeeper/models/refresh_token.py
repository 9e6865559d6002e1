"""
SQLModel-based RefreshToken model (the refresh token ledger).

Each row records one issued refresh token:
- token_hash: bcrypt digest checked on redemption
- token: the raw value, kept only so a logout whose signature check fails can
  still delete the row
- is_used: single-use marker, flipped exactly once by a conditional UPDATE
- session_id: entries of one session form its rotation chain

The row id equals the `jti` claim of the refresh JWT it records.
"""

from datetime import datetime

from sqlalchemy import ForeignKeyConstraint, Index, Text
from sqlmodel import Column, Field, SQLModel

from gatekeeper.utils import utcnow


class RefreshTokens(SQLModel, table=True):
    """Database table for issued refresh tokens."""

    __tablename__ = "refresh_tokens"

    __table_args__ = (
        ForeignKeyConstraint(
            ["user_id"],
            ["users.id"],
            ondelete="CASCADE",
            onupdate="CASCADE",
            name="fk_refresh_tokens_user_id",
        ),
        ForeignKeyConstraint(
            ["session_id"],
            ["user_sessions.id"],
            ondelete="CASCADE",
            onupdate="CASCADE",
            name="fk_refresh_tokens_session_id",
        ),
        Index("idx_refresh_tokens_user_id", "user_id"),
        Index("idx_refresh_tokens_session_id", "session_id"),
        Index("idx_refresh_tokens_expires_at", "expires_at"),
    )

    # Primary key (jti of the recorded token)
    id: str = Field(primary_key=True, max_length=36)

    user_id: str = Field(max_length=36)
    session_id: str | None = Field(default=None, max_length=36)

    token: str = Field(sa_column=Column(Text, nullable=False))
    token_hash: str = Field(max_length=255)

    is_used: bool = Field(default=False)

    created_at: datetime = Field(default_factory=utcnow)
    expires_at: datetime
