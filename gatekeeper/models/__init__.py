"""
Database models.

Importing this package registers every table on SQLModel.metadata, which
Alembic autogenerate and the test suite rely on.

For modifications:
1. Edit the appropriate model file in gatekeeper/models/
2. Create an Alembic migration to reflect the changes
"""

from gatekeeper.models.refresh_token import RefreshTokens
from gatekeeper.models.user import Users
from gatekeeper.models.user_session import UserSessions

__all__ = [
    "RefreshTokens",
    "UserSessions",
    "Users",
]
