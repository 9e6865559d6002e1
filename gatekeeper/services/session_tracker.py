"""
Session tracker: one row per logged-in device.

Terminating a session also spends every refresh token issued under it, so no
token from that device can be rotated again.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta

from sqlalchemy.ext.asyncio import AsyncSession

from gatekeeper.config import settings
from gatekeeper.core.errors import ForbiddenError, NotFoundError
from gatekeeper.core.logging import get_logger
from gatekeeper.core.security import TokenIssuer
from gatekeeper.models.user_session import UserSessions
from gatekeeper.repositories.sessions import SessionRepository
from gatekeeper.services.token_ledger import RefreshTokenLedger
from gatekeeper.utils import utcnow

logger = get_logger(__name__)


@dataclass(frozen=True)
class RequestContext:
    """Client details captured when a session is created."""

    ip: str
    user_agent: str
    device_id: str | None = None


class SessionTracker:
    def __init__(self, db: AsyncSession, ledger: RefreshTokenLedger | None = None) -> None:
        self.sessions = SessionRepository(db)
        self.ledger = ledger or RefreshTokenLedger(db, TokenIssuer())

    async def create(self, user_id: str, context: RequestContext) -> UserSessions:
        """Start a new session; never reuses an existing row for the same device."""
        now = utcnow()
        session = await self.sessions.create(
            user_id=user_id,
            ip_address=context.ip[:45],
            user_agent=context.user_agent[:500],
            device_id=context.device_id,
            now=now,
            expires_at=now + timedelta(days=settings.SESSION_EXPIRE_DAYS),
        )
        logger.info(
            "session_created",
            session_id=session.id,
            user_id=user_id,
            ip=session.ip_address,
            device_id=session.device_id,
        )
        return session

    async def list_active(self, user_id: str) -> list[UserSessions]:
        return await self.sessions.list_active(user_id, utcnow())

    async def terminate(self, session_id: str, user_id: str) -> None:
        """
        Deactivate one of the caller's sessions.

        Raises:
            NotFoundError: no session with this id
            ForbiddenError: the session belongs to another user
        """
        session = await self.sessions.get(session_id)
        if session is None:
            raise NotFoundError("Session not found")
        if session.user_id != user_id:
            raise ForbiddenError("Session does not belong to the current user")

        await self.sessions.deactivate(session_id)
        spent = await self.ledger.invalidate_for_session(session_id)
        logger.info(
            "session_terminated",
            session_id=session_id,
            user_id=user_id,
            tokens_invalidated=spent,
        )

    async def terminate_all(self, user_id: str) -> None:
        """Deactivate every session of the user and spend all of their refresh tokens."""
        session_ids = await self.sessions.list_ids_for_user(user_id)
        await self.sessions.deactivate_for_user(user_id)

        spent = 0
        for session_id in session_ids:
            spent += await self.ledger.invalidate_for_session(session_id)
        # Tokens issued at registration have no session
        spent += await self.ledger.invalidate_for_user(user_id)

        logger.info(
            "all_sessions_terminated",
            user_id=user_id,
            sessions=len(session_ids),
            tokens_invalidated=spent,
        )

    async def touch(self, session_id: str, now: datetime | None = None) -> None:
        await self.sessions.touch(session_id, now or utcnow())
