"""
Refresh token ledger.

Every issued refresh token is recorded as a bcrypt digest (plus the raw value
for the fallback logout path). Redemption is single use: the entry is spent
by a conditional UPDATE, and a successor entry is stored under the same
session, continuing that session's rotation chain.
"""

from datetime import timedelta

from sqlalchemy.ext.asyncio import AsyncSession

from gatekeeper.config import TokenType, settings
from gatekeeper.core.errors import InvalidRefreshTokenError
from gatekeeper.core.logging import get_logger
from gatekeeper.core.security import (
    TokenError,
    TokenIssuer,
    TokenPair,
    get_password_hash,
    verify_password,
)
from gatekeeper.models.refresh_token import RefreshTokens
from gatekeeper.models.user import Users
from gatekeeper.repositories.refresh_tokens import RefreshTokenRepository
from gatekeeper.repositories.sessions import SessionRepository
from gatekeeper.repositories.users import UserRepository
from gatekeeper.utils import utcnow

logger = get_logger(__name__)


class RefreshTokenLedger:
    def __init__(self, db: AsyncSession, issuer: TokenIssuer) -> None:
        self.issuer = issuer
        self.tokens = RefreshTokenRepository(db)
        self.sessions = SessionRepository(db)
        self.users = UserRepository(db)

    async def store(
        self,
        user_id: str,
        raw_token: str,
        session_id: str | None = None,
    ) -> RefreshTokens:
        """
        Record an issued refresh token.

        The row id is the token's `jti`, which is how redeem() finds it again.
        """
        claims = self.issuer.verify(raw_token, TokenType.REFRESH)
        now = utcnow()
        return await self.tokens.create(
            entry_id=claims.jti,
            user_id=user_id,
            token=raw_token,
            token_hash=get_password_hash(raw_token),
            session_id=session_id,
            now=now,
            expires_at=now + timedelta(days=settings.REFRESH_TOKEN_EXPIRE_DAYS),
        )

    async def issue_and_store(self, user: Users, session_id: str | None = None) -> TokenPair:
        """Issue a new pair for the user and record its refresh half."""
        pair = self.issuer.issue(user)
        await self.store(user.id, pair.refresh_token, session_id)
        return pair

    async def redeem(self, raw_token: str) -> tuple[Users, TokenPair]:
        """
        Exchange a refresh token for a new pair, spending the old one.

        Raises:
            InvalidRefreshTokenError: bad signature or expired, no redeemable
                entry, digest mismatch, the session ended, lost the race to
                another redeemer, or the user is gone or deactivated
        """
        try:
            claims = self.issuer.verify(raw_token, TokenType.REFRESH)
        except TokenError as e:
            logger.info("refresh_rejected", reason="signature", error=str(e))
            raise InvalidRefreshTokenError() from e

        entry = await self.tokens.find_redeemable(claims.sub, claims.jti, utcnow())
        if entry is None:
            logger.info("refresh_rejected", reason="no_entry", user_id=claims.sub)
            raise InvalidRefreshTokenError()

        if not verify_password(raw_token, entry.token_hash):
            logger.warning("refresh_rejected", reason="digest_mismatch", user_id=claims.sub)
            raise InvalidRefreshTokenError()

        now = utcnow()
        if entry.session_id is not None:
            session = await self.sessions.get(entry.session_id)
            if session is None or not session.is_active or session.expires_at <= now:
                logger.info("refresh_rejected", reason="session_ended", session_id=entry.session_id)
                raise InvalidRefreshTokenError()

        if not await self.tokens.mark_used(entry.id):
            logger.warning("refresh_rejected", reason="already_redeemed", user_id=claims.sub)
            raise InvalidRefreshTokenError()

        # Re-fetch: role or status may have changed since the token was signed
        user = await self.users.get_by_id(entry.user_id)
        if user is None or not user.is_active:
            logger.info("refresh_rejected", reason="user_unavailable", user_id=entry.user_id)
            raise InvalidRefreshTokenError()

        pair = await self.issue_and_store(user, entry.session_id)
        if entry.session_id is not None:
            await self.sessions.touch(entry.session_id, now)

        logger.info("refresh_token_rotated", user_id=user.id, session_id=entry.session_id)
        return user, pair

    async def invalidate_for_user(self, user_id: str) -> int:
        return await self.tokens.mark_used_for_user(user_id)

    async def invalidate_for_session(self, session_id: str) -> int:
        return await self.tokens.mark_used_for_session(session_id)

    async def delete_raw(self, raw_token: str) -> int:
        """Delete ledger rows by raw value; used when logout cannot verify the token."""
        return await self.tokens.delete_by_raw(raw_token)
