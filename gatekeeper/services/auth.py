"""
Authentication service.

Coordinates the credential store, session tracker and refresh token ledger
for the register / login / refresh / logout flows and for OAuth logins.
Route handlers call this service and never touch the repositories directly.
"""

import secrets
from dataclasses import dataclass

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from gatekeeper.config import AuthProvider, TokenType, UserRole
from gatekeeper.core.errors import ConflictError, InvalidCredentialsError
from gatekeeper.core.logging import get_logger
from gatekeeper.core.security import (
    TokenError,
    TokenIssuer,
    TokenPair,
    get_password_hash,
    verify_password,
)
from gatekeeper.models.user import Users
from gatekeeper.models.user_session import UserSessions
from gatekeeper.repositories.users import UserRepository
from gatekeeper.services.oauth import OAuthProfile
from gatekeeper.services.session_tracker import RequestContext, SessionTracker
from gatekeeper.services.token_ledger import RefreshTokenLedger

logger = get_logger(__name__)

_DUMMY_DIGEST = get_password_hash(secrets.token_urlsafe(32))


@dataclass(frozen=True)
class AuthResult:
    user: Users
    tokens: TokenPair
    session_id: str | None = None


class AuthService:
    def __init__(self, db: AsyncSession, issuer: TokenIssuer | None = None) -> None:
        self.db = db
        self.issuer = issuer or TokenIssuer()
        self.users = UserRepository(db)
        self.ledger = RefreshTokenLedger(db, self.issuer)
        self.sessions = SessionTracker(db, self.ledger)

    async def register(
        self,
        email: str,
        password: str,
        first_name: str | None = None,
        last_name: str | None = None,
        username: str | None = None,
    ) -> AuthResult:
        """
        Create a local account and issue its first token pair.

        No session is created; the refresh token is recorded without one.

        Raises:
            ConflictError: email or username already taken
        """
        email = email.strip().lower()
        if await self.users.get_by_email(email) is not None:
            raise ConflictError("User with this email already exists")
        if username and await self.users.get_by_username(username) is not None:
            raise ConflictError("User with this username already exists")

        try:
            # Savepoint: a concurrent registration that slipped past the checks
            # above hits the unique index, and the outer transaction survives
            async with self.db.begin_nested():
                user = await self.users.create(
                    email=email,
                    username=username,
                    password=get_password_hash(password),
                    first_name=first_name,
                    last_name=last_name,
                    role=UserRole.USER,
                    provider=AuthProvider.LOCAL,
                )
        except IntegrityError:
            logger.warning("register_integrity_error", email=email)
            raise ConflictError("User with this email already exists") from None
        tokens = await self.ledger.issue_and_store(user)

        logger.info("user_registered", user_id=user.id)
        return AuthResult(user=user, tokens=tokens)

    async def login(self, email: str, password: str, context: RequestContext) -> AuthResult:
        """
        Verify credentials and start a new session.

        Raises:
            InvalidCredentialsError: unknown email, OAuth-only account, wrong
                password or inactive account (indistinguishable to the caller)
        """
        user = await self.users.get_by_email(email.strip().lower())
        # Unknown emails and OAuth-only accounts still pay one bcrypt round
        digest = user.password if user is not None and user.password else _DUMMY_DIGEST
        password_ok = verify_password(password, digest)
        if user is None or user.password is None or not password_ok:
            logger.info("login_failed", reason="bad_credentials")
            raise InvalidCredentialsError()
        if not user.is_active:
            logger.info("login_failed", reason="inactive", user_id=user.id)
            raise InvalidCredentialsError()

        return await self._start_session(user, context)

    async def refresh(self, refresh_token: str) -> AuthResult:
        user, tokens = await self.ledger.redeem(refresh_token)
        return AuthResult(user=user, tokens=tokens)

    async def logout(self, refresh_token: str) -> None:
        """
        Revoke the caller's refresh tokens. Best effort: never raises.

        A verifiable token spends every unused entry of its user. A token
        that fails verification is deleted from the ledger by raw value.
        """
        try:
            try:
                claims = self.issuer.verify(refresh_token, TokenType.REFRESH)
            except TokenError:
                removed = await self.ledger.delete_raw(refresh_token)
                logger.info("logout_unverified_token", entries_removed=removed)
                return
            spent = await self.ledger.invalidate_for_user(claims.sub)
            logger.info("user_logged_out", user_id=claims.sub, tokens_invalidated=spent)
        except Exception as e:
            logger.error("logout_failed", error=str(e), error_type=type(e).__name__)
            await self.db.rollback()

    async def list_sessions(self, user_id: str) -> list[UserSessions]:
        return await self.sessions.list_active(user_id)

    async def terminate_session(self, session_id: str, user_id: str) -> None:
        await self.sessions.terminate(session_id, user_id)

    async def terminate_all_sessions(self, user_id: str) -> None:
        await self.sessions.terminate_all(user_id)

    async def validate_oauth_user(self, profile: OAuthProfile) -> Users:
        """
        Resolve a provider profile to a local user.

        An existing account with the same email is reused; if it has no
        provider link yet it is linked to this provider and marked verified.
        Otherwise a verified, password-less account is created.
        """
        email = profile.email.strip().lower()
        user = await self.users.get_by_email(email)

        if user is not None:
            if not user.has_provider_link:
                user = await self.users.update(
                    user,
                    provider=profile.provider,
                    provider_id=profile.provider_id,
                    is_verified=True,
                    avatar=user.avatar or profile.avatar,
                )
                logger.info("oauth_provider_linked", user_id=user.id, provider=profile.provider)
            return user

        user = await self.users.create(
            email=email,
            password=None,
            first_name=profile.first_name,
            last_name=profile.last_name,
            avatar=profile.avatar,
            role=UserRole.USER,
            provider=profile.provider,
            provider_id=profile.provider_id,
            is_verified=True,
        )
        logger.info("oauth_user_created", user_id=user.id, provider=profile.provider)
        return user

    async def login_oauth_user(self, user: Users, context: RequestContext) -> AuthResult:
        """
        Start a session for a user resolved by validate_oauth_user().

        Raises:
            InvalidCredentialsError: the account is deactivated
        """
        if not user.is_active:
            logger.info("login_failed", reason="inactive", user_id=user.id, provider=user.provider)
            raise InvalidCredentialsError()
        return await self._start_session(user, context)

    async def _start_session(self, user: Users, context: RequestContext) -> AuthResult:
        session = await self.sessions.create(user.id, context)
        tokens = await self.ledger.issue_and_store(user, session.id)
        logger.info("user_logged_in", user_id=user.id, session_id=session.id, provider=user.provider)
        return AuthResult(user=user, tokens=tokens, session_id=session.id)
