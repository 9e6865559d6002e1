"""Tests for AuthService orchestration not covered through the HTTP layer."""

import asyncio
from unittest.mock import AsyncMock, patch

import pytest
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from gatekeeper.config import AuthProvider
from gatekeeper.core.errors import ConflictError, InvalidCredentialsError, InvalidRefreshTokenError
from gatekeeper.core.security import TokenIssuer, verify_password
from gatekeeper.models.user import Users
from gatekeeper.models.user_session import UserSessions
from gatekeeper.services.auth import AuthService
from gatekeeper.services.oauth import OAuthProfile
from gatekeeper.services.session_tracker import RequestContext
from tests.conftest import TEST_PASSWORD


def _profile(email: str = "new@example.com", provider: str = AuthProvider.GOOGLE) -> OAuthProfile:
    return OAuthProfile(
        email=email,
        provider=provider,
        provider_id="prov-77",
        first_name="New",
        last_name="Person",
        avatar="https://img.test/p.png",
    )


@pytest.mark.unit
class TestRegister:
    async def test_register_normalizes_email(self, db_session: AsyncSession, issuer: TokenIssuer):
        result = await AuthService(db_session, issuer).register("  Mixed@Example.COM ", "Secret123")

        assert result.user.email == "mixed@example.com"
        assert result.session_id is None
        assert verify_password("Secret123", result.user.password)

    async def test_register_conflict_is_case_insensitive(self, db_session: AsyncSession, test_user: Users):
        with pytest.raises(ConflictError):
            await AuthService(db_session).register(test_user.email.upper(), "Secret123")

    async def test_insert_race_becomes_conflict(self, db_session: AsyncSession, test_user: Users):
        """The duplicate check passed but the unique index rejects the insert."""
        service = AuthService(db_session)

        with patch.object(service.users, "get_by_email", AsyncMock(return_value=None)):
            with pytest.raises(ConflictError):
                await service.register(test_user.email, "Secret123")

        # The outer transaction is still usable after the failed insert
        other = await service.register("after-race@example.com", "Secret123")
        assert other.user.id != test_user.id


@pytest.mark.unit
class TestConcurrentRegistration:
    async def test_parallel_register_single_success(self, session_maker: async_sessionmaker[AsyncSession]):
        async def attempt() -> str:
            async with session_maker() as db:
                try:
                    await AuthService(db).register("race@example.com", "Secret123")
                    await db.commit()
                    return "ok"
                except ConflictError:
                    await db.rollback()
                    return "conflict"

        outcomes = await asyncio.gather(attempt(), attempt())

        assert sorted(outcomes) == ["conflict", "ok"]
        async with session_maker() as check:
            users = (await check.execute(select(Users).where(Users.email == "race@example.com"))).scalars().all()
            assert len(users) == 1


@pytest.mark.unit
class TestLogin:
    async def test_login_binds_tokens_to_new_session(
        self, db_session: AsyncSession, test_user: Users, request_context: RequestContext
    ):
        result = await AuthService(db_session).login(test_user.email, TEST_PASSWORD, request_context)

        assert result.session_id is not None
        session = await db_session.get(UserSessions, result.session_id)
        assert session is not None
        assert session.user_id == test_user.id

    async def test_unknown_email_still_runs_bcrypt(
        self, db_session: AsyncSession, request_context: RequestContext
    ):
        with patch("gatekeeper.services.auth.verify_password", wraps=verify_password) as spy:
            with pytest.raises(InvalidCredentialsError):
                await AuthService(db_session).login("nobody@example.com", "Secret123", request_context)

        spy.assert_called_once()
        assert spy.call_args.args[1] is not None

    async def test_oauth_only_account_still_runs_bcrypt(
        self, db_session: AsyncSession, oauth_only_user: Users, request_context: RequestContext
    ):
        with patch("gatekeeper.services.auth.verify_password", wraps=verify_password) as spy:
            with pytest.raises(InvalidCredentialsError):
                await AuthService(db_session).login(oauth_only_user.email, "Secret123", request_context)

        spy.assert_called_once()
        assert spy.call_args.args[1] is not None

    @pytest.mark.parametrize("password", ["", "wrong", TEST_PASSWORD.lower()])
    async def test_wrong_passwords(
        self, db_session: AsyncSession, test_user: Users, request_context: RequestContext, password: str
    ):
        with pytest.raises(InvalidCredentialsError):
            await AuthService(db_session).login(test_user.email, password, request_context)


@pytest.mark.unit
class TestLogout:
    async def test_logout_swallows_storage_errors(self, db_session: AsyncSession, test_user: Users, issuer: TokenIssuer):
        service = AuthService(db_session, issuer)
        pair = issuer.issue(test_user)

        with patch.object(
            service.ledger, "invalidate_for_user", AsyncMock(side_effect=RuntimeError("db down"))
        ):
            await service.logout(pair.refresh_token)


@pytest.mark.unit
class TestValidateOAuthUser:
    async def test_creates_verified_passwordless_user(self, db_session: AsyncSession):
        user = await AuthService(db_session).validate_oauth_user(_profile())

        assert user.email == "new@example.com"
        assert user.password is None
        assert user.is_verified is True
        assert user.provider == AuthProvider.GOOGLE
        assert user.provider_id == "prov-77"
        assert user.first_name == "New"
        assert user.avatar == "https://img.test/p.png"

    async def test_returns_same_user_on_second_login(self, db_session: AsyncSession):
        service = AuthService(db_session)
        first = await service.validate_oauth_user(_profile())
        second = await service.validate_oauth_user(_profile())

        assert first.id == second.id
        count = len((await db_session.execute(select(Users))).scalars().all())
        assert count == 1

    async def test_links_existing_local_account(self, db_session: AsyncSession, test_user: Users):
        assert test_user.is_verified is False

        user = await AuthService(db_session).validate_oauth_user(_profile(email=test_user.email))

        assert user.id == test_user.id
        assert user.provider == AuthProvider.GOOGLE
        assert user.provider_id == "prov-77"
        assert user.is_verified is True
        # Password login keeps working after linking
        assert verify_password(TEST_PASSWORD, user.password)

    async def test_keeps_existing_provider_link(self, db_session: AsyncSession, oauth_only_user: Users):
        user = await AuthService(db_session).validate_oauth_user(
            _profile(email=oauth_only_user.email, provider=AuthProvider.LINKEDIN)
        )

        assert user.provider == AuthProvider.GITHUB
        assert user.provider_id == "gh-1001"


@pytest.mark.unit
class TestLoginOAuthUser:
    async def test_creates_session(self, db_session: AsyncSession, request_context: RequestContext):
        service = AuthService(db_session)
        user = await service.validate_oauth_user(_profile())

        result = await service.login_oauth_user(user, request_context)

        assert result.session_id is not None
        sessions = await service.list_sessions(user.id)
        assert [s.id for s in sessions] == [result.session_id]

        # The OAuth refresh token dies with its session
        await service.terminate_session(result.session_id, user.id)
        with pytest.raises(InvalidRefreshTokenError):
            await service.refresh(result.tokens.refresh_token)

    async def test_rejects_inactive_user(
        self, db_session: AsyncSession, oauth_only_user: Users, request_context: RequestContext
    ):
        oauth_only_user.is_active = False
        await db_session.flush()

        with pytest.raises(InvalidCredentialsError):
            await AuthService(db_session).login_oauth_user(oauth_only_user, request_context)
