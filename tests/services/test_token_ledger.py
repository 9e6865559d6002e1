"""
Tests for the refresh token ledger.

Covers rotation chains, single redemption (including two sessions racing for
the same token), and invalidation by user and by session.
"""

import asyncio
from datetime import timedelta

import pytest
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from gatekeeper.core.errors import InvalidRefreshTokenError
from gatekeeper.core.security import TokenIssuer, verify_password
from gatekeeper.models.refresh_token import RefreshTokens
from gatekeeper.models.user import Users
from gatekeeper.repositories.refresh_tokens import RefreshTokenRepository
from gatekeeper.services.reconciler import hourly_sweep
from gatekeeper.services.session_tracker import RequestContext, SessionTracker
from gatekeeper.services.token_ledger import RefreshTokenLedger
from gatekeeper.utils import utcnow


async def _entries_for(db: AsyncSession, user_id: str) -> list[RefreshTokens]:
    result = await db.execute(
        select(RefreshTokens).where(RefreshTokens.user_id == user_id).order_by(RefreshTokens.created_at)
    )
    return list(result.scalars().all())


@pytest.mark.unit
class TestStore:
    async def test_store_records_digest(self, db_session: AsyncSession, test_user: Users, issuer: TokenIssuer):
        ledger = RefreshTokenLedger(db_session, issuer)
        pair = issuer.issue(test_user)

        entry = await ledger.store(test_user.id, pair.refresh_token)

        assert entry.id == issuer.verify(pair.refresh_token, "refresh").jti
        assert entry.token_hash != pair.refresh_token
        assert verify_password(pair.refresh_token, entry.token_hash)
        assert entry.is_used is False
        assert entry.session_id is None
        remaining = entry.expires_at - entry.created_at
        assert remaining == timedelta(days=7)

    async def test_digest_covers_whole_token(
        self, db_session: AsyncSession, test_user: Users, issuer: TokenIssuer
    ):
        """Two tokens sharing their first 72 bytes must not match each other's digest."""
        ledger = RefreshTokenLedger(db_session, issuer)
        first = issuer.issue(test_user).refresh_token
        second = issuer.issue(test_user).refresh_token
        assert first[:72] == second[:72]

        entry = await ledger.store(test_user.id, first)

        assert not verify_password(second, entry.token_hash)


@pytest.mark.unit
class TestRedeem:
    async def test_rotation_chain(
        self,
        db_session: AsyncSession,
        test_user: Users,
        issuer: TokenIssuer,
        request_context: RequestContext,
    ):
        ledger = RefreshTokenLedger(db_session, issuer)
        session = await SessionTracker(db_session, ledger).create(test_user.id, request_context)
        tokens = [(await ledger.issue_and_store(test_user, session.id)).refresh_token]

        for _ in range(3):
            _, pair = await ledger.redeem(tokens[-1])
            tokens.append(pair.refresh_token)

        entries = await _entries_for(db_session, test_user.id)
        assert len(entries) == 4
        assert [e.is_used for e in entries] == [True, True, True, False]
        assert {e.session_id for e in entries} == {session.id}

        # Every earlier link is dead
        for token in tokens[:-1]:
            with pytest.raises(InvalidRefreshTokenError):
                await ledger.redeem(token)

    async def test_redeem_returns_current_user(
        self, db_session: AsyncSession, test_user: Users, issuer: TokenIssuer
    ):
        ledger = RefreshTokenLedger(db_session, issuer)
        pair = await ledger.issue_and_store(test_user)

        user, new_pair = await ledger.redeem(pair.refresh_token)

        assert user.id == test_user.id
        assert issuer.verify(new_pair.access_token, "access").sub == test_user.id

    async def test_redeem_unrecorded_token(
        self, db_session: AsyncSession, test_user: Users, issuer: TokenIssuer
    ):
        ledger = RefreshTokenLedger(db_session, issuer)

        with pytest.raises(InvalidRefreshTokenError):
            await ledger.redeem(issuer.issue(test_user).refresh_token)

    async def test_redeem_expired_entry(self, db_session: AsyncSession, test_user: Users, issuer: TokenIssuer):
        ledger = RefreshTokenLedger(db_session, issuer)
        pair = await ledger.issue_and_store(test_user)
        entry = (await _entries_for(db_session, test_user.id))[0]
        entry.expires_at = utcnow() - timedelta(seconds=1)
        await db_session.flush()

        with pytest.raises(InvalidRefreshTokenError):
            await ledger.redeem(pair.refresh_token)

    async def test_redeem_with_tampered_digest(
        self, db_session: AsyncSession, test_user: Users, issuer: TokenIssuer
    ):
        ledger = RefreshTokenLedger(db_session, issuer)
        pair = await ledger.issue_and_store(test_user)
        entry = (await _entries_for(db_session, test_user.id))[0]
        entry.token_hash = "not-a-bcrypt-digest"
        await db_session.flush()

        with pytest.raises(InvalidRefreshTokenError):
            await ledger.redeem(pair.refresh_token)

    async def test_multiple_devices_refresh_independently(
        self,
        db_session: AsyncSession,
        test_user: Users,
        issuer: TokenIssuer,
        request_context: RequestContext,
    ):
        """Redeeming an older device's token is not blocked by a newer login."""
        ledger = RefreshTokenLedger(db_session, issuer)
        tracker = SessionTracker(db_session, ledger)
        phone = await tracker.create(test_user.id, request_context)
        laptop = await tracker.create(test_user.id, request_context)
        phone_pair = await ledger.issue_and_store(test_user, phone.id)
        await ledger.issue_and_store(test_user, laptop.id)

        _, rotated = await ledger.redeem(phone_pair.refresh_token)

        claims = issuer.verify(rotated.refresh_token, "refresh")
        successor = await db_session.get(RefreshTokens, claims.jti)
        assert successor is not None
        assert successor.session_id == phone.id


@pytest.mark.unit
class TestConcurrentRedemption:
    async def test_mark_used_is_test_and_set(
        self,
        session_maker: async_sessionmaker[AsyncSession],
        test_user: Users,
        issuer: TokenIssuer,
    ):
        """Both callers see the entry; only the first conditional UPDATE changes it."""
        async with session_maker() as setup:
            pair = await RefreshTokenLedger(setup, issuer).issue_and_store(test_user)
            await setup.commit()
        jti = issuer.verify(pair.refresh_token, "refresh").jti

        async with session_maker() as first, session_maker() as second:
            repo_a, repo_b = RefreshTokenRepository(first), RefreshTokenRepository(second)
            assert await repo_a.find_redeemable(test_user.id, jti, utcnow()) is not None
            assert await repo_b.find_redeemable(test_user.id, jti, utcnow()) is not None

            assert await repo_a.mark_used(jti) is True
            await first.commit()

            assert await repo_b.mark_used(jti) is False
            await second.rollback()

    async def test_parallel_redeem_single_success(
        self,
        session_maker: async_sessionmaker[AsyncSession],
        test_user: Users,
        issuer: TokenIssuer,
    ):
        async with session_maker() as setup:
            pair = await RefreshTokenLedger(setup, issuer).issue_and_store(test_user)
            await setup.commit()

        async def attempt() -> str:
            async with session_maker() as db:
                try:
                    await RefreshTokenLedger(db, issuer).redeem(pair.refresh_token)
                    await db.commit()
                    return "ok"
                except InvalidRefreshTokenError:
                    await db.rollback()
                    return "rejected"

        # Any other exception (lock errors included) propagates and fails the test
        outcomes = await asyncio.gather(attempt(), attempt())

        assert sorted(outcomes) == ["ok", "rejected"]

        async with session_maker() as check:
            entries = await _entries_for(check, test_user.id)
            # The original entry is spent and exactly one successor exists
            assert len(entries) == 2
            assert sum(1 for e in entries if not e.is_used) == 1

    async def test_sequential_redeem_from_second_session(
        self,
        session_maker: async_sessionmaker[AsyncSession],
        test_user: Users,
        issuer: TokenIssuer,
    ):
        async with session_maker() as setup:
            pair = await RefreshTokenLedger(setup, issuer).issue_and_store(test_user)
            await setup.commit()

        async with session_maker() as first:
            await RefreshTokenLedger(first, issuer).redeem(pair.refresh_token)
            await first.commit()

        async with session_maker() as second:
            with pytest.raises(InvalidRefreshTokenError):
                await RefreshTokenLedger(second, issuer).redeem(pair.refresh_token)


@pytest.mark.unit
class TestInvalidation:
    async def test_invalidate_for_user(self, db_session: AsyncSession, test_user: Users, issuer: TokenIssuer):
        ledger = RefreshTokenLedger(db_session, issuer)
        pairs = [await ledger.issue_and_store(test_user) for _ in range(3)]

        assert await ledger.invalidate_for_user(test_user.id) == 3
        # Already spent entries are not counted again
        assert await ledger.invalidate_for_user(test_user.id) == 0

        for pair in pairs:
            with pytest.raises(InvalidRefreshTokenError):
                await ledger.redeem(pair.refresh_token)

    async def test_invalidate_for_session_leaves_other_sessions(
        self,
        db_session: AsyncSession,
        test_user: Users,
        issuer: TokenIssuer,
        request_context: RequestContext,
    ):
        ledger = RefreshTokenLedger(db_session, issuer)
        tracker = SessionTracker(db_session, ledger)
        doomed = await tracker.create(test_user.id, request_context)
        kept = await tracker.create(test_user.id, request_context)
        doomed_pair = await ledger.issue_and_store(test_user, doomed.id)
        kept_pair = await ledger.issue_and_store(test_user, kept.id)

        assert await ledger.invalidate_for_session(doomed.id) == 1

        with pytest.raises(InvalidRefreshTokenError):
            await ledger.redeem(doomed_pair.refresh_token)
        await ledger.redeem(kept_pair.refresh_token)

    async def test_delete_raw(self, db_session: AsyncSession, test_user: Users, issuer: TokenIssuer):
        ledger = RefreshTokenLedger(db_session, issuer)
        pair = await ledger.issue_and_store(test_user)

        assert await ledger.delete_raw(pair.refresh_token) == 1
        assert await ledger.delete_raw(pair.refresh_token) == 0
        assert await _entries_for(db_session, test_user.id) == []


@pytest.mark.unit
class TestSessionState:
    async def test_expired_session_stops_rotation(
        self,
        db_session: AsyncSession,
        test_user: Users,
        issuer: TokenIssuer,
        request_context: RequestContext,
    ):
        ledger = RefreshTokenLedger(db_session, issuer)
        session = await SessionTracker(db_session, ledger).create(test_user.id, request_context)
        pair = await ledger.issue_and_store(test_user, session.id)
        session.expires_at = utcnow() - timedelta(days=1)
        await db_session.flush()

        with pytest.raises(InvalidRefreshTokenError):
            await ledger.redeem(pair.refresh_token)

        # The entry is not spent and no successor is stored
        entries = await _entries_for(db_session, test_user.id)
        assert len(entries) == 1
        assert entries[0].is_used is False

    async def test_idle_session_deactivated_by_sweep(
        self,
        db_session: AsyncSession,
        test_user: Users,
        issuer: TokenIssuer,
        request_context: RequestContext,
    ):
        ledger = RefreshTokenLedger(db_session, issuer)
        session = await SessionTracker(db_session, ledger).create(test_user.id, request_context)
        pair = await ledger.issue_and_store(test_user, session.id)
        session.last_used_at = utcnow() - timedelta(days=31)
        await db_session.flush()

        result = await hourly_sweep(db_session, utcnow())
        assert result.sessions_deactivated == 1

        with pytest.raises(InvalidRefreshTokenError):
            await ledger.redeem(pair.refresh_token)

        await db_session.refresh(session)
        # A rejected redemption does not revive the session
        assert session.last_used_at < utcnow() - timedelta(days=30)

    async def test_live_session_rotates(
        self,
        db_session: AsyncSession,
        test_user: Users,
        issuer: TokenIssuer,
        request_context: RequestContext,
    ):
        ledger = RefreshTokenLedger(db_session, issuer)
        session = await SessionTracker(db_session, ledger).create(test_user.id, request_context)
        pair = await ledger.issue_and_store(test_user, session.id)
        session.last_used_at = utcnow() - timedelta(days=29)
        await db_session.flush()

        await hourly_sweep(db_session, utcnow())
        _, rotated = await ledger.redeem(pair.refresh_token)

        assert rotated.refresh_token != pair.refresh_token
