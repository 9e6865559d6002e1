"""Typed data access for the refresh token ledger."""

from datetime import datetime

from sqlalchemy import delete, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from gatekeeper.models.refresh_token import RefreshTokens


class RefreshTokenRepository:
    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    async def create(
        self,
        entry_id: str,
        user_id: str,
        token: str,
        token_hash: str,
        session_id: str | None,
        now: datetime,
        expires_at: datetime,
    ) -> RefreshTokens:
        entry = RefreshTokens(
            id=entry_id,
            user_id=user_id,
            session_id=session_id,
            token=token,
            token_hash=token_hash,
            is_used=False,
            created_at=now,
            expires_at=expires_at,
        )
        self.db.add(entry)
        await self.db.flush()
        return entry

    async def find_redeemable(self, user_id: str, jti: str, now: datetime) -> RefreshTokens | None:
        """The user's most recent unused, unexpired entry recording token `jti`."""
        result = await self.db.execute(
            select(RefreshTokens)
            .where(
                RefreshTokens.user_id == user_id,  # type: ignore[arg-type]
                RefreshTokens.id == jti,  # type: ignore[arg-type]
                RefreshTokens.is_used == False,  # type: ignore[arg-type]  # noqa: E712
                RefreshTokens.expires_at > now,  # type: ignore[arg-type, operator]
            )
            .order_by(RefreshTokens.created_at.desc())  # type: ignore[attr-defined]
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def mark_used(self, entry_id: str) -> bool:
        """
        Flip is_used false -> true for one entry.

        The WHERE clause makes this a test-and-set in the database: of any
        number of concurrent callers exactly one sees a changed row.
        """
        result = await self.db.execute(
            update(RefreshTokens)
            .where(
                RefreshTokens.id == entry_id,  # type: ignore[arg-type]
                RefreshTokens.is_used == False,  # type: ignore[arg-type]  # noqa: E712
            )
            .values(is_used=True)
            .execution_options(synchronize_session="evaluate")
        )
        return result.rowcount == 1  # type: ignore[attr-defined, no-any-return]

    async def mark_used_for_user(self, user_id: str) -> int:
        result = await self.db.execute(
            update(RefreshTokens)
            .where(
                RefreshTokens.user_id == user_id,  # type: ignore[arg-type]
                RefreshTokens.is_used == False,  # type: ignore[arg-type]  # noqa: E712
            )
            .values(is_used=True)
            .execution_options(synchronize_session="evaluate")
        )
        return result.rowcount  # type: ignore[attr-defined, no-any-return]

    async def mark_used_for_session(self, session_id: str) -> int:
        result = await self.db.execute(
            update(RefreshTokens)
            .where(
                RefreshTokens.session_id == session_id,  # type: ignore[arg-type]
                RefreshTokens.is_used == False,  # type: ignore[arg-type]  # noqa: E712
            )
            .values(is_used=True)
            .execution_options(synchronize_session="evaluate")
        )
        return result.rowcount  # type: ignore[attr-defined, no-any-return]

    async def delete_by_raw(self, token: str) -> int:
        result = await self.db.execute(
            delete(RefreshTokens)
            .where(RefreshTokens.token == token)  # type: ignore[arg-type]
            .execution_options(synchronize_session="evaluate")
        )
        return result.rowcount  # type: ignore[attr-defined, no-any-return]

    async def delete_expired_or_used(self, now: datetime) -> int:
        result = await self.db.execute(
            delete(RefreshTokens)
            .where(
                or_(
                    RefreshTokens.expires_at < now,  # type: ignore[arg-type, operator]
                    RefreshTokens.is_used == True,  # type: ignore[arg-type]  # noqa: E712
                )
            )
            .execution_options(synchronize_session="evaluate")
        )
        return result.rowcount  # type: ignore[attr-defined, no-any-return]
