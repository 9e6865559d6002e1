"""Typed data access for UserSessions."""

from datetime import datetime

from sqlalchemy import delete, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from gatekeeper.models.user_session import UserSessions


class SessionRepository:
    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    async def create(
        self,
        user_id: str,
        ip_address: str,
        user_agent: str,
        device_id: str | None,
        now: datetime,
        expires_at: datetime,
    ) -> UserSessions:
        session = UserSessions(
            user_id=user_id,
            ip_address=ip_address,
            user_agent=user_agent,
            device_id=device_id,
            is_active=True,
            created_at=now,
            last_used_at=now,
            expires_at=expires_at,
        )
        self.db.add(session)
        await self.db.flush()
        return session

    async def get(self, session_id: str) -> UserSessions | None:
        return await self.db.get(UserSessions, session_id)

    async def list_active(self, user_id: str, now: datetime) -> list[UserSessions]:
        """Active, unexpired sessions, most recently used first."""
        result = await self.db.execute(
            select(UserSessions)
            .where(
                UserSessions.user_id == user_id,  # type: ignore[arg-type]
                UserSessions.is_active == True,  # type: ignore[arg-type]  # noqa: E712
                UserSessions.expires_at > now,  # type: ignore[arg-type, operator]
            )
            .order_by(UserSessions.last_used_at.desc())  # type: ignore[attr-defined]
        )
        return list(result.scalars().all())

    async def list_ids_for_user(self, user_id: str) -> list[str]:
        result = await self.db.execute(
            select(UserSessions.id).where(UserSessions.user_id == user_id)  # type: ignore[arg-type]
        )
        return list(result.scalars().all())

    async def deactivate(self, session_id: str) -> int:
        result = await self.db.execute(
            update(UserSessions)
            .where(UserSessions.id == session_id)  # type: ignore[arg-type]
            .values(is_active=False)
            .execution_options(synchronize_session="evaluate")
        )
        return result.rowcount  # type: ignore[attr-defined, no-any-return]

    async def deactivate_for_user(self, user_id: str) -> int:
        result = await self.db.execute(
            update(UserSessions)
            .where(UserSessions.user_id == user_id)  # type: ignore[arg-type]
            .values(is_active=False)
            .execution_options(synchronize_session="evaluate")
        )
        return result.rowcount  # type: ignore[attr-defined, no-any-return]

    async def touch(self, session_id: str, now: datetime) -> int:
        result = await self.db.execute(
            update(UserSessions)
            .where(UserSessions.id == session_id)  # type: ignore[arg-type]
            .values(last_used_at=now)
            .execution_options(synchronize_session="evaluate")
        )
        return result.rowcount  # type: ignore[attr-defined, no-any-return]

    async def delete_expired_or_inactive(self, now: datetime) -> int:
        result = await self.db.execute(
            delete(UserSessions)
            .where(
                or_(
                    UserSessions.expires_at < now,  # type: ignore[arg-type, operator]
                    UserSessions.is_active == False,  # type: ignore[arg-type]  # noqa: E712
                )
            )
            .execution_options(synchronize_session="evaluate")
        )
        return result.rowcount  # type: ignore[attr-defined, no-any-return]

    async def deactivate_idle(self, cutoff: datetime) -> int:
        """Deactivate active sessions not used since `cutoff`."""
        result = await self.db.execute(
            update(UserSessions)
            .where(
                UserSessions.last_used_at < cutoff,  # type: ignore[arg-type, operator]
                UserSessions.is_active == True,  # type: ignore[arg-type]  # noqa: E712
            )
            .values(is_active=False)
            .execution_options(synchronize_session="evaluate")
        )
        return result.rowcount  # type: ignore[attr-defined, no-any-return]
