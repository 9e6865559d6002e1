"""Typed data access for Users (the credential store)."""

from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from gatekeeper.models.user import Users


class UserRepository:
    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    async def get_by_id(self, user_id: str) -> Users | None:
        return await self.db.get(Users, user_id)

    async def get_by_email(self, email: str) -> Users | None:
        result = await self.db.execute(select(Users).where(Users.email == email))  # type: ignore[arg-type]
        return result.scalar_one_or_none()

    async def get_by_username(self, username: str) -> Users | None:
        result = await self.db.execute(select(Users).where(Users.username == username))  # type: ignore[arg-type]
        return result.scalar_one_or_none()

    async def create(self, **fields: Any) -> Users:
        """Insert a user and flush so its id and defaults are populated."""
        user = Users(**fields)
        self.db.add(user)
        await self.db.flush()
        await self.db.refresh(user)
        return user

    async def update(self, user: Users, **fields: Any) -> Users:
        for key, value in fields.items():
            setattr(user, key, value)
        await self.db.flush()
        return user
