#!/usr/bin/env python3
"""
Seed the database with one account per role.

Existing accounts (matched by email) are left untouched, so the script can be
run repeatedly.

Usage:
    uv run python scripts/seed_db.py
    uv run python scripts/seed_db.py --create-tables
"""

import argparse
import asyncio
from typing import Any

from gatekeeper.config import AuthProvider, UserRole
from gatekeeper.core.database import engine, get_async_session, init_models
from gatekeeper.core.security import get_password_hash
from gatekeeper.repositories.users import UserRepository

# Test accounts for development databases
SEED_ACCOUNTS: list[dict[str, Any]] = [
    {
        "email": "admin@example.com",
        "password": "admin123",
        "first_name": "Admin",
        "last_name": "User",
        "role": UserRole.ADMIN,
    },
    {
        "email": "moderator@example.com",
        "password": "moderator123",
        "first_name": "Moderator",
        "last_name": "User",
        "role": UserRole.MODERATOR,
    },
    {
        "email": "user@example.com",
        "password": "user123",
        "first_name": "Regular",
        "last_name": "User",
        "role": UserRole.USER,
    },
]


async def seed(create_tables: bool) -> None:
    if create_tables:
        await init_models()

    async with get_async_session() as db:
        users = UserRepository(db)
        for account in SEED_ACCOUNTS:
            if await users.get_by_email(account["email"]) is not None:
                print(f"  exists:  {account['email']}")
                continue
            await users.create(
                email=account["email"],
                password=get_password_hash(account["password"]),
                first_name=account["first_name"],
                last_name=account["last_name"],
                role=account["role"],
                provider=AuthProvider.LOCAL,
                is_active=True,
                is_verified=True,
            )
            print(f"  created: {account['email']} / {account['password']} ({account['role']})")
        await db.commit()

    await engine.dispose()


def main() -> None:
    parser = argparse.ArgumentParser(description="Seed development accounts")
    parser.add_argument(
        "--create-tables",
        action="store_true",
        help="Create missing tables first (instead of running alembic)",
    )
    args = parser.parse_args()

    print("Seeding database...")
    asyncio.run(seed(args.create_tables))
    print("Done.")


if __name__ == "__main__":
    main()
