"""
Expiry reconciler.

Two stateless sweeps over the session and ledger tables. Both take the
current time as an argument and are idempotent: running a sweep twice with
the same `now` changes nothing the second time.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta

from sqlalchemy.ext.asyncio import AsyncSession

from gatekeeper.config import settings
from gatekeeper.core.logging import get_logger
from gatekeeper.repositories.refresh_tokens import RefreshTokenRepository
from gatekeeper.repositories.sessions import SessionRepository

logger = get_logger(__name__)


@dataclass(frozen=True)
class SweepResult:
    tokens_deleted: int = 0
    sessions_deleted: int = 0
    sessions_deactivated: int = 0


async def daily_sweep(db: AsyncSession, now: datetime) -> SweepResult:
    """
    Delete expired or spent ledger entries, then expired or inactive sessions.

    Ledger entries go first so session deletion has nothing left to cascade.
    The caller commits.
    """
    tokens_deleted = await RefreshTokenRepository(db).delete_expired_or_used(now)
    sessions_deleted = await SessionRepository(db).delete_expired_or_inactive(now)

    logger.info(
        "daily_sweep_complete",
        tokens_deleted=tokens_deleted,
        sessions_deleted=sessions_deleted,
    )
    return SweepResult(tokens_deleted=tokens_deleted, sessions_deleted=sessions_deleted)


async def hourly_sweep(db: AsyncSession, now: datetime) -> SweepResult:
    """Deactivate sessions idle for longer than SESSION_IDLE_DAYS. The caller commits."""
    cutoff = now - timedelta(days=settings.SESSION_IDLE_DAYS)
    deactivated = await SessionRepository(db).deactivate_idle(cutoff)

    if deactivated:
        logger.info("hourly_sweep_complete", sessions_deactivated=deactivated, cutoff=cutoff)
    else:
        logger.debug("hourly_sweep_no_changes", cutoff=cutoff)
    return SweepResult(sessions_deactivated=deactivated)
