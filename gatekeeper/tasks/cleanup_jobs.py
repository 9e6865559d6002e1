"""Reconciler background jobs for arq worker (run as cron jobs)."""

from dataclasses import asdict
from typing import Any

from gatekeeper.core.database import get_async_session
from gatekeeper.core.logging import bind_context, get_logger
from gatekeeper.services.reconciler import daily_sweep, hourly_sweep
from gatekeeper.utils import utcnow

logger = get_logger(__name__)


async def cleanup_expired_tokens_job(ctx: dict[str, Any]) -> dict[str, Any]:
    """
    Daily sweep: delete expired/spent refresh tokens and dead sessions.

    Never raises; a failed run is logged and the next scheduled run retries.

    Args:
        ctx: ARQ context dict

    Returns:
        Sweep counts, or an error description when the run failed
    """
    bind_context(task="cleanup_expired_tokens")

    try:
        async with get_async_session() as db:
            result = await daily_sweep(db, utcnow())
            await db.commit()
    except Exception as e:
        logger.error(
            "cleanup_expired_tokens_failed",
            error=str(e),
            error_type=type(e).__name__,
        )
        return {"success": False, "error": str(e)}

    return {"success": True, **asdict(result)}


async def deactivate_idle_sessions_job(ctx: dict[str, Any]) -> dict[str, Any]:
    """
    Hourly sweep: deactivate sessions unused for SESSION_IDLE_DAYS.

    Never raises; a failed run is logged and the next scheduled run retries.
    """
    bind_context(task="deactivate_idle_sessions")

    try:
        async with get_async_session() as db:
            result = await hourly_sweep(db, utcnow())
            await db.commit()
    except Exception as e:
        logger.error(
            "deactivate_idle_sessions_failed",
            error=str(e),
            error_type=type(e).__name__,
        )
        return {"success": False, "error": str(e)}

    return {"success": True, **asdict(result)}
