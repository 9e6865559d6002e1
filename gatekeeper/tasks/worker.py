"""
ARQ worker configuration and cron schedule.

Run worker with: uv run arq gatekeeper.tasks.worker.WorkerSettings
"""

from typing import Any

from arq import cron
from arq.connections import RedisSettings

from gatekeeper.config import settings
from gatekeeper.tasks.cleanup_jobs import (
    cleanup_expired_tokens_job,
    deactivate_idle_sessions_job,
)


async def startup(ctx: dict[str, Any]) -> None:
    """Worker startup - configure logging for the worker process."""
    from gatekeeper.core.logging import configure_logging, get_logger

    configure_logging()
    logger = get_logger(__name__)
    logger.info("arq_worker_starting", redis_url=settings.ARQ_REDIS_URL)


async def shutdown(ctx: dict[str, Any]) -> None:
    """Worker shutdown - cleanup resources."""
    from gatekeeper.core.database import engine
    from gatekeeper.core.logging import get_logger

    await engine.dispose()
    logger = get_logger(__name__)
    logger.info("arq_worker_shutdown")


class WorkerSettings:
    """ARQ worker configuration."""

    # Redis connection from settings
    redis_settings = RedisSettings.from_dsn(settings.ARQ_REDIS_URL)

    # Worker behavior
    max_jobs = 2  # Only the two sweeps run here
    job_timeout = 300  # 5 minutes max per job
    keep_result = settings.ARQ_KEEP_RESULT  # Keep results for 1 hour

    # Lifecycle hooks
    on_startup = startup
    on_shutdown = shutdown

    # Scheduled sweeps (worker clock is UTC)
    cron_jobs = [
        cron(cleanup_expired_tokens_job, hour={0}, minute={0}, run_at_startup=False),
        cron(deactivate_idle_sessions_job, minute={0}, run_at_startup=False),
    ]
