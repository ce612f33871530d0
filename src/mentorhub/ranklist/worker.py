"""Ranklist reconcile arq worker: periodic course_user_stats rebuilds.

The solve path keeps the rollup current; this job repairs rows missed by a
crashed request or seeded data. Totals are never lowered.

Import path for arq CLI: arq mentorhub.ranklist.worker.RanklistWorkerSettings
"""

from __future__ import annotations

import logging

import redis.asyncio as aioredis
from arq import cron
from arq.connections import RedisSettings
from sqlalchemy.ext.asyncio import AsyncSession

from mentorhub.config import get_settings
from mentorhub.database import close_db, get_session, init_db
from mentorhub.middleware.logging import setup_logging
from mentorhub.ranklist.aggregate import rebuild_course_stats
from mentorhub.ranklist.service import invalidate_ranklist_cache, publish_ranklist_update

logger = logging.getLogger(__name__)


async def _get_db_session() -> AsyncSession:
    """Get a database session for the worker."""
    async for session in get_session():
        return session
    raise RuntimeError("Failed to get database session")


async def reconcile_course_stats(ctx: dict) -> int:
    """Rebuild course_user_stats from solves and tell viewers of every rebuilt course."""
    redis_client: aioredis.Redis | None = ctx.get("redis")
    db = await _get_db_session()
    try:
        written = await rebuild_course_stats(db)
    finally:
        await db.close()

    if written:
        course_ids = sorted(written)
        await invalidate_ranklist_cache(redis_client, course_ids)
        await publish_ranklist_update(redis_client, None, course_ids)
    return sum(written.values())


async def ranklist_startup(ctx: dict) -> None:
    """Initialize Redis + DB connections on worker startup."""
    settings = get_settings()
    setup_logging(settings)
    await init_db(settings.database_url)
    ctx["redis"] = aioredis.from_url(
        settings.redis_url,
        encoding="utf-8",
        decode_responses=True,
        max_connections=5,
    )
    logger.info("Ranklist worker started")


async def ranklist_shutdown(ctx: dict) -> None:
    """Clean up on worker shutdown."""
    redis_client = ctx.get("redis")
    if redis_client:
        await redis_client.aclose()
    await close_db()
    logger.info("Ranklist worker shut down")


def _reconcile_minutes() -> set[int]:
    interval = max(1, min(get_settings().stats_reconcile_interval_minutes, 60))
    return set(range(0, 60, interval))


class RanklistWorkerSettings:
    """arq worker settings for the ranklist rollup reconcile."""

    functions = [reconcile_course_stats]
    cron_jobs = [cron(reconcile_course_stats, minute=_reconcile_minutes(), run_at_startup=True)]
    on_startup = ranklist_startup
    on_shutdown = ranklist_shutdown
    redis_settings = RedisSettings.from_dsn(get_settings().redis_url)
    max_jobs = 1
    job_timeout = 300
